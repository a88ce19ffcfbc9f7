"""
Hoosat wallet: transaction building, fee estimation and node access.
"""

__version__ = "0.3.0"
