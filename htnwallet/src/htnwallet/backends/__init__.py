"""
Node backend implementations.

Available backends:
- RestProxyBackend: Hoosat REST proxy over HTTP
"""

from htnwallet.backends.base import NodeBackend
from htnwallet.backends.rest_proxy import RestProxyBackend

__all__ = [
    "NodeBackend",
    "RestProxyBackend",
]
