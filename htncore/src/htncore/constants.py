"""
Hoosat protocol and wallet policy constants.

The mass constants below mirror the node's fee policy. If they drift from what
the node computes, signed transactions will be rejected for paying too little
or will silently overpay.
"""

from __future__ import annotations

from decimal import Decimal

# Currency units
SOMPI_PER_HTN = 100_000_000
HTN_DECIMALS = 8
MAX_SOMPI = 0xFFFF_FFFF_FFFF_FFFF  # outputs are serialized as u64

# Outputs below this are not created; the value goes to the miner instead
DUST_THRESHOLD = 1_000  # sompi

# Spam protection: per-transaction output caps
MAX_RECIPIENT_OUTPUTS = 2
MAX_TOTAL_OUTPUTS = 3

# Coinbase outputs need this much DAA score depth before they can be spent
COINBASE_MATURITY = 100

# Mass formula (node fee policy)
BASE_OVERHEAD = 0
INPUT_BYTES = 181
OUTPUT_BYTES = 34
SCRIPT_BYTES_PER_OUTPUT = 34
MASS_PER_BYTE = 1
MASS_PER_SCRIPT_BYTE = 10
MASS_PER_SIGOP = 1_000
MINIMUM_RELAY_FEE_RATE = 1  # sompi per mass unit

# Market fee estimation
DEFAULT_FEE_CACHE_TTL = 60.0  # seconds
DEFAULT_MIN_FEE_SAMPLES = 5
DEFAULT_IQR_MULTIPLIER = Decimal("1.5")
# Shape used to price the per-tier totals in a recommendation set
REFERENCE_INPUT_COUNT = 1
REFERENCE_OUTPUT_COUNT = 2

# Transaction defaults
TX_VERSION = 0
DEFAULT_SEQUENCE = 0
DEFAULT_SIG_OP_COUNT = 1
SUBNETWORK_ID_SIZE = 20
SUBNETWORK_ID_NATIVE = bytes(SUBNETWORK_ID_SIZE)
SUBNETWORK_ID_COINBASE = bytes([1]) + bytes(SUBNETWORK_ID_SIZE - 1)
SUBNETWORK_ID_REGISTRY = bytes([2]) + bytes(SUBNETWORK_ID_SIZE - 1)
# Only this subnetwork may carry an arbitrary payload
SUBNETWORK_ID_PAYLOAD = bytes([3]) + bytes(SUBNETWORK_ID_SIZE - 1)

# Signature hash types
SIGHASH_ALL = 0b0000_0001
SIGHASH_NONE = 0b0000_0010
SIGHASH_SINGLE = 0b0000_0100
SIGHASH_ANYONECANPAY = 0b1000_0000
SIGHASH_MASK = 0b0000_0111

# Script opcodes used by standard locking scripts
OP_DATA_32 = 0x20
OP_DATA_33 = 0x21
OP_DATA_65 = 0x41
OP_EQUAL = 0x87
OP_BLAKE2B = 0xAA
OP_CHECKSIGECDSA = 0xAB
OP_CHECKSIG = 0xAC
SCRIPT_PUBLIC_KEY_VERSION = 0
