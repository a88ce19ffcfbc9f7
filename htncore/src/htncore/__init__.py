"""
htncore - Core primitives for Hoosat transaction construction

Provides amounts, addresses, data models, the error taxonomy and the
mass-based fee calculator.
"""

__version__ = "0.3.0"

from htncore.address import (
    AddressVersion,
    DecodedAddress,
    address_to_script_public_key,
    decode_address,
    encode_address,
    get_address_network,
    get_address_type,
    is_valid_address,
    public_key_to_address,
    script_public_key_to_address,
    validate_address,
)
from htncore.amounts import format_htn, htn_to_sompi, parse_sompi, sompi_to_htn, validate_amount
from htncore.constants import (
    COINBASE_MATURITY,
    DUST_THRESHOLD,
    MAX_RECIPIENT_OUTPUTS,
    MAX_TOTAL_OUTPUTS,
    SOMPI_PER_HTN,
)
from htncore.errors import (
    BuilderStateError,
    EstimationUnavailableError,
    HoosatTxError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidMassParametersError,
    InvalidPrivateKeyError,
    NodeBackendError,
    SigningKeyMissingError,
    SpamProtectionError,
    TooManyRecipientsError,
    TooManyTotalOutputsError,
    TransactionSigningError,
    TransactionValidationError,
)
from htncore.mass import compute_mass, compute_min_fee, compute_transaction_mass, fee_for_rate
from htncore.models import (
    FeeEstimate,
    FeePriority,
    FeeRecommendations,
    MempoolEntry,
    NetworkType,
    ScriptPublicKey,
    Transaction,
    TransactionInput,
    TransactionOutput,
    UnspentOutput,
)

__all__ = [
    "AddressVersion",
    "BuilderStateError",
    "COINBASE_MATURITY",
    "DUST_THRESHOLD",
    "DecodedAddress",
    "EstimationUnavailableError",
    "FeeEstimate",
    "FeePriority",
    "FeeRecommendations",
    "HoosatTxError",
    "InsufficientFundsError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidMassParametersError",
    "InvalidPrivateKeyError",
    "MAX_RECIPIENT_OUTPUTS",
    "MAX_TOTAL_OUTPUTS",
    "MempoolEntry",
    "NetworkType",
    "NodeBackendError",
    "SOMPI_PER_HTN",
    "ScriptPublicKey",
    "SigningKeyMissingError",
    "SpamProtectionError",
    "TooManyRecipientsError",
    "TooManyTotalOutputsError",
    "Transaction",
    "TransactionInput",
    "TransactionOutput",
    "TransactionSigningError",
    "TransactionValidationError",
    "UnspentOutput",
    "address_to_script_public_key",
    "compute_mass",
    "compute_min_fee",
    "compute_transaction_mass",
    "decode_address",
    "encode_address",
    "fee_for_rate",
    "format_htn",
    "get_address_network",
    "get_address_type",
    "htn_to_sompi",
    "is_valid_address",
    "parse_sompi",
    "public_key_to_address",
    "script_public_key_to_address",
    "sompi_to_htn",
    "validate_amount",
    "validate_address",
]
