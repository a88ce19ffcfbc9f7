"""
Error taxonomy for transaction construction.

Everything raised by the engine derives from HoosatTxError so callers can catch
the whole family at the boundary while still branching on specific failures.
"""

from __future__ import annotations


class HoosatTxError(Exception):
    """Base class for all transaction engine errors."""


class InvalidAmountError(HoosatTxError, ValueError):
    pass


class InvalidAddressError(HoosatTxError, ValueError):
    pass


class InvalidPrivateKeyError(HoosatTxError, ValueError):
    pass


class InvalidMassParametersError(HoosatTxError, ValueError):
    pass


class InsufficientFundsError(HoosatTxError):
    """Available UTXOs cannot cover the requested amount plus fee."""

    def __init__(self, required: int, available: int, message: str | None = None):
        self.required = required
        self.available = available
        super().__init__(
            message or f"Insufficient funds: need {required} sompi, have {available} sompi"
        )


class SpamProtectionError(HoosatTxError):
    """Per-transaction output caps exceeded. Split the payment into batches."""


class TooManyRecipientsError(SpamProtectionError):
    pass


class TooManyTotalOutputsError(SpamProtectionError):
    pass


class TransactionValidationError(HoosatTxError):
    pass


class BuilderStateError(HoosatTxError):
    """Operation not allowed in the builder's current state."""


class SigningKeyMissingError(HoosatTxError):
    def __init__(self, input_index: int):
        self.input_index = input_index
        super().__init__(f"No signing key available for input {input_index}")


class TransactionSigningError(HoosatTxError):
    pass


class NodeBackendError(HoosatTxError):
    """The node or proxy answered with an error."""


class EstimationUnavailableError(HoosatTxError):
    """Mempool sample could not be used. Recovered with fallback fee rates."""
