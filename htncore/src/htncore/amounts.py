"""
Currency amount helpers.

All amounts inside the engine are integers in sompi (1 HTN = 10^8 sompi).
Conversions go through Decimal so no value is ever rounded through a float.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from htncore.constants import HTN_DECIMALS, MAX_SOMPI, SOMPI_PER_HTN
from htncore.errors import InvalidAmountError


def parse_u64(value: str | int, name: str = "value") -> int:
    """
    Parse an unsigned 64-bit integer as delivered by the node.

    The node sends amounts and DAA scores as decimal strings. Fractional,
    negative, float and non-numeric values are rejected rather than coerced.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise InvalidAmountError(f"Invalid {name}: {value!r}")
        result = int(text)
    else:
        raise InvalidAmountError(f"{name} must be int or decimal string, got {type(value)}")

    if result < 0 or result > MAX_SOMPI:
        raise InvalidAmountError(f"{name} out of range: {result}")
    return result


def parse_sompi(value: str | int) -> int:
    """Parse an integer sompi amount (decimal string or int)."""
    return parse_u64(value, "sompi amount")


def htn_to_sompi(value: str | int | Decimal) -> int:
    """
    Convert an HTN amount to sompi.

    Args:
        value: Amount in HTN, e.g. "1.5" or Decimal("0.00001")

    Returns:
        Integer sompi

    Raises:
        InvalidAmountError: negative, more than 8 decimals, or not a number
    """
    if isinstance(value, (float, bool)):
        raise InvalidAmountError("HTN amounts must be given as str, int or Decimal, not float")

    try:
        amount = Decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid HTN amount: {value!r}") from e

    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(f"Invalid HTN amount: {value!r}")

    sompi = amount * SOMPI_PER_HTN
    if sompi != sompi.to_integral_value():
        raise InvalidAmountError(f"HTN amount has more than {HTN_DECIMALS} decimals: {value}")

    result = int(sompi)
    if result > MAX_SOMPI:
        raise InvalidAmountError(f"HTN amount out of range: {value}")
    return result


def sompi_to_htn(sompi: int) -> Decimal:
    """Convert sompi to an exact HTN Decimal."""
    return Decimal(sompi) / SOMPI_PER_HTN


def format_htn(sompi: int, decimals: int = HTN_DECIMALS) -> str:
    """Format sompi as an HTN string, e.g. 150000000 -> '1.50000000'."""
    quantum = Decimal(1).scaleb(-decimals)
    return format(sompi_to_htn(sompi).quantize(quantum), "f")


def validate_amount(amount: int) -> int:
    """Check an output amount: positive integer sompi that fits in u64."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be integer sompi, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    if amount > MAX_SOMPI:
        raise InvalidAmountError(f"Amount exceeds maximum: {amount}")
    return amount
