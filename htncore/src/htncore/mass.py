"""
Transaction mass and minimum fee calculations.

Mass weighs a transaction's size, script bytes, signature operations and
payload. The minimum relay fee is one sompi per mass unit.
"""

from __future__ import annotations

import math
from decimal import Decimal

from htncore.constants import (
    BASE_OVERHEAD,
    INPUT_BYTES,
    MASS_PER_BYTE,
    MASS_PER_SCRIPT_BYTE,
    MASS_PER_SIGOP,
    MINIMUM_RELAY_FEE_RATE,
    OUTPUT_BYTES,
    SCRIPT_BYTES_PER_OUTPUT,
)
from htncore.errors import InvalidMassParametersError
from htncore.models import Transaction


def _check_shape(input_count: int, output_count: int, payload_size: int) -> None:
    for name, value in (
        ("input_count", input_count),
        ("output_count", output_count),
        ("payload_size", payload_size),
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidMassParametersError(f"{name} must be an integer, got {value!r}")
    if input_count < 1:
        raise InvalidMassParametersError(f"Transaction needs at least one input, got {input_count}")
    if output_count < 1:
        raise InvalidMassParametersError(
            f"Transaction needs at least one output, got {output_count}"
        )
    if payload_size < 0:
        raise InvalidMassParametersError(f"payload_size cannot be negative, got {payload_size}")


def compute_mass(input_count: int, output_count: int, payload_size: int = 0) -> int:
    """
    Compute transaction mass from its shape.

    Args:
        input_count: Number of inputs (>= 1)
        output_count: Number of outputs (>= 1)
        payload_size: Payload length in bytes

    Returns:
        Mass in mass units

    Example:
        5 inputs, 2 outputs, no payload:
        (5*181 + 2*34)*1 + (2*34)*10 + 5*1000 = 973 + 680 + 5000 = 6653
    """
    _check_shape(input_count, output_count, payload_size)

    tx_size = BASE_OVERHEAD + input_count * INPUT_BYTES + output_count * OUTPUT_BYTES
    script_public_key_size = output_count * SCRIPT_BYTES_PER_OUTPUT

    mass_for_size = tx_size * MASS_PER_BYTE
    mass_for_script = script_public_key_size * MASS_PER_SCRIPT_BYTE
    mass_for_sig_ops = input_count * MASS_PER_SIGOP
    mass_for_payload = payload_size * MASS_PER_BYTE

    return mass_for_size + mass_for_script + mass_for_sig_ops + mass_for_payload


def compute_min_fee(input_count: int, output_count: int, payload_size: int = 0) -> int:
    """Minimum relay fee in sompi for a transaction of this shape."""
    return compute_mass(input_count, output_count, payload_size) * MINIMUM_RELAY_FEE_RATE


def compute_transaction_mass(tx: Transaction) -> int:
    return compute_mass(len(tx.inputs), len(tx.outputs), len(tx.payload))


def fee_for_rate(mass: int, fee_rate: Decimal | int) -> int:
    """
    Total fee for a mass at a given rate (sompi per mass unit).

    Rounded up to whole sompi and never below the relay minimum for that mass.
    """
    if mass < 0:
        raise InvalidMassParametersError(f"mass cannot be negative, got {mass}")
    rate = Decimal(fee_rate)
    if rate < 0:
        raise InvalidMassParametersError(f"fee rate cannot be negative, got {fee_rate}")
    fee = math.ceil(Decimal(mass) * rate)
    return max(fee, mass * MINIMUM_RELAY_FEE_RATE)
