"""
UTXO selection.

The fee depends on how many inputs are selected, and how many inputs are
needed depends on the fee. Selection therefore alternates between adding
inputs and re-pricing the transaction, for at most MAX_SELECTION_ROUNDS rounds.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from enum import Enum

from loguru import logger

from htncore.constants import COINBASE_MATURITY, DUST_THRESHOLD, MINIMUM_RELAY_FEE_RATE
from htncore.errors import InsufficientFundsError, InvalidAmountError
from htncore.mass import compute_mass, fee_for_rate
from htncore.models import UnspentOutput
from htnwallet.wallet.models import CoinSelection
from htnwallet.wallet.utxo import filter_mature

MAX_SELECTION_ROUNDS = 10


class SelectionPolicy(str, Enum):
    LARGEST_FIRST = "largest-first"
    ALL = "all"
    DUST_FIRST = "dust-first"


def estimate_selection_fee(
    input_count: int,
    output_count: int,
    payload_size: int = 0,
    fee_rate: Decimal | int = MINIMUM_RELAY_FEE_RATE,
) -> int:
    return fee_for_rate(compute_mass(max(input_count, 1), output_count, payload_size), fee_rate)


def order_utxos(utxos: Sequence[UnspentOutput], policy: SelectionPolicy) -> list[UnspentOutput]:
    """Order candidates for greedy accumulation. Ties break on outpoint for determinism."""
    largest_first = sorted(utxos, key=lambda u: (-u.amount, u.transaction_id, u.index))
    if policy == SelectionPolicy.DUST_FIRST:
        dust = sorted(
            (u for u in utxos if u.amount < DUST_THRESHOLD),
            key=lambda u: (u.amount, u.transaction_id, u.index),
        )
        return dust + [u for u in largest_first if u.amount >= DUST_THRESHOLD]
    return largest_first


def select_utxos(
    utxos: Sequence[UnspentOutput],
    target_amount: int,
    current_daa_score: int,
    fee_rate: Decimal | int = MINIMUM_RELAY_FEE_RATE,
    output_count: int = 2,
    payload_size: int = 0,
    policy: SelectionPolicy = SelectionPolicy.LARGEST_FIRST,
    coinbase_maturity: int = COINBASE_MATURITY,
) -> CoinSelection:
    """
    Select UTXOs covering target_amount plus the fee for the resulting shape.

    Args:
        utxos: Candidate UTXOs; immature coinbase outputs are dropped
        target_amount: Sum of recipient outputs in sompi
        current_daa_score: Virtual DAA score used for maturity
        fee_rate: Fee rate hint in sompi per mass unit
        output_count: Outputs the final transaction will have (including change)
        payload_size: Payload length in bytes
        policy: Selection policy
        coinbase_maturity: Required coinbase depth

    Returns:
        CoinSelection with the chosen UTXOs, their total, the fee and the change

    Raises:
        InsufficientFundsError: the mature UTXOs cannot cover amount + fee
    """
    if isinstance(target_amount, bool) or not isinstance(target_amount, int) or target_amount < 0:
        raise InvalidAmountError(f"Invalid target amount: {target_amount!r}")

    eligible = filter_mature(utxos, current_daa_score, coinbase_maturity)
    available = sum(u.amount for u in eligible)
    if len(eligible) < len(utxos):
        logger.debug(f"Skipping {len(utxos) - len(eligible)} immature coinbase UTXO(s)")

    def price(count: int) -> int:
        return estimate_selection_fee(count, output_count, payload_size, fee_rate)

    if not eligible:
        raise InsufficientFundsError(target_amount + price(1), 0)

    if policy == SelectionPolicy.ALL:
        fee = price(len(eligible))
        if available < target_amount + fee:
            raise InsufficientFundsError(target_amount + fee, available)
        return CoinSelection(
            utxos=list(eligible),
            total_value=available,
            fee=fee,
            change_value=available - target_amount - fee,
        )

    ordered = order_utxos(eligible, policy)
    selected: list[UnspentOutput] = []
    total = 0
    required_fee = price(1)

    for round_number in range(1, MAX_SELECTION_ROUNDS + 1):
        # Re-price after every input so one pass settles on the real shape
        while total < target_amount + price(len(selected)) and len(selected) < len(ordered):
            utxo = ordered[len(selected)]
            selected.append(utxo)
            total += utxo.amount

        required_fee = price(len(selected))
        logger.debug(
            f"Selection round {round_number}: {len(selected)} input(s), "
            f"total={total}, fee={required_fee}"
        )

        if total >= target_amount + required_fee:
            return CoinSelection(
                utxos=selected,
                total_value=total,
                fee=required_fee,
                change_value=total - target_amount - required_fee,
            )

        if len(selected) == len(ordered):
            raise InsufficientFundsError(target_amount + required_fee, available)

    raise InsufficientFundsError(
        target_amount + required_fee,
        available,
        f"Coin selection did not settle within {MAX_SELECTION_ROUNDS} rounds",
    )
