"""
UTXO maturity rules.

Coinbase outputs can be undone by a DAG reorganization, so they only become
spendable once the virtual DAA score is coinbase_maturity past the score at
which they were created. Regular outputs are spendable immediately.
"""

from __future__ import annotations

from collections.abc import Iterable

from htncore.constants import COINBASE_MATURITY
from htncore.models import UnspentOutput
from htnwallet.wallet.models import MaturitySplit


def is_mature(
    utxo: UnspentOutput, current_daa_score: int, coinbase_maturity: int = COINBASE_MATURITY
) -> bool:
    if not utxo.is_coinbase:
        return True
    return current_daa_score - utxo.block_daa_score >= coinbase_maturity


def blocks_until_mature(
    utxo: UnspentOutput, current_daa_score: int, coinbase_maturity: int = COINBASE_MATURITY
) -> int:
    """DAA score still needed before the UTXO can be spent (0 if spendable)."""
    if not utxo.is_coinbase:
        return 0
    return max(0, coinbase_maturity - (current_daa_score - utxo.block_daa_score))


def filter_mature(
    utxos: Iterable[UnspentOutput],
    current_daa_score: int,
    coinbase_maturity: int = COINBASE_MATURITY,
) -> list[UnspentOutput]:
    return [u for u in utxos if is_mature(u, current_daa_score, coinbase_maturity)]


def separate(
    utxos: Iterable[UnspentOutput],
    current_daa_score: int,
    coinbase_maturity: int = COINBASE_MATURITY,
) -> MaturitySplit:
    split = MaturitySplit()
    for utxo in utxos:
        if is_mature(utxo, current_daa_score, coinbase_maturity):
            split.mature.append(utxo)
        else:
            split.immature.append(utxo)
    return split
