"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from htncore.models import UnspentOutput


@dataclass
class CoinSelection:
    """Result of coin selection"""

    utxos: list[UnspentOutput]
    total_value: int
    fee: int
    change_value: int


@dataclass
class MaturitySplit:
    """UTXOs split by whether they can be spent at the current DAA score"""

    mature: list[UnspentOutput] = field(default_factory=list)
    immature: list[UnspentOutput] = field(default_factory=list)


@dataclass
class Balance:
    spendable: int
    pending: int
    utxo_count: int

    @property
    def total(self) -> int:
        return self.spendable + self.pending
