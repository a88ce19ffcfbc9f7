"""
Base node backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from htncore.models import MempoolEntry, UnspentOutput


class NodeBackend(ABC):
    """
    Abstract node/proxy interface.

    The transaction engine only needs four things from the network: the UTXOs
    of an address, the current virtual DAA score, a mempool snapshot for fee
    estimation, and a way to submit a signed transaction.
    """

    @abstractmethod
    async def get_utxos(self, addresses: list[str]) -> list[UnspentOutput]:
        """Get UTXOs for the given addresses"""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Get balance for an address in sompi"""

    @abstractmethod
    async def get_virtual_daa_score(self) -> int:
        """Get the current virtual DAA score"""

    @abstractmethod
    async def get_mempool_entries(self) -> list[MempoolEntry]:
        """Get a snapshot of pending transactions"""

    @abstractmethod
    async def submit_transaction(self, transaction: dict[str, Any]) -> str:
        """Submit a signed transaction (wire dict), returns its id"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
