"""
Test configuration for htnwallet tests.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from coincurve import PrivateKey

from htncore.address import address_to_script_public_key
from htncore.models import MempoolEntry, UnspentOutput
from htnwallet.backends.base import NodeBackend
from htnwallet.wallet.keys import KeyPair, import_key_pair

# Test keys (not for production use!)
SENDER_SECRET = bytes.fromhex("11" * 32)
RECIPIENT_SECRET = bytes.fromhex("22" * 32)
OTHER_SECRET = bytes.fromhex("33" * 32)


@pytest.fixture
def sender() -> KeyPair:
    return import_key_pair(SENDER_SECRET, "mainnet")


@pytest.fixture
def recipient() -> KeyPair:
    return import_key_pair(RECIPIENT_SECRET, "mainnet")


@pytest.fixture
def other() -> KeyPair:
    return import_key_pair(OTHER_SECRET, "mainnet")


@pytest.fixture
def schnorr_sender() -> KeyPair:
    return import_key_pair(SENDER_SECRET, "mainnet", schnorr=True)


@pytest.fixture
def sender_key() -> PrivateKey:
    return PrivateKey(SENDER_SECRET)


@pytest.fixture
def make_utxo(sender: KeyPair) -> Callable[..., UnspentOutput]:
    """Factory for UTXOs locked to the sender unless another address is given."""

    def _make(
        amount: int,
        index: int = 0,
        txid_byte: int = 0xAA,
        address: str | None = None,
        block_daa_score: int = 1_000,
        is_coinbase: bool = False,
    ) -> UnspentOutput:
        address = address or sender.address
        return UnspentOutput(
            transaction_id=f"{txid_byte:02x}" * 32,
            index=index,
            amount=amount,
            script_public_key=address_to_script_public_key(address),
            block_daa_score=block_daa_score,
            is_coinbase=is_coinbase,
            address=address,
        )

    return _make


@pytest.fixture
def mempool_at_rates() -> Callable[[list], list[MempoolEntry]]:
    """Mempool entries of 1-input/2-output transactions (mass 1929) paying the given rates."""

    def _entries(rates: list[Decimal | int]) -> list[MempoolEntry]:
        return [
            MempoolEntry(fee=int(Decimal(rate) * 1929), input_count=1, output_count=2)
            for rate in rates
        ]

    return _entries


@pytest.fixture
def mock_backend() -> AsyncMock:
    backend = AsyncMock(spec=NodeBackend)
    backend.get_utxos.return_value = []
    backend.get_virtual_daa_score.return_value = 10_000
    backend.get_mempool_entries.return_value = []
    backend.submit_transaction.return_value = "ff" * 32
    return backend
