"""
Tests for UTXO selection.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from htncore.errors import InsufficientFundsError, InvalidAmountError
from htncore.mass import compute_mass
from htnwallet.wallet.selection import (
    SelectionPolicy,
    estimate_selection_fee,
    order_utxos,
    select_utxos,
)

DAA = 10_000


class TestEstimateSelectionFee:
    """Tests for the fee used while selecting."""

    def test_relay_minimum(self) -> None:
        assert estimate_selection_fee(1, 2) == 1929
        assert estimate_selection_fee(3, 2) == compute_mass(3, 2)

    def test_rate_scales_fee(self) -> None:
        assert estimate_selection_fee(1, 2, fee_rate=10) == 19290
        assert estimate_selection_fee(1, 2, fee_rate=Decimal("2.5")) == 4823

    def test_zero_inputs_priced_as_one(self) -> None:
        """Before anything is selected the first input is already priced in."""
        assert estimate_selection_fee(0, 2) == estimate_selection_fee(1, 2)


class TestOrdering:
    """Tests for policy ordering."""

    def test_largest_first(self, make_utxo) -> None:
        utxos = [make_utxo(a, index=i) for i, a in enumerate([500, 5_000, 200, 2_000])]
        assert [u.amount for u in order_utxos(utxos, SelectionPolicy.LARGEST_FIRST)] == [
            5_000,
            2_000,
            500,
            200,
        ]

    def test_dust_first(self, make_utxo) -> None:
        """Sub-dust UTXOs come first, smallest first, then the rest largest-first."""
        utxos = [make_utxo(a, index=i) for i, a in enumerate([500, 5_000, 200, 2_000])]
        assert [u.amount for u in order_utxos(utxos, SelectionPolicy.DUST_FIRST)] == [
            200,
            500,
            5_000,
            2_000,
        ]

    def test_ties_break_on_outpoint(self, make_utxo) -> None:
        """Equal amounts are ordered deterministically regardless of input order."""
        a = make_utxo(1_000, index=1)
        b = make_utxo(1_000, index=0)
        assert order_utxos([a, b], SelectionPolicy.LARGEST_FIRST) == [b, a]
        assert order_utxos([b, a], SelectionPolicy.LARGEST_FIRST) == [b, a]


class TestSelectUtxos:
    """Tests for select_utxos."""

    def test_largest_first_covers_target_and_fee(self, make_utxo) -> None:
        utxos = [make_utxo(a, index=i) for i, a in enumerate([1_000_000, 5_000_000, 3_000_000])]

        selection = select_utxos(utxos, 6_000_000, DAA)

        assert [u.amount for u in selection.utxos] == [5_000_000, 3_000_000]
        assert selection.total_value == 8_000_000
        assert selection.fee == compute_mass(2, 2)
        assert selection.change_value == 8_000_000 - 6_000_000 - compute_mass(2, 2)

    def test_fee_reestimated_as_inputs_grow(self, make_utxo) -> None:
        """Two inputs looked enough at the one-input fee; the third covers the real fee."""
        utxos = [make_utxo(a, index=i) for i, a in enumerate([60_000, 40_000, 5_000])]

        selection = select_utxos(utxos, 98_000, DAA)

        assert len(selection.utxos) == 3
        assert selection.fee == compute_mass(3, 2)
        assert selection.change_value == 105_000 - 98_000 - compute_mass(3, 2)

    def test_conservation(self, make_utxo) -> None:
        """Selected value always splits exactly into target, fee and change."""
        utxos = [make_utxo(a, index=i) for i, a in enumerate([70_000, 30_000, 20_000, 9_000])]
        for target in (1_000, 50_000, 90_000, 110_000):
            selection = select_utxos(utxos, target, DAA, fee_rate=Decimal("1.7"))
            assert selection.total_value == target + selection.fee + selection.change_value
            assert selection.change_value >= 0

    def test_insufficient_funds(self, make_utxo) -> None:
        utxos = [make_utxo(a, index=i) for i, a in enumerate([5_000_000, 3_000_000, 1_000_000])]

        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos(utxos, 9_000_000, DAA)

        assert exc_info.value.available == 9_000_000
        assert exc_info.value.required == 9_000_000 + compute_mass(3, 2)

    def test_no_utxos(self) -> None:
        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos([], 1_000, DAA)
        assert exc_info.value.available == 0

    def test_never_selects_immature_coinbase(self, make_utxo) -> None:
        """A large immature coinbase output cannot fund the payment."""
        coinbase = make_utxo(10_000_000, index=0, block_daa_score=DAA - 50, is_coinbase=True)
        regular = make_utxo(1_000_000, index=1)

        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos([coinbase, regular], 2_000_000, DAA)
        assert exc_info.value.available == 1_000_000

        selection = select_utxos([coinbase, regular], 500_000, DAA)
        assert selection.utxos == [regular]

    def test_mature_coinbase_selected(self, make_utxo) -> None:
        coinbase = make_utxo(10_000_000, block_daa_score=DAA - 100, is_coinbase=True)
        selection = select_utxos([coinbase], 2_000_000, DAA)
        assert selection.utxos == [coinbase]

    def test_all_policy_consolidates(self, make_utxo) -> None:
        utxos = [make_utxo(a, index=i) for i, a in enumerate([5_000_000, 3_000_000, 1_000_000])]

        selection = select_utxos(utxos, 0, DAA, output_count=1, policy=SelectionPolicy.ALL)

        assert len(selection.utxos) == 3
        assert selection.fee == compute_mass(3, 1)
        assert selection.change_value == 9_000_000 - compute_mass(3, 1)

    def test_all_policy_insufficient(self, make_utxo) -> None:
        utxos = [make_utxo(1_500, index=i) for i in range(2)]
        with pytest.raises(InsufficientFundsError):
            select_utxos(utxos, 0, DAA, policy=SelectionPolicy.ALL)

    def test_dust_first_absorbs_dust(self, make_utxo) -> None:
        """Dust-first spends the dust before reaching for larger UTXOs."""
        utxos = [make_utxo(a, index=i) for i, a in enumerate([900, 800, 10_000_000])]

        selection = select_utxos(utxos, 1_000_000, DAA, policy=SelectionPolicy.DUST_FIRST)

        assert [u.amount for u in selection.utxos] == [800, 900, 10_000_000]

    def test_payload_priced_in(self, make_utxo) -> None:
        utxos = [make_utxo(1_000_000)]
        selection = select_utxos(utxos, 10_000, DAA, payload_size=100)
        assert selection.fee == compute_mass(1, 2, 100)

    def test_inputs_costing_more_than_they_add(self, make_utxo) -> None:
        """Each 1100-sompi input costs 1181 mass, so no subset can ever pay its own fee."""
        utxos = [make_utxo(1_100, index=i) for i in range(40)]

        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos(utxos, 0, DAA)
        assert exc_info.value.available == 44_000
        assert exc_info.value.required == compute_mass(40, 2)

    def test_many_small_inputs_settle(self, make_utxo) -> None:
        """Each 1500-sompi input nets only 319 over its cost; 34 of them cover 10,000."""
        utxos = [make_utxo(1_500, index=i) for i in range(200)]

        selection = select_utxos(utxos, 10_000, DAA)

        assert len(selection.utxos) == 34
        assert selection.fee == compute_mass(34, 2)
        assert selection.change_value == 51_000 - 10_000 - compute_mass(34, 2)

    def test_invalid_target(self, make_utxo) -> None:
        with pytest.raises(InvalidAmountError):
            select_utxos([make_utxo(1_000)], -1, DAA)
