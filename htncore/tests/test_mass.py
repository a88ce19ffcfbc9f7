"""
Tests for htncore.mass
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from htncore.constants import SUBNETWORK_ID_PAYLOAD
from htncore.errors import InvalidMassParametersError
from htncore.mass import compute_mass, compute_min_fee, compute_transaction_mass, fee_for_rate
from htncore.models import ScriptPublicKey, Transaction, TransactionInput, TransactionOutput


class TestComputeMass:
    """Tests for the mass formula."""

    def test_five_inputs_two_outputs(self) -> None:
        """5 inputs, 2 outputs, no payload: 973 + 680 + 5000."""
        assert compute_mass(5, 2, 0) == 6653
        assert compute_min_fee(5, 2, 0) == 6653

    def test_single_input_shapes(self) -> None:
        """Hand-computed values for the common shapes."""
        assert compute_mass(1, 1) == 181 + 34 + 340 + 1000
        assert compute_mass(1, 2) == 1929
        assert compute_mass(1, 3) == 181 + 102 + 1020 + 1000

    def test_payload_adds_one_per_byte(self) -> None:
        """Payload bytes are weighed at one mass unit each."""
        assert compute_mass(1, 2, 100) == compute_mass(1, 2) + 100

    def test_deterministic(self) -> None:
        """Same shape, same fee."""
        assert compute_min_fee(3, 2, 10) == compute_min_fee(3, 2, 10)

    def test_monotonic_in_each_argument(self) -> None:
        """Adding an input, an output or a payload byte never lowers the fee."""
        for inputs in range(1, 6):
            for outputs in range(1, 4):
                for payload in (0, 1, 50):
                    fee = compute_min_fee(inputs, outputs, payload)
                    assert compute_min_fee(inputs + 1, outputs, payload) >= fee
                    assert compute_min_fee(inputs, outputs + 1, payload) >= fee
                    assert compute_min_fee(inputs, outputs, payload + 1) >= fee

    def test_zero_inputs_rejected(self) -> None:
        """A transaction without inputs has no meaningful mass."""
        with pytest.raises(InvalidMassParametersError, match="input"):
            compute_mass(0, 2)

    def test_zero_outputs_rejected(self) -> None:
        """A transaction without outputs has no meaningful mass."""
        with pytest.raises(InvalidMassParametersError, match="output"):
            compute_mass(1, 0)

    def test_negative_payload_rejected(self) -> None:
        """Negative payload sizes are caller errors."""
        with pytest.raises(InvalidMassParametersError):
            compute_mass(1, 1, -1)

    def test_non_integer_rejected(self) -> None:
        """Floats and bools are not counts."""
        with pytest.raises(InvalidMassParametersError):
            compute_mass(1.0, 1)  # type: ignore[arg-type]
        with pytest.raises(InvalidMassParametersError):
            compute_mass(True, 1)

    def test_is_value_error(self) -> None:
        """Mass parameter errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            compute_mass(-1, 1)


class TestTransactionMass:
    """Tests for pricing an existing transaction."""

    def test_matches_shape(self) -> None:
        """A transaction is priced by its input, output and payload counts."""
        spk = ScriptPublicKey(script="21" + "02" * 33 + "ab")
        tx = Transaction(
            inputs=[TransactionInput(transaction_id="aa" * 32, index=i) for i in range(2)],
            outputs=[TransactionOutput(amount=5000, script_public_key=spk)],
            subnetwork_id=SUBNETWORK_ID_PAYLOAD,
            payload=b"hello",
        )
        assert compute_transaction_mass(tx) == compute_mass(2, 1, 5)


class TestFeeForRate:
    """Tests for fee_for_rate."""

    def test_integer_rate(self) -> None:
        """Integer rates multiply exactly."""
        assert fee_for_rate(1929, 10) == 19290

    def test_fractional_rate_rounds_up(self) -> None:
        """Fractional products round up to whole sompi."""
        assert fee_for_rate(1929, Decimal("1.5")) == 2894

    def test_never_below_relay_minimum(self) -> None:
        """Rates below one sompi per mass still pay the relay minimum."""
        assert fee_for_rate(1929, Decimal("0.5")) == 1929
        assert fee_for_rate(1929, 0) == 1929

    def test_negative_inputs_rejected(self) -> None:
        """Negative mass or rate is a caller error."""
        with pytest.raises(InvalidMassParametersError):
            fee_for_rate(-1, 1)
        with pytest.raises(InvalidMassParametersError):
            fee_for_rate(100, Decimal("-0.1"))
