"""
Transaction builder.

Accumulates inputs and outputs, computes change, enforces the per-transaction
output caps and the dust rule, validates, and emits an unsigned or signed
transaction.

States:
    EMPTY -> ACCUMULATING -> VALIDATED -> SIGNED

Any mutation from VALIDATED or SIGNED drops back to ACCUMULATING, which
discards previously produced signatures. A failed validate() leaves the
builder where it was so the caller can fix it and retry.

The change output is derived, not stored: add_change_output() records where
change goes, and its amount is recomputed from the current inputs, outputs
and fee every time the transaction is assembled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from coincurve import PrivateKey
from loguru import logger

from htncore.address import address_to_script_public_key, validate_address
from htncore.amounts import parse_u64, validate_amount
from htncore.constants import (
    DUST_THRESHOLD,
    MAX_RECIPIENT_OUTPUTS,
    MAX_TOTAL_OUTPUTS,
    SIGHASH_ALL,
    SUBNETWORK_ID_NATIVE,
    SUBNETWORK_ID_SIZE,
)
from htncore.errors import (
    BuilderStateError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidAmountError,
    SigningKeyMissingError,
    TooManyRecipientsError,
    TooManyTotalOutputsError,
    TransactionValidationError,
)
from htncore.mass import compute_mass
from htncore.models import (
    NetworkType,
    Transaction,
    TransactionInput,
    TransactionOutput,
    UnspentOutput,
)
from htnwallet.wallet.signing import get_transaction_id, parse_private_key, sign_input


class BuilderState(str, Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    VALIDATED = "validated"
    SIGNED = "signed"


@dataclass
class _PendingInput:
    utxo: UnspentOutput
    private_key: PrivateKey | None = None


def _to_bytes(value: bytes | str, name: str) -> bytes:
    if isinstance(value, bytes):
        return value
    try:
        return bytes.fromhex(value)
    except (TypeError, ValueError) as e:
        raise TransactionValidationError(f"Invalid {name} hex: {value!r}") from e


class TransactionBuilder:
    """
    Single-owner, chainable transaction accumulator.

    Example:
        tx = (
            TransactionBuilder(network="mainnet")
            .add_input(utxo, private_key)
            .add_output(recipient, 100_000_000)
            .set_fee(2_500)
            .add_change_output(sender)
            .sign()
        )
    """

    def __init__(self, network: NetworkType | str | None = None):
        self.network = NetworkType(network) if network is not None else None
        self._reset()

    def _reset(self) -> None:
        self._state = BuilderState.EMPTY
        self._inputs: list[_PendingInput] = []
        self._outputs: list[TransactionOutput] = []
        self._fee: int | None = None
        self._lock_time = 0
        self._subnetwork_id = SUBNETWORK_ID_NATIVE
        self._payload = b""
        self._signed: Transaction | None = None
        self._change_address: str | None = None

    # State

    @property
    def state(self) -> BuilderState:
        return self._state

    def _touch(self) -> None:
        """Record a mutation."""
        if self._state in (BuilderState.VALIDATED, BuilderState.SIGNED):
            logger.debug(f"Builder modified in state {self._state.value}, back to accumulating")
        self._state = BuilderState.ACCUMULATING
        self._signed = None

    # Accessors

    @property
    def total_input_amount(self) -> int:
        return sum(p.utxo.amount for p in self._inputs)

    def _remaining_change(self) -> int | None:
        """Inputs minus recipient outputs minus fee, or None without a change address."""
        if self._change_address is None or self._fee is None:
            return None
        recipients = sum(out.amount for out in self._outputs)
        return self.total_input_amount - recipients - self._fee

    def _change_output(self) -> TransactionOutput | None:
        change = self._remaining_change()
        if change is None or change < DUST_THRESHOLD:
            return None
        return TransactionOutput(
            amount=change,
            script_public_key=address_to_script_public_key(self._change_address),
            address=self._change_address,
            is_change=True,
        )

    def _all_outputs(self) -> list[TransactionOutput]:
        change = self._change_output()
        return self._outputs + [change] if change else list(self._outputs)

    @property
    def dust_absorbed(self) -> int:
        """Change too small to create, left to the miner on top of the fee."""
        change = self._remaining_change()
        if change is None or not 0 < change < DUST_THRESHOLD:
            return 0
        return change

    @property
    def total_output_amount(self) -> int:
        return sum(out.amount for out in self._all_outputs())

    @property
    def fee(self) -> int | None:
        return self._fee

    @property
    def effective_fee(self) -> int:
        """What the miner actually receives: inputs minus outputs, dust included."""
        return self.total_input_amount - self.total_output_amount

    @property
    def input_count(self) -> int:
        return len(self._inputs)

    @property
    def output_count(self) -> int:
        return len(self._all_outputs())

    @property
    def recipient_count(self) -> int:
        return len(self._outputs)

    @property
    def has_change_output(self) -> bool:
        return self._change_output() is not None

    def estimate_mass(self) -> int:
        return compute_mass(self.input_count, self.output_count, len(self._payload))

    # Mutators

    def add_input(
        self, utxo: UnspentOutput, private_key: PrivateKey | bytes | str | None = None
    ) -> TransactionBuilder:
        if any(p.utxo.outpoint == utxo.outpoint for p in self._inputs):
            raise TransactionValidationError(
                f"Duplicate input {utxo.transaction_id}:{utxo.index}"
            )
        key = parse_private_key(private_key) if private_key is not None else None
        self._inputs.append(_PendingInput(utxo=utxo, private_key=key))
        self._touch()
        return self

    def _check_address(self, address: str) -> None:
        validate_address(address, self.network)

    def add_output(self, address: str, amount: int) -> TransactionBuilder:
        validate_amount(amount)
        self._check_address(address)
        if self.recipient_count >= MAX_RECIPIENT_OUTPUTS:
            raise TooManyRecipientsError(
                f"At most {MAX_RECIPIENT_OUTPUTS} recipient outputs per transaction; "
                f"split the payment into several transactions"
            )
        if self.output_count >= MAX_TOTAL_OUTPUTS:
            raise TooManyTotalOutputsError(
                f"At most {MAX_TOTAL_OUTPUTS} outputs per transaction"
            )

        self._outputs.append(
            TransactionOutput(
                amount=amount,
                script_public_key=address_to_script_public_key(address),
                address=address,
            )
        )
        self._touch()
        return self

    def add_change_output(self, address: str) -> TransactionBuilder:
        """
        Send whatever is left after outputs and fee back to address.

        The amount tracks later changes to inputs, outputs and fee. Change
        below DUST_THRESHOLD is not created; it is left to the miner and
        reported by dust_absorbed.

        Raises:
            BuilderStateError: fee not set yet, or change already added
            InsufficientFundsError: inputs do not cover outputs + fee
            TooManyTotalOutputsError: no room for another output
        """
        if self._fee is None:
            raise BuilderStateError("Fee must be set before adding a change output")
        if self._change_address is not None:
            raise BuilderStateError("Transaction already has a change output")
        self._check_address(address)

        recipients = self.total_output_amount
        change = self.total_input_amount - recipients - self._fee
        if change < 0:
            raise InsufficientFundsError(recipients + self._fee, self.total_input_amount)

        if change >= DUST_THRESHOLD and self.output_count >= MAX_TOTAL_OUTPUTS:
            raise TooManyTotalOutputsError(
                f"No room for a change output: already {self.output_count} outputs"
            )

        self._change_address = address
        if 0 < change < DUST_THRESHOLD:
            logger.info(f"Change of {change} sompi is below dust threshold, added to fee")
        self._touch()
        return self

    def set_fee(self, fee: int) -> TransactionBuilder:
        if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
            raise InvalidAmountError(f"Invalid fee: {fee!r}")
        self._fee = parse_u64(fee, "fee")
        self._touch()
        return self

    def set_lock_time(self, lock_time: int) -> TransactionBuilder:
        self._lock_time = parse_u64(lock_time, "lock time")
        self._touch()
        return self

    def set_subnetwork_id(self, subnetwork_id: bytes | str) -> TransactionBuilder:
        raw = _to_bytes(subnetwork_id, "subnetwork id")
        if len(raw) != SUBNETWORK_ID_SIZE:
            raise TransactionValidationError(
                f"Subnetwork id must be {SUBNETWORK_ID_SIZE} bytes, got {len(raw)}"
            )
        if raw == SUBNETWORK_ID_NATIVE and self._payload:
            raise TransactionValidationError(
                "Native subnetwork transactions cannot carry a payload"
            )
        self._subnetwork_id = raw
        self._touch()
        return self

    def set_payload(self, payload: bytes | str) -> TransactionBuilder:
        raw = _to_bytes(payload, "payload")
        if raw and self._subnetwork_id == SUBNETWORK_ID_NATIVE:
            raise TransactionValidationError(
                "Payload requires a non-native subnetwork id; call set_subnetwork_id first"
            )
        self._payload = raw
        self._touch()
        return self

    def clear(self) -> TransactionBuilder:
        self._reset()
        return self

    # Lifecycle

    def validate(self) -> TransactionBuilder:
        """
        Check the accumulated transaction.

        Raises:
            TransactionValidationError: structural problems
            InsufficientFundsError: inputs do not cover outputs + fee
            SpamProtectionError: output caps exceeded
            InvalidAddressError: malformed or wrong-network output address
        """
        if not self._inputs:
            raise TransactionValidationError("Transaction has no inputs")
        if not self._outputs:
            raise TransactionValidationError("Transaction has no outputs")
        if self._fee is None:
            raise TransactionValidationError("Fee is not set")
        if self._fee <= 0:
            raise TransactionValidationError("Fee must be greater than zero")

        if self.recipient_count > MAX_RECIPIENT_OUTPUTS:
            raise TooManyRecipientsError(
                f"{self.recipient_count} recipient outputs, maximum is {MAX_RECIPIENT_OUTPUTS}"
            )
        if self.output_count > MAX_TOTAL_OUTPUTS:
            raise TooManyTotalOutputsError(
                f"{self.output_count} outputs, maximum is {MAX_TOTAL_OUTPUTS}"
            )

        for out in self._all_outputs():
            if out.amount <= 0:
                raise InvalidAmountError(f"Output amount must be positive: {out.amount}")
            try:
                self._check_address(out.address)
            except InvalidAddressError as e:
                raise InvalidAddressError(f"Output address invalid: {e}") from e

        if self._payload and self._subnetwork_id == SUBNETWORK_ID_NATIVE:
            raise TransactionValidationError(
                "Native subnetwork transactions cannot carry a payload"
            )

        required = self.total_output_amount + self._fee
        if self.total_input_amount < required:
            raise InsufficientFundsError(required, self.total_input_amount)

        leftover = self.total_input_amount - required
        if leftover >= DUST_THRESHOLD and self._change_address is None:
            logger.warning(
                f"{leftover} sompi above the set fee goes to the miner; "
                f"add a change output to keep it"
            )
        elif leftover > 0:
            logger.debug(f"{leftover} sompi of dust change added to the fee")

        if self._state != BuilderState.SIGNED:
            self._state = BuilderState.VALIDATED
        return self

    def _assemble(self) -> Transaction:
        return Transaction(
            inputs=[
                TransactionInput(transaction_id=p.utxo.transaction_id, index=p.utxo.index)
                for p in self._inputs
            ],
            outputs=self._all_outputs(),
            lock_time=self._lock_time,
            subnetwork_id=self._subnetwork_id,
            payload=self._payload,
        )

    def build(self) -> Transaction:
        """Validate and return the unsigned transaction."""
        self.validate()
        return self._assemble()

    def sign(self, private_key: PrivateKey | bytes | str | None = None) -> Transaction:
        """
        Validate (if needed) and sign every input with SIGHASH_ALL.

        The per-input key given to add_input() wins over private_key. Signing
        is deterministic, so signing an unchanged builder twice yields the
        same transaction.

        Raises:
            SigningKeyMissingError: an input has no key and none was given here
        """
        if self._state not in (BuilderState.VALIDATED, BuilderState.SIGNED):
            self.validate()

        global_key = parse_private_key(private_key) if private_key is not None else None
        for i, pending in enumerate(self._inputs):
            if pending.private_key is None and global_key is None:
                raise SigningKeyMissingError(i)

        tx = self._assemble()
        for i, pending in enumerate(self._inputs):
            key = pending.private_key or global_key
            tx.inputs[i].signature_script = sign_input(
                tx, i, key, pending.utxo, SIGHASH_ALL  # type: ignore[arg-type]
            )

        self._signed = tx
        self._state = BuilderState.SIGNED
        logger.info(
            f"Signed transaction {get_transaction_id(tx)}: {len(tx.inputs)} input(s), "
            f"{len(tx.outputs)} output(s), fee={self.effective_fee} sompi"
        )
        return tx

    @property
    def signed_transaction(self) -> Transaction | None:
        return self._signed
