"""
Hoosat wallet service: fetch, select, price, build, sign and submit.
"""

from __future__ import annotations

from collections.abc import Sequence

from coincurve import PrivateKey
from loguru import logger

from htncore.address import validate_address
from htncore.amounts import validate_amount
from htncore.constants import (
    COINBASE_MATURITY,
    DUST_THRESHOLD,
    MAX_RECIPIENT_OUTPUTS,
    SUBNETWORK_ID_PAYLOAD,
)
from htncore.errors import InsufficientFundsError, TooManyRecipientsError, TransactionValidationError
from htncore.models import FeePriority, NetworkType, Transaction, UnspentOutput
from htnwallet.backends.base import NodeBackend
from htnwallet.wallet.builder import TransactionBuilder
from htnwallet.wallet.fee_estimator import FeeEstimator
from htnwallet.wallet.models import Balance
from htnwallet.wallet.selection import SelectionPolicy, select_utxos
from htnwallet.wallet.utxo import separate

Recipient = tuple[str, int]


class WalletService:
    """
    Single-address wallet over a node backend.

    Outpoints spent by transactions submitted through this service are
    remembered and excluded from later selections, so back-to-back sends do
    not try to spend the same UTXO before the node reports it as gone.
    """

    def __init__(
        self,
        backend: NodeBackend,
        network: NetworkType | str = NetworkType.MAINNET,
        fee_estimator: FeeEstimator | None = None,
        coinbase_maturity: int = COINBASE_MATURITY,
        selection_policy: SelectionPolicy | str = SelectionPolicy.LARGEST_FIRST,
    ):
        self.backend = backend
        self.network = NetworkType(network)
        self.fee_estimator = fee_estimator or FeeEstimator(backend)
        self.coinbase_maturity = coinbase_maturity
        self.selection_policy = SelectionPolicy(selection_policy)
        self.spent_outpoints: set[tuple[str, int]] = set()

    async def get_utxos(self, address: str) -> list[UnspentOutput]:
        """UTXOs of address, minus those already spent through this service."""
        validate_address(address, self.network)
        utxos = await self.backend.get_utxos([address])
        return [u for u in utxos if u.outpoint not in self.spent_outpoints]

    async def get_balance(self, address: str) -> Balance:
        utxos = await self.get_utxos(address)
        current_daa_score = await self.backend.get_virtual_daa_score()
        split = separate(utxos, current_daa_score, self.coinbase_maturity)
        return Balance(
            spendable=sum(u.amount for u in split.mature),
            pending=sum(u.amount for u in split.immature),
            utxo_count=len(utxos),
        )

    def _check_recipients(self, recipients: Sequence[Recipient]) -> None:
        if not recipients:
            raise TransactionValidationError("At least one recipient is required")
        if len(recipients) > MAX_RECIPIENT_OUTPUTS:
            raise TooManyRecipientsError(
                f"{len(recipients)} recipients, at most {MAX_RECIPIENT_OUTPUTS} per "
                f"transaction; use send_batch"
            )
        for address, amount in recipients:
            validate_address(address, self.network)
            validate_amount(amount)

    async def prepare_payment(
        self,
        from_address: str,
        private_key: PrivateKey | bytes | str,
        recipients: Sequence[Recipient],
        priority: FeePriority | str = FeePriority.NORMAL,
        change_address: str | None = None,
        payload: bytes = b"",
    ) -> Transaction:
        """
        Build and sign a payment without submitting it.

        Args:
            from_address: Address whose UTXOs fund the payment
            private_key: Key controlling from_address
            recipients: (address, amount in sompi) pairs, at most two
            priority: Fee priority tier
            change_address: Where change goes, from_address by default
            payload: Optional data payload (uses the payload subnetwork)

        Returns:
            Signed transaction
        """
        self._check_recipients(recipients)
        change_address = change_address or from_address

        utxos = await self.get_utxos(from_address)
        current_daa_score = await self.backend.get_virtual_daa_score()
        estimate = (await self.fee_estimator.get_recommendations()).for_priority(
            FeePriority(priority)
        )

        target = sum(amount for _, amount in recipients)
        selection = select_utxos(
            utxos,
            target,
            current_daa_score,
            fee_rate=estimate.fee_rate,
            output_count=len(recipients) + 1,
            payload_size=len(payload),
            policy=self.selection_policy,
            coinbase_maturity=self.coinbase_maturity,
        )

        builder = TransactionBuilder(self.network)
        for utxo in selection.utxos:
            builder.add_input(utxo)
        for address, amount in recipients:
            builder.add_output(address, amount)
        if payload:
            builder.set_subnetwork_id(SUBNETWORK_ID_PAYLOAD).set_payload(payload)
        builder.set_fee(selection.fee).add_change_output(change_address)

        logger.info(
            f"Prepared payment of {target} sompi to {len(recipients)} recipient(s) "
            f"at {estimate.fee_rate} sompi/mass ({FeePriority(priority).value})"
        )
        return builder.sign(private_key)

    async def submit(self, tx: Transaction) -> str:
        """Submit a signed transaction and mark its inputs as spent."""
        txid = await self.backend.submit_transaction(tx.to_api_dict())
        self.spent_outpoints.update((inp.transaction_id, inp.index) for inp in tx.inputs)
        return txid

    async def send(
        self,
        from_address: str,
        private_key: PrivateKey | bytes | str,
        recipients: Sequence[Recipient],
        priority: FeePriority | str = FeePriority.NORMAL,
        change_address: str | None = None,
        payload: bytes = b"",
    ) -> str:
        tx = await self.prepare_payment(
            from_address, private_key, recipients, priority, change_address, payload
        )
        return await self.submit(tx)

    async def send_batch(
        self,
        from_address: str,
        private_key: PrivateKey | bytes | str,
        recipients: Sequence[Recipient],
        priority: FeePriority | str = FeePriority.NORMAL,
        change_address: str | None = None,
    ) -> list[str]:
        """
        Pay any number of recipients, MAX_RECIPIENT_OUTPUTS per transaction.

        Transactions are submitted one after another; a failure stops the
        batch and propagates, leaving earlier transactions submitted.
        """
        if not recipients:
            raise TransactionValidationError("At least one recipient is required")

        txids = []
        for start in range(0, len(recipients), MAX_RECIPIENT_OUTPUTS):
            group = recipients[start : start + MAX_RECIPIENT_OUTPUTS]
            txid = await self.send(from_address, private_key, group, priority, change_address)
            txids.append(txid)
        logger.info(f"Batch of {len(recipients)} payment(s) sent in {len(txids)} transaction(s)")
        return txids

    async def consolidate(
        self,
        address: str,
        private_key: PrivateKey | bytes | str,
        priority: FeePriority | str = FeePriority.LOW,
    ) -> Transaction:
        """Sweep every mature UTXO of address into a single output to itself."""
        utxos = await self.get_utxos(address)
        current_daa_score = await self.backend.get_virtual_daa_score()
        estimate = (await self.fee_estimator.get_recommendations()).for_priority(
            FeePriority(priority)
        )

        selection = select_utxos(
            utxos,
            0,
            current_daa_score,
            fee_rate=estimate.fee_rate,
            output_count=1,
            policy=SelectionPolicy.ALL,
            coinbase_maturity=self.coinbase_maturity,
        )
        amount = selection.total_value - selection.fee
        if amount < DUST_THRESHOLD:
            raise InsufficientFundsError(selection.fee + DUST_THRESHOLD, selection.total_value)

        builder = TransactionBuilder(self.network)
        for utxo in selection.utxos:
            builder.add_input(utxo)
        builder.add_output(address, amount).set_fee(selection.fee)

        logger.info(f"Consolidating {len(selection.utxos)} UTXO(s) into {amount} sompi")
        return builder.sign(private_key)

    async def close(self) -> None:
        """Close backend connection"""
        await self.backend.close()
