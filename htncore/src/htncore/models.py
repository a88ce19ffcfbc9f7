"""
Core data models.

UTXOs and fee results come from (or go to) JSON over HTTP, so they are Pydantic
models validated on the way in. Transactions themselves are plain dataclasses:
the builder mutates them while accumulating and the signer serializes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from htncore.amounts import parse_sompi, parse_u64
from htncore.constants import (
    DEFAULT_SEQUENCE,
    DEFAULT_SIG_OP_COUNT,
    SCRIPT_PUBLIC_KEY_VERSION,
    SUBNETWORK_ID_NATIVE,
    TX_VERSION,
)


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIMNET = "simnet"
    DEVNET = "devnet"


class FeePriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ScriptPublicKey(BaseModel):
    """Locking script: version plus script bytes (hex)."""

    version: int = Field(default=SCRIPT_PUBLIC_KEY_VERSION, ge=0, le=0xFFFF)
    script: str = Field(..., pattern=r"^([0-9a-fA-F]{2})*$")

    model_config = {"frozen": True}

    @property
    def script_bytes(self) -> bytes:
        return bytes.fromhex(self.script)

    def to_api_dict(self) -> dict[str, Any]:
        return {"version": self.version, "scriptPublicKey": self.script.lower()}


class UnspentOutput(BaseModel):
    """
    A spendable output as reported by the node.

    Identity is the outpoint (transaction_id, index). Instances are frozen: a
    UTXO never changes once observed, it is only consumed.
    """

    transaction_id: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    index: int = Field(..., ge=0, le=0xFFFFFFFF)
    amount: int = Field(..., ge=0)
    script_public_key: ScriptPublicKey
    block_daa_score: int = Field(default=0, ge=0)
    is_coinbase: bool = False
    address: str | None = None

    model_config = {"frozen": True}

    @field_validator("transaction_id")
    @classmethod
    def normalize_txid(cls, v: str) -> str:
        return v.lower()

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.transaction_id, self.index)

    @classmethod
    def from_api(cls, data: dict[str, Any], address: str | None = None) -> UnspentOutput:
        """
        Parse the node's UTXO JSON:

            {"outpoint": {"transactionId": hex64, "index": n},
             "utxoEntry": {"amount": "123", "scriptPublicKey": {...},
                           "blockDaaScore": "456", "isCoinbase": false}}
        """
        outpoint = data["outpoint"]
        entry = data["utxoEntry"]
        spk = entry["scriptPublicKey"]
        return cls(
            transaction_id=outpoint["transactionId"],
            index=int(outpoint["index"]),
            amount=parse_sompi(entry["amount"]),
            script_public_key=ScriptPublicKey(
                version=int(spk.get("version", SCRIPT_PUBLIC_KEY_VERSION)),
                script=spk["scriptPublicKey"],
            ),
            block_daa_score=parse_u64(entry.get("blockDaaScore", "0"), "DAA score"),
            is_coinbase=bool(entry.get("isCoinbase", False)),
            address=address or data.get("address"),
        )


class MempoolEntry(BaseModel):
    """Shape and fee of a pending transaction, enough to derive its fee rate."""

    fee: int = Field(..., ge=0)
    input_count: int = Field(..., ge=0)
    output_count: int = Field(..., ge=0)
    payload_size: int = Field(default=0, ge=0)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> MempoolEntry:
        tx = data.get("transaction", {})
        payload = tx.get("payload") or ""
        return cls(
            fee=parse_sompi(data["fee"]),
            input_count=len(tx.get("inputs", [])),
            output_count=len(tx.get("outputs", [])),
            payload_size=len(payload) // 2,
        )


class FeeEstimate(BaseModel):
    fee_rate: Decimal = Field(..., ge=0)
    total_fee: int = Field(..., ge=0)
    priority: FeePriority
    mass: int = Field(..., ge=0)
    percentile: int | None = Field(default=None, ge=0, le=100)
    based_on_samples: int = Field(default=0, ge=0)

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "feeRate": float(self.fee_rate),
            "totalFee": str(self.total_fee),
            "priority": self.priority.value,
            "percentile": self.percentile,
            "basedOnSamples": self.based_on_samples,
        }


class FeeRecommendations(BaseModel):
    low: FeeEstimate
    normal: FeeEstimate
    high: FeeEstimate
    urgent: FeeEstimate
    sample_size: int = Field(default=0, ge=0)
    median_fee_rate: Decimal = Decimal(0)
    average_fee_rate: Decimal = Decimal(0)
    is_fallback: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def for_priority(self, priority: FeePriority) -> FeeEstimate:
        return {
            FeePriority.LOW: self.low,
            FeePriority.NORMAL: self.normal,
            FeePriority.HIGH: self.high,
            FeePriority.URGENT: self.urgent,
        }[priority]

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "low": self.low.to_api_dict(),
            "normal": self.normal.to_api_dict(),
            "high": self.high.to_api_dict(),
            "urgent": self.urgent.to_api_dict(),
            "mempoolSize": self.sample_size,
            "medianFeeRate": float(self.median_fee_rate),
            "averageFeeRate": float(self.average_fee_rate),
            "timestamp": int(self.timestamp.timestamp() * 1000),
        }


@dataclass
class TransactionInput:
    """Transaction input. signature_script stays empty until signed."""

    transaction_id: str
    index: int
    signature_script: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    sig_op_count: int = DEFAULT_SIG_OP_COUNT

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "previousOutpoint": {"transactionId": self.transaction_id, "index": self.index},
            "signatureScript": self.signature_script.hex(),
            "sequence": str(self.sequence),
            "sigOpCount": self.sig_op_count,
        }


@dataclass
class TransactionOutput:
    """Transaction output, either a recipient payment or the change."""

    amount: int
    script_public_key: ScriptPublicKey
    address: str = ""
    is_change: bool = False

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "amount": str(self.amount),
            "scriptPublicKey": self.script_public_key.to_api_dict(),
        }


@dataclass
class Transaction:
    inputs: list[TransactionInput] = field(default_factory=list)
    outputs: list[TransactionOutput] = field(default_factory=list)
    version: int = TX_VERSION
    lock_time: int = 0
    subnetwork_id: bytes = SUBNETWORK_ID_NATIVE
    gas: int = 0
    payload: bytes = b""

    def to_api_dict(self) -> dict[str, Any]:
        """Wire shape accepted by the node's submit endpoint."""
        return {
            "version": self.version,
            "inputs": [inp.to_api_dict() for inp in self.inputs],
            "outputs": [out.to_api_dict() for out in self.outputs],
            "lockTime": str(self.lock_time),
            "subnetworkId": self.subnetwork_id.hex(),
            "gas": str(self.gas),
            "payload": self.payload.hex(),
        }

    @property
    def total_output_amount(self) -> int:
        return sum(out.amount for out in self.outputs)
