"""
Transaction hashing and signing for Hoosat inputs.

Transaction ids and signature hashes are keyed Blake2b-256 digests over a
little-endian canonical encoding. ECDSA signatures additionally pass the
signature hash through a domain-separated SHA-256.
"""

from __future__ import annotations

import hashlib

from coincurve import PrivateKey
from loguru import logger

from htncore.constants import (
    OP_CHECKSIG,
    OP_DATA_32,
    OP_DATA_65,
    SIGHASH_ALL,
    SIGHASH_ANYONECANPAY,
    SIGHASH_MASK,
    SIGHASH_NONE,
    SIGHASH_SINGLE,
    SUBNETWORK_ID_NATIVE,
)
from htncore.errors import InvalidPrivateKeyError, TransactionSigningError
from htncore.models import ScriptPublicKey, Transaction, TransactionOutput, UnspentOutput

ZERO_HASH = bytes(32)

TRANSACTION_ID_KEY = b"TransactionID"
TRANSACTION_HASH_KEY = b"TransactionHash"
TRANSACTION_SIGNING_KEY = b"TransactionSigningHash"
ECDSA_SIGNING_DOMAIN = hashlib.sha256(b"TransactionSigningHashECDSA").digest()

VALID_SIGHASH_TYPES = frozenset(
    {
        SIGHASH_ALL,
        SIGHASH_NONE,
        SIGHASH_SINGLE,
        SIGHASH_ALL | SIGHASH_ANYONECANPAY,
        SIGHASH_NONE | SIGHASH_ANYONECANPAY,
        SIGHASH_SINGLE | SIGHASH_ANYONECANPAY,
    }
)

# Schnorr signing uses fixed auxiliary randomness so re-signing is byte-identical
SCHNORR_AUX_RANDOMNESS = bytes(32)


def blake2b_256(data: bytes, key: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32, key=key).digest()


def encode_u8(value: int) -> bytes:
    return value.to_bytes(1, "little")


def encode_u16(value: int) -> bytes:
    return value.to_bytes(2, "little")


def encode_u32(value: int) -> bytes:
    return value.to_bytes(4, "little")


def encode_u64(value: int) -> bytes:
    return value.to_bytes(8, "little")


def encode_var_bytes(data: bytes) -> bytes:
    """Length-prefixed bytes; the length is a u64, not a varint."""
    return encode_u64(len(data)) + data


def encode_outpoint(transaction_id: str, index: int) -> bytes:
    return bytes.fromhex(transaction_id) + encode_u32(index)


def encode_script_public_key(spk: ScriptPublicKey) -> bytes:
    return encode_u16(spk.version) + encode_var_bytes(spk.script_bytes)


def encode_output(out: TransactionOutput) -> bytes:
    return encode_u64(out.amount) + encode_script_public_key(out.script_public_key)


def serialize_transaction(tx: Transaction, include_signatures: bool = True) -> bytes:
    """
    Canonical transaction encoding.

    With include_signatures=False the signature scripts are replaced by empty
    byte strings and sig op counts are omitted, which is the preimage of the
    transaction id.
    """
    try:
        result = encode_u16(tx.version)
        result += encode_u64(len(tx.inputs))
        for inp in tx.inputs:
            result += encode_outpoint(inp.transaction_id, inp.index)
            if include_signatures:
                result += encode_var_bytes(inp.signature_script)
                result += encode_u8(inp.sig_op_count)
            else:
                result += encode_var_bytes(b"")
            result += encode_u64(inp.sequence)

        result += encode_u64(len(tx.outputs))
        for out in tx.outputs:
            result += encode_output(out)

        result += encode_u64(tx.lock_time)
        result += tx.subnetwork_id
        result += encode_u64(tx.gas)
        result += encode_var_bytes(tx.payload)
        return result

    except (ValueError, OverflowError) as e:
        raise TransactionSigningError(f"Failed to serialize transaction: {e}") from e


def get_transaction_id(tx: Transaction) -> str:
    """Transaction id: independent of signature scripts, so known before signing."""
    return blake2b_256(serialize_transaction(tx, include_signatures=False), TRANSACTION_ID_KEY).hex()


def get_transaction_hash(tx: Transaction) -> str:
    """Hash over the full encoding including signatures."""
    return blake2b_256(serialize_transaction(tx), TRANSACTION_HASH_KEY).hex()


def _is_anyone_can_pay(sighash_type: int) -> bool:
    return bool(sighash_type & SIGHASH_ANYONECANPAY)


def _base_type(sighash_type: int) -> int:
    return sighash_type & SIGHASH_MASK


def _previous_outputs_hash(tx: Transaction, sighash_type: int) -> bytes:
    if _is_anyone_can_pay(sighash_type):
        return ZERO_HASH
    data = b"".join(encode_outpoint(inp.transaction_id, inp.index) for inp in tx.inputs)
    return blake2b_256(data, TRANSACTION_SIGNING_KEY)


def _sequences_hash(tx: Transaction, sighash_type: int) -> bytes:
    if _is_anyone_can_pay(sighash_type) or _base_type(sighash_type) in (
        SIGHASH_SINGLE,
        SIGHASH_NONE,
    ):
        return ZERO_HASH
    data = b"".join(encode_u64(inp.sequence) for inp in tx.inputs)
    return blake2b_256(data, TRANSACTION_SIGNING_KEY)


def _sig_op_counts_hash(tx: Transaction, sighash_type: int) -> bytes:
    if _is_anyone_can_pay(sighash_type):
        return ZERO_HASH
    data = b"".join(encode_u8(inp.sig_op_count) for inp in tx.inputs)
    return blake2b_256(data, TRANSACTION_SIGNING_KEY)


def _outputs_hash(tx: Transaction, sighash_type: int, input_index: int) -> bytes:
    base = _base_type(sighash_type)
    if base == SIGHASH_NONE:
        return ZERO_HASH
    if base == SIGHASH_SINGLE:
        if input_index >= len(tx.outputs):
            return ZERO_HASH
        return blake2b_256(encode_output(tx.outputs[input_index]), TRANSACTION_SIGNING_KEY)
    data = b"".join(encode_output(out) for out in tx.outputs)
    return blake2b_256(data, TRANSACTION_SIGNING_KEY)


def _payload_hash(tx: Transaction) -> bytes:
    if tx.subnetwork_id == SUBNETWORK_ID_NATIVE and not tx.payload:
        return ZERO_HASH
    return blake2b_256(encode_var_bytes(tx.payload), TRANSACTION_SIGNING_KEY)


def calc_signature_hash(
    tx: Transaction,
    input_index: int,
    utxo: UnspentOutput,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    Signature hash for one input.

    The spent UTXO's locking script and amount stand in for this input; the
    other inputs only contribute through the aggregate hashes selected by the
    sighash type.
    """
    if sighash_type not in VALID_SIGHASH_TYPES:
        raise TransactionSigningError(f"Invalid sighash type: {sighash_type:#04x}")
    if input_index < 0 or input_index >= len(tx.inputs):
        raise TransactionSigningError("Input index out of range")

    target = tx.inputs[input_index]
    if (target.transaction_id, target.index) != utxo.outpoint:
        raise TransactionSigningError(
            f"UTXO {utxo.transaction_id}:{utxo.index} does not match input {input_index}"
        )

    try:
        preimage = (
            encode_u16(tx.version)
            + _previous_outputs_hash(tx, sighash_type)
            + _sequences_hash(tx, sighash_type)
            + _sig_op_counts_hash(tx, sighash_type)
            + encode_outpoint(target.transaction_id, target.index)
            + encode_script_public_key(utxo.script_public_key)
            + encode_u64(utxo.amount)
            + encode_u64(target.sequence)
            + encode_u8(target.sig_op_count)
            + _outputs_hash(tx, sighash_type, input_index)
            + encode_u64(tx.lock_time)
            + tx.subnetwork_id
            + encode_u64(tx.gas)
            + _payload_hash(tx)
            + encode_u8(sighash_type)
        )
    except (ValueError, OverflowError) as e:
        raise TransactionSigningError(f"Failed to compute sighash: {e}") from e

    return blake2b_256(preimage, TRANSACTION_SIGNING_KEY)


def calc_ecdsa_signature_hash(
    tx: Transaction,
    input_index: int,
    utxo: UnspentOutput,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    sighash = calc_signature_hash(tx, input_index, utxo, sighash_type)
    return hashlib.sha256(ECDSA_SIGNING_DOMAIN + sighash).digest()


def parse_private_key(value: PrivateKey | bytes | str) -> PrivateKey:
    """
    Accept a coincurve PrivateKey, 32 raw bytes or 64 hex characters.

    Raises:
        InvalidPrivateKeyError: wrong length, bad hex, or out of curve range
    """
    if isinstance(value, PrivateKey):
        return value
    if isinstance(value, str):
        try:
            value = bytes.fromhex(value.strip().removeprefix("0x"))
        except ValueError as e:
            raise InvalidPrivateKeyError("Private key is not valid hex") from e
    if not isinstance(value, bytes) or len(value) != 32:
        raise InvalidPrivateKeyError("Private key must be 32 bytes")
    try:
        return PrivateKey(value)
    except ValueError as e:
        raise InvalidPrivateKeyError(f"Invalid private key: {e}") from e


def der_to_compact(der_signature: bytes) -> bytes:
    """Convert a DER-encoded ECDSA signature to 64-byte r || s."""
    try:
        if der_signature[0] != 0x30:
            raise ValueError("not a DER sequence")
        offset = 2
        parts = []
        for _ in range(2):
            if der_signature[offset] != 0x02:
                raise ValueError("expected DER integer")
            length = der_signature[offset + 1]
            value = der_signature[offset + 2 : offset + 2 + length]
            offset += 2 + length
            parts.append(value.lstrip(b"\x00").rjust(32, b"\x00"))
        if any(len(p) != 32 for p in parts):
            raise ValueError("integer longer than 32 bytes")
        return parts[0] + parts[1]
    except (IndexError, ValueError) as e:
        raise TransactionSigningError(f"Malformed DER signature: {e}") from e


def is_schnorr_script(spk: ScriptPublicKey) -> bool:
    script = spk.script_bytes
    return len(script) == 34 and script[0] == OP_DATA_32 and script[-1] == OP_CHECKSIG


def sign_input(
    tx: Transaction,
    input_index: int,
    private_key: PrivateKey | bytes | str,
    utxo: UnspentOutput,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    Produce the signature script for one input.

    Schnorr is used when the UTXO is locked to an x-only key (OP_CHECKSIG),
    ECDSA otherwise. Whether the key actually owns the UTXO is not checked:
    a mismatched key yields a well-formed signature the node will reject.

    Args:
        tx: Transaction being signed
        input_index: Index of the input to sign
        private_key: Signing key
        utxo: The UTXO spent by this input
        sighash_type: Sighash type (default SIGHASH_ALL)

    Returns:
        OP_DATA_65 <64-byte signature> <sighash type>
    """
    key = parse_private_key(private_key)

    if is_schnorr_script(utxo.script_public_key):
        sighash = calc_signature_hash(tx, input_index, utxo, sighash_type)
        signature = key.sign_schnorr(sighash, SCHNORR_AUX_RANDOMNESS)
    else:
        sighash = calc_ecdsa_signature_hash(tx, input_index, utxo, sighash_type)
        # Already hashed, so skip coincurve's own sha256
        signature = der_to_compact(key.sign(sighash, hasher=None))

    logger.debug(f"Signed input {input_index} ({utxo.transaction_id[:16]}...:{utxo.index})")
    return bytes([OP_DATA_65]) + signature + bytes([sighash_type])
