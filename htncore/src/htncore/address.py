"""
Hoosat address utilities.

Addresses use the cashaddr flavour of bech32 shared by Kaspa-family chains:

    <prefix>:<base32(version || payload) || base32(40-bit checksum)>

Version 0 carries a 32-byte x-only Schnorr public key, version 1 a 33-byte
compressed ECDSA public key (the Hoosat wallet default) and version 8 a 32-byte
script hash.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from htncore.constants import (
    OP_BLAKE2B,
    OP_CHECKSIG,
    OP_CHECKSIGECDSA,
    OP_DATA_32,
    OP_DATA_33,
    OP_EQUAL,
    SCRIPT_PUBLIC_KEY_VERSION,
)
from htncore.errors import InvalidAddressError
from htncore.models import NetworkType, ScriptPublicKey

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH = 8

NETWORK_PREFIXES: dict[NetworkType, str] = {
    NetworkType.MAINNET: "hoosat",
    NetworkType.TESTNET: "hoosattest",
    NetworkType.SIMNET: "hoosatsim",
    NetworkType.DEVNET: "hoosatdev",
}
PREFIX_NETWORKS = {prefix: network for network, prefix in NETWORK_PREFIXES.items()}


class AddressVersion(IntEnum):
    PUBKEY = 0
    PUBKEY_ECDSA = 1
    SCRIPT_HASH = 8


PAYLOAD_LENGTHS = {
    AddressVersion.PUBKEY: 32,
    AddressVersion.PUBKEY_ECDSA: 33,
    AddressVersion.SCRIPT_HASH: 32,
}

ADDRESS_TYPES = {
    AddressVersion.PUBKEY: "schnorr",
    AddressVersion.PUBKEY_ECDSA: "ecdsa",
    AddressVersion.SCRIPT_HASH: "p2sh",
}


@dataclass(frozen=True)
class DecodedAddress:
    prefix: str
    version: AddressVersion
    payload: bytes

    @property
    def network(self) -> NetworkType:
        return PREFIX_NETWORKS[self.prefix]


def polymod(values: list[int]) -> int:
    """Cashaddr checksum polymod (40-bit)"""
    c = 1
    for d in values:
        c0 = c >> 35
        c = ((c & 0x07FFFFFFFF) << 5) ^ d
        if c0 & 0x01:
            c ^= 0x98F2BC8E61
        if c0 & 0x02:
            c ^= 0x79B76D99E2
        if c0 & 0x04:
            c ^= 0xF33E5FB3C4
        if c0 & 0x08:
            c ^= 0xAE2EABE2A8
        if c0 & 0x10:
            c ^= 0x1E4F43E470
    return c ^ 1


def prefix_expand(prefix: str) -> list[int]:
    """Lower 5 bits of each prefix character, followed by the separator zero"""
    return [ord(x) & 0x1F for x in prefix] + [0]


def create_checksum(prefix: str, data: list[int]) -> list[int]:
    checksum = polymod(prefix_expand(prefix) + data + [0] * CHECKSUM_LENGTH)
    return [(checksum >> 5 * (CHECKSUM_LENGTH - 1 - i)) & 31 for i in range(CHECKSUM_LENGTH)]


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or value >> frombits:
            raise ValueError("Invalid data value")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid bits")

    return ret


def encode_address(prefix: str, version: int, payload: bytes) -> str:
    """
    Encode an address.

    Args:
        prefix: Network prefix, e.g. "hoosat"
        version: AddressVersion value
        payload: Public key or script hash

    Returns:
        Address string such as "hoosat:qyp..."
    """
    if prefix not in PREFIX_NETWORKS:
        raise InvalidAddressError(f"Unknown address prefix: {prefix}")
    try:
        address_version = AddressVersion(version)
    except ValueError as e:
        raise InvalidAddressError(f"Unknown address version: {version}") from e
    if len(payload) != PAYLOAD_LENGTHS[address_version]:
        raise InvalidAddressError(
            f"Invalid payload length {len(payload)} for {address_version.name} address"
        )

    data = convertbits(bytes([address_version]) + payload, 8, 5)
    combined = data + create_checksum(prefix, data)
    return prefix + ":" + "".join(CHARSET[d] for d in combined)


def decode_address(address: str) -> DecodedAddress:
    """
    Decode and verify an address.

    Raises:
        InvalidAddressError: malformed, unknown prefix, bad checksum or bad payload
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("Address must be a non-empty string")
    if address.lower() != address and address.upper() != address:
        raise InvalidAddressError(f"Mixed-case address: {address}")
    address = address.lower()

    prefix, sep, encoded = address.partition(":")
    if not sep:
        raise InvalidAddressError(f"Address is missing the network prefix: {address}")
    if prefix not in PREFIX_NETWORKS:
        raise InvalidAddressError(f"Unknown address prefix: {prefix}")
    if len(encoded) <= CHECKSUM_LENGTH:
        raise InvalidAddressError(f"Address too short: {address}")

    try:
        values = [CHARSET.index(c) for c in encoded]
    except ValueError as e:
        raise InvalidAddressError(f"Invalid character in address: {address}") from e

    data, checksum = values[:-CHECKSUM_LENGTH], values[-CHECKSUM_LENGTH:]
    if create_checksum(prefix, data) != checksum:
        raise InvalidAddressError(f"Invalid address checksum: {address}")

    try:
        decoded = bytes(convertbits(data, 5, 8, pad=False))
    except ValueError as e:
        raise InvalidAddressError(f"Invalid address padding: {address}") from e

    try:
        version = AddressVersion(decoded[0])
    except ValueError as e:
        raise InvalidAddressError(f"Unknown address version: {decoded[0]}") from e

    payload = decoded[1:]
    if len(payload) != PAYLOAD_LENGTHS[version]:
        raise InvalidAddressError(
            f"Invalid payload length {len(payload)} for {version.name} address"
        )

    return DecodedAddress(prefix=prefix, version=version, payload=payload)


def is_valid_address(address: str, network: NetworkType | str | None = None) -> bool:
    try:
        validate_address(address, network)
    except InvalidAddressError:
        return False
    return True


def validate_address(address: str, network: NetworkType | str | None = None) -> DecodedAddress:
    """Decode an address and, when a network is given, check its prefix."""
    decoded = decode_address(address)
    if network is not None and decoded.network != NetworkType(network):
        raise InvalidAddressError(
            f"Address {address} belongs to {decoded.network.value}, expected {NetworkType(network).value}"
        )
    return decoded


def get_address_type(address: str) -> str:
    """Return "schnorr", "ecdsa" or "p2sh"."""
    return ADDRESS_TYPES[decode_address(address).version]


def get_address_network(address: str) -> NetworkType:
    return decode_address(address).network


def address_to_script_public_key(address: str) -> ScriptPublicKey:
    """
    Build the locking script paying to an address.

    - Schnorr:  OP_DATA_32 <xonly pubkey> OP_CHECKSIG
    - ECDSA:    OP_DATA_33 <compressed pubkey> OP_CHECKSIGECDSA
    - P2SH:     OP_BLAKE2B OP_DATA_32 <script hash> OP_EQUAL
    """
    decoded = decode_address(address)
    if decoded.version == AddressVersion.PUBKEY:
        script = bytes([OP_DATA_32]) + decoded.payload + bytes([OP_CHECKSIG])
    elif decoded.version == AddressVersion.PUBKEY_ECDSA:
        script = bytes([OP_DATA_33]) + decoded.payload + bytes([OP_CHECKSIGECDSA])
    else:
        script = bytes([OP_BLAKE2B, OP_DATA_32]) + decoded.payload + bytes([OP_EQUAL])
    return ScriptPublicKey(version=SCRIPT_PUBLIC_KEY_VERSION, script=script.hex())


def script_public_key_to_address(
    script_public_key: ScriptPublicKey, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """Inverse of address_to_script_public_key for the three standard script classes."""
    prefix = NETWORK_PREFIXES[NetworkType(network)]
    script = script_public_key.script_bytes

    if len(script) == 34 and script[0] == OP_DATA_32 and script[-1] == OP_CHECKSIG:
        return encode_address(prefix, AddressVersion.PUBKEY, script[1:33])
    if len(script) == 35 and script[0] == OP_DATA_33 and script[-1] == OP_CHECKSIGECDSA:
        return encode_address(prefix, AddressVersion.PUBKEY_ECDSA, script[1:34])
    if (
        len(script) == 35
        and script[0] == OP_BLAKE2B
        and script[1] == OP_DATA_32
        and script[-1] == OP_EQUAL
    ):
        return encode_address(prefix, AddressVersion.SCRIPT_HASH, script[2:34])

    raise InvalidAddressError(f"Unsupported scriptPublicKey: {script_public_key.script}")


def public_key_to_address(
    public_key: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """
    Derive the address for a public key.

    33-byte compressed keys give an ECDSA address, 32-byte x-only keys a
    Schnorr address.
    """
    prefix = NETWORK_PREFIXES[NetworkType(network)]
    if len(public_key) == 33:
        return encode_address(prefix, AddressVersion.PUBKEY_ECDSA, public_key)
    if len(public_key) == 32:
        return encode_address(prefix, AddressVersion.PUBKEY, public_key)
    raise InvalidAddressError(f"Invalid public key length: {len(public_key)}")
