"""
Key pair helpers.
"""

from __future__ import annotations

from dataclasses import dataclass

from coincurve import PrivateKey

from htncore.address import public_key_to_address
from htncore.models import NetworkType
from htnwallet.wallet.signing import parse_private_key


@dataclass(frozen=True)
class KeyPair:
    private_key_hex: str
    public_key_hex: str
    address: str

    @property
    def private_key(self) -> PrivateKey:
        return PrivateKey(bytes.fromhex(self.private_key_hex))


def import_key_pair(
    private_key: PrivateKey | bytes | str,
    network: NetworkType | str = NetworkType.MAINNET,
    schnorr: bool = False,
) -> KeyPair:
    """
    Build a KeyPair from an existing private key.

    ECDSA (compressed 33-byte public key) is the default address type;
    schnorr=True derives the x-only key and its address instead.
    """
    key = parse_private_key(private_key)
    if schnorr:
        public_key = key.public_key_xonly.format()
    else:
        public_key = key.public_key.format(compressed=True)

    return KeyPair(
        private_key_hex=key.secret.hex(),
        public_key_hex=public_key.hex(),
        address=public_key_to_address(public_key, network),
    )


def generate_key_pair(
    network: NetworkType | str = NetworkType.MAINNET, schnorr: bool = False
) -> KeyPair:
    return import_key_pair(PrivateKey(), network, schnorr=schnorr)
