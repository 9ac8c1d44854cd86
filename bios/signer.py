"""
In-memory signer

Holds the private keys a boot run signs with. The operator key is imported
once at startup; the origin's ephemeral key is imported through scoped_key()
so it leaves the bag when the run ends, whatever the outcome.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List

from ecdsa import SigningKey, SECP256k1

from bios.crypto_utils import ecdh_shared_secret


class KeyBag:
    def __init__(self):
        self._keys: Dict[str, SigningKey] = {}

    def import_private_key(self, private_key_hex: str) -> str:
        """Add a hex private key; returns its hex public key."""
        sk = SigningKey.from_string(bytes.fromhex(private_key_hex), curve=SECP256k1)
        public_key = sk.get_verifying_key().to_string().hex()
        self._keys[public_key] = sk
        return public_key

    def remove_key(self, public_key: str) -> None:
        self._keys.pop(public_key, None)

    @contextmanager
    def scoped_key(self, private_key_hex: str) -> Iterator[str]:
        public_key = self.import_private_key(private_key_hex)
        try:
            yield public_key
        finally:
            self.remove_key(public_key)

    def has_key(self, public_key: str) -> bool:
        return public_key in self._keys

    def public_keys(self) -> List[str]:
        return sorted(self._keys)

    def sign(self, message: bytes, public_key: str) -> str:
        if public_key not in self._keys:
            raise KeyError(f"no private key for {public_key[:16]}...")
        return self._keys[public_key].sign(message).hex()

    def sign_all(self, message: bytes) -> List[Dict[str, str]]:
        """Sign with every held key; used for transaction batches."""
        return [
            {"public_key": public_key, "signature": self.sign(message, public_key)}
            for public_key in self.public_keys()
        ]

    def shared_secret(self, public_key: str, peer_public_key: str) -> bytes:
        """ECDH secret between one of our keys and a peer key."""
        if public_key not in self._keys:
            raise KeyError(f"no private key for {public_key[:16]}...")
        return ecdh_shared_secret(self._keys[public_key].to_string().hex(), peer_public_key)
