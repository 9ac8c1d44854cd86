"""
Cryptographic utilities for BIOS

Key generation, signing and hashing on SECP256k1, plus the ECDH bridge used to
seal kickstart bundles. Keys travel as hex: 32-byte private keys and 64-byte
raw (x || y) public keys.
"""

import hashlib
from ecdsa import SigningKey, VerifyingKey, SECP256k1, BadSignatureError
from cryptography.hazmat.primitives.asymmetric import ec


def generate_keypair():
    """
    Generate a new ECDSA keypair.

    Returns:
        tuple: (private_key_hex, public_key_hex)
    """
    sk = SigningKey.generate(curve=SECP256k1)
    vk = sk.get_verifying_key()

    private_key = sk.to_string().hex()
    public_key = vk.to_string().hex()

    return private_key, public_key


def public_key_from_private(private_key_hex: str) -> str:
    """Derive the hex public key for a hex private key."""
    sk = SigningKey.from_string(bytes.fromhex(private_key_hex), curve=SECP256k1)
    return sk.get_verifying_key().to_string().hex()


def verify_signature(message: bytes, signature_hex: str, public_key_hex: str) -> bool:
    """
    Verify a signature.

    Args:
        message: Original message (bytes)
        signature_hex: Signature in hex format
        public_key_hex: Public key in hex format

    Returns:
        bool: True if signature is valid
    """
    try:
        vk = VerifyingKey.from_string(bytes.fromhex(public_key_hex), curve=SECP256k1)
        vk.verify(bytes.fromhex(signature_hex), message)
        return True
    except (BadSignatureError, ValueError, TypeError, AssertionError):
        return False


def hash_data(data: bytes) -> str:
    """
    Hash data using SHA-256.

    Args:
        data: Data to hash (bytes)

    Returns:
        str: Hex-encoded hash
    """
    return hashlib.sha256(data).hexdigest()


def ecdh_shared_secret(private_key_hex: str, peer_public_key_hex: str) -> bytes:
    """
    Compute the ECDH shared secret between a local private key and a peer public key.

    Both sides of an exchange get the same 32 bytes: ecdh(a, B) == ecdh(b, A).
    """
    private_key = ec.derive_private_key(int(private_key_hex, 16), ec.SECP256K1())
    peer_key = ec.EllipticCurvePublicKey.from_encoded_point(
        ec.SECP256K1(), b"\x04" + bytes.fromhex(peer_public_key_hex)
    )
    return private_key.exchange(ec.ECDH(), peer_key)
