"""Cryptographic primitives used by the protocols.

Hashing comes from hashlib and eth_utils, ed25519 from the cryptography
package. These are treated as trusted black boxes.
"""

import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from eth_utils import keccak


def blake2b_digest(data: bytes, digest_size: int = 32) -> bytes:
    """BLAKE2b with a fixed output length in bytes."""
    return hashlib.blake2b(data, digest_size=digest_size).digest()


def keccak256(data: bytes) -> bytes:
    """Ethereum's Keccak-256 (not NIST SHA3-256)."""
    return keccak(data)


def ed25519_sign(private_key: bytes, message: bytes) -> bytes:
    """Produce a detached 64-byte ed25519 signature.

    Args:
        private_key: 32-byte seed, or the 64-byte seed || public key form

    Returns:
        Raw signature bytes
    """
    if len(private_key) not in (32, 64):
        raise ValueError(f"ed25519 private key must be 32 or 64 bytes, got {len(private_key)}")

    signing_key = Ed25519PrivateKey.from_private_bytes(private_key[:32])
    return signing_key.sign(message)


def ed25519_verify(public_key: bytes, signature: bytes, message: bytes) -> bool:
    """Check a detached ed25519 signature."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        return True
    except InvalidSignature:
        return False
