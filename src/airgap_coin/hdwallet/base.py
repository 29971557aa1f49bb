"""Deterministic key derivation.

Keys are derived from a BIP39 seed along a BIP44-shaped path
(m/purpose'/coin_type'/account'/change/index). Ed25519 chains use SLIP-10,
which only supports hardened levels; secp256k1 chains use plain BIP32.

Paths may mark hardened levels with either ' or h.
"""

from dataclasses import dataclass, field
from typing import Optional

from bip_utils import (
    Bip32KeyError,
    Bip32Path,
    Bip32PathError,
    Bip32PathParser,
    Bip32Secp256k1,
    Bip32Slip10Ed25519,
    Bip39SeedGenerator,
)

from airgap_coin.errors import ValidationError


@dataclass(frozen=True)
class KeyPair:
    """Raw key material for one account.

    For ed25519 the private key is the 64-byte seed || public key form,
    for secp256k1 the 32-byte scalar.
    """

    public_key: bytes
    private_key: bytes = field(repr=False)


@dataclass(frozen=True)
class AddressInfo:
    """Information about a derived address."""

    address: str
    protocol: str
    derivation_path: str
    index: int
    change: int = 0  # 0 = receiving, 1 = change
    public_key: Optional[bytes] = None


def normalize_path(path: str) -> str:
    """Rewrite 'h' hardened markers into the ' form."""
    return "/".join(
        level[:-1] + "'" if level.endswith(("h", "H")) else level
        for level in path.strip().split("/")
    )


def parse_path(path: str) -> Bip32Path:
    """Parse an absolute path such as m/44'/60'/0'/0/0.

    Raises:
        ValidationError: If the path is malformed or relative
    """
    try:
        parsed = Bip32PathParser.Parse(normalize_path(path))
    except Bip32PathError as e:
        raise ValidationError(f"invalid derivation path {path!r}: {e}") from e

    if not parsed.IsAbsolute():
        raise ValidationError(f"derivation path must start with m/: {path!r}")
    return parsed


def seed_from_mnemonic(mnemonic: str, passphrase: str = "") -> bytes:
    """Convert a BIP39 mnemonic to its 64-byte seed.

    Raises:
        ValidationError: If the mnemonic has unknown words or a bad checksum
    """
    try:
        generator = Bip39SeedGenerator(" ".join(mnemonic.split()))
    except Exception as e:
        raise ValidationError(f"invalid mnemonic: {e}") from e
    return generator.Generate(passphrase)


def derive_ed25519(seed: bytes, path: str) -> KeyPair:
    """Derive an ed25519 key pair with SLIP-10.

    Raises:
        ValidationError: If the path is malformed or has non-hardened levels
    """
    try:
        context = Bip32Slip10Ed25519.FromSeedAndPath(seed, parse_path(path))
    except Bip32KeyError as e:
        raise ValidationError(f"ed25519 supports hardened derivation only: {path}") from e

    private_key = context.PrivateKey().Raw().ToBytes()
    # bip_utils prefixes ed25519 public keys with 0x00
    public_key = context.PublicKey().RawCompressed().ToBytes()[1:]
    return KeyPair(public_key=public_key, private_key=private_key + public_key)


def _secp256k1_context(seed: bytes, path: str) -> Bip32Secp256k1:
    try:
        return Bip32Secp256k1.FromSeedAndPath(seed, parse_path(path))
    except Bip32KeyError as e:
        raise ValidationError(f"cannot derive {path}: {e}") from e


def derive_secp256k1(seed: bytes, path: str) -> KeyPair:
    """Derive a secp256k1 key pair with BIP32. The public key is compressed."""
    context = _secp256k1_context(seed, path)
    return KeyPair(
        public_key=context.PublicKey().RawCompressed().ToBytes(),
        private_key=context.PrivateKey().Raw().ToBytes(),
    )


def secp256k1_extended_public_key(seed: bytes, path: str) -> str:
    """Serialize the extended public key (xpub) at path."""
    return _secp256k1_context(seed, path).PublicKey().ToExtended()
