"""Base58Check encoding with network-specific version prefixes.

The checksum is the first 4 bytes of double SHA-256 over prefix || payload.
"""

import hashlib
from types import MappingProxyType

import base58

from airgap_coin.errors import AddressError, ChecksumInvalid, PrefixMismatch

# Tezos version prefixes, by semantic role
TEZOS_PREFIXES = MappingProxyType({
    "tz1": bytes([6, 161, 159]),
    "tz2": bytes([6, 161, 161]),
    "tz3": bytes([6, 161, 164]),
    "KT1": bytes([2, 90, 121]),
    "edpk": bytes([13, 15, 37, 217]),
    "edsk": bytes([43, 246, 78, 7]),
    "edsig": bytes([9, 245, 205, 134, 18]),
    "branch": bytes([1, 52]),
})

# Aeternity uses a textual tag in front of an unprefixed Base58Check payload
AETERNITY_PREFIXES = MappingProxyType({
    "account": "ak_",
    "transaction": "tx_",
})


def encode_checked(payload: bytes, prefix: bytes = b"") -> str:
    """Base58Check-encode prefix || payload."""
    return base58.b58encode_check(prefix + payload).decode()


def checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:4]


def decode_checked(encoded: str, prefix: bytes = b"") -> bytes:
    """Decode a Base58Check string and strip its version prefix.

    Raises:
        ChecksumInvalid: If the checksum does not verify
        PrefixMismatch: If the decoded bytes do not start with prefix
        AddressError: If the string is not valid Base58
    """
    try:
        raw = base58.b58decode(encoded)
    except (ValueError, TypeError) as e:
        raise AddressError(f"not a Base58 string: {encoded!r}") from e

    if len(raw) < 4:
        raise AddressError(f"{encoded!r} is too short to carry a checksum")

    decoded, check = raw[:-4], raw[-4:]
    if checksum(decoded) != check:
        raise ChecksumInvalid(f"invalid checksum for {encoded!r}")

    if not decoded.startswith(prefix):
        raise PrefixMismatch(f"payload of {encoded!r} does not match prefix {prefix.hex()}")

    return decoded[len(prefix):]


def decode_tagged(encoded: str, tag: str) -> bytes:
    """Decode a textual-tag string such as 'ak_...' into its payload."""
    if not encoded.startswith(tag):
        raise PrefixMismatch(f"{encoded!r} does not start with {tag!r}")
    return decode_checked(encoded[len(tag):])


def encode_tagged(payload: bytes, tag: str) -> str:
    """Encode a payload as tag + Base58Check."""
    return tag + encode_checked(payload)

