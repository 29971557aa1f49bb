"""Zarith variable-length integer encoding.

Little-endian base-128: each byte carries 7 bits of the value, the high bit
is set on every byte except the last.

    0   -> 00
    127 -> 7f
    128 -> 80 01
"""

from airgap_coin.errors import ForgingError


def encode_zarith(value: int) -> bytes:
    """Encode a non-negative integer."""
    if value < 0:
        raise ForgingError(f"zarith values must be non-negative, got {value}")

    output = bytearray()
    while True:
        group = value & 0x7F
        value >>= 7
        if value:
            output.append(group | 0x80)
        else:
            output.append(group)
            return bytes(output)


def decode_zarith(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode one integer starting at offset.

    Returns:
        Tuple of (value, offset of the first byte after the integer)

    Raises:
        ForgingError: If the input ends before the final byte
    """
    value = 0
    shift = 0
    position = offset

    while position < len(data):
        byte = data[position]
        value |= (byte & 0x7F) << shift
        position += 1
        if not byte & 0x80:
            return value, position
        shift += 7

    raise ForgingError("truncated zarith integer")
