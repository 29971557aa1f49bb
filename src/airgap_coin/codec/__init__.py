"""Binary and text codecs used by the protocols."""

from airgap_coin.codec.base58check import (
    AETERNITY_PREFIXES,
    TEZOS_PREFIXES,
    decode_checked,
    decode_tagged,
    encode_checked,
    encode_tagged,
)
from airgap_coin.codec.zarith import decode_zarith, encode_zarith

__all__ = [
    "AETERNITY_PREFIXES",
    "TEZOS_PREFIXES",
    "decode_checked",
    "decode_tagged",
    "encode_checked",
    "encode_tagged",
    "decode_zarith",
    "encode_zarith",
]
