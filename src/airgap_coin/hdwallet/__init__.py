"""HD wallet module for deterministic key and address generation."""

from airgap_coin.hdwallet.base import (
    AddressInfo,
    KeyPair,
    derive_ed25519,
    derive_secp256k1,
    seed_from_mnemonic,
)
from airgap_coin.hdwallet.eth import ETHHDWallet

__all__ = [
    "AddressInfo",
    "KeyPair",
    "ETHHDWallet",
    "derive_ed25519",
    "derive_secp256k1",
    "seed_from_mnemonic",
]
