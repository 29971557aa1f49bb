"""ETH HD wallet over an account-level extended public key.

Derivation path: m/44'/60'/0'/change/index
Address format: 0x... (EIP-55 checksum encoded)

Only the xpub is used - no private keys.
"""

from bip_utils import Bip32KeyNetVersions, Bip32Secp256k1
from eth_keys import keys

from airgap_coin.errors import ValidationError
from airgap_coin.hdwallet.base import AddressInfo

# (public, private) serialization versions by xpub prefix
KEY_NET_VERSIONS = {
    "xpub": Bip32KeyNetVersions(b"\x04\x88\xb2\x1e", b"\x04\x88\xad\xe4"),
    "tpub": Bip32KeyNetVersions(b"\x04\x35\x87\xcf", b"\x04\x35\x83\x94"),
}


def eth_address_from_public_key(public_key: bytes) -> str:
    """Checksum address of a compressed or uncompressed secp256k1 key."""
    if len(public_key) == 33:
        return keys.PublicKey.from_compressed_bytes(public_key).to_checksum_address()
    if len(public_key) == 65:
        public_key = public_key[1:]
    return keys.PublicKey(public_key).to_checksum_address()


class ETHHDWallet:
    """Ethereum HD wallet using BIP44.

    Example:
        wallet = ETHHDWallet(xpub="xpub...")
        addr = wallet.derive_address(index=0)
        # AddressInfo(address="0x...", ...)
    """

    purpose = 44
    coin_type = 60

    def __init__(self, xpub: str, protocol: str = "eth"):
        self.xpub = xpub
        self.protocol = protocol
        self._bip32_ctx = self._load_xpub(xpub)

    @staticmethod
    def _load_xpub(xpub: str) -> Bip32Secp256k1:
        prefix = xpub[:4] if xpub else ""
        if prefix not in KEY_NET_VERSIONS:
            raise ValidationError(f"Invalid xpub prefix. Expected one of {list(KEY_NET_VERSIONS)}")

        try:
            return Bip32Secp256k1.FromExtendedKey(xpub, KEY_NET_VERSIONS[prefix])
        except Exception as e:
            raise ValidationError(f"Invalid ETH xpub: {e}") from e

    def get_derivation_path(self, index: int, change: int = 0) -> str:
        return f"m/{self.purpose}'/{self.coin_type}'/0'/{change}/{index}"

    def derive_public_key(self, index: int, change: int = 0) -> bytes:
        """Compressed public key of the child at change/index."""
        child = self._bip32_ctx.ChildKey(change).ChildKey(index)
        return child.PublicKey().RawCompressed().ToBytes()

    def derive_address(self, index: int, change: int = 0) -> AddressInfo:
        """Derive the checksum address at change/index."""
        public_key = self.derive_public_key(index, change)

        return AddressInfo(
            address=eth_address_from_public_key(public_key),
            protocol=self.protocol,
            derivation_path=self.get_derivation_path(index, change),
            index=index,
            change=change,
            public_key=public_key,
        )

    def derive_addresses(self, count: int, offset: int = 0, change: int = 0) -> list[AddressInfo]:
        change_ctx = self._bip32_ctx.ChildKey(change)
        addresses = []
        for index in range(offset, offset + count):
            public_key = change_ctx.ChildKey(index).PublicKey().RawCompressed().ToBytes()
            addresses.append(
                AddressInfo(
                    address=eth_address_from_public_key(public_key),
                    protocol=self.protocol,
                    derivation_path=self.get_derivation_path(index, change),
                    index=index,
                    change=change,
                    public_key=public_key,
                )
            )
        return addresses
