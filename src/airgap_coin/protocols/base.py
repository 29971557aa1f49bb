"""Protocol contract shared by all supported chains.

A CoinProtocol turns account state into an unsigned chain-native
transaction, forges it into consensus bytes, signs those bytes offline and
summarizes either form for display.

Air-gap rule: methods that touch the network take a NetworkGateway and
never a private key; sign_with_private_key takes bytes and a key and never
a gateway.

Amounts are integers in the chain's smallest unit throughout.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, Optional, Sequence

from airgap_coin.config import Settings, get_settings
from airgap_coin.errors import AccountNotFound, UnsupportedOperation
from airgap_coin.hdwallet.base import KeyPair, normalize_path
from airgap_coin.network.gateway import NetworkGateway


@dataclass(frozen=True)
class FeeDefaults:
    """Suggested fee tiers in whole units."""

    low: Decimal
    medium: Decimal
    high: Decimal


@dataclass(frozen=True)
class CurrencyUnit:
    unit_symbol: str
    factor: Decimal = Decimal(1)


@dataclass
class AirGapTransaction:
    """Chain-agnostic summary of a transaction, for display only."""

    amount: int
    fee: int
    from_addresses: list[str]
    to_addresses: list[str]
    is_inbound: bool
    protocol_identifier: str
    hash: Optional[str] = None
    timestamp: Optional[int] = None  # unix seconds
    block_height: Optional[int] = None


class UnsignedTransaction:
    """Marker base for chain-native unsigned transactions."""

    protocol_identifier: ClassVar[str] = ""


@dataclass(frozen=True)
class SignedTransaction:
    """Signed consensus bytes, ready to broadcast."""

    protocol_identifier: str
    payload: bytes = field(repr=False)

    def hex(self) -> str:
        return self.payload.hex()


class CoinProtocol(ABC):
    """Abstract base class for one chain.

    Instances carry only static chain constants and endpoint defaults.
    No instance holds key material.
    """

    identifier: ClassVar[str]
    symbol: ClassVar[str]
    name: ClassVar[str]
    market_symbol: ClassVar[str]
    fee_symbol: ClassVar[str]
    decimals: ClassVar[int]
    fee_decimals: ClassVar[int]
    fee_defaults: ClassVar[FeeDefaults]
    units: ClassVar[tuple[CurrencyUnit, ...]]
    standard_derivation_path: ClassVar[str]
    address_validation_pattern: ClassVar[str]
    address_placeholder: ClassVar[str]
    supports_hd: ClassVar[bool] = False

    # Gateway flavour for node access
    gateway_class: ClassVar[type[NetworkGateway]] = NetworkGateway

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(identifier={self.identifier})"

    # ------------------------------------------------------------------
    # Keys and addresses
    # ------------------------------------------------------------------

    def derive_key_pair(self, seed: bytes, derivation_path: Optional[str] = None) -> KeyPair:
        """Derive the key pair at derivation_path (standard path by default).

        Raises:
            UnsupportedOperation: If a non-HD protocol is asked for any other path
        """
        path = derivation_path or self.standard_derivation_path
        if not self.supports_hd and normalize_path(path) != normalize_path(self.standard_derivation_path):
            raise UnsupportedOperation(
                f"{self.identifier} only derives at {self.standard_derivation_path}, got {path}"
            )
        return self._derive_key_pair(seed, path)

    @abstractmethod
    def _derive_key_pair(self, seed: bytes, path: str) -> KeyPair:
        pass

    @abstractmethod
    def get_address_from_public_key(self, public_key: bytes) -> str:
        """Encode the address that belongs to a raw public key."""
        pass

    def validate_address(self, address: str) -> bool:
        """Check an address against the protocol's pattern."""
        return re.match(self.address_validation_pattern, address or "") is not None

    def to_base_units(self, amount: Decimal) -> int:
        """Convert whole units into the smallest unit."""
        return int((Decimal(amount) * (Decimal(10) ** self.decimals)).to_integral_value())

    def from_base_units(self, amount: int) -> Decimal:
        """Convert smallest units into whole units."""
        return Decimal(amount) / (Decimal(10) ** self.decimals)

    # ------------------------------------------------------------------
    # Network access
    # ------------------------------------------------------------------

    def create_gateway(self, settings: Optional[Settings] = None) -> NetworkGateway:
        """Build a gateway to this chain's node from settings."""
        settings = settings or get_settings()
        return self.gateway_class(settings.get_rpc_url(self.identifier), timeout=settings.http_timeout)

    def create_indexer_gateway(self, settings: Optional[Settings] = None) -> NetworkGateway:
        """Build a gateway to this chain's history API from settings."""
        settings = settings or get_settings()
        indexer_url = settings.get_indexer_url(self.identifier)
        if not indexer_url:
            raise UnsupportedOperation(f"no history API configured for {self.identifier}")
        return NetworkGateway(indexer_url, timeout=settings.http_timeout)

    @abstractmethod
    async def get_balance_of_address(self, gateway: NetworkGateway, address: str) -> int:
        """Query the balance of one address. May raise AccountNotFound."""
        pass

    async def get_balance_of_addresses(self, gateway: NetworkGateway, addresses: Sequence[str]) -> int:
        """Sum balances, queried concurrently.

        Unknown accounts count as zero. Any other failure fails the whole sum.
        """
        balances = await asyncio.gather(
            *(self._balance_or_zero(gateway, address) for address in addresses)
        )
        return sum(balances)

    async def _balance_or_zero(self, gateway: NetworkGateway, address: str) -> int:
        try:
            return await self.get_balance_of_address(gateway, address)
        except AccountNotFound:
            # unused addresses have no on-chain account yet
            return 0

    async def get_balance_of_public_key(self, gateway: NetworkGateway, public_key: bytes) -> int:
        return await self.get_balance_of_addresses(gateway, [self.get_address_from_public_key(public_key)])

    @abstractmethod
    async def get_transactions_from_addresses(
        self, gateway: NetworkGateway, addresses: Sequence[str], limit: int, offset: int
    ) -> list[AirGapTransaction]:
        """Fetch a page of history for the given addresses."""
        pass

    async def get_transactions_from_public_key(
        self, gateway: NetworkGateway, public_key: bytes, limit: int, offset: int
    ) -> list[AirGapTransaction]:
        address = self.get_address_from_public_key(public_key)
        return await self.get_transactions_from_addresses(gateway, [address], limit, offset)

    @staticmethod
    def get_page_number(limit: int, offset: int) -> int:
        """Map limit/offset onto a zero-based page index."""
        if limit <= 0 or offset < 0:
            return 0
        return offset // limit

    # ------------------------------------------------------------------
    # Build, forge, sign, summarize, broadcast
    # ------------------------------------------------------------------

    @abstractmethod
    async def prepare_transaction_from_public_key(
        self,
        gateway: NetworkGateway,
        public_key: bytes,
        recipients: Sequence[str],
        values: Sequence[int],
        fee: int,
    ) -> UnsignedTransaction:
        """Assemble an unsigned transaction from current account state."""
        pass

    @abstractmethod
    def forge_transaction(self, transaction: UnsignedTransaction) -> bytes:
        """Serialize into the bytes the network hashes and verifies."""
        pass

    @abstractmethod
    def unforge_transaction(self, data: bytes) -> UnsignedTransaction:
        """Parse forged bytes back into the chain-native structure."""
        pass

    @abstractmethod
    def sign_with_private_key(
        self, private_key: bytes, unsigned_payload: bytes, network_id: Optional[str] = None
    ) -> SignedTransaction:
        """Sign forged bytes. Pure function, never touches the network."""
        pass

    @abstractmethod
    def get_transaction_details(
        self, transaction: UnsignedTransaction, watched_addresses: Sequence[str] = ()
    ) -> AirGapTransaction:
        pass

    @abstractmethod
    def get_transaction_details_from_signed(
        self, signed: SignedTransaction, watched_addresses: Optional[Sequence[str]] = None
    ) -> AirGapTransaction:
        pass

    @abstractmethod
    async def broadcast_transaction(self, gateway: NetworkGateway, signed: SignedTransaction) -> str:
        """Submit signed bytes and return the network hash."""
        pass

    @staticmethod
    def _signed_is_inbound(
        from_addresses: Sequence[str], to_addresses: Sequence[str], watched_addresses: Optional[Sequence[str]]
    ) -> bool:
        # Without a watch list the sender is the watched party, so only a
        # transfer to oneself counts as inbound.
        watched = from_addresses if watched_addresses is None else watched_addresses
        return bool(watched) and set(to_addresses) == set(watched)


class HDCoinProtocol(CoinProtocol):
    """Protocols that derive many addresses from one extended public key.

    Check CoinProtocol.supports_hd (or use registry.require_hd) before
    calling any of these.
    """

    supports_hd: ClassVar[bool] = True

    @abstractmethod
    def get_extended_public_key(self, seed: bytes) -> str:
        pass

    @abstractmethod
    def derive_key_pair_at(self, seed: bytes, index: int, change: int = 0) -> KeyPair:
        pass

    @abstractmethod
    def get_address_from_extended_public_key(
        self, extended_public_key: str, visibility_index: int, address_index: int
    ) -> str:
        pass

    def get_addresses_from_extended_public_key(
        self, extended_public_key: str, visibility_index: int, count: int, offset: int
    ) -> list[str]:
        return [
            self.get_address_from_extended_public_key(extended_public_key, visibility_index, index)
            for index in range(offset, offset + count)
        ]

    async def get_balance_of_extended_public_key(
        self, gateway: NetworkGateway, extended_public_key: str, offset: int = 0, count: int = 20
    ) -> int:
        """Sum the balance of count receiving addresses starting at offset."""
        addresses = self.get_addresses_from_extended_public_key(extended_public_key, 0, count, offset)
        return await self.get_balance_of_addresses(gateway, addresses)

    @abstractmethod
    async def prepare_transaction_from_extended_public_key(
        self,
        gateway: NetworkGateway,
        extended_public_key: str,
        offset: int,
        recipients: Sequence[str],
        values: Sequence[int],
        fee: int,
    ) -> UnsignedTransaction:
        pass
