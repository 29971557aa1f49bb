"""Aeternity protocol.

Spend transactions are RLP field lists:

    [tag=12, version=1, sender_id, recipient_id, amount, fee, ttl, nonce, payload]

where ids are 0x01 || public key. Signatures cover network_id || tx and are
wrapped in a signed-transaction envelope [tag=11, version=1, [sig], tx].
Text forms are 'ak_'/'tx_' followed by Base58Check.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Optional, Sequence

import rlp

from airgap_coin.codec.base58check import AETERNITY_PREFIXES, decode_tagged, encode_tagged
from airgap_coin.crypto import ed25519_sign
from airgap_coin.errors import (
    AccountNotFound,
    BroadcastRejected,
    ForgingError,
    InsufficientBalance,
    NetworkError,
    UnsupportedOperationKind,
    ValidationError,
)
from airgap_coin.hdwallet.base import KeyPair, derive_ed25519
from airgap_coin.network.gateway import NetworkGateway
from airgap_coin.protocols.base import (
    AirGapTransaction,
    CoinProtocol,
    CurrencyUnit,
    FeeDefaults,
    SignedTransaction,
    UnsignedTransaction,
)

logger = logging.getLogger(__name__)

SPEND_TX_TAG = 12
SIGNED_TX_TAG = 11
OBJECT_VERSION = 1
ACCOUNT_ID_TAG = b"\x01"
DEFAULT_TTL = 10000
DEFAULT_NETWORK_ID = "ae_mainnet"


@dataclass(frozen=True)
class RawAeternityTransaction(UnsignedTransaction):
    """A spend transaction plus the network id its signature commits to."""

    sender: bytes  # raw public key
    recipient: bytes  # raw public key
    amount: int
    fee: int
    nonce: int
    network_id: str = DEFAULT_NETWORK_ID
    ttl: int = DEFAULT_TTL
    payload: bytes = b""

    protocol_identifier: ClassVar[str] = "ae"


class AeternityProtocol(CoinProtocol):
    """Aeternity (AE)."""

    identifier = "ae"
    symbol = "AE"
    name = "Aeternity"
    market_symbol = "ae"
    fee_symbol = "ae"

    decimals = 18
    fee_decimals = 18

    fee_defaults = FeeDefaults(
        low=Decimal("0.00021"),
        medium=Decimal("0.000315"),
        high=Decimal("0.00084"),
    )
    units = (CurrencyUnit("AE"),)

    supports_hd = False
    standard_derivation_path = "m/44h/457h/0h/0h/0h"
    address_validation_pattern = r"^ak_[1-9A-HJ-NP-Za-km-z]{48,50}$"
    address_placeholder = "ak_..."

    def __init__(self, network_id: str = DEFAULT_NETWORK_ID):
        self.network_id = network_id

    def _derive_key_pair(self, seed: bytes, path: str) -> KeyPair:
        return derive_ed25519(seed, path)

    def get_address_from_public_key(self, public_key: bytes) -> str:
        # the address is the public key itself
        return encode_tagged(public_key, AETERNITY_PREFIXES["account"])

    def decode_address(self, address: str) -> bytes:
        return decode_tagged(address, AETERNITY_PREFIXES["account"])

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def get_balance_of_address(self, gateway: NetworkGateway, address: str) -> int:
        data = await gateway.get(f"/v2/accounts/{address}")
        return int(data["balance"])

    async def _get_account(self, gateway: NetworkGateway, address: str) -> dict:
        try:
            return await gateway.get(f"/v2/accounts/{address}")
        except AccountNotFound:
            return {"balance": 0, "nonce": 0}

    async def get_transactions_from_addresses(
        self, gateway: NetworkGateway, addresses: Sequence[str], limit: int, offset: int
    ) -> list[AirGapTransaction]:
        # the node API has no account history
        return []

    # ------------------------------------------------------------------
    # Transaction builder
    # ------------------------------------------------------------------

    async def prepare_transaction_from_public_key(
        self,
        gateway: NetworkGateway,
        public_key: bytes,
        recipients: Sequence[str],
        values: Sequence[int],
        fee: int,
    ) -> RawAeternityTransaction:
        if not recipients or len(recipients) != len(values):
            raise ValidationError("recipients and values must be non-empty and of equal length")

        sender = self.get_address_from_public_key(public_key)
        account = await self._get_account(gateway, sender)
        balance = int(account.get("balance", 0))
        nonce = int(account.get("nonce", 0)) + 1

        amount = values[0]
        if balance < amount + fee:
            raise InsufficientBalance(balance, amount + fee)

        transaction = RawAeternityTransaction(
            sender=public_key,
            recipient=self.decode_address(recipients[0]),
            amount=amount,
            fee=fee,
            nonce=nonce,
            network_id=self.network_id,
        )
        logger.info(f"Prepared Aeternity spend from {sender} with nonce {nonce}")
        return transaction

    # ------------------------------------------------------------------
    # Forging
    # ------------------------------------------------------------------

    def forge_transaction(self, transaction: RawAeternityTransaction) -> bytes:
        return rlp.encode([
            SPEND_TX_TAG,
            OBJECT_VERSION,
            ACCOUNT_ID_TAG + transaction.sender,
            ACCOUNT_ID_TAG + transaction.recipient,
            transaction.amount,
            transaction.fee,
            transaction.ttl,
            transaction.nonce,
            transaction.payload,
        ])

    def unforge_transaction(self, data: bytes, network_id: Optional[str] = None) -> RawAeternityTransaction:
        try:
            fields = rlp.decode(data)
        except rlp.DecodingError as e:
            raise ForgingError(f"invalid RLP: {e}") from e

        if not isinstance(fields, list) or len(fields) != 9 or _to_int(fields[0]) != SPEND_TX_TAG:
            raise UnsupportedOperationKind("only spend transactions are supported")

        return RawAeternityTransaction(
            sender=fields[2][1:],
            recipient=fields[3][1:],
            amount=_to_int(fields[4]),
            fee=_to_int(fields[5]),
            ttl=_to_int(fields[6]),
            nonce=_to_int(fields[7]),
            payload=fields[8],
            network_id=network_id or self.network_id,
        )

    def encode_transaction(self, data: bytes) -> str:
        """tx_... text form used by the node API."""
        return encode_tagged(data, AETERNITY_PREFIXES["transaction"])

    def decode_transaction(self, encoded: str) -> bytes:
        return decode_tagged(encoded, AETERNITY_PREFIXES["transaction"])

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_with_private_key(
        self, private_key: bytes, unsigned_payload: bytes, network_id: Optional[str] = None
    ) -> SignedTransaction:
        network_id = network_id or self.network_id
        signature = ed25519_sign(private_key, network_id.encode() + unsigned_payload)
        envelope = rlp.encode([SIGNED_TX_TAG, OBJECT_VERSION, [signature], unsigned_payload])
        return SignedTransaction(self.identifier, envelope)

    def _unwrap_signed(self, signed: SignedTransaction) -> bytes:
        try:
            fields = rlp.decode(signed.payload)
        except rlp.DecodingError as e:
            raise ForgingError(f"invalid RLP: {e}") from e

        if not isinstance(fields, list) or len(fields) != 4 or _to_int(fields[0]) != SIGNED_TX_TAG:
            raise UnsupportedOperationKind("not a signed transaction envelope")
        return fields[3]

    # ------------------------------------------------------------------
    # Normalizer
    # ------------------------------------------------------------------

    def get_transaction_details(
        self, transaction: RawAeternityTransaction, watched_addresses: Sequence[str] = ()
    ) -> AirGapTransaction:
        recipient = self.get_address_from_public_key(transaction.recipient)
        return AirGapTransaction(
            amount=transaction.amount,
            fee=transaction.fee,
            from_addresses=[self.get_address_from_public_key(transaction.sender)],
            to_addresses=[recipient],
            is_inbound=recipient in watched_addresses,
            protocol_identifier=self.identifier,
        )

    def get_transaction_details_from_signed(
        self, signed: SignedTransaction, watched_addresses: Optional[Sequence[str]] = None
    ) -> AirGapTransaction:
        details = self.get_transaction_details(self.unforge_transaction(self._unwrap_signed(signed)))
        details.is_inbound = self._signed_is_inbound(
            details.from_addresses, details.to_addresses, watched_addresses
        )
        return details

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    async def broadcast_transaction(self, gateway: NetworkGateway, signed: SignedTransaction) -> str:
        try:
            data = await gateway.post("/v2/transactions", {"tx": self.encode_transaction(signed.payload)})
        except NetworkError as e:
            if e.status_code is None:
                raise
            raise BroadcastRejected(f"broadcasting failed: {e}", status_code=e.status_code, url=e.url) from e

        tx_hash = data["tx_hash"]
        logger.info(f"Posted Aeternity transaction {tx_hash}")
        return tx_hash


def _to_int(value: bytes) -> int:
    return int.from_bytes(value, "big")
