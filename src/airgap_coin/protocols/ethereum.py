"""Ethereum protocol.

Legacy (pre-1559) transfers with EIP-155 replay protection. The unsigned
payload is the RLP list the signature commits to:

    [nonce, gasPrice, gas, to, value, data, chainId, 0, 0]

and the signed payload replaces the trailing three fields with v, r, s.
eth_account signs it and recovers the sender.
Keys are secp256k1; addresses derive from an account-level xpub
(m/44'/60'/0'), so this protocol is HD capable.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Optional, Sequence

import rlp
from eth_account import Account
from eth_utils import to_checksum_address

from airgap_coin.crypto import keccak256
from airgap_coin.errors import (
    BroadcastRejected,
    ForgingError,
    InsufficientBalance,
    NetworkError,
    RpcError,
    ValidationError,
)
from airgap_coin.hdwallet.base import KeyPair, derive_secp256k1, secp256k1_extended_public_key
from airgap_coin.hdwallet.eth import ETHHDWallet, eth_address_from_public_key
from airgap_coin.network.gateway import JsonRpcGateway, NetworkGateway
from airgap_coin.protocols.base import (
    AirGapTransaction,
    CurrencyUnit,
    FeeDefaults,
    HDCoinProtocol,
    SignedTransaction,
    UnsignedTransaction,
)

logger = logging.getLogger(__name__)

TRANSFER_GAS_LIMIT = 21000
ACCOUNT_PATH = "m/44'/60'/0'"


@dataclass(frozen=True)
class RawEthereumTransaction(UnsignedTransaction):
    nonce: int
    gas_price: int
    gas_limit: int
    to: str
    value: int
    chain_id: int
    data: bytes = b""
    sender: Optional[str] = None  # not part of the forged bytes

    protocol_identifier: ClassVar[str] = "eth"

    @property
    def fee(self) -> int:
        return self.gas_price * self.gas_limit


class EthereumProtocol(HDCoinProtocol):
    """Ethereum (ETH) native transfers."""

    identifier = "eth"
    symbol = "ETH"
    name = "Ethereum"
    market_symbol = "eth"
    fee_symbol = "eth"

    decimals = 18
    fee_decimals = 18

    fee_defaults = FeeDefaults(
        low=Decimal("0.00021"),  # 21000 gas * 10 gwei
        medium=Decimal("0.000315"),  # 21000 gas * 15 gwei
        high=Decimal("0.00084"),  # 21000 gas * 40 gwei
    )
    units = (
        CurrencyUnit("ETH"),
        CurrencyUnit("GWEI", Decimal("0.000000001")),
    )

    standard_derivation_path = "m/44h/60h/0h/0/0"
    address_validation_pattern = r"^0x[a-fA-F0-9]{40}$"
    address_placeholder = "0x..."

    gateway_class = JsonRpcGateway

    def __init__(self, chain_id: int = 1, explorer_api_key: str = ""):
        self.chain_id = chain_id
        self.explorer_api_key = explorer_api_key

    def _derive_key_pair(self, seed: bytes, path: str) -> KeyPair:
        return derive_secp256k1(seed, path)

    def get_address_from_public_key(self, public_key: bytes) -> str:
        return eth_address_from_public_key(public_key)

    # ------------------------------------------------------------------
    # HD
    # ------------------------------------------------------------------

    def get_extended_public_key(self, seed: bytes) -> str:
        return secp256k1_extended_public_key(seed, ACCOUNT_PATH)

    def derive_key_pair_at(self, seed: bytes, index: int, change: int = 0) -> KeyPair:
        return derive_secp256k1(seed, f"{ACCOUNT_PATH}/{change}/{index}")

    def get_address_from_extended_public_key(
        self, extended_public_key: str, visibility_index: int, address_index: int
    ) -> str:
        wallet = ETHHDWallet(extended_public_key, protocol=self.identifier)
        return wallet.derive_address(address_index, change=visibility_index).address

    def get_addresses_from_extended_public_key(
        self, extended_public_key: str, visibility_index: int, count: int, offset: int
    ) -> list[str]:
        wallet = ETHHDWallet(extended_public_key, protocol=self.identifier)
        return [info.address for info in wallet.derive_addresses(count, offset, change=visibility_index)]

    async def prepare_transaction_from_extended_public_key(
        self,
        gateway: NetworkGateway,
        extended_public_key: str,
        offset: int,
        recipients: Sequence[str],
        values: Sequence[int],
        fee: int,
    ) -> RawEthereumTransaction:
        """Spend from the receiving address at index offset."""
        public_key = ETHHDWallet(extended_public_key, protocol=self.identifier).derive_public_key(offset)
        return await self.prepare_transaction_from_public_key(gateway, public_key, recipients, values, fee)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def get_balance_of_address(self, gateway: JsonRpcGateway, address: str) -> int:
        result = await gateway.call("eth_getBalance", [address, "latest"])
        return int(result, 16)

    async def _get_nonce(self, gateway: JsonRpcGateway, address: str) -> int:
        result = await gateway.call("eth_getTransactionCount", [address, "pending"])
        return int(result, 16)

    async def get_transactions_from_addresses(
        self, gateway: NetworkGateway, addresses: Sequence[str], limit: int, offset: int
    ) -> list[AirGapTransaction]:
        """Fetch history from an Etherscan-compatible explorer API."""
        page = self.get_page_number(limit, offset) + 1  # explorer pages start at 1
        responses = await asyncio.gather(
            *(
                gateway.get(
                    "/api",
                    params={
                        "module": "account",
                        "action": "txlist",
                        "address": address,
                        "page": page,
                        "offset": limit,
                        "sort": "desc",
                        "apikey": self.explorer_api_key,
                    },
                )
                for address in addresses
            )
        )

        watched = {address.lower() for address in addresses}
        transactions = []
        for response in responses:
            result = response.get("result")
            if not isinstance(result, list):
                # "No transactions found" comes back as a string result
                continue
            for tx in result:
                if tx.get("isError") == "1":
                    continue
                transactions.append(
                    AirGapTransaction(
                        amount=int(tx["value"]),
                        fee=int(tx["gasUsed"]) * int(tx["gasPrice"]),
                        from_addresses=[to_checksum_address(tx["from"])],
                        to_addresses=[to_checksum_address(tx["to"])] if tx.get("to") else [],
                        is_inbound=tx.get("to", "").lower() in watched,
                        protocol_identifier=self.identifier,
                        hash=tx.get("hash"),
                        timestamp=int(tx["timeStamp"]) if tx.get("timeStamp") else None,
                        block_height=int(tx["blockNumber"]) if tx.get("blockNumber") else None,
                    )
                )
        return transactions

    # ------------------------------------------------------------------
    # Transaction builder
    # ------------------------------------------------------------------

    async def prepare_transaction_from_public_key(
        self,
        gateway: JsonRpcGateway,
        public_key: bytes,
        recipients: Sequence[str],
        values: Sequence[int],
        fee: int,
    ) -> RawEthereumTransaction:
        if not recipients or len(recipients) != len(values):
            raise ValidationError("recipients and values must be non-empty and of equal length")
        if not self.validate_address(recipients[0]):
            raise ValidationError(f"invalid recipient address {recipients[0]}")

        sender = self.get_address_from_public_key(public_key)
        balance, nonce = await asyncio.gather(
            self.get_balance_of_addresses(gateway, [sender]),
            self._get_nonce(gateway, sender),
        )

        amount = values[0]
        gas_price = fee // TRANSFER_GAS_LIMIT
        if balance < amount + gas_price * TRANSFER_GAS_LIMIT:
            raise InsufficientBalance(balance, amount + fee)

        transaction = RawEthereumTransaction(
            nonce=nonce,
            gas_price=gas_price,
            gas_limit=TRANSFER_GAS_LIMIT,
            to=to_checksum_address(recipients[0]),
            value=amount,
            chain_id=self.chain_id,
            sender=sender,
        )
        logger.info(f"Prepared Ethereum transfer from {sender} with nonce {nonce}")
        return transaction

    # ------------------------------------------------------------------
    # Forging
    # ------------------------------------------------------------------

    def forge_transaction(self, transaction: RawEthereumTransaction) -> bytes:
        return rlp.encode([
            transaction.nonce,
            transaction.gas_price,
            transaction.gas_limit,
            bytes.fromhex(transaction.to[2:]),
            transaction.value,
            transaction.data,
            transaction.chain_id,
            0,
            0,
        ])

    def unforge_transaction(self, data: bytes) -> RawEthereumTransaction:
        fields = _decode_fields(data)
        return RawEthereumTransaction(
            nonce=_to_int(fields[0]),
            gas_price=_to_int(fields[1]),
            gas_limit=_to_int(fields[2]),
            to=to_checksum_address(fields[3]),
            value=_to_int(fields[4]),
            data=fields[5],
            chain_id=_to_int(fields[6]),
        )

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_with_private_key(
        self, private_key: bytes, unsigned_payload: bytes, network_id: Optional[str] = None
    ) -> SignedTransaction:
        transaction = self.unforge_transaction(unsigned_payload)

        signed = Account.sign_transaction(
            {
                "nonce": transaction.nonce,
                "gasPrice": transaction.gas_price,
                "gas": transaction.gas_limit,
                "to": transaction.to,
                "value": transaction.value,
                "data": transaction.data,
                "chainId": transaction.chain_id,
            },
            private_key,
        )
        return SignedTransaction(self.identifier, bytes(signed.raw_transaction))

    def recover_sender(self, signed: SignedTransaction) -> str:
        """Recover the checksum address that signed a transaction."""
        _decode_fields(signed.payload)
        return Account.recover_transaction(signed.payload)

    # ------------------------------------------------------------------
    # Normalizer
    # ------------------------------------------------------------------

    def get_transaction_details(
        self,
        transaction: RawEthereumTransaction,
        watched_addresses: Sequence[str] = (),
    ) -> AirGapTransaction:
        return AirGapTransaction(
            amount=transaction.value,
            fee=transaction.fee,
            from_addresses=[transaction.sender] if transaction.sender else [],
            to_addresses=[transaction.to],
            is_inbound=transaction.to.lower() in {address.lower() for address in watched_addresses},
            protocol_identifier=self.identifier,
        )

    def get_transaction_details_from_signed(
        self, signed: SignedTransaction, watched_addresses: Optional[Sequence[str]] = None
    ) -> AirGapTransaction:
        fields = _decode_fields(signed.payload)
        transaction = RawEthereumTransaction(
            nonce=_to_int(fields[0]),
            gas_price=_to_int(fields[1]),
            gas_limit=_to_int(fields[2]),
            to=to_checksum_address(fields[3]),
            value=_to_int(fields[4]),
            data=fields[5],
            chain_id=(_to_int(fields[6]) - 35) // 2,
            sender=self.recover_sender(signed),
        )

        details = self.get_transaction_details(transaction)
        # addresses compare case-insensitively; details keep checksum case
        details.is_inbound = self._signed_is_inbound(
            [address.lower() for address in details.from_addresses],
            [address.lower() for address in details.to_addresses],
            None if watched_addresses is None else [address.lower() for address in watched_addresses],
        )
        details.hash = "0x" + keccak256(signed.payload).hex()
        return details

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    async def broadcast_transaction(self, gateway: JsonRpcGateway, signed: SignedTransaction) -> str:
        try:
            tx_hash = await gateway.call("eth_sendRawTransaction", ["0x" + signed.hex()])
        except RpcError as e:
            raise BroadcastRejected(f"broadcasting failed: {e}", url=e.url) from e
        except NetworkError as e:
            if e.status_code is None:
                raise
            raise BroadcastRejected(f"broadcasting failed: {e}", status_code=e.status_code, url=e.url) from e

        logger.info(f"Sent Ethereum transaction {tx_hash}")
        return tx_hash


def _decode_fields(data: bytes) -> list:
    try:
        fields = rlp.decode(data)
    except rlp.DecodingError as e:
        raise ForgingError(f"invalid RLP: {e}") from e

    if not isinstance(fields, list) or len(fields) != 9:
        raise ForgingError("expected a 9-field legacy transaction")
    return fields


def _to_int(value: bytes) -> int:
    return int.from_bytes(value, "big")
