"""Tezos protocol.

Operations are forged into the binary layout the Tezos node parses:

    branch (32 bytes)
    per operation:
        tag (1 byte: 0x6b reveal, 0x6c transaction)
        source (21 bytes, public key hash)
        fee, counter, gas_limit, storage_limit (zarith)
        reveal:      0x00 || ed25519 public key (32 bytes)
        transaction: amount (zarith), destination (22 bytes, contract id), 0x00

Forging accepts tz1 sources and destinations only. Unforging also decodes
tz2/tz3 public key hashes and KT1 contracts, so such bytes parse but cannot
be forged again.

Signing hashes 0x03 || forged bytes with BLAKE2b-256 and signs the digest
with ed25519. The signed payload is forged bytes || signature.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Sequence, Union

from airgap_coin.codec.base58check import TEZOS_PREFIXES, decode_checked, encode_checked
from airgap_coin.codec.zarith import decode_zarith, encode_zarith
from airgap_coin.crypto import blake2b_digest, ed25519_sign
from airgap_coin.errors import (
    AccountNotFound,
    BroadcastRejected,
    FieldTooLong,
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

# One-time fee charged to the sender when the recipient account is new (0.257 XTZ)
ADDRESS_INITIALIZATION_FEE = 257000

# Defaults taken from eztz / conseiljs
REVEAL_FEE = 1300
REVEAL_GAS_LIMIT = 10000
SPEND_GAS_LIMIT = 10100
STORAGE_LIMIT = 0

OPERATION_WATERMARK = b"\x03"
SIGNATURE_LENGTH = 64
BRANCH_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SOURCE_WIDTH = 21  # public_key_hash: curve tag + 20-byte hash
DESTINATION_WIDTH = 22  # contract_id: implicit/originated tag + 21 bytes

# public_key_hash curve tags
IMPLICIT_PREFIX_BY_TAG = {0: "tz1", 1: "tz2", 2: "tz3"}


class TezosOperationType(str, Enum):
    TRANSACTION = "transaction"
    REVEAL = "reveal"


OPERATION_TAGS = {
    TezosOperationType.REVEAL: 0x6B,
    TezosOperationType.TRANSACTION: 0x6C,
}
OPERATION_KINDS = {tag: kind for kind, tag in OPERATION_TAGS.items()}


@dataclass(frozen=True)
class TezosRevealOperation:
    """Publishes the sender's public key so it can authorize spends."""

    source: str
    fee: int
    counter: int
    gas_limit: int
    storage_limit: int
    public_key: str  # edpk...

    kind: ClassVar[TezosOperationType] = TezosOperationType.REVEAL


@dataclass(frozen=True)
class TezosSpendOperation:
    """Plain XTZ transfer without parameters."""

    source: str
    fee: int
    counter: int
    gas_limit: int
    storage_limit: int
    amount: int
    destination: str

    kind: ClassVar[TezosOperationType] = TezosOperationType.TRANSACTION


TezosOperation = Union[TezosRevealOperation, TezosSpendOperation]


@dataclass(frozen=True)
class TezosWrappedOperation(UnsignedTransaction):
    """An operation batch anchored to a block hash."""

    branch: str
    contents: tuple[TezosOperation, ...]

    protocol_identifier: ClassVar[str] = "xtz"


class TezosProtocol(CoinProtocol):
    """Tezos (XTZ), tz1 accounts only."""

    identifier = "xtz"
    symbol = "XTZ"
    name = "Tezos"
    market_symbol = "xtz"
    fee_symbol = "xtz"

    decimals = 6
    fee_decimals = 6  # 1000000 mutez is 1 tez

    # tezbox defaults
    fee_defaults = FeeDefaults(
        low=Decimal("0.001420"),
        medium=Decimal("0.001520"),
        high=Decimal("0.003000"),
    )
    units = (CurrencyUnit("XTZ"),)

    supports_hd = False
    standard_derivation_path = "m/44h/1729h/0h/0h"
    address_validation_pattern = r"^tz1[1-9A-Za-z]{33}$"
    address_placeholder = "tz1..."

    def _derive_key_pair(self, seed: bytes, path: str) -> KeyPair:
        return derive_ed25519(seed, path)

    def get_address_from_public_key(self, public_key: bytes) -> str:
        return encode_checked(blake2b_digest(public_key, 20), TEZOS_PREFIXES["tz1"])

    def encode_public_key(self, public_key: bytes) -> str:
        """edpk... form of a raw ed25519 public key."""
        return encode_checked(public_key, TEZOS_PREFIXES["edpk"])

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def get_balance_of_address(self, gateway: NetworkGateway, address: str) -> int:
        data = await gateway.get(f"/chains/main/blocks/head/context/contracts/{address}/balance")
        return int(data)

    async def _get_counter(self, gateway: NetworkGateway, address: str) -> int:
        try:
            data = await gateway.get(f"/chains/main/blocks/head/context/contracts/{address}/counter")
        except AccountNotFound:
            return 0
        return int(data)

    async def _get_manager_key(self, gateway: NetworkGateway, address: str) -> Optional[str]:
        try:
            data = await gateway.get(f"/chains/main/blocks/head/context/contracts/{address}/manager_key")
        except AccountNotFound:
            return None
        # older nodes wrap the key as {"manager": ..., "key": ...}
        if isinstance(data, dict):
            return data.get("key")
        return data

    async def get_transactions_from_addresses(
        self, gateway: NetworkGateway, addresses: Sequence[str], limit: int, offset: int
    ) -> list[AirGapTransaction]:
        """Fetch transaction history from the indexer (not the node)."""
        page = self.get_page_number(limit, offset)
        responses = await asyncio.gather(
            *(
                gateway.get(
                    f"/v3/operations/{address}",
                    params={"type": "Transaction", "p": page, "number": limit},
                )
                for address in addresses
            )
        )

        transactions = []
        for response in responses:
            for entry in response:
                transactions.extend(self._parse_history_entry(entry, addresses))
        return transactions

    def _parse_history_entry(self, entry: dict, addresses: Sequence[str]) -> list[AirGapTransaction]:
        parsed = []
        for operation in entry.get("type", {}).get("operations", []):
            if operation.get("failed"):
                continue

            destination = operation["destination"]["tz"]
            timestamp = operation.get("timestamp")
            parsed.append(
                AirGapTransaction(
                    amount=int(operation["amount"]),
                    fee=int(operation["fee"]),
                    from_addresses=[operation["src"]["tz"]],
                    to_addresses=[destination],
                    is_inbound=destination in addresses,
                    protocol_identifier=self.identifier,
                    hash=entry.get("hash"),
                    timestamp=_to_unix_seconds(timestamp) if timestamp else None,
                    block_height=operation.get("op_level"),
                )
            )
        return parsed

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
    ) -> TezosWrappedOperation:
        """Build a spend to recipients[0], preceded by a reveal if needed.

        Raises:
            InsufficientBalance: If the balance cannot cover amount + fee
            NetworkError: If a state query fails for any reason but 404
        """
        if not recipients or len(recipients) != len(values):
            raise ValidationError("recipients and values must be non-empty and of equal length")

        source = self.get_address_from_public_key(public_key)
        destination = recipients[0]

        counter, branch, manager_key = await asyncio.gather(
            self._get_counter(gateway, source),
            gateway.get("/chains/main/blocks/head/hash"),
            self._get_manager_key(gateway, source),
        )
        counter += 1

        operations: list[TezosOperation] = []
        if not manager_key:
            operations.append(self._create_reveal_operation(counter, source, public_key))
            counter += 1

        balance, receiving_balance = await asyncio.gather(
            self.get_balance_of_addresses(gateway, [source]),
            self.get_balance_of_addresses(gateway, [destination]),
        )

        amount = values[0]
        # A recipient with zero balance is not activated yet; the network
        # deducts the initialization fee from the sender on top of amount + fee.
        if receiving_balance == 0 and balance < amount + fee + ADDRESS_INITIALIZATION_FEE:
            logger.warning(
                f"Reducing spend to {destination} by the {ADDRESS_INITIALIZATION_FEE} mutez "
                f"initialization fee: {amount} -> {amount - ADDRESS_INITIALIZATION_FEE}"
            )
            amount -= ADDRESS_INITIALIZATION_FEE

        if amount < 0 or balance < fee + amount:
            raise InsufficientBalance(balance, fee + values[0])

        operations.append(
            TezosSpendOperation(
                source=source,
                fee=fee,
                counter=counter,
                gas_limit=SPEND_GAS_LIMIT,
                storage_limit=STORAGE_LIMIT,
                amount=amount,
                destination=destination,
            )
        )

        logger.info(f"Prepared {len(operations)} Tezos operation(s) from {source}")
        return TezosWrappedOperation(branch=branch, contents=tuple(operations))

    def _create_reveal_operation(self, counter: int, source: str, public_key: bytes) -> TezosRevealOperation:
        return TezosRevealOperation(
            source=source,
            fee=REVEAL_FEE,
            counter=counter,
            gas_limit=REVEAL_GAS_LIMIT,
            storage_limit=STORAGE_LIMIT,
            public_key=self.encode_public_key(public_key),
        )

    # ------------------------------------------------------------------
    # Forging
    # ------------------------------------------------------------------

    def forge_transaction(self, transaction: TezosWrappedOperation) -> bytes:
        """Forge a wrapped operation. Either the whole batch forges or it raises."""
        branch = decode_checked(transaction.branch, TEZOS_PREFIXES["branch"])
        if len(branch) != BRANCH_LENGTH:
            raise ForgingError(f"branch must be {BRANCH_LENGTH} bytes, got {len(branch)}")

        forged = bytearray(branch)
        for operation in transaction.contents:
            forged += self._forge_operation(operation)
        return bytes(forged)

    def _forge_operation(self, operation: TezosOperation) -> bytes:
        tag = OPERATION_TAGS.get(operation.kind)
        if tag is None:
            raise UnsupportedOperationKind(f"currently unsupported operation type supplied {operation.kind}")

        forged = bytearray([tag])
        # only tz1 sources are supported
        forged += _pad(decode_checked(operation.source, TEZOS_PREFIXES["tz1"]), SOURCE_WIDTH, "source")
        forged += encode_zarith(operation.fee)
        forged += encode_zarith(operation.counter)
        forged += encode_zarith(operation.gas_limit)
        forged += encode_zarith(operation.storage_limit)

        if operation.kind is TezosOperationType.REVEAL:
            public_key = decode_checked(operation.public_key, TEZOS_PREFIXES["edpk"])
            if len(public_key) != PUBLIC_KEY_LENGTH:
                raise ForgingError(f"public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}")
            forged += b"\x00" + public_key
        else:
            forged += encode_zarith(operation.amount)
            destination = decode_checked(operation.destination, TEZOS_PREFIXES["tz1"])
            forged += _pad(destination, DESTINATION_WIDTH, "destination")
            forged += b"\x00"  # no parameters

        return bytes(forged)

    def unforge_transaction(self, data: bytes) -> TezosWrappedOperation:
        """Parse forged bytes (without signature) back into operations."""
        if len(data) < BRANCH_LENGTH:
            raise ForgingError("forged operation shorter than its branch")

        branch = encode_checked(data[:BRANCH_LENGTH], TEZOS_PREFIXES["branch"])
        position = BRANCH_LENGTH
        operations: list[TezosOperation] = []

        while position < len(data):
            operation, position = self._unforge_operation(data, position)
            operations.append(operation)

        return TezosWrappedOperation(branch=branch, contents=tuple(operations))

    def _unforge_operation(self, data: bytes, position: int) -> tuple[TezosOperation, int]:
        tag = data[position]
        kind = OPERATION_KINDS.get(tag)
        if kind is None:
            raise UnsupportedOperationKind(f"unknown operation tag 0x{tag:02x}")

        source_bytes, position = _read(data, position + 1, SOURCE_WIDTH)
        source = _decode_public_key_hash(source_bytes)
        fee, position = decode_zarith(data, position)
        counter, position = decode_zarith(data, position)
        gas_limit, position = decode_zarith(data, position)
        storage_limit, position = decode_zarith(data, position)

        if kind is TezosOperationType.REVEAL:
            key_bytes, position = _read(data, position, PUBLIC_KEY_LENGTH + 1)
            if key_bytes[0] != 0:
                raise UnsupportedOperationKind("only ed25519 public keys are supported")
            return TezosRevealOperation(
                source=source,
                fee=fee,
                counter=counter,
                gas_limit=gas_limit,
                storage_limit=storage_limit,
                public_key=self.encode_public_key(key_bytes[1:]),
            ), position

        amount, position = decode_zarith(data, position)
        destination_bytes, position = _read(data, position, DESTINATION_WIDTH)
        has_parameters, position = _read(data, position, 1)
        if has_parameters != b"\x00":
            raise UnsupportedOperationKind("transactions with parameters are not supported")

        return TezosSpendOperation(
            source=source,
            fee=fee,
            counter=counter,
            gas_limit=gas_limit,
            storage_limit=storage_limit,
            amount=amount,
            destination=_decode_contract_id(destination_bytes),
        ), position

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_with_private_key(
        self, private_key: bytes, unsigned_payload: bytes, network_id: Optional[str] = None
    ) -> SignedTransaction:
        digest = blake2b_digest(OPERATION_WATERMARK + unsigned_payload, 32)
        signature = ed25519_sign(private_key, digest)
        return SignedTransaction(self.identifier, unsigned_payload + signature)

    # ------------------------------------------------------------------
    # Normalizer
    # ------------------------------------------------------------------

    def get_transaction_details(
        self, transaction: TezosWrappedOperation, watched_addresses: Sequence[str] = ()
    ) -> AirGapTransaction:
        """Summarize the last spend of the batch; reveals are skipped.

        A batch with several spends only reports the final one.
        """
        spends = [op for op in transaction.contents if op.kind is TezosOperationType.TRANSACTION]
        if not spends:
            raise ValidationError("operation batch contains no transaction")
        spend = spends[-1]

        return AirGapTransaction(
            amount=spend.amount,
            fee=spend.fee,
            from_addresses=[spend.source],
            to_addresses=[spend.destination],
            is_inbound=spend.destination in watched_addresses,
            protocol_identifier=self.identifier,
        )

    def get_transaction_details_from_signed(
        self, signed: SignedTransaction, watched_addresses: Optional[Sequence[str]] = None
    ) -> AirGapTransaction:
        if len(signed.payload) <= SIGNATURE_LENGTH:
            raise ForgingError("signed payload too short")

        details = self.get_transaction_details(self.unforge_transaction(signed.payload[:-SIGNATURE_LENGTH]))
        details.is_inbound = self._signed_is_inbound(
            details.from_addresses, details.to_addresses, watched_addresses
        )
        return details

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    async def broadcast_transaction(self, gateway: NetworkGateway, signed: SignedTransaction) -> str:
        try:
            operation_hash = await gateway.post(
                "/injection/operation", signed.hex(), params={"chain": "main"}
            )
        except NetworkError as e:
            if e.status_code is None:
                raise
            raise BroadcastRejected(f"broadcasting failed: {e}", status_code=e.status_code, url=e.url) from e

        logger.info(f"Injected Tezos operation {operation_hash}")
        return operation_hash


def _pad(payload: bytes, width: int, field_name: str) -> bytes:
    """Left-pad with zero bytes to a fixed width."""
    if len(payload) > width:
        raise FieldTooLong(f"provided {field_name} is invalid: {len(payload)} bytes exceeds {width}")
    return payload.rjust(width, b"\x00")


def _read(data: bytes, position: int, length: int) -> tuple[bytes, int]:
    end = position + length
    if end > len(data):
        raise ForgingError("forged operation truncated")
    return data[position:end], end


def _decode_public_key_hash(data: bytes) -> str:
    prefix = IMPLICIT_PREFIX_BY_TAG.get(data[0])
    if prefix is None:
        raise ForgingError(f"unknown public key hash tag {data[0]}")
    return encode_checked(data[1:], TEZOS_PREFIXES[prefix])


def _decode_contract_id(data: bytes) -> str:
    if data[0] == 0:
        return _decode_public_key_hash(data[1:])
    if data[0] == 1:
        return encode_checked(data[1:21], TEZOS_PREFIXES["KT1"])
    raise ForgingError(f"unknown contract id tag {data[0]}")


def _to_unix_seconds(timestamp: str) -> int:
    return int(datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp())
