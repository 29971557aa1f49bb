"""Tests for the Aeternity protocol."""

import pytest
import rlp

from airgap_coin.crypto import ed25519_verify
from airgap_coin.errors import (
    BroadcastRejected,
    ForgingError,
    InsufficientBalance,
    PrefixMismatch,
    UnsupportedOperationKind,
    ValidationError,
)
from airgap_coin.protocols import AeternityProtocol, RawAeternityTransaction, SignedTransaction

from conftest import OTHER_SEED, SEED, mock_gateway

protocol = AeternityProtocol()
sender = protocol.derive_key_pair(SEED)
recipient = protocol.derive_key_pair(OTHER_SEED)
SENDER = protocol.get_address_from_public_key(sender.public_key)
RECIPIENT = protocol.get_address_from_public_key(recipient.public_key)


def transaction(**overrides):
    fields = dict(
        sender=sender.public_key,
        recipient=recipient.public_key,
        amount=1_000,
        fee=20_000,
        nonce=4,
    )
    fields.update(overrides)
    return RawAeternityTransaction(**fields)


class TestAddresses:
    """Tests for ak_ addresses."""

    def test_address_wraps_public_key(self):
        assert SENDER.startswith("ak_")
        assert protocol.decode_address(SENDER) == sender.public_key
        assert protocol.validate_address(SENDER)

    def test_decode_rejects_other_tags(self):
        with pytest.raises(PrefixMismatch):
            protocol.decode_address("tx_" + SENDER[3:])


class TestTransactionBuilder:
    """Tests for prepare_transaction_from_public_key."""

    @pytest.mark.asyncio
    async def test_nonce_follows_account_nonce(self):
        routes = {("GET", f"/v2/accounts/{SENDER}"): (200, {"id": SENDER, "balance": 50_000, "nonce": 3})}

        async with mock_gateway(routes) as gateway:
            prepared = await protocol.prepare_transaction_from_public_key(
                gateway, sender.public_key, [RECIPIENT], [1_000], 20_000
            )

        assert prepared == transaction(nonce=4)

    @pytest.mark.asyncio
    async def test_unknown_account_cannot_pay(self):
        async with mock_gateway({}) as gateway:
            with pytest.raises(InsufficientBalance) as exc_info:
                await protocol.prepare_transaction_from_public_key(
                    gateway, sender.public_key, [RECIPIENT], [1_000], 20_000
                )

        assert exc_info.value.balance == 0
        assert exc_info.value.required == 21_000

    @pytest.mark.asyncio
    async def test_recipients_and_values_must_match(self):
        async with mock_gateway({}) as gateway:
            with pytest.raises(ValidationError):
                await protocol.prepare_transaction_from_public_key(
                    gateway, sender.public_key, [RECIPIENT, SENDER], [1_000], 20_000
                )

    @pytest.mark.asyncio
    async def test_balances_are_summed(self):
        routes = {
            ("GET", f"/v2/accounts/{SENDER}"): (200, {"balance": 5, "nonce": 1}),
            ("GET", f"/v2/accounts/{RECIPIENT}"): (200, {"balance": 7, "nonce": 9}),
        }

        async with mock_gateway(routes) as gateway:
            assert await protocol.get_balance_of_addresses(gateway, [SENDER, RECIPIENT]) == 12

    @pytest.mark.asyncio
    async def test_history_is_empty(self):
        async with mock_gateway({}) as gateway:
            assert await protocol.get_transactions_from_addresses(gateway, [SENDER], 10, 0) == []


class TestForging:
    """Tests for the RLP spend transaction."""

    def test_field_layout(self):
        fields = rlp.decode(protocol.forge_transaction(transaction()))

        assert fields[0] == b"\x0c"
        assert fields[1] == b"\x01"
        assert fields[2] == b"\x01" + sender.public_key
        assert fields[3] == b"\x01" + recipient.public_key
        assert int.from_bytes(fields[6], "big") == 10000
        assert fields[8] == b""

    def test_round_trip(self):
        original = transaction()

        assert protocol.unforge_transaction(protocol.forge_transaction(original)) == original

    def test_tx_text_form(self):
        forged = protocol.forge_transaction(transaction())
        encoded = protocol.encode_transaction(forged)

        assert encoded.startswith("tx_")
        assert protocol.decode_transaction(encoded) == forged

    def test_other_object_tag_rejected(self):
        with pytest.raises(UnsupportedOperationKind):
            protocol.unforge_transaction(rlp.encode([11, 1, [b"sig"], b"tx"]))

    def test_invalid_rlp(self):
        with pytest.raises(ForgingError):
            protocol.unforge_transaction(b"\xff\x01")


class TestSigning:
    """Tests for network-id bound signatures."""

    def test_signature_covers_network_id(self):
        forged = protocol.forge_transaction(transaction())

        signed = protocol.sign_with_private_key(sender.private_key, forged)

        tag, version, signatures, inner = rlp.decode(signed.payload)
        assert tag == b"\x0b"
        assert version == b"\x01"
        assert inner == forged
        assert ed25519_verify(sender.public_key, signatures[0], b"ae_mainnet" + forged)
        assert not ed25519_verify(sender.public_key, signatures[0], forged)

    def test_network_id_override(self):
        forged = protocol.forge_transaction(transaction())

        signed = protocol.sign_with_private_key(sender.private_key, forged, network_id="ae_uat")

        signature = rlp.decode(signed.payload)[2][0]
        assert ed25519_verify(sender.public_key, signature, b"ae_uat" + forged)

    def test_details_from_signed(self):
        signed = protocol.sign_with_private_key(sender.private_key, protocol.forge_transaction(transaction()))

        details = protocol.get_transaction_details_from_signed(signed)

        assert details.amount == 1_000
        assert details.fee == 20_000
        assert details.from_addresses == [SENDER]
        assert details.to_addresses == [RECIPIENT]
        assert details.is_inbound is False
        assert details.protocol_identifier == "ae"

    def test_unsigned_payload_is_not_an_envelope(self):
        forged = protocol.forge_transaction(transaction())

        with pytest.raises(UnsupportedOperationKind):
            protocol.get_transaction_details_from_signed(SignedTransaction("ae", forged))


class TestBroadcast:
    """Tests for posting signed transactions."""

    @pytest.mark.asyncio
    async def test_posts_tx_string(self):
        requests = []
        signed = protocol.sign_with_private_key(sender.private_key, protocol.forge_transaction(transaction()))
        routes = {("POST", "/v2/transactions"): (200, {"tx_hash": "th_abc"})}

        async with mock_gateway(routes, requests=requests) as gateway:
            assert await protocol.broadcast_transaction(gateway, signed) == "th_abc"

        assert b'"tx_' in requests[0].content

    @pytest.mark.asyncio
    async def test_rejected(self):
        signed = SignedTransaction("ae", b"\xc0")
        routes = {("POST", "/v2/transactions"): (400, {"reason": "Invalid tx"})}

        async with mock_gateway(routes) as gateway:
            with pytest.raises(BroadcastRejected):
                await protocol.broadcast_transaction(gateway, signed)
