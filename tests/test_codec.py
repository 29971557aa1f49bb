"""Tests for the zarith and Base58Check codecs."""

import pytest
import rlp

from airgap_coin.codec import (
    AETERNITY_PREFIXES,
    TEZOS_PREFIXES,
    decode_checked,
    decode_tagged,
    decode_zarith,
    encode_checked,
    encode_tagged,
    encode_zarith,
)
from airgap_coin.errors import AddressError, ChecksumInvalid, ForgingError, PrefixMismatch


class TestZarith:
    """Tests for variable-length integer encoding."""

    @pytest.mark.parametrize(
        "value,encoded",
        [
            (0, "00"),
            (1, "01"),
            (127, "7f"),
            (128, "8001"),
            (300, "ac02"),
            (10100, "f44e"),
        ],
    )
    def test_known_encodings(self, value, encoded):
        assert encode_zarith(value).hex() == encoded

    def test_round_trip_up_to_2_pow_53(self):
        for value in (0, 1, 257000, 2**31, 2**53 - 1, 2**53):
            decoded, offset = decode_zarith(encode_zarith(value))
            assert decoded == value
            assert offset == len(encode_zarith(value))

    def test_only_last_byte_has_high_bit_clear(self):
        encoded = encode_zarith(2**40 + 12345)

        assert all(byte & 0x80 for byte in encoded[:-1])
        assert not encoded[-1] & 0x80

    def test_decode_at_offset_returns_next_position(self):
        data = b"\xff" + encode_zarith(128) + encode_zarith(5)

        value, position = decode_zarith(data, 1)
        assert value == 128
        assert position == 3

        value, position = decode_zarith(data, position)
        assert value == 5
        assert position == len(data)

    def test_negative_value_rejected(self):
        with pytest.raises(ForgingError):
            encode_zarith(-1)

    def test_truncated_input_rejected(self):
        with pytest.raises(ForgingError, match="truncated"):
            decode_zarith(b"\x80\x80")


class TestBase58Check:
    """Tests for prefixed Base58Check strings."""

    def test_tz1_address_shape(self):
        address = encode_checked(bytes(20), TEZOS_PREFIXES["tz1"])

        assert address.startswith("tz1")
        assert len(address) == 36

    def test_known_prefix_strings(self):
        assert encode_checked(bytes(20), TEZOS_PREFIXES["KT1"]).startswith("KT1")
        assert encode_checked(bytes(32), TEZOS_PREFIXES["edpk"]).startswith("edpk")
        assert encode_checked(bytes(32), TEZOS_PREFIXES["branch"]).startswith("B")

    def test_decode_strips_prefix(self):
        payload = bytes(range(20))
        address = encode_checked(payload, TEZOS_PREFIXES["tz1"])

        assert decode_checked(address, TEZOS_PREFIXES["tz1"]) == payload

    def test_prefix_mismatch(self):
        address = encode_checked(bytes(20), TEZOS_PREFIXES["KT1"])

        with pytest.raises(PrefixMismatch):
            decode_checked(address, TEZOS_PREFIXES["tz1"])

    def test_checksum_invalid(self):
        address = encode_checked(bytes(range(20)), TEZOS_PREFIXES["tz1"])
        replacement = "2" if address[-1] != "2" else "3"
        tampered = address[:-1] + replacement

        with pytest.raises(ChecksumInvalid):
            decode_checked(tampered, TEZOS_PREFIXES["tz1"])

    def test_checksum_error_is_an_address_error(self):
        assert issubclass(ChecksumInvalid, AddressError)
        assert issubclass(PrefixMismatch, AddressError)

    def test_invalid_characters(self):
        with pytest.raises(AddressError):
            decode_checked("tz1O0Il", TEZOS_PREFIXES["tz1"])


class TestTaggedStrings:
    """Tests for textual-tag Base58Check strings (ak_, tx_)."""

    def test_account_round_trip(self):
        public_key = bytes(range(32))
        address = encode_tagged(public_key, AETERNITY_PREFIXES["account"])

        assert address.startswith("ak_")
        assert decode_tagged(address, AETERNITY_PREFIXES["account"]) == public_key

    def test_wrong_tag(self):
        encoded = encode_tagged(b"\x01\x02", AETERNITY_PREFIXES["transaction"])

        with pytest.raises(PrefixMismatch):
            decode_tagged(encoded, AETERNITY_PREFIXES["account"])


class TestRLP:
    """The RLP coder must invert itself on nested field lists."""

    def test_nested_list(self):
        fields = [b"\x0b", b"\x01", [b"\xaa" * 64], b"payload"]

        assert rlp.decode(rlp.encode(fields)) == fields
