#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import pytest

from dexrouter_codec.errors import InvalidAddressFormat, MalformedCalldata, MissingRequiredField, NumericRangeError
from dexrouter_codec.token_refs import (
    TokenRef,
    pack_address_mode,
    pack_order_id_into_address,
    pack_token_ref,
    token_ref_from_value,
    unpack_address_mode,
    unpack_order_id,
    unpack_token_ref,
)

USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
USDT_INT = int(USDT, 16)

MODE_CASES = [
    ("default", USDT_INT),
    ("noTransfer", (1 << 251) | USDT_INT),
    ("investFunded", (1 << 250) | USDT_INT),
    ("permitBased", (1 << 249) | USDT_INT),
]


@pytest.mark.parametrize("mode,word", MODE_CASES)
def test_pack_address_mode(mode, word):
    assert pack_address_mode(USDT, mode) == word
    assert unpack_address_mode(word) == TokenRef(USDT, mode)


def test_pack_accepts_checksummed_address():
    assert pack_address_mode("0xdAC17F958D2ee523a2206206994597C13D831ec7") == USDT_INT


def test_unknown_mode():
    with pytest.raises(NumericRangeError):
        pack_address_mode(USDT, "flashLoan")


@pytest.mark.parametrize("word", [
    (1 << 251) | (1 << 250) | USDT_INT,
    (1 << 200) | USDT_INT,
    (1 << 255) | USDT_INT,
])
def test_unpack_rejects_unknown_high_bits(word):
    with pytest.raises(MalformedCalldata):
        unpack_address_mode(word)


@pytest.mark.parametrize("order_id", [0, 1, 123456789, (1 << 96) - 1])
def test_order_id_round_trip(order_id):
    word = pack_order_id_into_address(USDT, order_id)
    assert word == (order_id << 160) | USDT_INT
    assert unpack_order_id(word) == TokenRef(USDT, "default", order_id)
    assert unpack_token_ref(word, order_tagged=True).order_id == order_id


def test_order_id_too_wide():
    with pytest.raises(NumericRangeError):
        pack_order_id_into_address(USDT, 1 << 96)


def test_mode_and_order_id_are_exclusive():
    with pytest.raises(NumericRangeError):
        pack_token_ref(TokenRef(USDT, "noTransfer", 0), order_tagged=True)
    with pytest.raises(NumericRangeError):
        pack_token_ref(TokenRef(USDT, "default", 9), order_tagged=False)


class TestFromValue:
    def test_bare_address_is_normalised(self):
        ref = token_ref_from_value("0xdAC17F958D2ee523a2206206994597C13D831ec7", "fromToken")
        assert ref == TokenRef(USDT)

    def test_dict_with_alias_mode(self):
        ref = token_ref_from_value({"address": USDT, "mode": "PERMIT2"}, "fromToken")
        assert ref.mode == "permitBased"

    def test_dict_with_order_id(self):
        ref = token_ref_from_value({"address": USDT, "orderId": "77"}, "fromToken", order_tagged=True)
        assert ref.order_id == 77

    def test_packed_word(self):
        assert token_ref_from_value(str((1 << 251) | USDT_INT), "fromToken") == TokenRef(USDT, "noTransfer")
        assert token_ref_from_value(hex((5 << 160) | USDT_INT), "srcToken", order_tagged=True).order_id == 5

    def test_invalid_address(self):
        with pytest.raises(InvalidAddressFormat):
            token_ref_from_value({"address": "0x1234"}, "fromToken")

    def test_missing(self):
        with pytest.raises(MissingRequiredField):
            token_ref_from_value(None, "fromToken")

    def test_unknown_mode(self):
        with pytest.raises(NumericRangeError):
            token_ref_from_value({"address": USDT, "mode": "sideways"}, "fromToken")
