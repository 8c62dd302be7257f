#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Commission blocks are assembled by hand here so the decoder is checked
against the wire layout rather than against the encoder.
"""

import pytest

from dexrouter_codec.commission import (
    BLOCK_LAYOUTS,
    ORDINALS,
    CommissionBlock,
    CommissionInfo,
    CommissionMiddle,
    decode_commission,
    encode_commission,
    find_multiple,
)
from dexrouter_codec.errors import (
    EncodeError,
    InvalidAddressFormat,
    MissingRequiredField,
    ReferrerCountOutOfRange,
    UnsupportedFlag,
)

# swapWrap(orderId=1, rawdata=10**18): any valid core calldata works as a prefix
BASE = bytes.fromhex("01617fab" + format(1, "064x") + format(10 ** 18, "064x"))

REFERRER = "0x399efa78cacd7784751cd9fbf2523edf9efdf6ad"
TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


def ref_block(flag: str, rate: int, address: str) -> bytes:
    return bytes.fromhex(flag + format(rate, "012x") + address[2:])


def middle_block(to_b: bool, count: int, token: str) -> bytes:
    return bytes([0x80 if to_b else 0x00, count]) + bytes(10) + bytes.fromhex(token[2:])


def referrer_address(i: int) -> str:
    return "0x" + format(i + 1, "02x") * 20


class TestSingle:
    def test_from_token(self):
        buf = BASE + middle_block(False, 0, TOKEN) + ref_block("3ca20afc2aaa", 10000000, REFERRER)
        info = decode_commission(buf)
        assert info.has_commission
        assert info.referrer_count == 1
        first = info.referrer("first")
        assert first.rate == 10000000
        assert first.address == REFERRER
        assert first.commission_type == "SINGLE_FROM_TOKEN_COMMISSION"
        assert info.middle == CommissionMiddle(False, TOKEN)
        assert info.to_dict()["first"]["ratePercent"] == "1"

    def test_to_token_to_business(self):
        buf = BASE + middle_block(True, 0, TOKEN) + ref_block("3ca20afc2bbb", 250, REFERRER)
        info = decode_commission(buf)
        assert info.referrer("first").direction == "TO_TOKEN"
        assert info.middle.is_to_business

    def test_encode_layout(self):
        info = CommissionInfo(True, (CommissionBlock(0x3ca20afc2aaa, 10000000, REFERRER),), CommissionMiddle(False, TOKEN))
        assert encode_commission(info) == middle_block(False, 0, TOKEN) + ref_block("3ca20afc2aaa", 10000000, REFERRER)

    @pytest.mark.parametrize("middle", [
        bytes([0x40, 0]) + bytes(30),
        bytes([0x80, 0]) + b"\x01" + bytes(29),
        bytes([0x00, 3]) + bytes(30),
    ])
    def test_invalid_middle_means_no_commission(self, middle):
        buf = BASE + middle + ref_block("3ca20afc2aaa", 1, REFERRER)
        assert decode_commission(buf) == CommissionInfo()

    def test_flag_at_buffer_start(self):
        buf = ref_block("3ca20afc2aaa", 1, REFERRER) + BASE
        assert not decode_commission(buf).has_commission

    def test_skips_rejected_occurrence(self):
        # flag bytes preceded by a block that is not a valid middle
        stray = bytes([0x20]) + bytes(31) + ref_block("3ca20afc2aaa", 1, REFERRER)
        real = middle_block(False, 0, TOKEN) + ref_block("3ca20afc2aaa", 10000000, REFERRER)
        info = decode_commission(BASE + stray + real)
        assert info.referrer("first").rate == 10000000
        assert info.middle == CommissionMiddle(False, TOKEN)


class TestDual:
    def blocks(self):
        return (
            ref_block("22220afc2aaa", 100, referrer_address(0))
            + middle_block(True, 0, TOKEN)
            + ref_block("22220afc2bbb", 200, referrer_address(1))
        )

    def test_decode(self):
        info = decode_commission(BASE + self.blocks())
        assert info.referrer_count == 2
        assert info.referrer("first") == CommissionBlock(0x22220afc2aaa, 100, referrer_address(0))
        assert info.referrer("second") == CommissionBlock(0x22220afc2bbb, 200, referrer_address(1))
        assert info.middle == CommissionMiddle(True, TOKEN)

    def test_skips_invalid_candidate(self):
        stray = ref_block("22220afc2aaa", 0, "0x" + "00" * 20)
        info = decode_commission(BASE + stray + self.blocks())
        assert info.referrer_count == 2
        assert info.referrer("first").rate == 100

    def test_second_block_must_be_dual(self):
        buf = BASE + ref_block("22220afc2aaa", 1, REFERRER) + middle_block(False, 0, TOKEN) + bytes(32)
        assert not decode_commission(buf).has_commission

    def test_encode_layout(self):
        info = decode_commission(BASE + self.blocks())
        assert encode_commission(info) == self.blocks()


def multiple_blocks(count: int, to_b: bool = False):
    """(wire bytes, logical referrers) for a multiple-mode commission."""
    referrers = [
        CommissionBlock(0x88880afc2aaa if i % 2 == 0 else 0x88880afc2bbb, 1000 * (i + 1), referrer_address(i))
        for i in range(count)
    ]
    physical = referrers[:count - 1]
    wire = b"".join(r.pack() for r in physical) + middle_block(to_b, count, TOKEN) + referrers[-1].pack()
    return wire, referrers


class TestMultiple:
    @pytest.mark.parametrize("count", range(3, 9))
    def test_decode_every_count(self, count):
        wire, referrers = multiple_blocks(count)
        info = decode_commission(BASE + wire)
        assert info.referrer_count == count
        assert list(info.referrers) == referrers
        assert info.middle == CommissionMiddle(False, TOKEN)
        # the last ordinal is the physically last block
        assert info.referrer(ORDINALS[count - 1]).pack() == wire[-32:]
        assert info.referrer("first").pack() == wire[:32]

    @pytest.mark.parametrize("count", range(3, 9))
    def test_encode_every_count(self, count):
        wire, referrers = multiple_blocks(count, to_b=True)
        info = CommissionInfo(True, tuple(referrers), CommissionMiddle(True, TOKEN))
        assert encode_commission(info) == wire

    def test_three_referrers_expose_ordinals(self):
        wire, _ = multiple_blocks(3)
        out = decode_commission(BASE + wire).to_dict()
        assert {"first", "second", "middle", "third"} <= set(out)
        assert "fourth" not in out
        assert out["third"]["address"] == referrer_address(2)

    @pytest.mark.parametrize("count", [0, 1, 2, 9, 255])
    def test_count_byte_out_of_range(self, count):
        wire, _ = multiple_blocks(8)
        wire = wire[:-64] + middle_block(False, count, TOKEN) + wire[-32:]
        with pytest.raises(ReferrerCountOutOfRange, match=r"expect 3\.\.8"):
            find_multiple(BASE + wire)
        assert not decode_commission(BASE + wire).has_commission

    def test_count_larger_than_blocks_present(self):
        wire, _ = multiple_blocks(3)
        wire = wire[:-64] + middle_block(False, 4, TOKEN) + wire[-32:]
        assert not decode_commission(BASE + wire).has_commission

    def test_layout_table(self):
        for count, layout in BLOCK_LAYOUTS.items():
            assert len(layout) == count + 1
            assert layout.count("middle") == 1
            assert [s for s in layout if s != "middle"] == list(ORDINALS[:count])


class TestEncodeValidation:
    def info(self, count, flag=0x88880afc2aaa):
        referrers = tuple(CommissionBlock(flag, 1, referrer_address(i)) for i in range(count))
        return CommissionInfo(True, referrers, CommissionMiddle(False, TOKEN))

    def test_absent(self):
        assert encode_commission(CommissionInfo()) == b""

    def test_too_many_referrers(self):
        with pytest.raises(ReferrerCountOutOfRange, match=r"expect 1\.\.8"):
            encode_commission(self.info(9))

    def test_no_referrers(self):
        with pytest.raises(MissingRequiredField):
            encode_commission(self.info(0))

    def test_flag_class_must_match_count(self):
        with pytest.raises(UnsupportedFlag):
            encode_commission(self.info(2, flag=0x3ca20afc2aaa))

    def test_unknown_flag(self):
        with pytest.raises(EncodeError):
            encode_commission(self.info(1, flag=0x123456789abc))

    def test_missing_middle(self):
        info = CommissionInfo(True, (CommissionBlock(0x3ca20afc2aaa, 1, REFERRER),), None)
        with pytest.raises(MissingRequiredField):
            encode_commission(info)


class TestJsonForm:
    def test_round_trip(self):
        wire, _ = multiple_blocks(5)
        info = decode_commission(BASE + wire)
        assert CommissionInfo.from_dict(info.to_dict()) == info

    def test_aliases(self):
        payload = {
            "hasCommission": True,
            "referCount": 2,
            "middle": {"isToB": True, "token": TOKEN.upper().replace("0X", "0x")},
            "first": {"flag": "0x22220afc2aaa", "rate": "100", "address": referrer_address(0)},
            "last": {"flag": "0x22220afc2bbb", "rate": 200, "address": referrer_address(1)},
        }
        info = CommissionInfo.from_dict(payload)
        assert info.referrer_count == 2
        assert info.middle == CommissionMiddle(True, TOKEN)
        assert info.referrer("second").rate == 200

    def test_absent(self):
        assert CommissionInfo.from_dict({"hasCommission": False}) == CommissionInfo()
        assert CommissionInfo.from_dict({}) == CommissionInfo()

    def test_count_out_of_range(self):
        with pytest.raises(ReferrerCountOutOfRange):
            CommissionInfo.from_dict({"hasCommission": True, "referrerCount": 9})


class TestEncodeAddresses:
    @pytest.mark.parametrize("address", ["0x" + "ff" * 21, "0xnothex", "0x1234", None])
    def test_referrer_address(self, address):
        info = CommissionInfo(True, (CommissionBlock(0x3ca20afc2aaa, 1, address),), CommissionMiddle(False, TOKEN))
        with pytest.raises((InvalidAddressFormat, MissingRequiredField)):
            encode_commission(info)

    def test_middle_token(self):
        info = CommissionInfo(True, (CommissionBlock(0x3ca20afc2aaa, 1, REFERRER),), CommissionMiddle(False, "0x1234"))
        with pytest.raises(InvalidAddressFormat):
            encode_commission(info)

    def test_any_case_accepted(self):
        upper = "0x" + REFERRER[2:].upper()
        assert CommissionBlock(0x3ca20afc2aaa, 1, upper).pack() == ref_block("3ca20afc2aaa", 1, REFERRER)
