#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import pytest

from dexrouter_codec.codec import decode, decode_json, encode
from dexrouter_codec.commission import CommissionBlock, CommissionInfo, CommissionMiddle
from dexrouter_codec.errors import MismatchError
from dexrouter_codec.models import BaseRequest, DecodedCall
from dexrouter_codec.registry import lookup_name
from dexrouter_codec.routing import DagPaths, RawData, RouterPath, RoutingHop
from dexrouter_codec.token_refs import TokenRef
from dexrouter_codec.validator import (
    DECODE_ENCODE,
    ENCODE_DECODE,
    check_decode_encode,
    check_encode_decode,
    diff_fields,
    flatten,
)
from test_codec import (
    ADAPTER,
    CALL_CASES,
    DAG_CALLDATA,
    POOL,
    RECEIVER,
    REFERRER,
    SWAP_WRAP_CALLDATA,
    USDC,
    USDT,
    V3_CALLDATA,
    w,
)

# uniswapV3SwapTo whose first pool address happens to start with the
# single-commission flag bytes. The scanner takes it for a commission block.
FLAG_POOL = "0x3ca20afc2aaa000000000001" + "11" * 8
FLAG_POOL_CALLDATA = (
    "0x0d5f0e3b"
    + w(int(RECEIVER, 16))
    + w(10 ** 18)
    + w(1)
    + w(0x80)
    + w(2)
    + w(int(FLAG_POOL, 16))
    + w(0)
)

# The same flag bytes inside the second pool address, followed by a real
# single commission (middle, first) after the core arguments.
FLAG_POOL_WITH_COMMISSION_CALLDATA = (
    "0x0d5f0e3b"
    + w(int(RECEIVER, 16))
    + w(10 ** 18)
    + w(1)
    + w(0x80)
    + w(2)
    + w((1 << 255) | int(POOL, 16))
    + w(int(FLAG_POOL, 16))
    + "00" * 12 + USDC[2:]
    + "3ca20afc2aaa" + format(10000000, "012x") + REFERRER[2:]
)

# unxswapTo with bit 200 set in the pool word; no field of the pool covers it
UNDOCUMENTED_BITS_CALLDATA = (
    "0x08298b5a"
    + w(int(USDC, 16))
    + w(10 ** 9)
    + w(1)
    + w(int(RECEIVER, 16))
    + w(0xa0)
    + w(1)
    + w((1 << 200) | int(POOL, 16))
)


class TestDecodeEncode:
    @pytest.mark.parametrize("calldata", [DAG_CALLDATA, V3_CALLDATA, SWAP_WRAP_CALLDATA])
    def test_fixtures_match(self, calldata):
        report = check_decode_encode(calldata)
        assert report.check == DECODE_ENCODE
        assert report.matches
        assert report.differences == []
        assert report.parsed
        assert report.roundtrip == calldata

    def test_case_of_input_is_ignored(self):
        assert check_decode_encode("0X" + V3_CALLDATA[2:].upper()).matches

    @pytest.mark.parametrize("case", CALL_CASES, ids=[c["name"] for c in CALL_CASES])
    def test_encoded_cases_match(self, case):
        assert check_decode_encode(encode(case["call"])).matches

    def test_flag_bytes_inside_pool_address(self):
        call = decode(FLAG_POOL_CALLDATA)
        assert call.commission.has_commission
        first = call.commission.referrer("first")
        assert first.rate == 1
        assert first.address == "0x" + "11" * 8 + "00" * 12
        # the array length word and the top of the pool word
        assert call.commission.middle.token == "0x" + "00" * 7 + "02" + "00" * 12

        report = check_decode_encode(FLAG_POOL_CALLDATA)
        assert not report.matches
        assert report.differences == ["extensions", "length"]

    def test_commission_after_flag_bytes_inside_pool_address(self):
        call = decode(FLAG_POOL_WITH_COMMISSION_CALLDATA)
        assert call.commission == CommissionInfo(
            True, (CommissionBlock(0x3ca20afc2aaa, 10000000, REFERRER),), CommissionMiddle(False, USDC))
        assert encode(call) == FLAG_POOL_WITH_COMMISSION_CALLDATA
        assert check_decode_encode(FLAG_POOL_WITH_COMMISSION_CALLDATA).matches

    def test_undocumented_pool_bits(self):
        report = check_decode_encode(UNDOCUMENTED_BITS_CALLDATA)
        assert not report.matches
        assert report.differences == ["arguments"]
        assert len(report.original) == len(report.roundtrip)

    def test_unknown_selector(self):
        report = check_decode_encode("0xdeadbeef" + w(1))
        assert not report.matches
        assert not report.parsed
        assert report.stage == "decode"
        assert report.error_type == "UnknownSelector"
        assert "0xdeadbeef" in report.error

    def test_malformed(self):
        report = check_decode_encode(DAG_CALLDATA[:-64])
        assert not report.parsed
        assert report.error_type == "MalformedCalldata"

    def test_raise_for_mismatch(self):
        check_decode_encode(V3_CALLDATA).raise_for_mismatch()
        with pytest.raises(MismatchError) as e:
            check_decode_encode(UNDOCUMENTED_BITS_CALLDATA).raise_for_mismatch()
        assert e.value.differences == ["arguments"]

    def test_report_dict(self):
        out = check_decode_encode(UNDOCUMENTED_BITS_CALLDATA).to_dict()
        assert out["check"] == DECODE_ENCODE
        assert out["matches"] is False
        assert out["differences"] == ["arguments"]
        assert out["errorType"] is None


class TestEncodeDecode:
    @pytest.mark.parametrize("case", CALL_CASES, ids=[c["name"] for c in CALL_CASES])
    def test_cases_match(self, case):
        report = check_encode_decode(case["call"])
        assert report.check == ENCODE_DECODE
        assert report.matches, report.summary
        assert report.summary == f"{ENCODE_DECODE}: OK"

    def test_from_json_form(self):
        assert check_encode_decode(decode_json(DAG_CALLDATA)).matches

    def test_flag_bytes_inside_pool_address(self):
        # the re-encoded call carries the same accidental flag, so the fields agree
        report = check_encode_decode(decode(FLAG_POOL_CALLDATA))
        assert report.matches

    def test_build_failure(self):
        payload = decode_json(DAG_CALLDATA)
        payload["baseRequest"]["toToken"] = "0xnot-an-address"
        report = check_encode_decode(payload)
        assert not report.matches
        assert report.stage == "build"
        assert report.error_type == "InvalidAddressFormat"
        assert report.parsed

    def test_encode_failure(self):
        report = check_encode_decode(DecodedCall(lookup_name("swapWrap"), order_id=1))
        assert report.stage == "encode"
        assert report.error_type == "MissingRequiredField"
        assert "encode failed" in report.summary
        with pytest.raises(MismatchError):
            report.raise_for_mismatch()


class TestFieldDiff:
    def test_flatten(self):
        assert flatten({"a": {"b": [1, "X"]}, "c": []}) == {"a.b[0]": 1, "a.b[1]": "x", "c": []}

    def test_hex_case_ignored(self):
        assert diff_fields({"to": "0xABCDEF"}, {"to": "0xabcdef"}) == []

    def test_reports_paths(self):
        expected = {"baseRequest": {"fromTokenAmount": "1", "toToken": "0xaa"}, "hasTrim": False}
        actual = {"baseRequest": {"fromTokenAmount": "2", "toToken": "0xAA"}}
        assert diff_fields(expected, actual) == ["baseRequest.fromTokenAmount", "hasTrim"]


BASE_REQ = BaseRequest(TokenRef(USDC), USDT, 10 ** 9, 1, 1700000000)


def _commission_call(address):
    return DecodedCall(
        lookup_name("swapWrapToWithBaseRequest"), order_id=1, receiver=RECEIVER, base_request=BASE_REQ,
        commission=CommissionInfo(True, (CommissionBlock(0x3ca20afc2aaa, 1, address),), CommissionMiddle(False, USDC)),
    )


def _dag_call(pool):
    path = RouterPath((RoutingHop(ADAPTER, POOL, RawData(pool)),), TokenRef(USDC))
    return DecodedCall(lookup_name("dagSwapByOrderId"), order_id=1, base_request=BASE_REQ, routing=DagPaths((path,)))


BAD_ADDRESS_CASES = [
    {"name": "21-byte referrer", "call": _commission_call("0x" + "ff" * 21)},
    {"name": "non-hex referrer", "call": _commission_call("0xnothex")},
    {"name": "short referrer", "call": _commission_call("0x1234")},
    {"name": "non-hex hop pool", "call": _dag_call("0xnothex")},
]


@pytest.mark.parametrize("case", BAD_ADDRESS_CASES, ids=[c["name"] for c in BAD_ADDRESS_CASES])
def test_bad_address_is_an_encode_failure(case):
    report = check_encode_decode(case["call"])
    assert not report.matches
    assert report.stage == "encode"
    assert report.error_type == "InvalidAddressFormat"
