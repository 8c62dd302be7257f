#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Trim extension blocks. Appended after the core arguments and before any
commission blocks.

  trim / charge block:  flag(6) + rate(6) + address(20)
  expect block:         flag(6) + marker(1: 0x80 toB / 0x00 toC) + padding(5) + amount(20)

  single:  [expect][trim]             flag 0x777777771111
  dual:    [charge][expect][trim]     flag 0x777777772222

Decode anchors on the LAST occurrence of the flag, so incidental matches
earlier in the calldata do not shadow the real blocks.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .buffers import BLOCK_SIZE, find_all, find_last, read_block
from .errors import ExtensionBlockError, InsufficientData, InvalidFlag, NumericRangeError
from .utils import ZERO_ADDRESS, pack_address, parse_address, parse_uint, to_percent

logger = logging.getLogger(__name__)

FLAG_BYTES = 6
RATE_BYTES = 6
AMOUNT_BYTES = 20
RATE_DENOMINATOR = 1000  # 1 == 0.1%

TRIM_SINGLE = 0x777777771111
TRIM_DUAL = 0x777777772222

MARKER_TO_B = 0x80
MARKER_TO_C = 0x00

TO_BUSINESS = "toBusiness"
TO_CONSUMER = "toConsumer"

# accepted spellings of hasTrim
TRIM_TYPES = {
    TO_BUSINESS: TO_BUSINESS,
    "toB": TO_BUSINESS,
    TO_CONSUMER: TO_CONSUMER,
    "toC": TO_CONSUMER,
}


@dataclass(frozen=True)
class TrimInfo:
    has_trim: Union[bool, str] = False
    trim_rate: int = 0
    trim_address: str = ZERO_ADDRESS
    expect_amount_out: int = 0
    charge_rate: int = 0
    charge_address: str = ZERO_ADDRESS

    @property
    def is_dual(self) -> bool:
        return self.charge_rate != 0 or self.charge_address != ZERO_ADDRESS

    @property
    def is_to_business(self) -> bool:
        return self.has_trim == TO_BUSINESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasTrim": self.has_trim,
            "trimRate": str(self.trim_rate),
            "trimRatePercent": to_percent(self.trim_rate, RATE_DENOMINATOR),
            "trimAddress": self.trim_address,
            "expectAmountOut": str(self.expect_amount_out),
            "chargeRate": str(self.charge_rate),
            "chargeRatePercent": to_percent(self.charge_rate, RATE_DENOMINATOR),
            "chargeAddress": self.charge_address,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TrimInfo":
        """Reads the flattened trim keys of a call's JSON form."""
        raw = payload.get("hasTrim", False)
        if raw in (None, False, "false", ""):
            return cls()
        has_trim = TRIM_TYPES.get(raw) if isinstance(raw, str) else None
        if has_trim is None:
            raise NumericRangeError(f"hasTrim: expected false, 'toBusiness' or 'toConsumer', got {raw!r}")
        return cls(
            has_trim=has_trim,
            trim_rate=parse_uint(payload.get("trimRate"), "trimRate", RATE_BYTES * 8),
            trim_address=parse_address(payload.get("trimAddress"), "trimAddress"),
            expect_amount_out=parse_uint(payload.get("expectAmountOut"), "expectAmountOut", AMOUNT_BYTES * 8),
            charge_rate=parse_uint(payload.get("chargeRate", 0), "chargeRate", RATE_BYTES * 8),
            charge_address=parse_address(payload.get("chargeAddress", ZERO_ADDRESS), "chargeAddress"),
        )

# =============================================================================
# Blocks
# =============================================================================

def _rate_block(flag: int, rate: int, address: str) -> bytes:
    if rate < 0 or rate >> (RATE_BYTES * 8):
        raise NumericRangeError(f"trim rate {rate} does not fit in {RATE_BYTES} bytes")
    return (
        flag.to_bytes(FLAG_BYTES, "big")
        + rate.to_bytes(RATE_BYTES, "big")
        + pack_address(address, "trim.address").to_bytes(20, "big")
    )

def _expect_block(flag: int, to_business: bool, amount: int) -> bytes:
    if amount < 0 or amount >> (AMOUNT_BYTES * 8):
        raise NumericRangeError(f"expectAmountOut {amount} does not fit in {AMOUNT_BYTES} bytes")
    marker = MARKER_TO_B if to_business else MARKER_TO_C
    return flag.to_bytes(FLAG_BYTES, "big") + bytes([marker]) + bytes(5) + amount.to_bytes(AMOUNT_BYTES, "big")

def _check_flag(block: bytes, flag: int, what: str) -> None:
    if int.from_bytes(block[:FLAG_BYTES], "big") != flag:
        raise InvalidFlag(f"{what}: expected trim flag 0x{flag:012x}, got 0x{block[:FLAG_BYTES].hex()}")

def _parse_rate_block(block: bytes, flag: int, what: str) -> Tuple[int, str]:
    _check_flag(block, flag, what)
    return int.from_bytes(block[6:12], "big"), "0x" + block[12:32].hex()

def _parse_expect_block(block: bytes, flag: int) -> Tuple[str, int]:
    _check_flag(block, flag, "expect block")
    marker = block[6]
    if marker not in (MARKER_TO_B, MARKER_TO_C):
        raise InvalidFlag(f"expect block: bad toB/toC marker 0x{marker:02x}")
    if any(block[7:12]):
        raise InvalidFlag("expect block: non-zero padding")
    trim_type = TO_BUSINESS if marker == MARKER_TO_B else TO_CONSUMER
    return trim_type, int.from_bytes(block[12:32], "big")

# =============================================================================
# Encode / decode
# =============================================================================

def encode_trim(info: TrimInfo) -> bytes:
    if not info.has_trim:
        return b""
    if info.has_trim not in (TO_BUSINESS, TO_CONSUMER):
        raise NumericRangeError(f"hasTrim: unknown trim type {info.has_trim!r}")
    if info.is_dual:
        return (
            _rate_block(TRIM_DUAL, info.charge_rate, info.charge_address)
            + _expect_block(TRIM_DUAL, info.is_to_business, info.expect_amount_out)
            + _rate_block(TRIM_DUAL, info.trim_rate, info.trim_address)
        )
    return (
        _expect_block(TRIM_SINGLE, info.is_to_business, info.expect_amount_out)
        + _rate_block(TRIM_SINGLE, info.trim_rate, info.trim_address)
    )

def find_single(buf: bytes) -> Optional[TrimInfo]:
    pos = find_last(buf, TRIM_SINGLE.to_bytes(FLAG_BYTES, "big"))
    if pos == -1:
        return None
    rate, address = _parse_rate_block(read_block(buf, pos, "trim block"), TRIM_SINGLE, "trim block")
    trim_type, amount = _parse_expect_block(read_block(buf, pos - BLOCK_SIZE, "expect block"), TRIM_SINGLE)
    return TrimInfo(trim_type, rate, address, amount)

def find_dual(buf: bytes) -> Optional[TrimInfo]:
    hits = find_all(buf, TRIM_DUAL.to_bytes(FLAG_BYTES, "big"))
    if not hits:
        return None
    if len(hits) < 3:
        raise InsufficientData(f"dual trim needs 3 flagged blocks, found {len(hits)}")
    pos = hits[-1]
    rate, address = _parse_rate_block(read_block(buf, pos, "trim block"), TRIM_DUAL, "trim block")
    trim_type, amount = _parse_expect_block(read_block(buf, pos - BLOCK_SIZE, "expect block"), TRIM_DUAL)
    charge_rate, charge_address = _parse_rate_block(
        read_block(buf, pos - 2 * BLOCK_SIZE, "charge block"), TRIM_DUAL, "charge block")
    return TrimInfo(trim_type, rate, address, amount, charge_rate, charge_address)

def decode_trim(buf: bytes) -> TrimInfo:
    """Single first, then dual. A rejected candidate means no trim."""
    for name, finder in (("single", find_single), ("dual", find_dual)):
        try:
            info = finder(buf)
        except ExtensionBlockError as e:
            logger.debug("trim %s: %s", name, e)
            continue
        if info is not None:
            logger.debug("trim %s: %s", name, info.has_trim)
            return info
    return TrimInfo()
