#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Commission extension blocks appended after the core ABI arguments.

Referrer block (32 bytes):
  flag(6) + rate(6) + referrer address(20)

Middle block (32 bytes):
  isToB(1: 0x80 toB / 0x00 toC) + referrerNum(1, multiple mode only)
  + padding(10) + commission token(20)

Physical layouts (left to right, last block at the end of calldata):
  1 referrer    middle, first
  2 referrers   first, middle, second
  n = 3..8      first, second, ..., (n-1)th, middle, nth

Blocks are located by scanning for the flag bytes, not by offset.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .buffers import BLOCK_SIZE, find_all, read_block, read_blocks
from .errors import (
    ExtensionBlockError,
    InsufficientData,
    InvalidFlag,
    MissingRequiredField,
    NumericRangeError,
    ReferrerCountOutOfRange,
    UnsupportedFlag,
)
from .utils import pack_address, parse_address, parse_bool, parse_uint, to_percent

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

FLAG_BYTES = 6
RATE_BYTES = 6
RATE_MAX = (1 << (RATE_BYTES * 8)) - 1
RATE_DENOMINATOR = 10 ** 9  # 10**7 == 1%

SINGLE = "SINGLE"
DUAL = "DUAL"
MULTIPLE = "MULTIPLE"
FROM_TOKEN = "FROM_TOKEN"
TO_TOKEN = "TO_TOKEN"

SINGLE_FROM_TOKEN = 0x3ca20afc2aaa
SINGLE_TO_TOKEN = 0x3ca20afc2bbb
DUAL_FROM_TOKEN = 0x22220afc2aaa
DUAL_TO_TOKEN = 0x22220afc2bbb
MULTIPLE_FROM_TOKEN = 0x88880afc2aaa
MULTIPLE_TO_TOKEN = 0x88880afc2bbb

# flag -> (arity class, direction)
FLAGS: Dict[int, Tuple[str, str]] = {
    SINGLE_FROM_TOKEN: (SINGLE, FROM_TOKEN),
    SINGLE_TO_TOKEN: (SINGLE, TO_TOKEN),
    DUAL_FROM_TOKEN: (DUAL, FROM_TOKEN),
    DUAL_TO_TOKEN: (DUAL, TO_TOKEN),
    MULTIPLE_FROM_TOKEN: (MULTIPLE, FROM_TOKEN),
    MULTIPLE_TO_TOKEN: (MULTIPLE, TO_TOKEN),
}

MIDDLE_TO_B = 0x80
MIDDLE_TO_C = 0x00

MAX_REFERRERS = 8
MULTIPLE_MIN = 3

ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth")

# referrer count -> slot name of each physical block, in calldata order.
# In multiple mode the nth referrer sits after the middle block.
BLOCK_LAYOUTS: Dict[int, Tuple[str, ...]] = {
    1: ("middle", "first"),
    2: ("first", "middle", "second"),
    3: ("first", "second", "middle", "third"),
    4: ("first", "second", "third", "middle", "fourth"),
    5: ("first", "second", "third", "fourth", "middle", "fifth"),
    6: ("first", "second", "third", "fourth", "fifth", "middle", "sixth"),
    7: ("first", "second", "third", "fourth", "fifth", "sixth", "middle", "seventh"),
    8: ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "middle", "eighth"),
}


def arity_for_count(count: int) -> str:
    if count == 1:
        return SINGLE
    if count == 2:
        return DUAL
    if MULTIPLE_MIN <= count <= MAX_REFERRERS:
        return MULTIPLE
    raise ReferrerCountOutOfRange(count)

# =============================================================================
# Blocks
# =============================================================================

@dataclass(frozen=True)
class CommissionBlock:
    flag: int
    rate: int
    address: str

    @property
    def arity(self) -> str:
        return FLAGS[self.flag][0]

    @property
    def direction(self) -> str:
        return FLAGS[self.flag][1]

    @property
    def commission_type(self) -> str:
        """e.g. SINGLE_FROM_TOKEN_COMMISSION"""
        return f"{self.arity}_{self.direction}_COMMISSION"

    @property
    def flag_hex(self) -> str:
        return "0x" + format(self.flag, "012x")

    def pack(self) -> bytes:
        if self.flag not in FLAGS:
            raise UnsupportedFlag(f"unknown commission flag {self.flag_hex}")
        if self.rate < 0 or self.rate > RATE_MAX:
            raise NumericRangeError(f"commission rate {self.rate} does not fit in {RATE_BYTES} bytes")
        return (
            self.flag.to_bytes(FLAG_BYTES, "big")
            + self.rate.to_bytes(RATE_BYTES, "big")
            + pack_address(self.address, "commission.address").to_bytes(20, "big")
        )

    @classmethod
    def parse(cls, block: bytes) -> "CommissionBlock":
        flag = int.from_bytes(block[:6], "big")
        if flag not in FLAGS:
            raise InvalidFlag(f"not a commission flag: 0x{block[:6].hex()}")
        return cls(
            flag=flag,
            rate=int.from_bytes(block[6:12], "big"),
            address="0x" + block[12:32].hex(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flag": self.flag_hex,
            "commissionType": self.commission_type,
            "rate": str(self.rate),
            "ratePercent": to_percent(self.rate, RATE_DENOMINATOR),
            "address": self.address,
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "CommissionBlock":
        if not isinstance(value, dict):
            raise MissingRequiredField(field, "commission")
        flag = parse_uint(value.get("flag"), f"{field}.flag", FLAG_BYTES * 8)
        return cls(
            flag=flag,
            rate=parse_uint(value.get("rate"), f"{field}.rate", RATE_BYTES * 8),
            address=parse_address(value.get("address"), f"{field}.address"),
        )


@dataclass(frozen=True)
class CommissionMiddle:
    is_to_business: bool
    token: str

    def pack(self, referrer_num: int = 0) -> bytes:
        head = bytes([MIDDLE_TO_B if self.is_to_business else MIDDLE_TO_C, referrer_num])
        return head + bytes(10) + pack_address(self.token, "middle.token").to_bytes(20, "big")

    @classmethod
    def parse(cls, block: bytes, multiple: bool = False) -> "CommissionMiddle":
        if block[0] not in (MIDDLE_TO_B, MIDDLE_TO_C):
            raise InvalidFlag(f"middle block: bad isToB byte 0x{block[0]:02x}")
        if not multiple and block[1]:
            raise InvalidFlag(f"middle block: unexpected referrer count byte 0x{block[1]:02x}")
        if any(block[2:12]):
            raise InvalidFlag("middle block: non-zero padding")
        return cls(block[0] == MIDDLE_TO_B, "0x" + block[12:32].hex())

    def to_dict(self) -> Dict[str, Any]:
        return {"isToBusiness": self.is_to_business, "token": self.token}

    @classmethod
    def from_value(cls, value: Any) -> "CommissionMiddle":
        if not isinstance(value, dict):
            raise MissingRequiredField("middle", "commission")
        to_b = value.get("isToBusiness", value.get("isToB", value.get("toB")))
        return cls(
            is_to_business=parse_bool(to_b, "middle.isToBusiness"),
            token=parse_address(value.get("token"), "middle.token"),
        )


@dataclass(frozen=True)
class CommissionInfo:
    has_commission: bool = False
    # logical order: first, second, ...
    referrers: Tuple[CommissionBlock, ...] = ()
    middle: Optional[CommissionMiddle] = None

    @property
    def referrer_count(self) -> int:
        return len(self.referrers) if self.has_commission else 0

    def referrer(self, ordinal: str) -> CommissionBlock:
        return self.referrers[ORDINALS.index(ordinal)]

    def to_dict(self) -> Dict[str, Any]:
        if not self.has_commission:
            return {"hasCommission": False}
        out: Dict[str, Any] = {
            "hasCommission": True,
            "referrerCount": self.referrer_count,
            "middle": self.middle.to_dict() if self.middle else None,
        }
        for name, block in zip(ORDINALS, self.referrers):
            out[name] = block.to_dict()
        return out

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CommissionInfo":
        """Reads the flattened commission keys of a call's JSON form."""
        if not parse_bool(payload.get("hasCommission"), "hasCommission"):
            return cls()
        count = payload.get("referrerCount", payload.get("referCount"))
        if count is None:
            count = sum(1 for name in ORDINALS if payload.get(name) is not None)
        count = parse_uint(count, "referrerCount", 8)
        if count == 0:
            raise MissingRequiredField("first", "commission")
        if count > MAX_REFERRERS:
            raise ReferrerCountOutOfRange(count)
        referrers = []
        for i, name in enumerate(ORDINALS[:count]):
            value = payload.get(name)
            # two-referrer form may name its second block "last"
            if value is None and count == 2 and i == 1:
                value = payload.get("last")
            referrers.append(CommissionBlock.from_value(value, name))
        return cls(True, tuple(referrers), CommissionMiddle.from_value(payload.get("middle")))

# =============================================================================
# Encode
# =============================================================================

def encode_commission(info: CommissionInfo) -> bytes:
    """Blocks to append after the core arguments (and after any trim blocks)."""
    if not info.has_commission:
        return b""
    count = len(info.referrers)
    if count == 0:
        raise MissingRequiredField("first", "commission")
    arity = arity_for_count(count)
    if info.middle is None:
        raise MissingRequiredField("middle", "commission")
    for name, block in zip(ORDINALS, info.referrers):
        if block.flag not in FLAGS:
            raise UnsupportedFlag(f"{name}: unknown commission flag {block.flag_hex}")
        if block.arity != arity:
            raise UnsupportedFlag(f"{name}: {block.arity} flag used with {count} referrer(s)")
    slots = {name: block.pack() for name, block in zip(ORDINALS, info.referrers)}
    slots["middle"] = info.middle.pack(count if arity == MULTIPLE else 0)
    return b"".join(slots[name] for name in BLOCK_LAYOUTS[count])

# =============================================================================
# Decode
# =============================================================================

def _flag_bytes(flag: int) -> bytes:
    return flag.to_bytes(FLAG_BYTES, "big")

def _assemble(count: int, blocks: List[bytes], multiple: bool) -> CommissionInfo:
    referrers: Dict[str, CommissionBlock] = {}
    middle = None
    for name, block in zip(BLOCK_LAYOUTS[count], blocks):
        if name == "middle":
            middle = CommissionMiddle.parse(block, multiple)
        else:
            referrers[name] = CommissionBlock.parse(block)
    return CommissionInfo(True, tuple(referrers[n] for n in ORDINALS[:count]), middle)

def _require_arity(info: CommissionInfo, arity: str) -> CommissionInfo:
    for name, block in zip(ORDINALS, info.referrers):
        if block.arity != arity:
            raise InvalidFlag(f"{name}: {block.arity} flag inside a {arity} commission")
    return info

def find_single(buf: bytes) -> Optional[CommissionInfo]:
    """Every occurrence of each single flag, from-token flag first; the first valid pair wins."""
    err: Optional[ExtensionBlockError] = None
    for flag in (SINGLE_FROM_TOKEN, SINGLE_TO_TOKEN):
        for pos in find_all(buf, _flag_bytes(flag)):
            try:
                blocks = [read_block(buf, pos - BLOCK_SIZE, "single middle"), read_block(buf, pos, "single first")]
                return _assemble(1, blocks, multiple=False)
            except ExtensionBlockError as e:
                logger.debug("single commission candidate at %d rejected: %s", pos, e)
                err = e
    if err is not None:
        raise err
    return None

def find_dual(buf: bytes) -> Optional[CommissionInfo]:
    """First structurally valid [first, middle, second] triple, in buffer order."""
    hits = sorted(find_all(buf, _flag_bytes(DUAL_FROM_TOKEN)) + find_all(buf, _flag_bytes(DUAL_TO_TOKEN)))
    if not hits:
        return None
    err: Optional[ExtensionBlockError] = None
    for pos in hits:
        try:
            blocks = read_blocks(buf, pos, 3, "dual blocks")
            return _require_arity(_assemble(2, blocks, multiple=False), DUAL)
        except ExtensionBlockError as e:
            logger.debug("dual commission candidate at %d rejected: %s", pos, e)
            err = e
    raise err

def find_multiple(buf: bytes) -> Optional[CommissionInfo]:
    """
    The middle block is the second-to-last block of the calldata and carries
    the referrer count; the n+1 blocks end at the end of the buffer.
    """
    flags = (_flag_bytes(MULTIPLE_FROM_TOKEN), _flag_bytes(MULTIPLE_TO_TOKEN))
    if not any(f in buf for f in flags):
        return None
    middle = read_block(buf, len(buf) - 2 * BLOCK_SIZE, "multiple middle")
    count = middle[1]
    if count < MULTIPLE_MIN or count > MAX_REFERRERS:
        raise ReferrerCountOutOfRange(count, MULTIPLE_MIN, MAX_REFERRERS)
    start = len(buf) - (count + 1) * BLOCK_SIZE
    if start < 0:
        raise InsufficientData(f"multiple commission needs {count + 1} blocks, buffer has {len(buf)} bytes")
    if buf[start:start + FLAG_BYTES] not in flags:
        raise InvalidFlag(f"no multiple commission flag at offset {start}")
    blocks = read_blocks(buf, start, count + 1, "multiple blocks")
    return _require_arity(_assemble(count, blocks, multiple=True), MULTIPLE)

FINDERS = (
    ("single", find_single),
    ("dual", find_dual),
    ("multiple", find_multiple),
)

def decode_commission(buf: bytes) -> CommissionInfo:
    """
    Scan the whole calldata for commission blocks. A rejected candidate falls
    through to the next arity; nothing found means no commission.
    """
    for name, finder in FINDERS:
        try:
            info = finder(buf)
        except ExtensionBlockError as e:
            logger.debug("commission %s: %s", name, e)
            continue
        if info is not None:
            logger.debug("commission %s: %d referrer(s)", name, info.referrer_count)
            return info
    return CommissionInfo()
