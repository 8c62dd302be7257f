#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Round-trip checks.

  encode -> decode   build a call, encode it, decode the result and compare
                     every field of the JSON form (hex case ignored)
  decode -> encode   decode calldata, re-encode and compare the bytes

Neither check raises on a mismatch or on a codec error; both return a
RoundTripReport. Use raise_for_mismatch() where a failure should be fatal.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .codec import decode, encode, encode_parts
from .errors import CodecError, DecodeError, MismatchError
from .models import DecodedCall
from .utils import normalize_hex, to_bytes, to_hex

logger = logging.getLogger(__name__)

ENCODE_DECODE = "encode->decode"
DECODE_ENCODE = "decode->encode"


@dataclass
class RoundTripReport:
    check: str
    matches: bool
    differences: List[str] = field(default_factory=list)
    # set when a codec error stopped the check: "build", "encode" or "decode"
    stage: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    original: Optional[str] = None
    roundtrip: Optional[str] = None

    @property
    def parsed(self) -> bool:
        """False when the input could not be parsed as a known call at all."""
        return not (self.stage == "decode" and self.check == DECODE_ENCODE)

    @property
    def summary(self) -> str:
        if self.matches:
            return f"{self.check}: OK"
        if self.error:
            return f"{self.check}: {self.stage} failed: {self.error}"
        return f"{self.check}: mismatch in " + ", ".join(self.differences)

    def raise_for_mismatch(self) -> None:
        if not self.matches:
            raise MismatchError(self.differences or [self.stage or "unknown"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check": self.check,
            "matches": self.matches,
            "differences": list(self.differences),
            "stage": self.stage,
            "error": self.error,
            "errorType": self.error_type,
            "original": self.original,
            "roundtrip": self.roundtrip,
        }


def _failed(check: str, stage: str, e: CodecError, **kw) -> RoundTripReport:
    logger.debug("%s: %s failed: %s", check, stage, e)
    return RoundTripReport(check, False, [stage], stage, str(e), type(e).__name__, **kw)

# =============================================================================
# Field comparison
# =============================================================================

def flatten(value: Any, prefix: str = "") -> Dict[str, Any]:
    """{"a": {"b": [1]}} -> {"a.b[0]": 1}"""
    out: Dict[str, Any] = {}
    if isinstance(value, dict):
        for k, v in value.items():
            out.update(flatten(v, f"{prefix}.{k}" if prefix else str(k)))
    elif isinstance(value, (list, tuple)):
        if not value:
            out[prefix] = []
        for i, v in enumerate(value):
            out.update(flatten(v, f"{prefix}[{i}]"))
    else:
        out[prefix] = value.lower() if isinstance(value, str) else value
    return out


def diff_fields(expected: Dict[str, Any], actual: Dict[str, Any]) -> List[str]:
    a, b = flatten(expected), flatten(actual)
    return [k for k in sorted(set(a) | set(b)) if a.get(k) != b.get(k)]

# =============================================================================
# Checks
# =============================================================================

def check_encode_decode(call: Union[DecodedCall, Dict[str, Any]]) -> RoundTripReport:
    if isinstance(call, dict):
        try:
            call = DecodedCall.from_dict(call)
        except CodecError as e:
            return _failed(ENCODE_DECODE, "build", e)
    try:
        encoded = encode(call)
    except CodecError as e:
        return _failed(ENCODE_DECODE, "encode", e)
    try:
        decoded = decode(encoded)
    except CodecError as e:
        return _failed(ENCODE_DECODE, "decode", e, roundtrip=encoded)

    differences = diff_fields(call.to_dict(), decoded.to_dict())
    logger.debug("%s %s: %d difference(s)", ENCODE_DECODE, call.function.name, len(differences))
    return RoundTripReport(ENCODE_DECODE, not differences, differences, roundtrip=encoded)


def check_decode_encode(calldata: Union[str, bytes]) -> RoundTripReport:
    try:
        buf = to_bytes(calldata)
        call = decode(buf)
    except DecodeError as e:
        original = calldata if isinstance(calldata, str) else to_hex(calldata)
        return _failed(DECODE_ENCODE, "decode", e, original=original)
    original = to_hex(buf)
    try:
        selector, core, trim, commission = encode_parts(call)
    except CodecError as e:
        return _failed(DECODE_ENCODE, "encode", e, original=original)

    rebuilt = selector + core + trim + commission
    roundtrip = to_hex(rebuilt)
    differences: List[str] = []
    if normalize_hex(original) != normalize_hex(roundtrip):
        core_end = len(selector) + len(core)
        if buf[:4] != selector:
            differences.append("selector")
        if buf[4:core_end] != core:
            differences.append("arguments")
        if buf[core_end:] != trim + commission:
            differences.append("extensions")
        if len(buf) != len(rebuilt):
            differences.append("length")
    logger.debug("%s %s: %s", DECODE_ENCODE, call.function.name, differences or "match")
    return RoundTripReport(DECODE_ENCODE, not differences, differences, original=original, roundtrip=roundtrip)
