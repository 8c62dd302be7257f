#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from decimal import Decimal
from typing import Any, Union

from eth_utils import is_hex_address, to_normalized_address

from .errors import InvalidAddressFormat, MalformedCalldata, MissingRequiredField, NumericRangeError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# =============================================================================
# Hex helpers
# =============================================================================

def s0x(h: str) -> str:
    return h[2:] if isinstance(h, str) and h[:2] in ("0x", "0X") else h

def h2i(h: str) -> int:
    return int(h, 16)

def to_bytes(data: Union[str, bytes, bytearray]) -> bytes:
    """Accept calldata as raw bytes or a hex string with or without 0x."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if not isinstance(data, str):
        raise MalformedCalldata(f"calldata must be a hex string or bytes, got {type(data).__name__}")
    h = s0x(data.strip())
    if len(h) % 2:
        raise MalformedCalldata("calldata hex has an odd number of digits")
    try:
        return bytes.fromhex(h)
    except ValueError as e:
        raise MalformedCalldata(f"calldata is not valid hex: {e}") from e

def to_hex(b: bytes) -> str:
    return "0x" + b.hex()

def normalize_hex(h: str) -> str:
    """Lowercase, no 0x. Used for case-insensitive calldata comparison."""
    return s0x(h or "").lower()

def int_to_address(x: int) -> str:
    return "0x" + format(x & ((1 << 160) - 1), "040x")

def address_to_int(addr: str) -> int:
    return int(s0x(addr), 16)

def pack_address(value: Any, field: str) -> int:
    """Validated address as an integer, for packing into a word or block."""
    return address_to_int(parse_address(value, field))

# =============================================================================
# JSON value parsing (encode-side validation)
# =============================================================================

def parse_uint(value: Any, field: str, bits: int = 256) -> int:
    """
    Accepts int, decimal string or 0x-hex string. Rejects negatives and
    anything wider than `bits`.
    """
    if value is None:
        raise MissingRequiredField(field)
    if isinstance(value, bool):
        raise NumericRangeError(f"{field}: expected an unsigned integer, got a bool")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        v = value.strip()
        try:
            n = int(v, 16) if v[:2] in ("0x", "0X") else int(v, 10)
        except ValueError:
            raise NumericRangeError(f"{field}: not a number: {value!r}") from None
    else:
        raise NumericRangeError(f"{field}: expected an unsigned integer, got {type(value).__name__}")
    if n < 0 or n >> bits:
        raise NumericRangeError(f"{field}: {n} does not fit in {bits} unsigned bits")
    return n

def parse_address(value: Any, field: str) -> str:
    if value is None:
        raise MissingRequiredField(field)
    if not isinstance(value, str) or not is_hex_address(value):
        raise InvalidAddressFormat(field, value)
    return to_normalized_address(value)

def parse_bool(value: Any, field: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value in (0, 1):
        return bool(value)
    raise NumericRangeError(f"{field}: expected a bool, got {value!r}")

def parse_bytes(value: Any, field: str) -> bytes:
    if value is None:
        raise MissingRequiredField(field)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        h = s0x(value)
        try:
            return bytes.fromhex(h)
        except ValueError:
            raise NumericRangeError(f"{field}: not a hex byte string: {value!r}") from None
    raise NumericRangeError(f"{field}: expected hex bytes, got {type(value).__name__}")

def require(payload: dict, key: str, context: str = "") -> Any:
    if not isinstance(payload, dict):
        raise MissingRequiredField(key, context)
    value = payload.get(key)
    if value is None:
        raise MissingRequiredField(key, context)
    return value

# =============================================================================
# Display
# =============================================================================

def to_percent(rate: int, denominator: int) -> str:
    """Render rate/denominator as a percent string without trailing zeros."""
    d = Decimal(rate) * Decimal(100) / Decimal(denominator)
    s = format(d, "f")
    return (s.rstrip("0").rstrip(".")) if "." in s else s
