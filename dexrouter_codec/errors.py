#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Error taxonomy for the calldata codec.

Decode side:
  - UnknownSelector / MalformedCalldata are fatal: the call cannot be parsed.
  - ExtensionBlockError and its subclasses describe why an optional
    commission/trim block was rejected. The extension codecs swallow them
    and report the block as absent.

Encode side:
  - EncodeError subclasses reject a DecodedCall before any bytes are emitted.
"""


class CodecError(Exception):
    """Base class for every error raised by the codec."""


# =============================================================================
# Decode
# =============================================================================

class DecodeError(CodecError):
    pass


class UnknownSelector(DecodeError):
    def __init__(self, selector: str):
        super().__init__(f"Unknown function selector: {selector}")
        self.selector = selector


class MalformedCalldata(DecodeError):
    pass


class ExtensionBlockError(DecodeError):
    pass


class InvalidFlag(ExtensionBlockError):
    pass


class InsufficientData(ExtensionBlockError):
    pass


# =============================================================================
# Encode
# =============================================================================

class EncodeError(CodecError, ValueError):
    pass


class MissingRequiredField(EncodeError):
    def __init__(self, field: str, context: str = ""):
        where = f" for {context}" if context else ""
        super().__init__(f"Missing required field{where}: {field}")
        self.field = field


class InvalidAddressFormat(EncodeError):
    def __init__(self, field: str, value):
        super().__init__(f"Invalid address for {field}: {value!r} (expect 0x + 40 hex chars)")
        self.field = field
        self.value = value


class NumericRangeError(EncodeError):
    pass


# Encode side: a referrer flag that is not a commission flag, or whose arity
# class does not match the referrer count.
class UnsupportedFlag(NumericRangeError):
    pass


# Raised both when a multiple-referrer middle block carries a bad count and
# when an encode is asked for more referrers than the wire format allows.
class ReferrerCountOutOfRange(ExtensionBlockError, NumericRangeError):
    def __init__(self, count: int, low: int = 1, high: int = 8):
        super().__init__(f"Referrer count out of range: {count} (expect {low}..{high})")
        self.count = count
        self.low = low
        self.high = high


# =============================================================================
# Validation
# =============================================================================

class MismatchError(CodecError):
    def __init__(self, differences):
        super().__init__("Round-trip mismatch: " + ", ".join(differences))
        self.differences = list(differences)
