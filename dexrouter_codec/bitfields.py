#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Named bit ranges of the router's packed 256-bit words.

Every field is declared once here and used by both the pack and the unpack
direction, so the two stay symmetric by construction:

    word = WEIGHT.put(weight) | ADDRESS.put(pool)
    WEIGHT.get(word) == weight
"""

from typing import NamedTuple

from .errors import NumericRangeError

WORD_BITS = 256
UINT256_MAX = (1 << WORD_BITS) - 1


class BitField(NamedTuple):
    name: str
    shift: int
    width: int

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1

    @property
    def mask(self) -> int:
        return self.max_value << self.shift

    def get(self, word: int) -> int:
        return (word & self.mask) >> self.shift

    def is_set(self, word: int) -> bool:
        return bool(word & self.mask)

    def put(self, value: int) -> int:
        """Place `value` into this field of an otherwise empty word."""
        if isinstance(value, bool):
            value = int(value)
        if value < 0 or value > self.max_value:
            raise NumericRangeError(f"{self.name}: {value} does not fit in {self.width} bits")
        return value << self.shift


# =============================================================================
# Shared
# =============================================================================

ADDRESS = BitField("address", 0, 160)
# Everything above the address: the order id of order-tagged token references.
ORDER_ID = BitField("orderId", 160, 96)

# =============================================================================
# Token reference mode flags (mutually exclusive)
# =============================================================================

MODE_NO_TRANSFER = BitField("noTransfer", 251, 1)
MODE_INVEST_FUNDED = BitField("investFunded", 250, 1)
MODE_PERMIT_BASED = BitField("permitBased", 249, 1)

# =============================================================================
# RouterPath rawData (DAG and batch hops)
# =============================================================================

REVERSE = BitField("reverse", 255, 1)
INPUT_INDEX = BitField("inputIndex", 184, 8)
OUTPUT_INDEX = BitField("outputIndex", 176, 8)
WEIGHT = BitField("weight", 160, 16)

FULL_WEIGHT = 10000  # 100.00%, in basis points

# =============================================================================
# Linear pools
# =============================================================================

# unxswap (bytes32[] pools)
UNX_REVERSE = BitField("reverse", 255, 1)
UNX_WETH = BitField("weth", 254, 1)
UNX_TOKEN1_TAX = BitField("isToken1Tax", 253, 1)
UNX_TOKEN0_TAX = BitField("isToken0Tax", 252, 1)
UNX_NUMERATOR = BitField("numerator", 160, 32)

# uniswapV3 (uint256[] pools)
V3_ONE_FOR_ZERO = BitField("isOneForZero", 255, 1)
V3_WETH_UNWRAP = BitField("isWethUnwrap", 253, 1)

# =============================================================================
# swapWrap rawdata
# =============================================================================

WRAP_REVERSED = BitField("reversed", 255, 1)
WRAP_AMOUNT = BitField("amount", 0, 255)


def check_word(value: int, name: str) -> int:
    if value < 0 or value > UINT256_MAX:
        raise NumericRangeError(f"{name}: {value} does not fit in 256 bits")
    return value
