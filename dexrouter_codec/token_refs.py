#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Token references: a 160-bit address packed into a uint256 together with
either a mode flag (bits 249-251) or an order id (bits 160-255).

Which treatment a field gets is decided by FunctionSpec.order_id_fields.
"""

from dataclasses import dataclass
from typing import Any, Dict

from eth_utils import is_hex_address

from .bitfields import (
    ADDRESS,
    MODE_INVEST_FUNDED,
    MODE_NO_TRANSFER,
    MODE_PERMIT_BASED,
    ORDER_ID,
    check_word,
)
from .errors import MalformedCalldata, MissingRequiredField, NumericRangeError
from .utils import int_to_address, pack_address, parse_address, parse_uint

MODE_DEFAULT = "default"
MODE_NO_TRANSFER_NAME = "noTransfer"
MODE_INVEST_FUNDED_NAME = "investFunded"
MODE_PERMIT_BASED_NAME = "permitBased"

MODE_FIELDS = {
    MODE_NO_TRANSFER_NAME: MODE_NO_TRANSFER,
    MODE_INVEST_FUNDED_NAME: MODE_INVEST_FUNDED,
    MODE_PERMIT_BASED_NAME: MODE_PERMIT_BASED,
}

# Names used by the router's own tooling.
MODE_ALIASES = {
    "DEFAULT": MODE_DEFAULT,
    "NO_TRANSFER": MODE_NO_TRANSFER_NAME,
    "BY_INVEST": MODE_INVEST_FUNDED_NAME,
    "PERMIT2": MODE_PERMIT_BASED_NAME,
}


@dataclass(frozen=True)
class TokenRef:
    address: str
    mode: str = MODE_DEFAULT
    order_id: int = 0

    def to_dict(self, order_tagged: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {"address": self.address, "mode": self.mode}
        if order_tagged:
            out["orderId"] = str(self.order_id)
        return out


# =============================================================================
# Pack
# =============================================================================

def pack_address_mode(address: str, mode: str = MODE_DEFAULT) -> int:
    word = pack_address(address, "address")
    if mode == MODE_DEFAULT:
        return word
    field = MODE_FIELDS.get(mode)
    if field is None:
        raise NumericRangeError(f"unknown token mode: {mode!r}")
    return word | field.put(1)

def pack_order_id_into_address(address: str, order_id: int) -> int:
    word = pack_address(address, "address")
    return ORDER_ID.put(order_id) | word

def pack_token_ref(ref: TokenRef, order_tagged: bool) -> int:
    if order_tagged:
        if ref.mode != MODE_DEFAULT:
            raise NumericRangeError(f"order-id tagged token reference cannot carry mode {ref.mode!r}")
        return pack_order_id_into_address(ref.address, ref.order_id)
    if ref.order_id:
        raise NumericRangeError("token reference carries an order id in a mode-tagged field")
    return pack_address_mode(ref.address, ref.mode)

# =============================================================================
# Unpack
# =============================================================================

def unpack_address_mode(word: int) -> TokenRef:
    address = int_to_address(ADDRESS.get(word))
    high = word & ~ADDRESS.mask
    if not high:
        return TokenRef(address)
    for mode, field in MODE_FIELDS.items():
        if high == field.mask:
            return TokenRef(address, mode)
    raise MalformedCalldata(f"token reference has unexpected high bits: {hex(high)}")

def unpack_order_id(word: int) -> TokenRef:
    return TokenRef(int_to_address(ADDRESS.get(word)), MODE_DEFAULT, ORDER_ID.get(word))

def unpack_token_ref(word: int, order_tagged: bool) -> TokenRef:
    return unpack_order_id(word) if order_tagged else unpack_address_mode(word)

# =============================================================================
# JSON
# =============================================================================

def token_ref_from_value(value: Any, field: str, order_tagged: bool = False) -> TokenRef:
    """
    Accepts {"address", "mode", "orderId"}, a bare address, or an already
    packed word (int, decimal or hex string).
    """
    if value is None:
        raise MissingRequiredField(field)
    if isinstance(value, dict):
        address = parse_address(value.get("address"), f"{field}.address")
        mode = value.get("mode", value.get("flag")) or MODE_DEFAULT
        mode = MODE_ALIASES.get(mode, mode)
        if mode != MODE_DEFAULT and mode not in MODE_FIELDS:
            raise NumericRangeError(f"{field}.mode: unknown mode {mode!r}")
        order_id = parse_uint(value.get("orderId", 0), f"{field}.orderId", ORDER_ID.width)
        return TokenRef(address, mode, order_id)
    if isinstance(value, str) and value[:2] in ("0x", "0X") and is_hex_address(value):
        return TokenRef(parse_address(value, field))
    word = check_word(parse_uint(value, field), field)
    return unpack_token_ref(word, order_tagged)
