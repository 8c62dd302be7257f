#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple, Union

from eth_utils import keccak

from .errors import UnknownSelector
from .utils import s0x

# =============================================================================
# Shared tuple types
# =============================================================================

BASE_REQUEST = "(uint256,address,uint256,uint256,uint256)"
ROUTER_PATH = "(address[],address[],uint256[],bytes[],uint256)"
PMM_REQUEST = "(uint256,address,address,address,uint256,uint256,uint256,uint256,bool,bytes)"

def sel(sig: str) -> bytes:
    """4-byte function selector."""
    return keccak(text=sig)[:4]

# =============================================================================
# Function specs
# =============================================================================

@dataclass(frozen=True)
class Param:
    name: str
    abi_type: str


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    selector: bytes
    params: Tuple[Param, ...]
    # Fields whose packed word carries an order id above the 160-bit address:
    # "srcToken", "receiver" or "baseRequest.fromToken".
    order_id_fields: FrozenSet[str] = frozenset()

    @property
    def selector_hex(self) -> str:
        return "0x" + self.selector.hex()

    @property
    def abi_types(self) -> List[str]:
        return [p.abi_type for p in self.params]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.abi_types)})"

    @property
    def param_names(self) -> List[str]:
        return [p.name for p in self.params]

    def has_param(self, name: str) -> bool:
        return name in self.param_names

    def param(self, name: str) -> Param:
        for p in self.params:
            if p.name == name:
                return p
        raise KeyError(name)

    def carries_order_id(self, field: str) -> bool:
        return field in self.order_id_fields

    @property
    def routing_kind(self) -> str:
        """Which routing topology this function's arguments use."""
        if self.has_param("batches"):
            return "batches"
        if self.has_param("paths"):
            return "dag"
        if self.has_param("pools"):
            return "linear"
        return "none"


# selector -> spec, and name -> spec
FUNCTIONS: Dict[bytes, FunctionSpec] = {}
FUNCTIONS_BY_NAME: Dict[str, FunctionSpec] = {}

def add_function(name: str, selector: str, params: List[Tuple[str, str]],
                 order_id_fields: Tuple[str, ...] = ()) -> FunctionSpec:
    spec = FunctionSpec(
        name=name,
        selector=bytes.fromhex(s0x(selector)),
        params=tuple(Param(n, t) for n, t in params),
        order_id_fields=frozenset(order_id_fields),
    )
    if spec.selector in FUNCTIONS:
        raise ValueError(f"duplicate selector {selector} for {name}")
    FUNCTIONS[spec.selector] = spec
    FUNCTIONS_BY_NAME[name] = spec
    return spec

add_function("smartSwapByOrderId", "0xb80c2f09", [
    ("orderId", "uint256"),
    ("baseRequest", BASE_REQUEST),
    ("batchesAmount", "uint256[]"),
    ("batches", ROUTER_PATH + "[][]"),
    ("extraData", PMM_REQUEST + "[]"),
])
add_function("unxswapByOrderId", "0x9871efa4", [
    ("srcToken", "uint256"),
    ("amount", "uint256"),
    ("minReturn", "uint256"),
    ("pools", "bytes32[]"),
], order_id_fields=("srcToken",))
add_function("smartSwapByInvest", "0xe99bfa95", [
    ("baseRequest", BASE_REQUEST),
    ("batchesAmount", "uint256[]"),
    ("batches", ROUTER_PATH + "[][]"),
    ("extraData", PMM_REQUEST + "[]"),
    ("to", "address"),
])
add_function("smartSwapByInvestWithRefund", "0x591b3d08", [
    ("baseRequest", BASE_REQUEST),
    ("batchesAmount", "uint256[]"),
    ("batches", ROUTER_PATH + "[][]"),
    ("extraData", PMM_REQUEST + "[]"),
    ("to", "address"),
    ("refundTo", "address"),
])
add_function("uniswapV3SwapTo", "0x0d5f0e3b", [
    ("receiver", "uint256"),
    ("amount", "uint256"),
    ("minReturn", "uint256"),
    ("pools", "uint256[]"),
], order_id_fields=("receiver",))
add_function("smartSwapTo", "0x03b87e5f", [
    ("orderId", "uint256"),
    ("receiver", "address"),
    ("baseRequest", BASE_REQUEST),
    ("batchesAmount", "uint256[]"),
    ("batches", ROUTER_PATH + "[][]"),
    ("extraData", PMM_REQUEST + "[]"),
])
add_function("unxswapTo", "0x08298b5a", [
    ("srcToken", "uint256"),
    ("amount", "uint256"),
    ("minReturn", "uint256"),
    ("receiver", "address"),
    ("pools", "bytes32[]"),
], order_id_fields=("srcToken",))
add_function("uniswapV3SwapToWithBaseRequest", "0x44014e98", [
    ("orderId", "uint256"),
    ("receiver", "address"),
    ("baseRequest", BASE_REQUEST),
    ("pools", "uint256[]"),
])
add_function("unxswapToWithBaseRequest", "0xb8815477", [
    ("orderId", "uint256"),
    ("receiver", "address"),
    ("baseRequest", BASE_REQUEST),
    ("pools", "bytes32[]"),
], order_id_fields=("baseRequest.fromToken",))
add_function("swapWrap", "0x01617fab", [
    ("orderId", "uint256"),
    ("rawdata", "uint256"),
])
add_function("swapWrapToWithBaseRequest", "0x98d2ac62", [
    ("orderId", "uint256"),
    ("receiver", "address"),
    ("baseRequest", BASE_REQUEST),
])
add_function("dagSwapByOrderId", "0xf2c42696", [
    ("orderId", "uint256"),
    ("baseRequest", BASE_REQUEST),
    ("paths", ROUTER_PATH + "[]"),
])
add_function("dagSwapTo", "0x0c307f76", [
    ("orderId", "uint256"),
    ("receiver", "address"),
    ("baseRequest", BASE_REQUEST),
    ("paths", ROUTER_PATH + "[]"),
])

# =============================================================================
# Lookup
# =============================================================================

def lookup(selector: Union[bytes, str]) -> FunctionSpec:
    if isinstance(selector, str):
        try:
            key = bytes.fromhex(s0x(selector)[:8])
        except ValueError:
            raise UnknownSelector(selector) from None
    else:
        key = bytes(selector[:4])
    spec = FUNCTIONS.get(key)
    if spec is None:
        raise UnknownSelector("0x" + key.hex())
    return spec

def lookup_name(name: str) -> FunctionSpec:
    spec = FUNCTIONS_BY_NAME.get(name)
    if spec is None:
        raise UnknownSelector(name)
    return spec
