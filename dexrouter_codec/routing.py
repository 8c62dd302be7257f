#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Routing topologies carried by the router's core arguments.

  Linear   pools[]            one packed word per pool, executed in order
  DAG      paths[]            RouterPath per source node, hops carry
                              (inputIndex, outputIndex, weight)
  Batch    batches[][]        RouterPath groups; nodes are implicit

RouterPath on the wire:
  (address[] mixAdapters, address[] assetTo, uint256[] rawData,
   bytes[] extraData, uint256 fromToken)
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, List, Sequence, Tuple, Union

from .bitfields import (
    ADDRESS,
    FULL_WEIGHT,
    INPUT_INDEX,
    OUTPUT_INDEX,
    REVERSE,
    UNX_NUMERATOR,
    UNX_REVERSE,
    UNX_TOKEN0_TAX,
    UNX_TOKEN1_TAX,
    UNX_WETH,
    V3_ONE_FOR_ZERO,
    V3_WETH_UNWRAP,
    WEIGHT,
    WRAP_AMOUNT,
    WRAP_REVERSED,
    check_word,
)
from .errors import MalformedCalldata, MissingRequiredField, NumericRangeError
from .token_refs import TokenRef, pack_token_ref, token_ref_from_value, unpack_token_ref
from .utils import int_to_address, pack_address, parse_address, parse_bool, parse_bytes, parse_uint, to_hex

logger = logging.getLogger(__name__)

# =============================================================================
# Hop raw data (DAG and batch)
# =============================================================================

@dataclass(frozen=True)
class RawData:
    pool: str
    reverse: bool = False
    weight: int = FULL_WEIGHT
    input_index: int = 0
    output_index: int = 0

    def pack(self) -> int:
        return (
            REVERSE.put(self.reverse)
            | INPUT_INDEX.put(self.input_index)
            | OUTPUT_INDEX.put(self.output_index)
            | WEIGHT.put(self.weight)
            | ADDRESS.put(pack_address(self.pool, "poolAddress"))
        )

    @classmethod
    def unpack(cls, word: int) -> "RawData":
        return cls(
            pool=int_to_address(ADDRESS.get(word)),
            reverse=REVERSE.is_set(word),
            weight=WEIGHT.get(word),
            input_index=INPUT_INDEX.get(word),
            output_index=OUTPUT_INDEX.get(word),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolAddress": self.pool,
            "reverse": self.reverse,
            "weight": str(self.weight),
            "inputIndex": self.input_index,
            "outputIndex": self.output_index,
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "RawData":
        if isinstance(value, dict):
            return cls(
                pool=parse_address(value.get("poolAddress"), f"{field}.poolAddress"),
                reverse=parse_bool(value.get("reverse"), f"{field}.reverse"),
                weight=parse_uint(value.get("weight", FULL_WEIGHT), f"{field}.weight", WEIGHT.width),
                input_index=parse_uint(value.get("inputIndex", 0), f"{field}.inputIndex", INPUT_INDEX.width),
                output_index=parse_uint(value.get("outputIndex", 0), f"{field}.outputIndex", OUTPUT_INDEX.width),
            )
        return cls.unpack(check_word(parse_uint(value, field), field))


@dataclass(frozen=True)
class RoutingHop:
    adapter: str
    asset_to: str
    raw_data: RawData
    extra_data: bytes = b""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adapter": self.adapter,
            "assetTo": self.asset_to,
            "rawData": self.raw_data.to_dict(),
            "extraData": to_hex(self.extra_data),
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "RoutingHop":
        if not isinstance(value, dict):
            raise MissingRequiredField(field)
        if value.get("rawData") is None:
            raise MissingRequiredField("rawData", field)
        return cls(
            adapter=parse_address(value.get("adapter"), f"{field}.adapter"),
            asset_to=parse_address(value.get("assetTo"), f"{field}.assetTo"),
            raw_data=RawData.from_value(value["rawData"], f"{field}.rawData"),
            extra_data=parse_bytes(value.get("extraData", "0x"), f"{field}.extraData"),
        )


@dataclass(frozen=True)
class RouterPath:
    hops: Tuple[RoutingHop, ...]
    from_token: TokenRef

    def to_abi(self) -> tuple:
        return (
            [h.adapter for h in self.hops],
            [h.asset_to for h in self.hops],
            [h.raw_data.pack() for h in self.hops],
            [h.extra_data for h in self.hops],
            pack_token_ref(self.from_token, order_tagged=False),
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "RouterPath":
        adapters, asset_to, raw_data, extra_data, from_token = value
        n = len(adapters)
        if not (len(asset_to) == len(raw_data) == len(extra_data) == n):
            raise MalformedCalldata(
                f"RouterPath arrays differ in length: adapters={n} assetTo={len(asset_to)} "
                f"rawData={len(raw_data)} extraData={len(extra_data)}"
            )
        hops = tuple(
            RoutingHop(adapters[i], asset_to[i], RawData.unpack(raw_data[i]), bytes(extra_data[i]))
            for i in range(n)
        )
        return cls(hops, unpack_token_ref(from_token, order_tagged=False))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromToken": self.from_token.to_dict(),
            "hops": [h.to_dict() for h in self.hops],
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "RouterPath":
        if not isinstance(value, dict):
            raise MissingRequiredField(field)
        hops = value.get("hops")
        if hops is None:
            raise MissingRequiredField("hops", field)
        return cls(
            hops=tuple(RoutingHop.from_value(h, f"{field}.hops[{i}]") for i, h in enumerate(hops)),
            from_token=token_ref_from_value(value.get("fromToken"), f"{field}.fromToken"),
        )

# =============================================================================
# Linear pool words
# =============================================================================

# bits of each pool word family that map to a field; the rest are dropped on unpack
UNX_KNOWN_BITS = (
    ADDRESS.mask | UNX_REVERSE.mask | UNX_WETH.mask | UNX_TOKEN1_TAX.mask | UNX_TOKEN0_TAX.mask | UNX_NUMERATOR.mask
)
V3_KNOWN_BITS = ADDRESS.mask | V3_ONE_FOR_ZERO.mask | V3_WETH_UNWRAP.mask


def _log_dropped_bits(word: int, known: int, family: str) -> None:
    extra = word & ~known
    if extra:
        logger.debug("%s pool word 0x%064x: dropping undocumented bits 0x%x", family, word, extra)


@dataclass(frozen=True)
class UnxswapPool:
    pool: str
    reverse: bool = False
    weth: bool = False
    token0_tax: bool = False
    token1_tax: bool = False
    numerator: int = 0

    def pack(self) -> int:
        return (
            UNX_REVERSE.put(self.reverse)
            | UNX_WETH.put(self.weth)
            | UNX_TOKEN1_TAX.put(self.token1_tax)
            | UNX_TOKEN0_TAX.put(self.token0_tax)
            | UNX_NUMERATOR.put(self.numerator)
            | ADDRESS.put(pack_address(self.pool, "poolAddress"))
        )

    def to_abi(self) -> bytes:
        return self.pack().to_bytes(32, "big")

    @classmethod
    def unpack(cls, word: int) -> "UnxswapPool":
        _log_dropped_bits(word, UNX_KNOWN_BITS, "unxswap")
        return cls(
            pool=int_to_address(ADDRESS.get(word)),
            reverse=UNX_REVERSE.is_set(word),
            weth=UNX_WETH.is_set(word),
            token0_tax=UNX_TOKEN0_TAX.is_set(word),
            token1_tax=UNX_TOKEN1_TAX.is_set(word),
            numerator=UNX_NUMERATOR.get(word),
        )

    @classmethod
    def from_abi(cls, value: bytes) -> "UnxswapPool":
        return cls.unpack(int.from_bytes(value, "big"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolAddress": self.pool,
            "reverse": self.reverse,
            "weth": self.weth,
            "isToken0Tax": self.token0_tax,
            "isToken1Tax": self.token1_tax,
            "numerator": str(self.numerator),
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "UnxswapPool":
        if isinstance(value, dict):
            return cls(
                pool=parse_address(value.get("poolAddress"), f"{field}.poolAddress"),
                reverse=parse_bool(value.get("reverse"), f"{field}.reverse"),
                weth=parse_bool(value.get("weth"), f"{field}.weth"),
                token0_tax=parse_bool(value.get("isToken0Tax"), f"{field}.isToken0Tax"),
                token1_tax=parse_bool(value.get("isToken1Tax"), f"{field}.isToken1Tax"),
                numerator=parse_uint(value.get("numerator", 0), f"{field}.numerator", UNX_NUMERATOR.width),
            )
        return cls.unpack(check_word(parse_uint(value, field), field))


@dataclass(frozen=True)
class UniswapV3Pool:
    pool: str
    one_for_zero: bool = False
    weth_unwrap: bool = False

    def pack(self) -> int:
        return (
            V3_ONE_FOR_ZERO.put(self.one_for_zero)
            | V3_WETH_UNWRAP.put(self.weth_unwrap)
            | ADDRESS.put(pack_address(self.pool, "poolAddress"))
        )

    def to_abi(self) -> int:
        return self.pack()

    @classmethod
    def unpack(cls, word: int) -> "UniswapV3Pool":
        _log_dropped_bits(word, V3_KNOWN_BITS, "uniswapV3")
        return cls(
            pool=int_to_address(ADDRESS.get(word)),
            one_for_zero=V3_ONE_FOR_ZERO.is_set(word),
            weth_unwrap=V3_WETH_UNWRAP.is_set(word),
        )

    @classmethod
    def from_abi(cls, value: int) -> "UniswapV3Pool":
        return cls.unpack(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolAddress": self.pool,
            "isOneForZero": self.one_for_zero,
            "isWethUnwrap": self.weth_unwrap,
        }

    @classmethod
    def from_value(cls, value: Any, field: str) -> "UniswapV3Pool":
        if isinstance(value, dict):
            return cls(
                pool=parse_address(value.get("poolAddress"), f"{field}.poolAddress"),
                one_for_zero=parse_bool(value.get("isOneForZero"), f"{field}.isOneForZero"),
                weth_unwrap=parse_bool(value.get("isWethUnwrap"), f"{field}.isWethUnwrap"),
            )
        return cls.unpack(check_word(parse_uint(value, field), field))


LinearPool = Union[UnxswapPool, UniswapV3Pool]

# abi type of the pools argument -> word family
POOL_TYPES = {
    "bytes32[]": UnxswapPool,
    "uint256[]": UniswapV3Pool,
}

# =============================================================================
# swapWrap directive
# =============================================================================

@dataclass(frozen=True)
class WrapDirective:
    reversed: bool
    amount: int

    def pack(self) -> int:
        return WRAP_REVERSED.put(self.reversed) | WRAP_AMOUNT.put(self.amount)

    @classmethod
    def unpack(cls, word: int) -> "WrapDirective":
        return cls(WRAP_REVERSED.is_set(word), WRAP_AMOUNT.get(word))

    def to_dict(self) -> Dict[str, Any]:
        return {"reversed": self.reversed, "amount": str(self.amount)}

    @classmethod
    def from_value(cls, value: Any, field: str) -> "WrapDirective":
        if isinstance(value, dict):
            return cls(
                reversed=parse_bool(value.get("reversed"), f"{field}.reversed"),
                amount=parse_uint(value.get("amount"), f"{field}.amount", WRAP_AMOUNT.width),
            )
        return cls.unpack(check_word(parse_uint(value, field), field))

# =============================================================================
# Routing variants
# =============================================================================

@dataclass(frozen=True)
class LinearPools:
    pools: Tuple[LinearPool, ...]

    kind = "linear"


@dataclass(frozen=True)
class DagPaths:
    paths: Tuple[RouterPath, ...]

    kind = "dag"


@dataclass(frozen=True)
class Batches:
    batches: Tuple[Tuple[RouterPath, ...], ...]

    kind = "batches"


Routing = Union[LinearPools, DagPaths, Batches, None]


def unpack_linear(words: Sequence[Any], abi_type: str) -> LinearPools:
    cls = POOL_TYPES[abi_type]
    return LinearPools(tuple(cls.from_abi(w) for w in words))

def pack_linear(routing: LinearPools, abi_type: str) -> list:
    cls = POOL_TYPES[abi_type]
    out = []
    for i, pool in enumerate(routing.pools):
        if not isinstance(pool, cls):
            raise NumericRangeError(f"pools[{i}]: expected {cls.__name__}, got {type(pool).__name__}")
        out.append(pool.to_abi())
    return out

def linear_from_value(value: Any, abi_type: str, field: str = "pools") -> LinearPools:
    if value is None:
        raise MissingRequiredField(field)
    cls = POOL_TYPES[abi_type]
    return LinearPools(tuple(cls.from_value(p, f"{field}[{i}]") for i, p in enumerate(value)))

def unpack_dag(raw_paths: Sequence[Any]) -> DagPaths:
    return DagPaths(tuple(RouterPath.from_abi(p) for p in raw_paths))

def pack_dag(routing: DagPaths) -> list:
    return [p.to_abi() for p in routing.paths]

def dag_from_value(value: Any, field: str = "paths") -> DagPaths:
    if value is None:
        raise MissingRequiredField(field)
    return DagPaths(tuple(RouterPath.from_value(p, f"{field}[{i}]") for i, p in enumerate(value)))

def unpack_batches(raw_batches: Sequence[Sequence[Any]]) -> Batches:
    return Batches(tuple(tuple(RouterPath.from_abi(p) for p in batch) for batch in raw_batches))

def pack_batches(routing: Batches) -> list:
    return [[p.to_abi() for p in batch] for batch in routing.batches]

def batches_from_value(value: Any, field: str = "batches") -> Batches:
    if value is None:
        raise MissingRequiredField(field)
    return Batches(tuple(
        tuple(RouterPath.from_value(p, f"{field}[{i}][{j}]") for j, p in enumerate(batch))
        for i, batch in enumerate(value)
    ))

def routing_to_value(routing: Routing) -> Any:
    if isinstance(routing, LinearPools):
        return [p.to_dict() for p in routing.pools]
    if isinstance(routing, DagPaths):
        return [p.to_dict() for p in routing.paths]
    if isinstance(routing, Batches):
        return [[p.to_dict() for p in batch] for batch in routing.batches]
    return None

# =============================================================================
# Analysis helpers
# =============================================================================

def dag_edge_shares(paths: Union[DagPaths, Sequence[RouterPath]]) -> List[List[Fraction]]:
    """
    Share of each hop within its (inputIndex, outputIndex) edge.

    Hops of one edge may sit in different paths; their weights are summed
    across the whole DAG. Result mirrors the paths/hops nesting.
    """
    if isinstance(paths, DagPaths):
        paths = paths.paths
    totals: Dict[Tuple[int, int], int] = {}
    for p in paths:
        for h in p.hops:
            edge = (h.raw_data.input_index, h.raw_data.output_index)
            totals[edge] = totals.get(edge, 0) + h.raw_data.weight
    out: List[List[Fraction]] = []
    for p in paths:
        row = []
        for h in p.hops:
            total = totals[(h.raw_data.input_index, h.raw_data.output_index)]
            row.append(Fraction(h.raw_data.weight, total) if total else Fraction(0))
        out.append(row)
    return out

def batch_token_nodes(base_request, batches: Union[Batches, Sequence[Sequence[RouterPath]]]) -> List[str]:
    """
    Implicit node list of a batch route: source token, every path's fromToken
    in walk order, destination token. Node k is the k-th distinct address.
    """
    if isinstance(batches, Batches):
        batches = batches.batches
    nodes: List[str] = []

    def visit(addr: str) -> None:
        if addr not in nodes:
            nodes.append(addr)

    visit(base_request.from_token.address)
    for batch in batches:
        for p in batch:
            visit(p.from_token.address)
    visit(base_request.to_token)
    return nodes
