#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

from .bitfields import ORDER_ID
from .commission import CommissionInfo
from .errors import MissingRequiredField
from .registry import FunctionSpec, lookup, lookup_name
from .routing import (
    Batches,
    DagPaths,
    LinearPools,
    Routing,
    WrapDirective,
    batches_from_value,
    dag_from_value,
    linear_from_value,
    routing_to_value,
)
from .token_refs import TokenRef, pack_token_ref, token_ref_from_value, unpack_token_ref
from .trim import TrimInfo
from .utils import parse_address, parse_bool, parse_bytes, parse_uint, require, to_hex

# =============================================================================
# Request tuples
# =============================================================================

@dataclass(frozen=True)
class BaseRequest:
    from_token: TokenRef
    to_token: str
    from_token_amount: int
    min_return_amount: int
    deadline: int

    def to_abi(self, order_tagged: bool = False) -> tuple:
        return (
            pack_token_ref(self.from_token, order_tagged),
            self.to_token,
            self.from_token_amount,
            self.min_return_amount,
            self.deadline,
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any], order_tagged: bool = False) -> "BaseRequest":
        from_token, to_token, amount, min_return, deadline = value
        return cls(unpack_token_ref(from_token, order_tagged), to_token, amount, min_return, deadline)

    def to_dict(self, order_tagged: bool = False) -> Dict[str, Any]:
        return {
            "fromToken": self.from_token.to_dict(order_tagged),
            "toToken": self.to_token,
            "fromTokenAmount": str(self.from_token_amount),
            "minReturnAmount": str(self.min_return_amount),
            "deadLine": str(self.deadline),
        }

    @classmethod
    def from_value(cls, value: Any, order_tagged: bool = False) -> "BaseRequest":
        ctx = "baseRequest"
        return cls(
            from_token=token_ref_from_value(require(value, "fromToken", ctx), "baseRequest.fromToken", order_tagged),
            to_token=parse_address(require(value, "toToken", ctx), "baseRequest.toToken"),
            from_token_amount=parse_uint(require(value, "fromTokenAmount", ctx), "baseRequest.fromTokenAmount"),
            min_return_amount=parse_uint(require(value, "minReturnAmount", ctx), "baseRequest.minReturnAmount"),
            deadline=parse_uint(require(value, "deadLine", ctx), "baseRequest.deadLine"),
        )


@dataclass(frozen=True)
class PmmRequest:
    """One element of the smart-swap extraData argument."""
    from_token: int
    to_token: str
    receiver: str
    payer: str
    from_token_amount: int
    min_return_amount: int
    deadline: int
    order_id: int
    is_to_b: bool
    settler_data: bytes

    def to_abi(self) -> tuple:
        return (
            self.from_token, self.to_token, self.receiver, self.payer,
            self.from_token_amount, self.min_return_amount, self.deadline,
            self.order_id, self.is_to_b, self.settler_data,
        )

    @classmethod
    def from_abi(cls, value: Sequence[Any]) -> "PmmRequest":
        (from_token, to_token, receiver, payer, amount, min_return,
         deadline, order_id, is_to_b, settler_data) = value
        return cls(from_token, to_token, receiver, payer, amount, min_return,
                   deadline, order_id, bool(is_to_b), bytes(settler_data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromToken": str(self.from_token),
            "toToken": self.to_token,
            "receiver": self.receiver,
            "payer": self.payer,
            "fromTokenAmount": str(self.from_token_amount),
            "minReturnAmount": str(self.min_return_amount),
            "deadLine": str(self.deadline),
            "orderId": str(self.order_id),
            "isToB": self.is_to_b,
            "settlerData": to_hex(self.settler_data),
        }

    @classmethod
    def from_value(cls, value: Any, ctx: str) -> "PmmRequest":
        return cls(
            from_token=parse_uint(require(value, "fromToken", ctx), f"{ctx}.fromToken"),
            to_token=parse_address(require(value, "toToken", ctx), f"{ctx}.toToken"),
            receiver=parse_address(require(value, "receiver", ctx), f"{ctx}.receiver"),
            payer=parse_address(require(value, "payer", ctx), f"{ctx}.payer"),
            from_token_amount=parse_uint(require(value, "fromTokenAmount", ctx), f"{ctx}.fromTokenAmount"),
            min_return_amount=parse_uint(require(value, "minReturnAmount", ctx), f"{ctx}.minReturnAmount"),
            deadline=parse_uint(require(value, "deadLine", ctx), f"{ctx}.deadLine"),
            order_id=parse_uint(value.get("orderId", 0), f"{ctx}.orderId"),
            is_to_b=parse_bool(value.get("isToB"), f"{ctx}.isToB"),
            settler_data=parse_bytes(value.get("settlerData", "0x"), f"{ctx}.settlerData"),
        )

# =============================================================================
# DecodedCall
# =============================================================================

@dataclass(frozen=True)
class DecodedCall:
    """
    One router call. Which fields are populated follows function.params;
    the rest stay at their defaults.

    order_id is the orderId argument, or the order id lifted out of a packed
    srcToken / receiver word.
    """
    function: FunctionSpec
    order_id: int = 0
    base_request: Optional[BaseRequest] = None
    routing: Routing = None
    receiver: Optional[str] = None
    source_token: Optional[str] = None
    wrap: Optional[WrapDirective] = None
    amount: Optional[int] = None
    min_return: Optional[int] = None
    batches_amount: Tuple[int, ...] = ()
    pmm_requests: Tuple[PmmRequest, ...] = ()
    to: Optional[str] = None
    refund_to: Optional[str] = None
    commission: CommissionInfo = field(default_factory=CommissionInfo)
    trim: TrimInfo = field(default_factory=TrimInfo)

    @property
    def has_order_id(self) -> bool:
        spec = self.function
        return spec.has_param("orderId") or spec.carries_order_id("srcToken") or spec.carries_order_id("receiver")

    def to_dict(self) -> Dict[str, Any]:
        spec = self.function
        out: Dict[str, Any] = {"function": {"name": spec.name, "selector": spec.selector_hex}}
        if self.has_order_id:
            out["orderId"] = str(self.order_id)
        for name in spec.param_names:
            if name == "orderId":
                continue
            elif name == "srcToken":
                out["srcToken"] = self.source_token
            elif name == "receiver":
                out["receiver"] = self.receiver
            elif name == "amount":
                out["amount"] = str(self.amount)
            elif name == "minReturn":
                out["minReturn"] = str(self.min_return)
            elif name == "baseRequest":
                out["baseRequest"] = self.base_request.to_dict(spec.carries_order_id("baseRequest.fromToken"))
            elif name == "batchesAmount":
                out["batchesAmount"] = [str(a) for a in self.batches_amount]
            elif name in ("batches", "paths", "pools"):
                out[name] = routing_to_value(self.routing)
            elif name == "extraData":
                out["extraData"] = [p.to_dict() for p in self.pmm_requests]
            elif name == "rawdata":
                out["rawdata"] = self.wrap.to_dict()
            elif name == "to":
                out["to"] = self.to
            elif name == "refundTo":
                out["refundTo"] = self.refund_to
        out.update(self.commission.to_dict())
        out.update(self.trim.to_dict())
        return out

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DecodedCall":
        """
        Build a call from its JSON form. Raises EncodeError subclasses on
        missing or malformed fields.
        """
        if not isinstance(payload, dict):
            raise MissingRequiredField("function")
        spec = resolve_function(payload.get("function"))
        kw: Dict[str, Any] = {"function": spec}
        ctx = spec.name

        if spec.has_param("orderId"):
            kw["order_id"] = parse_uint(require(payload, "orderId", ctx), "orderId")
        for packed in ("srcToken", "receiver"):
            if not spec.carries_order_id(packed):
                continue
            ref = token_ref_from_value(require(payload, packed, ctx), packed, order_tagged=True)
            kw["source_token" if packed == "srcToken" else "receiver"] = ref.address
            if payload.get("orderId") is not None:
                kw["order_id"] = parse_uint(payload["orderId"], "orderId", ORDER_ID.width)
            else:
                kw["order_id"] = ref.order_id

        for name in spec.param_names:
            abi_type = spec.param(name).abi_type
            if name == "receiver" and not spec.carries_order_id("receiver"):
                kw["receiver"] = parse_address(require(payload, "receiver", ctx), "receiver")
            elif name == "amount":
                kw["amount"] = parse_uint(require(payload, "amount", ctx), "amount")
            elif name == "minReturn":
                kw["min_return"] = parse_uint(require(payload, "minReturn", ctx), "minReturn")
            elif name == "baseRequest":
                kw["base_request"] = BaseRequest.from_value(
                    require(payload, "baseRequest", ctx), spec.carries_order_id("baseRequest.fromToken"))
            elif name == "batchesAmount":
                kw["batches_amount"] = tuple(
                    parse_uint(a, f"batchesAmount[{i}]")
                    for i, a in enumerate(require(payload, "batchesAmount", ctx)))
            elif name == "batches":
                kw["routing"] = batches_from_value(payload.get("batches"))
            elif name == "paths":
                kw["routing"] = dag_from_value(payload.get("paths"))
            elif name == "pools":
                kw["routing"] = linear_from_value(payload.get("pools"), abi_type)
            elif name == "extraData":
                kw["pmm_requests"] = tuple(
                    PmmRequest.from_value(p, f"extraData[{i}]")
                    for i, p in enumerate(payload.get("extraData") or []))
            elif name == "rawdata":
                kw["wrap"] = WrapDirective.from_value(require(payload, "rawdata", ctx), "rawdata")
            elif name == "to":
                kw["to"] = parse_address(require(payload, "to", ctx), "to")
            elif name == "refundTo":
                kw["refund_to"] = parse_address(require(payload, "refundTo", ctx), "refundTo")

        kw["commission"] = CommissionInfo.from_dict(payload)
        kw["trim"] = TrimInfo.from_dict(payload)
        return cls(**kw)


def resolve_function(value: Any) -> FunctionSpec:
    """`function` as {"name", "selector"}, a bare name, or a bare selector."""
    if value is None:
        raise MissingRequiredField("function")
    if isinstance(value, dict):
        if value.get("name"):
            return lookup_name(value["name"])
        if value.get("selector"):
            return lookup(value["selector"])
        raise MissingRequiredField("function.name")
    if isinstance(value, str) and value[:2] in ("0x", "0X"):
        return lookup(value)
    return lookup_name(str(value))


def routing_for(spec: FunctionSpec, routing: Routing) -> bool:
    """Whether `routing` is the variant `spec` expects."""
    expected = {
        "linear": LinearPools,
        "dag": DagPaths,
        "batches": Batches,
    }.get(spec.routing_kind)
    if expected is None:
        return routing is None
    return isinstance(routing, expected)
