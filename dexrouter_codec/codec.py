#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Calldata <-> DecodedCall.

decode: selector -> core ABI arguments -> commission scan -> trim scan
encode: selector + core ABI arguments + trim blocks + commission blocks

The two extension scans run over the whole calldata independently of each
other and of the core arguments. On encode, trim is always appended before
commission.
"""

import json
import logging
from typing import Any, Dict, Tuple, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError

from .commission import decode_commission, encode_commission
from .errors import EncodeError, MalformedCalldata, MissingRequiredField, NumericRangeError
from .models import BaseRequest, DecodedCall, PmmRequest, routing_for
from .registry import FunctionSpec, lookup
from .routing import (
    WrapDirective,
    pack_batches,
    pack_dag,
    pack_linear,
    unpack_batches,
    unpack_dag,
    unpack_linear,
)
from .token_refs import pack_order_id_into_address, unpack_order_id
from .trim import decode_trim, encode_trim
from .utils import to_bytes, to_hex

logger = logging.getLogger(__name__)

# =============================================================================
# Decode
# =============================================================================

def _call_from_args(spec: FunctionSpec, args: Dict[str, Any]) -> Dict[str, Any]:
    kw: Dict[str, Any] = {"function": spec}
    if "orderId" in args:
        kw["order_id"] = args["orderId"]

    if "srcToken" in args:
        ref = unpack_order_id(args["srcToken"])
        kw["source_token"] = ref.address
        kw["order_id"] = ref.order_id
    if "receiver" in args:
        if spec.carries_order_id("receiver"):
            ref = unpack_order_id(args["receiver"])
            kw["receiver"] = ref.address
            kw["order_id"] = ref.order_id
        else:
            kw["receiver"] = args["receiver"]

    if "baseRequest" in args:
        kw["base_request"] = BaseRequest.from_abi(
            args["baseRequest"], spec.carries_order_id("baseRequest.fromToken"))
    if "amount" in args:
        kw["amount"] = args["amount"]
    if "minReturn" in args:
        kw["min_return"] = args["minReturn"]
    if "batchesAmount" in args:
        kw["batches_amount"] = tuple(args["batchesAmount"])
    if "extraData" in args:
        kw["pmm_requests"] = tuple(PmmRequest.from_abi(p) for p in args["extraData"])
    if "rawdata" in args:
        kw["wrap"] = WrapDirective.unpack(args["rawdata"])
    if "to" in args:
        kw["to"] = args["to"]
    if "refundTo" in args:
        kw["refund_to"] = args["refundTo"]

    kind = spec.routing_kind
    if kind == "linear":
        kw["routing"] = unpack_linear(args["pools"], spec.param("pools").abi_type)
    elif kind == "dag":
        kw["routing"] = unpack_dag(args["paths"])
    elif kind == "batches":
        kw["routing"] = unpack_batches(args["batches"])
    return kw


def decode(calldata: Union[str, bytes]) -> DecodedCall:
    """
    Decode router calldata (hex string with or without 0x, or raw bytes).

    Raises UnknownSelector or MalformedCalldata. Commission and trim blocks
    that fail validation are reported as absent.
    """
    buf = to_bytes(calldata)
    if len(buf) < 4:
        raise MalformedCalldata(f"calldata too short for a selector: {len(buf)} bytes")
    spec = lookup(buf[:4])
    try:
        values = abi_decode(spec.abi_types, buf[4:])
    except DecodingError as e:
        raise MalformedCalldata(f"{spec.name}: cannot decode arguments: {e}") from e

    kw = _call_from_args(spec, dict(zip(spec.param_names, values)))
    kw["commission"] = decode_commission(buf)
    kw["trim"] = decode_trim(buf)
    logger.debug("decoded %s: commission=%s trim=%s", spec.name,
                 kw["commission"].referrer_count, kw["trim"].has_trim)
    return DecodedCall(**kw)

# =============================================================================
# Encode
# =============================================================================

def _required(call: DecodedCall, attr: str, name: str) -> Any:
    value = getattr(call, attr)
    if value is None:
        raise MissingRequiredField(name, call.function.name)
    return value


def _args_from_call(call: DecodedCall) -> list:
    spec = call.function
    if not routing_for(spec, call.routing):
        raise MissingRequiredField(spec.routing_kind if call.routing is None else "routing", spec.name)

    out = []
    for p in spec.params:
        name = p.name
        if name == "orderId":
            out.append(call.order_id)
        elif name == "srcToken":
            out.append(pack_order_id_into_address(_required(call, "source_token", name), call.order_id))
        elif name == "receiver":
            receiver = _required(call, "receiver", name)
            if spec.carries_order_id("receiver"):
                out.append(pack_order_id_into_address(receiver, call.order_id))
            else:
                out.append(receiver)
        elif name == "amount":
            out.append(_required(call, "amount", name))
        elif name == "minReturn":
            out.append(_required(call, "min_return", name))
        elif name == "baseRequest":
            req = _required(call, "base_request", name)
            out.append(req.to_abi(spec.carries_order_id("baseRequest.fromToken")))
        elif name == "batchesAmount":
            out.append(list(call.batches_amount))
        elif name == "batches":
            out.append(pack_batches(call.routing))
        elif name == "paths":
            out.append(pack_dag(call.routing))
        elif name == "pools":
            out.append(pack_linear(call.routing, p.abi_type))
        elif name == "extraData":
            out.append([r.to_abi() for r in call.pmm_requests])
        elif name == "rawdata":
            out.append(_required(call, "wrap", name).pack())
        elif name == "to":
            out.append(_required(call, "to", name))
        elif name == "refundTo":
            out.append(_required(call, "refund_to", name))
        else:
            raise MissingRequiredField(name, spec.name)
    return out


def encode_parts(call: DecodedCall) -> Tuple[bytes, bytes, bytes, bytes]:
    """(selector, core arguments, trim blocks, commission blocks)"""
    spec = call.function
    args = _args_from_call(call)
    try:
        core = abi_encode(spec.abi_types, args)
    except EncodingError as e:
        raise NumericRangeError(f"{spec.name}: cannot encode arguments: {e}") from e
    trim = encode_trim(call.trim)
    commission = encode_commission(call.commission)
    logger.debug("encoded %s: core=%d trim=%d commission=%d bytes",
                 spec.name, len(core), len(trim), len(commission))
    return spec.selector, core, trim, commission


def encode(call: DecodedCall) -> str:
    """0x-prefixed calldata for `call`. Raises EncodeError before emitting anything."""
    return to_hex(b"".join(encode_parts(call)))

# =============================================================================
# JSON
# =============================================================================

def decode_json(calldata: Union[str, bytes]) -> Dict[str, Any]:
    return decode(calldata).to_dict()


def encode_json(payload: Union[str, Dict[str, Any]]) -> str:
    """Encode a call given in its JSON form (a dict or a JSON string)."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise EncodeError(f"invalid JSON: {e}") from e
    return encode(DecodedCall.from_dict(payload))
