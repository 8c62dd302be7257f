from .codec import decode, decode_json, encode, encode_json
from .commission import CommissionBlock, CommissionInfo, CommissionMiddle, decode_commission, encode_commission
from .errors import (
    CodecError,
    DecodeError,
    EncodeError,
    ExtensionBlockError,
    InsufficientData,
    InvalidAddressFormat,
    InvalidFlag,
    MalformedCalldata,
    MismatchError,
    MissingRequiredField,
    NumericRangeError,
    ReferrerCountOutOfRange,
    UnknownSelector,
    UnsupportedFlag,
)
from .models import BaseRequest, DecodedCall, PmmRequest
from .registry import FUNCTIONS, FunctionSpec, lookup, lookup_name
from .routing import (
    Batches,
    DagPaths,
    LinearPools,
    RawData,
    RouterPath,
    RoutingHop,
    UniswapV3Pool,
    UnxswapPool,
    WrapDirective,
    batch_token_nodes,
    dag_edge_shares,
)
from .token_refs import TokenRef, pack_address_mode, pack_order_id_into_address, unpack_token_ref
from .trim import TrimInfo, decode_trim, encode_trim
from .validator import RoundTripReport, check_decode_encode, check_encode_decode

__version__ = "0.1.0"
