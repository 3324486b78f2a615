"""Byte-range streaming from cache, object store or local disk."""

from .range_proxy import (
    BackendStreamError,
    ObjectNotFound,
    ProxyResponse,
    RangeNotSatisfiable,
    RangeStreamProxy,
    StreamTarget,
)
from .ranges import ByteSpan, RangeParseError, parse_byte_range

__all__ = [
    "BackendStreamError",
    "ByteSpan",
    "ObjectNotFound",
    "ProxyResponse",
    "RangeNotSatisfiable",
    "RangeParseError",
    "RangeStreamProxy",
    "StreamTarget",
    "parse_byte_range",
]
