"""JSON-RPC line protocol and request/response correlation."""

from .correlator import Correlator, PendingRequest
from .protocol import CorrelationResult, RawMessage, decode_response_line, encode_message_line, extract_message_id

__all__ = [
    "Correlator",
    "CorrelationResult",
    "PendingRequest",
    "RawMessage",
    "decode_response_line",
    "encode_message_line",
    "extract_message_id",
]
