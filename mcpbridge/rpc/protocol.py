"""Line framing and result models for the child JSON-RPC stream."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from mcpbridge.utils.exceptions import BridgeError, ChildResponseParseError, ValidationError

_MISSING = object()


@dataclass(frozen=True, slots=True)
class RawMessage:
    """A request body that was not JSON; written to the child as-is."""

    text: str


# Any decoded JSON value, or raw text kept apart from JSON strings.
JsonRpcPayload = Union[dict[str, Any], list[Any], str, int, float, bool, None, RawMessage]


@dataclass(slots=True)
class CorrelationResult:
    """Outcome of one request/response exchange with the child."""

    ok: bool
    response: Any = None
    raw: str | None = None
    error: BridgeError | None = None
    elapsed_ms: float = 0.0

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def single_line(text: str) -> str:
    """Drop the trailing line terminator; reject terminators inside ``text``."""
    text = text.rstrip("\r\n")
    if "\n" in text or "\r" in text:
        raise ValidationError("Raw message body must be a single line", field="body")
    return text


def encode_message_line(payload: JsonRpcPayload) -> str:
    """Encode one JSON-RPC message as a single line ending in exactly one newline."""
    if isinstance(payload, RawMessage):
        text = single_line(payload.text)
    else:
        text = json.dumps(payload, ensure_ascii=False)
    return text + "\n"


def extract_message_id(payload: JsonRpcPayload) -> Any:
    """Return the JSON-RPC id of a message, or a sentinel when it has none."""
    if isinstance(payload, RawMessage):
        try:
            payload = json.loads(payload.text)
        except json.JSONDecodeError:
            return _MISSING
    if isinstance(payload, dict) and "id" in payload:
        return payload["id"]
    return _MISSING


def has_message_id(value: Any) -> bool:
    return value is not _MISSING


def decode_response_line(line: str) -> Any:
    """Parse one child output line; raise ChildResponseParseError on bad JSON.

    Only the line terminator is removed, so the error keeps the text verbatim.
    """
    text = line.rstrip("\r\n")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ChildResponseParseError(text, e.msg) from e


def is_stale_response(request_id: Any, response: Any) -> bool:
    """True when both sides carry ids and they differ.

    A null response id is never stale: children answer unparsable requests
    with ``"id": null``.
    """
    if not has_message_id(request_id):
        return False
    if not isinstance(response, dict) or response.get("id") is None:
        return False
    return response["id"] != request_id
