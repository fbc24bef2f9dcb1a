"""Helpers for the JSON-RPC message submission endpoints."""

from __future__ import annotations

import json

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from mcpbridge.child.manager import ChildProcessManager
from mcpbridge.rpc.correlator import Correlator
from mcpbridge.rpc.protocol import JsonRpcPayload, RawMessage, single_line
from mcpbridge.utils.exceptions import ChildUnavailableError, PayloadTooLargeError, ValidationError


def parse_message_body(body: bytes, *, content_type: str = "") -> JsonRpcPayload:
    """Turn a request body into a JSON-RPC payload: parsed JSON, else one line of raw text."""
    if not body.strip():
        raise ValidationError("Empty request body", field="body")
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"Request body is not valid UTF-8: {e}", field="body") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        if "json" in content_type.lower():
            raise ValidationError(f"Invalid JSON body: {e.msg}", field="body") from e
    return RawMessage(single_line(text))


async def read_message_payload(request: Request, *, max_body_bytes: int) -> JsonRpcPayload:
    """Read and parse the request body, enforcing the size limit."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_body_bytes:
        raise PayloadTooLargeError(int(declared), max_body_bytes)
    body = await request.body()
    if len(body) > max_body_bytes:
        raise PayloadTooLargeError(len(body), max_body_bytes)
    return parse_message_body(body, content_type=request.headers.get("content-type", ""))


async def ensure_child_ready(manager: ChildProcessManager, *, restart_wait_seconds: float) -> None:
    """Pass if the child can take input now.

    Otherwise the child is (re)started and, after a bounded wait, the request
    is refused with ChildUnavailableError. It is never forwarded on this path.
    """
    if await manager.ensure_ready():
        return
    logger.info("Child not ready, answering 503 within {}s", restart_wait_seconds)
    await manager.wait_ready(restart_wait_seconds)
    raise ChildUnavailableError("Child process not ready", details={"child": manager.status().to_dict()})


async def forward_message_response(
    *,
    payload: JsonRpcPayload,
    manager: ChildProcessManager,
    correlator: Correlator,
    restart_wait_seconds: float,
) -> JSONResponse:
    """Forward one JSON-RPC payload to the child and return its reply."""
    await ensure_child_ready(manager, restart_wait_seconds=restart_wait_seconds)
    result = await correlator.send(payload)
    result.raise_for_error()
    return JSONResponse(content=result.response)
