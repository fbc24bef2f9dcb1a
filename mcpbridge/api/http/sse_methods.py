"""Helpers for the server-sent events notification stream."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from fastapi.responses import StreamingResponse
from loguru import logger

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control, Content-Type, Authorization, X-Requested-With",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Expose-Headers": "*",
    "X-Accel-Buffering": "no",
}


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_sse_data(payload: dict[str, Any]) -> str:
    """Build one SSE ``data:`` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def build_connection_event(*, server: str, ready: bool) -> dict[str, Any]:
    return {
        "type": "connection",
        "status": "connected",
        "server": server,
        "timestamp": iso_timestamp(),
        "mcp_ready": ready,
    }


def build_ping_event(*, ready: bool) -> dict[str, Any]:
    return {
        "type": "ping",
        "timestamp": int(time.time() * 1000),
        "mcp_ready": ready,
    }


async def sse_event_stream(
    *,
    server: str,
    is_ready: Callable[[], bool],
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_interval: float,
) -> AsyncIterator[str]:
    """Yield the connection event, then a ping per interval until the client leaves."""
    try:
        yield build_sse_data(build_connection_event(server=server, ready=is_ready()))
        while True:
            await asyncio.sleep(keepalive_interval)
            if await is_disconnected():
                break
            yield build_sse_data(build_ping_event(ready=is_ready()))
    finally:
        logger.info("SSE connection closed")


def build_sse_streaming_response(
    *,
    server: str,
    is_ready: Callable[[], bool],
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_interval: float,
) -> StreamingResponse:
    """Build the one-way notification stream response."""
    return StreamingResponse(
        sse_event_stream(
            server=server,
            is_ready=is_ready,
            is_disconnected=is_disconnected,
            keepalive_interval=keepalive_interval,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
