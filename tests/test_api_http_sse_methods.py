import json

import pytest

from mcpbridge.api.http.sse_methods import (
    SSE_HEADERS,
    build_connection_event,
    build_ping_event,
    build_sse_data,
    build_sse_streaming_response,
    sse_event_stream,
)


def _decode(frame: str) -> dict:
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


def test_build_sse_data():
    assert build_sse_data({"a": 1}) == 'data: {"a": 1}\n\n'


def test_connection_event_fields():
    event = build_connection_event(server="custom-mcp-http", ready=False)
    assert event["type"] == "connection"
    assert event["status"] == "connected"
    assert event["server"] == "custom-mcp-http"
    assert event["mcp_ready"] is False
    assert event["timestamp"].endswith("Z")


def test_ping_event_has_epoch_millis():
    event = build_ping_event(ready=True)
    assert event["type"] == "ping"
    assert isinstance(event["timestamp"], int)
    assert event["timestamp"] > 1_600_000_000_000
    assert event["mcp_ready"] is True


@pytest.mark.asyncio
async def test_stream_emits_connection_then_pings_until_disconnect():
    ready = {"value": False}
    checks = {"count": 0}

    async def is_disconnected():
        checks["count"] += 1
        return checks["count"] > 2

    stream = sse_event_stream(
        server="srv",
        is_ready=lambda: ready["value"],
        is_disconnected=is_disconnected,
        keepalive_interval=0.01,
    )
    frames = []
    async for frame in stream:
        frames.append(_decode(frame))
        ready["value"] = True

    assert [f["type"] for f in frames] == ["connection", "ping", "ping"]
    assert frames[0]["mcp_ready"] is False
    assert frames[1]["mcp_ready"] is True


def test_streaming_response_headers():
    async def never():
        return False

    response = build_sse_streaming_response(
        server="srv", is_ready=lambda: True, is_disconnected=never, keepalive_interval=30.0
    )
    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["access-control-allow-origin"] == "*"
    assert "Connection" in SSE_HEADERS
