"""HTTP helpers for talking to a running bridge from the CLI."""

from __future__ import annotations

import json
from typing import Any
from urllib import error, request


def local_base_url(host: str, port: int) -> str:
    """Build a base URL reachable from this machine."""
    if host in {"0.0.0.0", "::"}:
        host = "127.0.0.1"
    return f"http://{host}:{port}"


def http_json(method: str, url: str, timeout: float = 5.0) -> dict[str, Any]:
    """Send an HTTP request and parse the JSON response."""
    req = request.Request(url=url, method=method.upper(), headers={"Accept": "application/json"})
    try:
        with request.urlopen(req, timeout=timeout) as response:
            text = response.read().decode("utf-8", errors="replace")
            return json.loads(text) if text else {}
    except error.HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace")
        detail: Any = text
        try:
            detail = json.loads(text)
        except json.JSONDecodeError:
            pass
        raise RuntimeError(f"{exc.code} {exc.reason}: {detail}") from exc
    except error.URLError as exc:
        raise RuntimeError(f"Bridge unavailable: {exc.reason}") from exc
