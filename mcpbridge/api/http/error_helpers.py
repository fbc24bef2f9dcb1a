"""Shared helpers for consistent HTTP error bodies."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from mcpbridge.utils.exceptions import BridgeError, classify_http_status

AVAILABLE_ENDPOINTS = ["/health", "/sse", "/message"]

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS, HEAD",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With, Accept",
    "Access-Control-Max-Age": "86400",
}


def not_found_content() -> dict[str, Any]:
    return {"error": "Not found", "available_endpoints": list(AVAILABLE_ENDPOINTS)}


def bridge_error_response(exc: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=classify_http_status(exc), content=exc.to_dict())


def internal_error_content(code: str) -> dict[str, Any]:
    return {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred", "code": code}
