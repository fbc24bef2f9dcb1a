"""
Exception hierarchy and error handling utilities for mcpbridge.

Provides:
- Custom exception classes with error codes
- Error categorization (retryable, timeout, fatal, ...)
- Safe error message formatting (no access token leak)
- Mapping from exceptions to HTTP status codes
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    TOO_LARGE = "too_large"


class BridgeError(Exception):
    """Base exception for all mcpbridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigError(BridgeError):
    """Required configuration is missing or invalid. Fatal at startup."""

    def __init__(self, message: str, missing: list[str] | None = None):
        details = {"missing": missing} if missing else {}
        super().__init__(message, code="CONFIG_ERROR", category=ErrorCategory.FATAL, details=details)


class ValidationError(BridgeError):
    """Input validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", category=ErrorCategory.VALIDATION, details=details)


class PayloadTooLargeError(BridgeError):
    """Request body exceeds the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Request body of {size} bytes exceeds limit of {limit} bytes",
            code="PAYLOAD_TOO_LARGE",
            category=ErrorCategory.TOO_LARGE,
            details={"size": size, "limit": limit},
        )


class ChildUnavailableError(BridgeError):
    """The child process is not running or not ready to accept input."""

    def __init__(self, message: str = "Child process not ready", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="CHILD_UNAVAILABLE",
            category=ErrorCategory.RETRYABLE,
            details=details,
        )


class CorrelationTimeoutError(BridgeError):
    """No response line arrived from the child within the timeout window."""

    def __init__(self, timeout_seconds: float, request_id: Any = None):
        super().__init__(
            f"No response from child within {timeout_seconds:g} seconds",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"timeout_seconds": timeout_seconds, "request_id": request_id},
        )


class ChildResponseParseError(BridgeError):
    """The child emitted a line that is not valid JSON."""

    def __init__(self, raw_response: str, reason: str):
        super().__init__(
            f"Invalid child response: {reason}",
            code="INVALID_CHILD_RESPONSE",
            category=ErrorCategory.FATAL,
            details={"reason": reason},
        )
        self.raw_response = raw_response

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["raw_response"] = self.raw_response
        return payload


_SENSITIVE_PATTERNS = [
    re.compile(r"(access[_-]?token|api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sbp_[a-zA-Z0-9]{16,}"),
    re.compile(r"[a-zA-Z0-9]{40,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, BridgeError):
        return exc.code, exc.category, exc.category is ErrorCategory.RETRYABLE

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, (BrokenPipeError, ConnectionResetError)):
        return "CHILD_UNAVAILABLE", ErrorCategory.RETRYABLE, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, UnicodeDecodeError):
        return "INVALID_ENCODING", ErrorCategory.VALIDATION, False

    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND", ErrorCategory.NOT_FOUND, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


_CATEGORY_TO_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.TOO_LARGE: 413,
    ErrorCategory.RETRYABLE: 503,
    ErrorCategory.TIMEOUT: 504,
    ErrorCategory.FATAL: 500,
}


def classify_http_status(exc: Exception) -> int:
    """Map exception to appropriate HTTP status code."""
    _code, category, _ = classify_exception(exc)
    return _CATEGORY_TO_STATUS.get(category, 500)
