"""Utility functions for mcpbridge."""

from mcpbridge.utils.exceptions import (
    BridgeError,
    ChildResponseParseError,
    ChildUnavailableError,
    ConfigError,
    CorrelationTimeoutError,
    ErrorCategory,
    PayloadTooLargeError,
    ValidationError,
    classify_exception,
    classify_http_status,
    sanitize_error_message,
)

__all__ = [
    "BridgeError",
    "ChildResponseParseError",
    "ChildUnavailableError",
    "ConfigError",
    "CorrelationTimeoutError",
    "ErrorCategory",
    "PayloadTooLargeError",
    "ValidationError",
    "classify_exception",
    "classify_http_status",
    "sanitize_error_message",
]
