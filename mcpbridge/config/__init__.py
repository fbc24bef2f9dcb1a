"""Configuration module for mcpbridge."""

from mcpbridge.config.loader import build_child_command, build_child_env, load_settings, validate_required
from mcpbridge.config.schema import BridgeSettings, ChildConfig, SseConfig

__all__ = [
    "BridgeSettings",
    "ChildConfig",
    "SseConfig",
    "build_child_command",
    "build_child_env",
    "load_settings",
    "validate_required",
]
