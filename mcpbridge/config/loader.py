"""Configuration loading utilities."""

import os
import shlex
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from mcpbridge.config.schema import BridgeSettings
from mcpbridge.utils.exceptions import ConfigError

# field name -> (environment variable, human description)
REQUIRED_SETTINGS: dict[str, tuple[str, str]] = {
    "project_ref": ("PROJECT_REF", "Supabase project ref"),
    "supabase_access_token": ("SUPABASE_ACCESS_TOKEN", "Supabase access token"),
}

ACCESS_TOKEN_ENV = "SUPABASE_ACCESS_TOKEN"


def load_settings(**overrides: Any) -> BridgeSettings:
    """
    Load settings from the environment and validate required values.

    Args:
        overrides: Field values that take precedence over the environment.

    Returns:
        Validated settings.

    Raises:
        ConfigError: when a value cannot be parsed or a required one is missing.
    """
    try:
        settings = BridgeSettings(**overrides)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    validate_required(settings)
    return settings


def validate_required(settings: BridgeSettings) -> None:
    """Raise ConfigError naming every required variable that is empty."""
    missing = [
        env_name
        for field, (env_name, _desc) in REQUIRED_SETTINGS.items()
        if not str(getattr(settings, field, "") or "").strip()
    ]
    if not missing:
        return
    lines = [
        f"Missing {env_name} ({desc})."
        for env_name, desc in REQUIRED_SETTINGS.values()
        if env_name in missing
    ]
    raise ConfigError(" ".join(lines), missing=missing)


def build_child_command(settings: BridgeSettings) -> list[str]:
    """Build the argv used to spawn the child JSON-RPC process."""
    child = settings.child
    if child.command_override.strip():
        return shlex.split(child.command_override)
    command = [child.command, "-y", child.package]
    if child.read_only:
        command.append("--read-only")
    command.append(f"--project-ref={settings.project_ref}")
    command.extend(child.extra_args)
    return command


def build_child_env(settings: BridgeSettings) -> dict[str, str]:
    """Inherited environment plus the access token and configured extras."""
    env = os.environ.copy()
    env.update(settings.child.env)
    if settings.supabase_access_token:
        env[ACCESS_TOKEN_ENV] = settings.supabase_access_token
    env.setdefault("NODE_NO_WARNINGS", "1")
    return env
