"""Pytest hooks and fixtures."""

import sys
from pathlib import Path

import pytest

from mcpbridge.config.schema import BridgeSettings

FAKE_CHILD = Path(__file__).with_name("fake_child.py")


@pytest.fixture
def fake_child():
    """Factory for the argv of tests/fake_child.py in a given mode."""

    def command(mode: str = "echo") -> list[str]:
        return [sys.executable, "-u", str(FAKE_CHILD), mode]

    return command


@pytest.fixture
def settings(monkeypatch):
    """Settings isolated from the developer's environment."""
    for name in ("PROJECT_REF", "SUPABASE_ACCESS_TOKEN", "PORT", "HOST", "SERVER_NAME", "LOG_LEVEL", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    return BridgeSettings(
        project_ref="abcd1234",
        supabase_access_token="sbp_test_token",
        child={
            "ready_grace_seconds": 0.2,
            "restart_wait_seconds": 0.1,
            "response_timeout_seconds": 1.0,
        },
    )
