"""Types for child process lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ChildState(str, Enum):
    """Lifecycle of the child process.

    NOT_STARTED -> STARTING -> READY -> (exit) -> NOT_STARTED. An exit while
    STARTING also returns to NOT_STARTED.
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"


@dataclass(slots=True)
class ChildStatus:
    """Read-only snapshot of the managed child."""

    state: ChildState
    pid: int | None
    spawn_count: int
    last_exit_code: int | None = None
    last_error: str | None = None

    @property
    def running(self) -> bool:
        return self.state is not ChildState.NOT_STARTED

    @property
    def ready(self) -> bool:
        return self.state is ChildState.READY

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "running": self.running,
            "ready": self.ready,
            "pid": self.pid,
            "spawn_count": self.spawn_count,
            "last_exit_code": self.last_exit_code,
            "last_error": self.last_error,
        }
