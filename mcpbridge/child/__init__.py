"""Child process lifecycle."""

from .manager import ChildProcessManager
from .types import ChildState, ChildStatus

__all__ = ["ChildProcessManager", "ChildState", "ChildStatus"]
