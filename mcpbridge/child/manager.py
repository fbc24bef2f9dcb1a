"""Lifecycle manager for the line-delimited JSON-RPC child process."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable, Coroutine
from typing import Any

from loguru import logger

from mcpbridge.child.types import ChildState, ChildStatus
from mcpbridge.config.loader import build_child_command, build_child_env
from mcpbridge.config.schema import BridgeSettings
from mcpbridge.utils.exceptions import ChildUnavailableError

LineListener = Callable[[str], None]


class ChildProcessManager:
    """Owns the single long-running child process.

    Other components reach the child only through ``start``, ``ensure_ready``,
    ``terminate``, ``write`` and the stdout line listeners.
    """

    def __init__(
        self,
        command: list[str],
        *,
        env: dict[str, str] | None = None,
        ready_grace_seconds: float = 2.0,
        stream_limit_bytes: int = 16 * 1024 * 1024,
    ):
        if not command:
            raise ValueError("child command must not be empty")
        self.command = list(command)
        self.env = env
        self.ready_grace_seconds = ready_grace_seconds
        self.stream_limit_bytes = stream_limit_bytes
        self.spawn_count = 0
        self.last_exit_code: int | None = None
        self.last_error: str | None = None
        self._proc: asyncio.subprocess.Process | None = None
        self._state = ChildState.NOT_STARTED
        self._ready_event = asyncio.Event()
        self._start_lock = asyncio.Lock()
        self._listeners: list[LineListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._signalled = False

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "ChildProcessManager":
        return cls(
            build_child_command(settings),
            env=build_child_env(settings),
            ready_grace_seconds=settings.child.ready_grace_seconds,
            stream_limit_bytes=settings.child.stream_limit_bytes,
        )

    @property
    def state(self) -> ChildState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is ChildState.READY

    @property
    def running(self) -> bool:
        return self._state is not ChildState.NOT_STARTED

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def status(self) -> ChildStatus:
        return ChildStatus(
            state=self._state,
            pid=self.pid,
            spawn_count=self.spawn_count,
            last_exit_code=self.last_exit_code,
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Spawn the child unless one is already running.

        Returns False when the spawn itself failed.
        """
        async with self._start_lock:
            if self._state is not ChildState.NOT_STARTED:
                return True
            logger.info("Starting child process: {}", " ".join(self.command))
            self.spawn_count += 1
            self._state = ChildState.STARTING
            self._ready_event.clear()
            self._signalled = False
            try:
                proc = await asyncio.create_subprocess_exec(
                    *self.command,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=self.env,
                    limit=self.stream_limit_bytes,
                )
            except OSError as e:
                logger.error("Child spawn error: {}", e)
                self.last_error = str(e)
                self._state = ChildState.NOT_STARTED
                return False
            self._proc = proc
            self.last_error = None
            logger.info("Child process spawned (pid={})", proc.pid)
            self._spawn_task(self._pump_stdout(proc))
            self._spawn_task(self._pump_stderr(proc))
            self._spawn_task(self._mark_ready_after_grace(proc))
            self._spawn_task(self._watch_exit(proc))
            return True

    async def ensure_ready(self) -> bool:
        """Return True if the child can take input; otherwise kick off a start.

        Never waits for readiness: the caller owns the request timeout.
        """
        proc = self._proc
        if self._state is ChildState.READY and proc is not None and proc.returncode is None:
            return True
        if self._state is ChildState.NOT_STARTED:
            logger.info("Child not ready, restarting")
            await self.start()
        return False

    async def wait_ready(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the child to become ready."""
        if self.ready:
            return True
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.ready

    def terminate(self, sig: int = signal.SIGTERM) -> bool:
        """Forward ``sig`` to the live child without waiting for it to exit."""
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return False
        logger.info("Forwarding {} to child (pid={})", signal.Signals(sig).name, proc.pid)
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            return False
        self._signalled = True
        return True

    async def close(self, wait_seconds: float = 2.0) -> None:
        """Stop the child for application shutdown, killing it after ``wait_seconds``."""
        proc = self._proc
        if proc is not None and proc.returncode is None:
            if not self._signalled:
                self.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=wait_seconds)
            except asyncio.TimeoutError:
                logger.warning("Child did not exit after {}s, killing (pid={})", wait_seconds, proc.pid)
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if proc is not None and self._proc is proc:
            self.last_exit_code = proc.returncode
            self._proc = None
            self._state = ChildState.NOT_STARTED
            self._ready_event.clear()

    # ------------------------------------------------------------------
    # Stream access (Correlator only)
    # ------------------------------------------------------------------

    async def write(self, data: bytes) -> None:
        proc = self._proc
        if proc is None or proc.stdin is None or proc.returncode is not None:
            raise ChildUnavailableError("Child process is not running")
        try:
            proc.stdin.write(data)
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ChildUnavailableError(f"Child stdin closed: {e}") from e

    def add_line_listener(self, listener: LineListener) -> None:
        self._listeners.append(listener)

    def remove_line_listener(self, listener: LineListener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn_task(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _mark_ready_after_grace(self, proc: asyncio.subprocess.Process) -> None:
        await asyncio.sleep(self.ready_grace_seconds)
        if self._proc is proc and proc.returncode is None and self._state is ChildState.STARTING:
            self._state = ChildState.READY
            self._ready_event.set()
            logger.info("Child process ready (pid={})", proc.pid)

    async def _watch_exit(self, proc: asyncio.subprocess.Process) -> None:
        code = await proc.wait()
        self.last_exit_code = code
        if self._proc is proc:
            self._proc = None
            self._state = ChildState.NOT_STARTED
            self._ready_event.clear()
        if code < 0:
            logger.warning("Child exited with signal {} (pid={})", -code, proc.pid)
        else:
            logger.warning("Child exited with code {} (pid={})", code, proc.pid)

    async def _pump_stdout(self, proc: asyncio.subprocess.Process) -> None:
        reader = proc.stdout
        if reader is None:
            return
        while True:
            try:
                line = await reader.readline()
            except ValueError:
                logger.warning("Child stdout line exceeded {} bytes, dropped", self.stream_limit_bytes)
                continue
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip("\r\n")
            if not text.strip():
                continue
            listeners = list(self._listeners)
            if not listeners:
                logger.debug("Unsolicited child output dropped: {}", text[:200])
                continue
            for listener in listeners:
                listener(text)

    async def _pump_stderr(self, proc: asyncio.subprocess.Process) -> None:
        reader = proc.stderr
        if reader is None:
            return
        while True:
            try:
                line = await reader.readline()
            except ValueError:
                continue
            if not line:
                break
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                logger.warning("[child] {}", text)
