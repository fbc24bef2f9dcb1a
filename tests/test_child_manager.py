import asyncio
import json
import signal

import pytest

from mcpbridge.child.manager import ChildProcessManager
from mcpbridge.child.types import ChildState
from mcpbridge.utils.exceptions import ChildUnavailableError


async def _wait_until(predicate, timeout: float = 5.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.02)
    return predicate()


def test_empty_command_rejected():
    with pytest.raises(ValueError):
        ChildProcessManager([])


def test_from_settings(settings):
    manager = ChildProcessManager.from_settings(settings)
    assert manager.command[-1] == "--project-ref=abcd1234"
    assert manager.env["SUPABASE_ACCESS_TOKEN"] == "sbp_test_token"
    assert manager.ready_grace_seconds == 0.2
    assert manager.state is ChildState.NOT_STARTED
    assert manager.status().to_dict()["spawn_count"] == 0


@pytest.mark.asyncio
async def test_start_becomes_ready_after_grace(fake_child):
    manager = ChildProcessManager(fake_child("echo"), ready_grace_seconds=0.2)
    try:
        assert await manager.start() is True
        assert manager.state is ChildState.STARTING
        assert manager.pid is not None
        assert await manager.wait_ready(3.0) is True
        assert manager.ready
        assert await manager.start() is True
        assert manager.spawn_count == 1
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_ensure_ready_starts_without_waiting(fake_child):
    manager = ChildProcessManager(fake_child("echo"), ready_grace_seconds=0.5)
    try:
        assert await manager.ensure_ready() is False
        assert manager.spawn_count == 1
        assert manager.state is ChildState.STARTING
        assert await manager.ensure_ready() is False
        assert manager.spawn_count == 1
        assert await manager.wait_ready(3.0)
        assert await manager.ensure_ready() is True
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_crash_before_ready_returns_to_not_started(fake_child):
    manager = ChildProcessManager(fake_child("crash"), ready_grace_seconds=1.0)
    try:
        await manager.start()
        assert await _wait_until(lambda: manager.state is ChildState.NOT_STARTED)
        assert manager.last_exit_code == 3
        assert manager.pid is None
        assert not manager.ready
        assert await manager.wait_ready(0.1) is False
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_spawn_error_leaves_not_started():
    manager = ChildProcessManager(["/nonexistent/mcpbridge-child-binary"])
    assert await manager.start() is False
    assert manager.state is ChildState.NOT_STARTED
    assert manager.spawn_count == 1
    assert manager.last_error
    await manager.close()


@pytest.mark.asyncio
async def test_write_delivers_lines_to_listeners(fake_child):
    manager = ChildProcessManager(fake_child("echo"), ready_grace_seconds=0.1)
    lines: list[str] = []
    try:
        await manager.start()
        manager.add_line_listener(lines.append)
        await manager.write(b'{"jsonrpc": "2.0", "id": 9, "method": "ping"}\n')
        assert await _wait_until(lambda: len(lines) == 1)
        assert json.loads(lines[0])["id"] == 9
        assert manager.remove_line_listener(lines.append) is True
        assert manager.remove_line_listener(lines.append) is False
        assert manager.listener_count == 0
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_write_without_child_raises():
    manager = ChildProcessManager(["unused"])
    with pytest.raises(ChildUnavailableError):
        await manager.write(b"{}\n")


@pytest.mark.asyncio
async def test_terminate_forwards_signal(fake_child):
    manager = ChildProcessManager(fake_child("silent"), ready_grace_seconds=0.1)
    try:
        await manager.start()
        assert await manager.wait_ready(3.0)
        assert manager.terminate(signal.SIGTERM) is True
        assert await _wait_until(lambda: manager.state is ChildState.NOT_STARTED)
        assert manager.last_exit_code == -signal.SIGTERM
        assert manager.terminate() is False
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_restart_after_exit_counts_spawns(fake_child):
    manager = ChildProcessManager(fake_child("silent"), ready_grace_seconds=0.1)
    try:
        await manager.start()
        manager.terminate()
        assert await _wait_until(lambda: manager.state is ChildState.NOT_STARTED)
        assert await manager.ensure_ready() is False
        assert manager.spawn_count == 2
        assert await manager.wait_ready(3.0)
    finally:
        await manager.close()


@pytest.mark.asyncio
async def test_close_stops_child(fake_child):
    manager = ChildProcessManager(fake_child("silent"), ready_grace_seconds=0.1)
    await manager.start()
    pid = manager.pid
    await manager.close(wait_seconds=2.0)
    assert pid is not None
    assert manager.state is ChildState.NOT_STARTED
    assert manager.pid is None
    assert manager.last_exit_code is not None
