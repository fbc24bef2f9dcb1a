"""Request/response correlation over the child's shared stdin/stdout stream."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mcpbridge.child.manager import ChildProcessManager
from mcpbridge.rpc.protocol import (
    CorrelationResult,
    JsonRpcPayload,
    decode_response_line,
    encode_message_line,
    extract_message_id,
    has_message_id,
    is_stale_response,
)
from mcpbridge.utils.exceptions import ChildResponseParseError, ChildUnavailableError, CorrelationTimeoutError


@dataclass(slots=True)
class PendingRequest:
    """One in-flight exchange. Its future resolves exactly once."""

    seq: int
    request_id: Any
    submitted_at: float
    future: asyncio.Future[CorrelationResult] = field(repr=False)

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, result: CorrelationResult) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        return True


class Correlator:
    """Pairs each line written to the child with the next line it emits.

    The stream carries no envelope, so exchanges are serialized: a single
    lock admits one PendingRequest at a time and later callers queue behind
    it. When both the request and a reply carry JSON-RPC ids that differ,
    the reply is stale (typically a late answer to a timed-out request)
    and is discarded.
    """

    def __init__(
        self,
        manager: ChildProcessManager,
        *,
        timeout_seconds: float = 15.0,
        match_response_ids: bool = True,
    ):
        self._manager = manager
        self.timeout_seconds = timeout_seconds
        self.match_response_ids = match_response_ids
        self._lock = asyncio.Lock()
        self._seq = 0
        self._active: PendingRequest | None = None
        self._waiting = 0
        self.completed = 0
        self.timeouts = 0
        self.parse_errors = 0
        self.stale_lines = 0

    @property
    def active(self) -> PendingRequest | None:
        return self._active

    def stats(self) -> dict[str, int]:
        return {
            "completed": self.completed,
            "timeouts": self.timeouts,
            "parse_errors": self.parse_errors,
            "stale_lines": self.stale_lines,
            "in_flight": 1 if self._active is not None else 0,
            "waiting": self._waiting,
        }

    async def send(self, payload: JsonRpcPayload) -> CorrelationResult:
        """Write one message and wait for its reply, a parse failure or the timeout."""
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        try:
            return await self._exchange(payload)
        finally:
            self._lock.release()

    async def _exchange(self, payload: JsonRpcPayload) -> CorrelationResult:
        loop = asyncio.get_running_loop()
        self._seq += 1
        pending = PendingRequest(
            seq=self._seq,
            request_id=extract_message_id(payload),
            submitted_at=loop.time(),
            future=loop.create_future(),
        )
        line = encode_message_line(payload)

        def on_line(text: str) -> None:
            if pending.done:
                return
            try:
                response = decode_response_line(text)
            except ChildResponseParseError as e:
                logger.error("Failed to parse child response: {}", e.details.get("reason"))
                logger.error("Raw response was: {}", text[:500])
                self.parse_errors += 1
                pending.resolve(CorrelationResult(ok=False, raw=text, error=e))
                return
            if self.match_response_ids and is_stale_response(pending.request_id, response):
                self.stale_lines += 1
                logger.warning(
                    "Discarding stale child response id={} while waiting for id={}",
                    response.get("id"),
                    pending.request_id,
                )
                return
            pending.resolve(CorrelationResult(ok=True, response=response, raw=text))

        self._manager.add_line_listener(on_line)
        self._active = pending
        try:
            logger.debug("Sending to child (seq={}): {}", pending.seq, line.strip()[:500])
            try:
                await self._manager.write(line.encode("utf-8"))
            except ChildUnavailableError as e:
                pending.future.cancel()
                return self._finish(pending, CorrelationResult(ok=False, error=e))
            try:
                result = await asyncio.wait_for(pending.future, timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.error("Child response timeout (seq={}, {}s)", pending.seq, self.timeout_seconds)
                self.timeouts += 1
                request_id = pending.request_id if has_message_id(pending.request_id) else None
                result = CorrelationResult(
                    ok=False,
                    error=CorrelationTimeoutError(self.timeout_seconds, request_id=request_id),
                )
            return self._finish(pending, result)
        finally:
            self._manager.remove_line_listener(on_line)
            self._active = None

    def _finish(self, pending: PendingRequest, result: CorrelationResult) -> CorrelationResult:
        loop = asyncio.get_running_loop()
        result.elapsed_ms = round((loop.time() - pending.submitted_at) * 1000, 2)
        if result.ok:
            self.completed += 1
            logger.debug("Child response (seq={}) in {}ms", pending.seq, result.elapsed_ms)
        return result
