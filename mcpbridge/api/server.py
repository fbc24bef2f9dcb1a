"""FastAPI server exposing the child JSON-RPC process over HTTP and SSE.

The app owns one ChildProcessManager and one Correlator. Message endpoints
gate on child readiness and forward through the correlator; the SSE stream
is a one-way status channel independent of request traffic.
"""

import asyncio
import contextlib
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcpbridge import __version__
from mcpbridge.api.http.error_helpers import (
    AVAILABLE_ENDPOINTS,
    CORS_PREFLIGHT_HEADERS,
    bridge_error_response,
    internal_error_content,
    not_found_content,
)
from mcpbridge.api.http.message_methods import forward_message_response, read_message_payload
from mcpbridge.api.http.sse_methods import build_sse_streaming_response
from mcpbridge.child.manager import ChildProcessManager
from mcpbridge.config.schema import BridgeSettings
from mcpbridge.rpc.correlator import Correlator
from mcpbridge.utils.exceptions import BridgeError, classify_exception, sanitize_error_message


@dataclass
class BridgeState:
    """Objects shared by all routes of one app."""

    settings: BridgeSettings
    manager: ChildProcessManager
    correlator: Correlator
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def create_app(
    settings: BridgeSettings,
    *,
    manager: ChildProcessManager | None = None,
    correlator: Correlator | None = None,
    start_child: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Validated bridge settings.
        manager: Child manager to use; built from settings when omitted.
        correlator: Correlator to use; built around ``manager`` when omitted.
        start_child: Spawn the child during startup instead of on first request.
    """
    manager = manager or ChildProcessManager.from_settings(settings)
    correlator = correlator or Correlator(
        manager,
        timeout_seconds=settings.child.response_timeout_seconds,
        match_response_ids=settings.child.match_response_ids,
    )
    state = BridgeState(settings=settings, manager=manager, correlator=correlator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting mcpbridge HTTP server")
        for key, value in settings.summary().items():
            logger.info("  {} = {}", key, value)
        if start_child:
            await manager.start()
        try:
            yield
        finally:
            await manager.close()
            logger.info("mcpbridge HTTP server stopped")

    app = FastAPI(
        title="mcpbridge",
        description="HTTP/SSE bridge for a line-delimited JSON-RPC child process",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = state

    @app.exception_handler(BridgeError)
    async def bridge_exception_handler(request: Request, exc: BridgeError):
        logger.warning("{} {} failed with {}: {}", request.method, request.url.path, exc.code, exc.message)
        return bridge_error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            logger.info("404 - {} {}", request.method, request.url.path)
            return JSONResponse(status_code=404, content=not_found_content())
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "HTTP_ERROR", "message": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        code, _category, _ = classify_exception(exc)
        sanitized = sanitize_error_message(str(exc))
        logger.exception(f"Unhandled exception [{code}]: {sanitized}")
        return JSONResponse(status_code=500, content=internal_error_content(code))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=86400,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        logger.info("{} {} from {}", request.method, request.url.path, client)
        logger.debug("User-Agent: {}", request.headers.get("user-agent", "none"))
        return await call_next(request)

    @app.get("/health")
    async def health():
        """Health check endpoint; independent of child state."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "server": settings.server_name,
            "project_ref": settings.project_ref,
            "child": manager.status().to_dict(),
            "correlator": correlator.stats(),
        }

    @app.get("/sse")
    async def sse_stream(request: Request):
        logger.info("SSE connection from {}", request.client.host if request.client else "unknown")
        return build_sse_streaming_response(
            server=settings.server_name,
            is_ready=lambda: manager.ready,
            is_disconnected=request.is_disconnected,
            keepalive_interval=settings.sse.keepalive_interval_seconds,
        )

    async def handle_message(request: Request) -> JSONResponse:
        payload = await read_message_payload(request, max_body_bytes=settings.max_body_bytes)
        return await forward_message_response(
            payload=payload,
            manager=manager,
            correlator=correlator,
            restart_wait_seconds=settings.child.restart_wait_seconds,
        )

    @app.post("/sse")
    async def sse_message(request: Request):
        """JSON-RPC over POST /sse, same as /message."""
        return await handle_message(request)

    @app.post("/message")
    async def message(request: Request):
        """Forward one JSON-RPC message to the child and return its reply."""
        return await handle_message(request)

    @app.options("/{path:path}")
    async def preflight(path: str):
        return Response(status_code=200, headers=CORS_PREFLIGHT_HEADERS)

    return app


class BridgeServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the bridge."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


def handle_termination_signal(sig: int, server: uvicorn.Server, manager: ChildProcessManager) -> None:
    """Forward ``sig`` to the child and stop serving without draining connections."""
    logger.info("Received {}, shutting down", signal.Signals(sig).name)
    manager.terminate(sig)
    server.should_exit = True
    server.force_exit = True


async def serve(server: uvicorn.Server, manager: ChildProcessManager) -> None:
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, handle_termination_signal, sig, server, manager)
    try:
        await server.serve()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


def run_server(settings: BridgeSettings) -> None:
    """Run the bridge until a termination signal arrives."""
    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=10,
        log_level="warning",
    )
    server = BridgeServer(config)
    logger.info("mcpbridge listening on {}:{}", settings.host, settings.port)
    for endpoint in AVAILABLE_ENDPOINTS:
        logger.info("  endpoint: http://{}:{}{}", settings.host, settings.port, endpoint)
    asyncio.run(serve(server, app.state.bridge.manager))
