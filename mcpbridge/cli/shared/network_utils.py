"""Network helpers for CLI commands."""

from __future__ import annotations

import errno
import socket


def _family_for(host: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in host else socket.AF_INET


def is_port_in_use(host: str, port: int) -> bool:
    """Return True if another process already listens on ``host:port``.

    Binds the way uvicorn does (SO_REUSEADDR), so sockets lingering in
    TIME_WAIT from a previous bridge do not count as in use.
    """
    with socket.socket(_family_for(host), socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno in (errno.EADDRINUSE, errno.EACCES):
                return True
            raise
    return False
