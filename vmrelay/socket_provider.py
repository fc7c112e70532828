"""Rendezvous socket readiness and connection for vm-relay."""

from __future__ import annotations

import errno
import os
import socket
import time
from pathlib import Path
from typing import Callable, Optional

from vmrelay.constants import SOCKET_CONNECT_TIMEOUT, SOCKET_WAIT_INTERVAL, SOCKET_WAIT_RETRIES
from vmrelay.exceptions import RelayConnectionError
from vmrelay.models import ConnectAttempt, ConnectStatus
from vmrelay.utils import log

_NOT_READY_ERRNOS = {errno.ENOENT, errno.ECONNREFUSED}


class SocketWaiter:
    """Best-effort wait for a socket path created by another process."""

    def __init__(
        self,
        retries: int = SOCKET_WAIT_RETRIES,
        interval: float = SOCKET_WAIT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retries = retries
        self.interval = interval
        self._sleep = sleep

    def wait(self, path: Path) -> bool:
        """Poll for a path to show up. Returns False (never raises) when it does not."""
        for _ in range(self.retries):
            if path.exists():
                return True
            self._sleep(self.interval)
        return path.exists()


class UnixSocketProvider:
    """Single connect attempt against a unix stream socket path."""

    def attempt_connect(self, path: Path, timeout: float = SOCKET_CONNECT_TIMEOUT) -> ConnectAttempt:
        if not path.exists():
            return ConnectAttempt(ConnectStatus.NOT_READY, error="No such file or directory")
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        try:
            sock.connect(os.fspath(path))
        except OSError as exc:
            sock.close()
            reason = exc.strerror or str(exc)
            if exc.errno in _NOT_READY_ERRNOS:
                return ConnectAttempt(ConnectStatus.NOT_READY, error=reason)
            return ConnectAttempt(ConnectStatus.FAILED, error=reason)
        # relay uses select() for readiness, the timeout only bounds connect()
        sock.settimeout(None)
        return ConnectAttempt(ConnectStatus.CONNECTED, sock=sock)


def open_rendezvous(
    path: Path,
    provider: Optional[UnixSocketProvider] = None,
    waiter: Optional[SocketWaiter] = None,
    timeout: float = SOCKET_CONNECT_TIMEOUT,
) -> socket.socket:
    """Wait for the rendezvous path, then connect once or raise RelayConnectionError."""
    provider = provider or UnixSocketProvider()
    waiter = waiter or SocketWaiter()
    if not waiter.wait(path):
        log("DEBUG", f"Socket {path} did not appear after {waiter.retries} retries")
    attempt = provider.attempt_connect(path, timeout)
    if attempt.status is not ConnectStatus.CONNECTED or attempt.sock is None:
        raise RelayConnectionError(f"unable to connect to socket '{path}' - {attempt.error}")
    log("DEBUG", f"Connected to {path}")
    return attempt.sock
