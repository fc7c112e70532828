"""Duplex byte relay between the local stdio pair and a unix socket."""

from __future__ import annotations

import os
import select
import socket
import time
from typing import Optional

from vmrelay.constants import RELAY_CHUNK_SIZE, RELAY_IDLE_TIMEOUT
from vmrelay.models import RelayOutcome
from vmrelay.utils import log


class StreamRelay:
    """Copy bytes both ways until either side closes or nothing happens for ``idle_timeout``.

    The local endpoint is a pair of file descriptors (normally stdin/stdout),
    the remote endpoint an already connected stream socket. Data is passed
    through unmodified and never logged; console traffic may carry secrets.
    """

    def __init__(
        self,
        local_in: int,
        local_out: int,
        remote: socket.socket,
        idle_timeout: float = RELAY_IDLE_TIMEOUT,
        chunk_size: int = RELAY_CHUNK_SIZE,
        escape: Optional[bytes] = None,
    ) -> None:
        self.local_in = local_in
        self.local_out = local_out
        self.remote = remote
        self.idle_timeout = idle_timeout
        self.chunk_size = chunk_size
        self.escape = escape
        self.last_activity = time.monotonic()
        self.bytes_out = 0  # local -> remote
        self.bytes_in = 0  # remote -> local

    def run(self) -> RelayOutcome:
        try:
            outcome = self._loop()
        finally:
            self.remote.close()
        idle = time.monotonic() - self.last_activity
        log(
            "DEBUG",
            f"Relay finished: {outcome.value} ({self.bytes_out} bytes sent, {self.bytes_in} bytes received, "
            f"last activity {idle:.1f}s ago)",
        )
        return outcome

    def _loop(self) -> RelayOutcome:
        remote_fd = self.remote.fileno()
        watched = [self.local_in, remote_fd]
        while True:
            readable, _, _ = select.select(watched, [], [], self.idle_timeout)
            if not readable:
                return RelayOutcome.IDLE_TIMEOUT
            self.last_activity = time.monotonic()

            if self.local_in in readable:
                outcome = self._pump_local()
                if outcome is not None:
                    return outcome
            if remote_fd in readable:
                outcome = self._pump_remote()
                if outcome is not None:
                    return outcome

    def _pump_local(self) -> Optional[RelayOutcome]:
        try:
            data = os.read(self.local_in, self.chunk_size)
        except OSError:
            data = b""
        if not data:
            return RelayOutcome.LOCAL_EOF

        escaped = False
        if self.escape is not None and self.escape in data:
            data = data[: data.index(self.escape)]
            escaped = True
        if data:
            try:
                self.remote.sendall(data)
            except OSError:
                return RelayOutcome.REMOTE_EOF
            self.bytes_out += len(data)
        return RelayOutcome.ESCAPE if escaped else None

    def _pump_remote(self) -> Optional[RelayOutcome]:
        try:
            data = self.remote.recv(self.chunk_size)
        except OSError:
            data = b""
        if not data:
            return RelayOutcome.REMOTE_EOF
        try:
            _write_all(self.local_out, data)
        except OSError:
            return RelayOutcome.LOCAL_EOF
        self.bytes_in += len(data)
        return None


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]
