"""Data models for vm-relay."""

from __future__ import annotations

import enum
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, NamedTuple, Optional


class ConnectStatus(enum.Enum):
    CONNECTED = "connected"
    NOT_READY = "not-ready"
    FAILED = "failed"


class ConnectAttempt(NamedTuple):
    status: ConnectStatus
    sock: Optional[socket.socket] = None
    error: Optional[str] = None


class RelayOutcome(enum.Enum):
    LOCAL_EOF = "local-eof"
    REMOTE_EOF = "remote-eof"
    IDLE_TIMEOUT = "idle-timeout"
    ESCAPE = "escape"


class TunnelOutcome(enum.Enum):
    NO_QUORUM = "no-quorum"
    QUIT = "quit"
    EOF = "eof"


@dataclass
class VMConfig:
    vmid: int
    name: str
    serial: Dict[str, str] = field(default_factory=dict)
    vnc: bool = True
    lock: Optional[str] = None


@dataclass
class RelaySettings:
    run_dir: Path
    config_dir: Path
    idle_timeout: int  # seconds
    socket_wait_retries: int
    connect_timeout: int  # seconds
    quorum_file: Path
    libvirt_uri: str

    def socket_path(self, vmid: int, interface: str) -> Path:
        return self.run_dir / f"{vmid}.{interface}"
