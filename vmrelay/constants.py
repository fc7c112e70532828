"""Global constants and path defaults for vm-relay."""

from __future__ import annotations

import os
import re
from pathlib import Path

DEFAULT_RUN_DIR = Path("/var/run/qemu-server")
DEFAULT_CONFIG_DIR = Path("/etc/vmrelay/vms")
DEFAULT_QUORUM_FILE = Path("/etc/pve/.members")
LIBVIRT_URI = os.environ.get("LIBVIRT_URI", "qemu:///system")
TRUTHY = {"1", "true", "yes", "on"}

# ssh on debian only forwards LC_* variables
TICKET_ENV = "LC_VMRELAY_TICKET"

RELAY_CHUNK_SIZE = 4096
RELAY_IDLE_TIMEOUT = 15 * 60
SOCKET_WAIT_RETRIES = 9
SOCKET_WAIT_INTERVAL = 1.0
SOCKET_CONNECT_TIMEOUT = 120
VNC_TICKET_LIFETIME = "+30"

SERIAL_INTERFACES = ("serial0", "serial1", "serial2", "serial3")
SERIAL_SOCKET_TYPE = "socket"
# control-O
TERMINAL_ESCAPE = b"\x0f"

MONITOR_PROMPT = "qm> "
QUIT_TOKEN = "quit"
QUIT_RE = re.compile(r"^\s*q(uit)?\s*$")

# libvirt virDomainState -> status string
DOMAIN_STATES = {
    0: "unknown",
    1: "running",
    2: "blocked",
    3: "paused",
    4: "shutdown",
    5: "stopped",
    6: "crashed",
    7: "suspended",
}
