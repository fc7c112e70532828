"""CLI entry points for vm-relay."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from vmrelay.config import load_settings, load_vm_config, select_serial_interface
from vmrelay.constants import SERIAL_INTERFACES, TERMINAL_ESCAPE, TICKET_ENV
from vmrelay.exceptions import InterfaceError, RelayError
from vmrelay.hypervisor import HypervisorClient
from vmrelay.models import RelayOutcome, RelaySettings
from vmrelay.monitor import MonitorSession, readline_reader, stream_reader
from vmrelay.relay import StreamRelay
from vmrelay.socket_provider import SocketWaiter, open_rendezvous
from vmrelay.tunnel import ControlTunnel, check_quorum
from vmrelay.utils import get_env, has_controlling_tty, log, raw_terminal

Handler = Callable[[argparse.Namespace, RelaySettings], int]


def relay_stdio(
    path: Path,
    settings: RelaySettings,
    escape: Optional[bytes] = None,
    raw: bool = False,
    local_in: Optional[int] = None,
    local_out: Optional[int] = None,
) -> RelayOutcome:
    """Connect to a rendezvous socket and relay it to a local descriptor pair, stdin/stdout by default."""
    sock = open_rendezvous(
        path,
        waiter=SocketWaiter(retries=settings.socket_wait_retries),
        timeout=settings.connect_timeout,
    )
    sys.stdout.flush()
    if local_in is None:
        local_in = sys.stdin.fileno()
    if local_out is None:
        local_out = sys.stdout.fileno()
    relay = StreamRelay(local_in, local_out, sock, idle_timeout=settings.idle_timeout, escape=escape)
    if not raw:
        return relay.run()
    with raw_terminal(local_in):
        return relay.run()


def run_vncproxy(args: argparse.Namespace, settings: RelaySettings) -> int:
    """Proxy VM VNC traffic to stdin/stdout."""
    cfg = load_vm_config(args.vmid, settings.config_dir)
    if not cfg.vnc:
        raise InterfaceError(f"VNC is disabled for VM {cfg.vmid}")
    vnc_socket = settings.socket_path(cfg.vmid, "vnc")
    with HypervisorClient(settings.libvirt_uri) as hv:
        hv.require_running(cfg)
        hv.enable_vnc_socket(cfg, vnc_socket, ticket=get_env(TICKET_ENV))
    outcome = relay_stdio(vnc_socket, settings)
    if outcome is RelayOutcome.IDLE_TIMEOUT:
        log("INFO", f"No VNC traffic for {settings.idle_timeout}s, closing proxy")
    return 0


def run_terminal(args: argparse.Namespace, settings: RelaySettings) -> int:
    """Open a terminal on a socket-backed serial device."""
    cfg = load_vm_config(args.vmid, settings.config_dir)
    iface = select_serial_interface(cfg, args.iface)
    with HypervisorClient(settings.libvirt_uri) as hv:
        hv.require_running(cfg)
    serial_socket = settings.socket_path(cfg.vmid, iface)
    log("INFO", f"starting serial terminal on interface {iface} (press control-O to exit)")
    relay_stdio(serial_socket, settings, escape=TERMINAL_ESCAPE, raw=True)
    return 0


def run_mtunnel(args: argparse.Namespace, settings: RelaySettings) -> int:
    """Migration tunnel handshake; used by the migration driver, not by hand."""
    tunnel = ControlTunnel(lambda: check_quorum(settings.quorum_file), sys.stdin, sys.stdout)
    outcome = tunnel.run()
    log("DEBUG", f"Tunnel closed: {outcome.value}")
    return 0


def run_monitor(args: argparse.Namespace, settings: RelaySettings) -> int:
    """Enter the QEMU human monitor of a VM."""
    cfg = load_vm_config(args.vmid, settings.config_dir)
    if has_controlling_tty():
        reader = readline_reader()
    else:
        reader = stream_reader(sys.stdin, sys.stdout)
    with HypervisorClient(settings.libvirt_uri) as hv:
        session = MonitorSession(cfg.vmid, lambda command: hv.monitor_command(cfg, command), reader, sys.stdout)
        session.run()
    return 0


def run_status(args: argparse.Namespace, settings: RelaySettings) -> int:
    cfg = load_vm_config(args.vmid, settings.config_dir)
    with HypervisorClient(settings.libvirt_uri) as hv:
        if not args.verbose:
            print(f"status: {hv.state(cfg)}")
            return 0
        details = hv.status_details(cfg)
    for key in sorted(details):
        value = details[key]
        if value is None:
            continue
        print(f"{key}: {value}")
    return 0


def run_wait(args: argparse.Namespace, settings: RelaySettings) -> int:
    cfg = load_vm_config(args.vmid, settings.config_dir)
    with HypervisorClient(settings.libvirt_uri) as hv:
        if not hv.is_running(cfg):
            return 0
        log("INFO", f"waiting until VM {cfg.vmid} stops")
        if not hv.wait_until_stopped(cfg, timeout=args.timeout):
            raise RelayError("wait failed - got timeout")
    return 0


COMMANDS: Dict[str, Handler] = {
    "vncproxy": run_vncproxy,
    "terminal": run_terminal,
    "mtunnel": run_mtunnel,
    "monitor": run_monitor,
    "status": run_status,
    "wait": run_wait,
}


def _vmid(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid VM id '{raw}'")
    if value < 1:
        raise argparse.ArgumentTypeError(f"VM id must be >= 1 (got {value})")
    return value


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{raw}'")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1 (got {value})")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vmrelay", description="Console, monitor and tunnel relays for VMs")
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    p = sub.add_parser("vncproxy", help="Proxy VM VNC traffic to stdin/stdout")
    p.add_argument("vmid", type=_vmid)

    p = sub.add_parser("terminal", help="Open a terminal using a serial device")
    p.add_argument("vmid", type=_vmid)
    p.add_argument(
        "--iface",
        choices=SERIAL_INTERFACES,
        help="Select the serial device. By default the first suitable device is used.",
    )

    sub.add_parser("mtunnel", help="Migration tunnel endpoint (do not use manually)")

    p = sub.add_parser("monitor", help="Enter Qemu Monitor interface")
    p.add_argument("vmid", type=_vmid)

    p = sub.add_parser("status", help="Show VM status")
    p.add_argument("vmid", type=_vmid)
    p.add_argument("--verbose", action="store_true", help="Verbose output format")

    p = sub.add_parser("wait", help="Wait until the VM is stopped")
    p.add_argument("vmid", type=_vmid)
    p.add_argument(
        "--timeout",
        type=_positive_int,
        default=None,
        help="Timeout in seconds. Default is to wait forever.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    handler = COMMANDS[args.command]
    try:
        settings = load_settings()
        return handler(args, settings)
    except RelayError as exc:
        log("ERROR", str(exc))
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
