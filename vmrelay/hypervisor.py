"""libvirt-backed access to the hypervisor control API."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from vmrelay.constants import DOMAIN_STATES, LIBVIRT_URI, VNC_TICKET_LIFETIME
from vmrelay.exceptions import HypervisorError, VMNotRunningError
from vmrelay.models import VMConfig
from vmrelay.utils import log


def _load_bindings() -> Tuple[Any, Any]:
    try:
        import libvirt  # type: ignore
        import libvirt_qemu  # type: ignore
    except ImportError as exc:
        raise HypervisorError(f"libvirt python bindings not available: {exc}") from exc
    return libvirt, libvirt_qemu


class HypervisorClient:
    """Thin wrapper over a libvirt connection, scoped to what relay sessions need."""

    def __init__(self, uri: str = LIBVIRT_URI, loader: Callable[[], Tuple[Any, Any]] = _load_bindings) -> None:
        self.uri = uri
        self._loader = loader
        self._libvirt: Any = None
        self._qemu: Any = None
        self.conn: Any = None

    def __enter__(self) -> "HypervisorClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def connect(self) -> None:
        self._libvirt, self._qemu = self._loader()
        try:
            self.conn = self._libvirt.open(self.uri)
        except self._libvirt.libvirtError as exc:
            raise HypervisorError(f"Failed to open libvirt connection to {self.uri}: {exc}") from exc
        if self.conn is None:
            raise HypervisorError(f"Failed to open libvirt connection to {self.uri}")

    def close(self) -> None:
        if self.conn is not None:
            try:
                self.conn.close()
            except self._libvirt.libvirtError:
                log("DEBUG", "libvirt connection already gone")
            self.conn = None

    def _lookup(self, cfg: VMConfig) -> Optional[Any]:
        if self.conn is None:
            raise HypervisorError("Not connected to libvirt")
        try:
            return self.conn.lookupByName(cfg.name)
        except self._libvirt.libvirtError:
            return None

    def state(self, cfg: VMConfig) -> str:
        domain = self._lookup(cfg)
        if domain is None:
            return "stopped"
        try:
            state, _reason = domain.state()
        except self._libvirt.libvirtError as exc:
            raise HypervisorError(f"Cannot query state of VM {cfg.vmid}: {exc}") from exc
        return DOMAIN_STATES.get(state, "unknown")

    def is_running(self, cfg: VMConfig) -> bool:
        domain = self._lookup(cfg)
        if domain is None:
            return False
        try:
            return bool(domain.isActive())
        except self._libvirt.libvirtError:
            return False

    def require_running(self, cfg: VMConfig) -> Any:
        domain = self._lookup(cfg)
        if domain is None or not self.is_running(cfg):
            raise VMNotRunningError(f"VM {cfg.vmid} not running")
        return domain

    def status_details(self, cfg: VMConfig) -> Dict[str, Any]:
        details: Dict[str, Any] = {"vmid": cfg.vmid, "name": cfg.name, "status": self.state(cfg)}
        if cfg.lock:
            details["lock"] = cfg.lock
        domain = self._lookup(cfg)
        if domain is None or not self.is_running(cfg):
            return details
        try:
            _state, max_kib, mem_kib, vcpus, cpu_ns = domain.info()
        except self._libvirt.libvirtError as exc:
            raise HypervisorError(f"Cannot query info of VM {cfg.vmid}: {exc}") from exc
        details.update(
            maxmem=max_kib * 1024,
            mem=mem_kib * 1024,
            cpus=vcpus,
            cputime=round(cpu_ns / 1e9, 2),
        )
        return details

    def monitor_command(self, cfg: VMConfig, command: str) -> str:
        """Run a human monitor (HMP) command and return its raw text reply."""
        domain = self.require_running(cfg)
        try:
            return self._qemu.qemuMonitorCommand(domain, command, self._qemu.VIR_DOMAIN_QEMU_MONITOR_COMMAND_HMP)
        except self._libvirt.libvirtError as exc:
            raise HypervisorError(exc.get_error_message() or str(exc)) from exc

    def wait_until_stopped(
        self,
        cfg: VMConfig,
        timeout: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """Poll once per second until the domain is inactive. False on timeout."""
        waited = 0
        while self.is_running(cfg):
            if timeout is not None and waited >= timeout:
                return False
            sleep(1)
            waited += 1
        return True

    def enable_vnc_socket(self, cfg: VMConfig, socket_path: Path, ticket: Optional[str] = None) -> None:
        """Point the VM's VNC server at ``socket_path``; with a ticket, set a short-lived password."""
        if ticket:
            self.monitor_command(cfg, f"change vnc unix:{socket_path},password")
            self.monitor_command(cfg, f"set_password vnc {ticket}")
            self.monitor_command(cfg, f"expire_password vnc {VNC_TICKET_LIFETIME}")
        else:
            self.monitor_command(cfg, f"change vnc unix:{socket_path},x509,password")
        log("DEBUG", f"VNC for VM {cfg.vmid} moved to {socket_path}")
