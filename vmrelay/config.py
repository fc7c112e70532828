"""Settings loading and per-VM configuration lookup for vm-relay."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmrelay.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_QUORUM_FILE,
    DEFAULT_RUN_DIR,
    LIBVIRT_URI,
    RELAY_IDLE_TIMEOUT,
    SERIAL_INTERFACES,
    SERIAL_SOCKET_TYPE,
    SOCKET_CONNECT_TIMEOUT,
    SOCKET_WAIT_RETRIES,
)
from vmrelay.exceptions import InterfaceError, RelayError, VMNotFoundError
from vmrelay.models import RelaySettings, VMConfig
from vmrelay.utils import get_env, log, parse_int_env


def load_settings() -> RelaySettings:
    run_dir = Path(get_env("RUN_DIR") or str(DEFAULT_RUN_DIR))
    config_dir = Path(get_env("CONFIG_DIR") or str(DEFAULT_CONFIG_DIR))
    quorum_file = Path(get_env("QUORUM_FILE") or str(DEFAULT_QUORUM_FILE))
    idle_timeout = parse_int_env("RELAY_IDLE_TIMEOUT", str(RELAY_IDLE_TIMEOUT))
    # zero retries is valid: connect straight away
    retries = parse_int_env("SOCKET_WAIT_RETRIES", str(SOCKET_WAIT_RETRIES), min_val=0)
    connect_timeout = parse_int_env("SOCKET_CONNECT_TIMEOUT", str(SOCKET_CONNECT_TIMEOUT))
    libvirt_uri = (get_env("LIBVIRT_URI") or LIBVIRT_URI).strip()
    return RelaySettings(
        run_dir=run_dir,
        config_dir=config_dir,
        idle_timeout=idle_timeout,
        socket_wait_retries=retries,
        connect_timeout=connect_timeout,
        quorum_file=quorum_file,
        libvirt_uri=libvirt_uri,
    )


def vm_config_path(vmid: int, config_dir: Path) -> Path:
    return config_dir / f"{vmid}.yaml"


def load_vm_config(vmid: int, config_dir: Path) -> VMConfig:
    """Resolve a VM id to its configuration; a missing file is fatal."""
    path = vm_config_path(vmid, config_dir)
    if not path.is_file():
        raise VMNotFoundError(f"Configuration file '{path}' does not exist (VM {vmid} not found)")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RelayError(f"Cannot read configuration for VM {vmid}: {exc}")
    if not isinstance(data, dict):
        raise RelayError(f"Configuration for VM {vmid} must be a YAML mapping, got {type(data).__name__}")

    serial = {}
    for iface in SERIAL_INTERFACES:
        value = data.get(iface)
        if value is not None:
            serial[iface] = str(value).strip()

    name = str(data.get("name") or f"vm{vmid}").strip()
    lock = data.get("lock")
    log("DEBUG", f"Loaded VM {vmid} config from {path} (domain {name})")
    return VMConfig(
        vmid=vmid,
        name=name,
        serial=serial,
        vnc=bool(data.get("vnc", True)),
        lock=str(lock) if lock else None,
    )


def select_serial_interface(cfg: VMConfig, iface: Optional[str] = None) -> str:
    """Validate an explicit serial interface or pick the first socket-backed one."""
    if iface:
        device = cfg.serial.get(iface)
        if not device:
            raise InterfaceError(f"serial interface '{iface}' is not configured")
        if device != SERIAL_SOCKET_TYPE:
            raise InterfaceError(f"wrong serial type on interface '{iface}'")
        return iface
    for candidate in SERIAL_INTERFACES:
        if cfg.serial.get(candidate) == SERIAL_SOCKET_TYPE:
            return candidate
    raise InterfaceError("unable to find a serial interface")
