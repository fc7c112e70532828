"""Shared test fixtures for vm-relay."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from vmrelay.hypervisor import HypervisorClient
from vmrelay.models import RelaySettings, VMConfig


class FakeLibvirtError(Exception):
    def get_error_message(self):
        return str(self)


@pytest.fixture
def default_vm_config() -> VMConfig:
    """Return a VMConfig with one socket-backed serial port."""
    return VMConfig(
        vmid=100,
        name="vm100",
        serial={"serial0": "socket"},
        vnc=True,
        lock=None,
    )


@pytest.fixture
def settings(tmp_path) -> RelaySettings:
    run_dir = tmp_path / "run"
    config_dir = tmp_path / "vms"
    run_dir.mkdir()
    config_dir.mkdir()
    return RelaySettings(
        run_dir=run_dir,
        config_dir=config_dir,
        idle_timeout=5,
        socket_wait_retries=0,
        connect_timeout=5,
        quorum_file=tmp_path / "members",
        libvirt_uri="test:///default",
    )


@pytest.fixture
def write_vm_config(settings):
    """Write ``<config_dir>/<vmid>.yaml`` with the given YAML body."""

    def _write(vmid: int, body: str) -> Path:
        path = settings.config_dir / f"{vmid}.yaml"
        path.write_text(body)
        return path

    return _write


@pytest.fixture
def fake_bindings():
    """Stand-ins for the libvirt and libvirt_qemu modules."""
    libvirt = MagicMock()
    libvirt.libvirtError = FakeLibvirtError
    qemu = MagicMock()
    qemu.VIR_DOMAIN_QEMU_MONITOR_COMMAND_HMP = 1
    return libvirt, qemu


@pytest.fixture
def hypervisor(fake_bindings):
    """A connected HypervisorClient backed by fake bindings."""
    client = HypervisorClient("test:///default", loader=lambda: fake_bindings)
    client.connect()
    return client


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# All environment variables that load_settings() reads
_SETTINGS_ENV_VARS = [
    "RUN_DIR",
    "CONFIG_DIR",
    "QUORUM_FILE",
    "RELAY_IDLE_TIMEOUT",
    "SOCKET_WAIT_RETRIES",
    "SOCKET_CONNECT_TIMEOUT",
    "LIBVIRT_URI",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that load_settings() reads."""
    for key in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
