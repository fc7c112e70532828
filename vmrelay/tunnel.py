"""Quorum-gated control tunnel used by the migration handshake."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, TextIO

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmrelay.constants import QUIT_TOKEN
from vmrelay.exceptions import QuorumCheckError
from vmrelay.models import TunnelOutcome
from vmrelay.utils import log


def check_quorum(members_file: Path) -> bool:
    """Read the cluster membership file and report whether the node is quorate.

    A node without a membership file is not clustered and is always quorate.
    """
    if not members_file.exists():
        return True
    # .members is JSON, which YAML also accepts
    data = yaml.safe_load(members_file.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{members_file} does not contain a mapping")
    return bool(data.get("quorate", False))


class ControlTunnel:
    """Announce readiness on ``output`` and wait for ``quit`` on ``input``."""

    def __init__(self, quorum_check: Callable[[], bool], input: TextIO, output: TextIO) -> None:
        self.quorum_check = quorum_check
        self.input = input
        self.output = output

    def _emit(self, line: str) -> None:
        self.output.write(line + "\n")
        self.output.flush()

    def run(self) -> TunnelOutcome:
        try:
            quorate = self.quorum_check()
        except Exception as exc:
            raise QuorumCheckError(f"quorum check failed: {exc}") from exc

        if not quorate:
            self._emit("no quorum")
            log("DEBUG", "Tunnel refused: no quorum")
            return TunnelOutcome.NO_QUORUM

        self._emit("tunnel online")
        for line in self.input:
            if line.rstrip("\n") == QUIT_TOKEN:
                return TunnelOutcome.QUIT
        return TunnelOutcome.EOF
