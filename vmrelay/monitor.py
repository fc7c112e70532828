"""Interactive monitor REPL for a running VM."""

from __future__ import annotations

from typing import Callable, Optional, TextIO

from vmrelay.constants import MONITOR_PROMPT, QUIT_RE

LineReader = Callable[[str], Optional[str]]


def stream_reader(stream: TextIO, output: TextIO) -> LineReader:
    """Build a reader that prompts on ``output`` and reads from ``stream``; None means EOF."""

    def _read(prompt: str) -> Optional[str]:
        output.write(prompt)
        output.flush()
        line = stream.readline()
        if not line:
            return None
        return line.rstrip("\n")

    return _read


def readline_reader() -> LineReader:
    """Reader with line editing and history for interactive terminals."""
    import readline  # noqa: F401  enables editing for input()

    def _read(prompt: str) -> Optional[str]:
        try:
            return input(prompt)
        except EOFError:
            print()
            return None

    return _read


class MonitorSession:
    """Send operator commands to a VM monitor, one at a time.

    Each command runs behind its own fault barrier: an exception from
    ``execute`` is printed as ``ERROR: ...`` and the next prompt follows.
    """

    def __init__(
        self,
        vmid: int,
        execute: Callable[[str], str],
        read_line: LineReader,
        output: TextIO,
        prompt: str = MONITOR_PROMPT,
    ) -> None:
        self.vmid = vmid
        self.execute = execute
        self.read_line = read_line
        self.output = output
        self.prompt = prompt
        self.executed = 0
        self.failed = 0

    def run(self) -> None:
        self.output.write(f"Entering Qemu Monitor for VM {self.vmid} - type 'help' for help\n")
        self.output.flush()
        while True:
            line = self.read_line(self.prompt)
            if line is None:
                return
            if not line.strip():
                continue
            if QUIT_RE.match(line):
                return
            self._run_command(line)

    def _run_command(self, command: str) -> None:
        self.executed += 1
        try:
            reply = self.execute(command)
        except Exception as exc:
            self.failed += 1
            message = str(exc)
            if not message.endswith("\n"):
                message += "\n"
            self.output.write(f"ERROR: {message}")
        else:
            self.output.write(reply or "")
        self.output.flush()
