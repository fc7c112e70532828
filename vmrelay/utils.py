"""Utility functions for vm-relay."""

from __future__ import annotations

import contextlib
import os
import sys
import termios
import tty
from typing import Iterator, Optional

from vmrelay.constants import TRUTHY
from vmrelay.exceptions import RelayError


def log(level: str, message: str) -> None:
    """Coloured level-tagged logging on stderr; stdout carries relay data."""
    if level == "DEBUG" and not get_env_bool("LOG_VERBOSE"):
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", file=sys.stderr, flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise RelayError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise RelayError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise RelayError(f"{name} must be <= {max_val} (got {value})")
    return value


def has_controlling_tty() -> bool:
    """Return True if both stdin and stdout are attached to a TTY."""
    for stream in (sys.stdin, sys.stdout):
        try:
            if not stream.isatty():
                return False
        except (AttributeError, ValueError):
            return False
    return True


@contextlib.contextmanager
def raw_terminal(fd: int) -> Iterator[bool]:
    """Put a TTY into raw mode for the duration of the block.

    Yields False and leaves the descriptor alone when it is not a terminal,
    so piped input (ssh without -t) passes through unchanged.
    """
    if not os.isatty(fd):
        yield False
        return
    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
