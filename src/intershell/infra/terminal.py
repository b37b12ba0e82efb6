"""Infrastructure: terminal control sequences and raw-mode ownership.

This module is responsible for:

* Writing ANSI control sequences to an output stream.
* Switching a TTY in and out of raw input mode.
* Enforcing that at most one owner holds raw-mode input at a time.
* Reporting terminal capabilities for diagnostics.

Rules
-----
* :mod:`termios` / :mod:`tty` are imported lazily; on platforms without
  them raw mode raises :class:`~intershell.exceptions.TerminalError`.
* No Rich rendering; callers handle user-facing output.
"""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass
from typing import Any, TextIO

from intershell.exceptions import TerminalBusyError, TerminalError

ESC = "\x1b"


# ---------------------------------------------------------------------------
# ANSI writer
# ---------------------------------------------------------------------------

class Terminal:
    """Side-effecting cursor and screen control for one output stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream: TextIO = stream if stream is not None else sys.stdout

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def clear_screen(self) -> None:
        self.write(f"{ESC}[2J{ESC}[0;0H")

    def clear_line(self) -> None:
        self.write(f"{ESC}[2K\r")

    def clear_to_end_of_line(self) -> None:
        self.write(f"{ESC}[0K")

    def move_to(self, x: int, y: int) -> None:
        self.write(f"{ESC}[{y};{x}H")

    def move_up(self, lines: int = 1) -> None:
        self.write(f"{ESC}[{lines}A")

    def move_down(self, lines: int = 1) -> None:
        self.write(f"{ESC}[{lines}B")

    def move_left(self, columns: int = 1) -> None:
        self.write(f"{ESC}[{columns}D")

    def move_right(self, columns: int = 1) -> None:
        self.write(f"{ESC}[{columns}C")

    def save_cursor(self) -> None:
        self.write(f"{ESC}[s")

    def restore_cursor(self) -> None:
        self.write(f"{ESC}[u")

    def hide_cursor(self) -> None:
        self.write(f"{ESC}[?25l")

    def show_cursor(self) -> None:
        self.write(f"{ESC}[?25h")

    def enable_alt_screen(self) -> None:
        self.write(f"{ESC}[?1049h")

    def disable_alt_screen(self) -> None:
        self.write(f"{ESC}[?1049l")

    def get_size(self) -> tuple[int, int]:
        """Return ``(width, height)``, falling back to 80x24."""
        size = shutil.get_terminal_size((80, 24))
        return size.columns, size.lines


# ---------------------------------------------------------------------------
# Raw mode
# ---------------------------------------------------------------------------

def fileno_or_none(stream: Any) -> int | None:
    """Return the OS file descriptor behind *stream*, if it has one."""
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def is_tty(stream: Any) -> bool:
    fd = fileno_or_none(stream)
    return fd is not None and os.isatty(fd)


def _import_termios() -> tuple[Any, Any]:
    """Import termios and tty lazily (POSIX only)."""
    try:
        import termios
        import tty
    except ModuleNotFoundError as exc:
        raise TerminalError(
            "Raw terminal input is not supported on this platform.",
            hint="Run intershell from a POSIX terminal (Linux, macOS, WSL).",
        ) from exc
    return termios, tty


class RawMode:
    """Raw-mode switch for one file descriptor.

    Echo, canonical line editing and signal generation are turned off so
    every key (including Ctrl+C) reaches the application as bytes.
    Output post-processing is left on so ``\\n`` still returns the
    carriage.
    """

    def __init__(self, fd: int) -> None:
        self._fd = fd
        self._saved: list[Any] | None = None

    @property
    def enabled(self) -> bool:
        return self._saved is not None

    def enable(self) -> None:
        if self._saved is not None:
            return
        termios, tty = _import_termios()
        try:
            saved = termios.tcgetattr(self._fd)
            attrs = termios.tcgetattr(self._fd)
            attrs[tty.LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.ISIG | termios.IEXTEN)
            attrs[tty.IFLAG] &= ~(termios.IXON | termios.ICRNL)
            attrs[tty.CC][termios.VMIN] = 1
            attrs[tty.CC][termios.VTIME] = 0
            termios.tcsetattr(self._fd, termios.TCSAFLUSH, attrs)
        except termios.error as exc:
            raise TerminalError(f"Could not enable raw mode: {exc}") from exc
        self._saved = saved

    def disable(self) -> None:
        """Restore the saved attributes (idempotent)."""
        if self._saved is None:
            return
        termios, _tty = _import_termios()
        saved, self._saved = self._saved, None
        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, saved)
        except termios.error as exc:
            raise TerminalError(f"Could not restore terminal mode: {exc}") from exc


# ---------------------------------------------------------------------------
# Process-wide input ownership
# ---------------------------------------------------------------------------

class InputOwnership:
    """Tracks the single owner of the process's terminal input."""

    def __init__(self) -> None:
        self._owner: object | None = None

    @property
    def owner(self) -> object | None:
        return self._owner

    def acquire(self, owner: object) -> None:
        if self._owner is owner:
            return
        if self._owner is not None:
            raise TerminalBusyError(
                "Terminal input is already owned by another interactive session.",
                hint="Stop the running framework before starting a new one.",
            )
        self._owner = owner

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None


INPUT_OWNERSHIP = InputOwnership()
"""The process-wide ownership record shared by every InteractiveCLI."""


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TerminalStatus:
    """Result of a terminal capability probe.

    Attributes
    ----------
    stdin_tty, stdout_tty : bool
        Whether each standard stream is attached to a terminal.
    raw_mode_supported : bool
        Whether :mod:`termios` is importable on this platform.
    width, height : int
        Reported terminal size.
    term : str
        Value of ``$TERM`` (``"unknown"`` when unset).
    """

    stdin_tty: bool
    stdout_tty: bool
    raw_mode_supported: bool
    width: int
    height: int
    term: str

    @property
    def interactive(self) -> bool:
        return self.stdin_tty and self.stdout_tty and self.raw_mode_supported


def detect_terminal(
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> TerminalStatus:
    """Probe the current terminal; never raises."""
    try:
        _import_termios()
        raw_supported = True
    except TerminalError:
        raw_supported = False

    width, height = Terminal(stdout).get_size()
    return TerminalStatus(
        stdin_tty=is_tty(stdin if stdin is not None else sys.stdin),
        stdout_tty=is_tty(stdout if stdout is not None else sys.stdout),
        raw_mode_supported=raw_supported,
        width=width,
        height=height,
        term=os.environ.get("TERM", "unknown"),
    )
