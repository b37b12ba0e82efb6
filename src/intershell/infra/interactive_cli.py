"""Interactive terminal session: key events, screen control, teardown.

:class:`InteractiveCLI` owns the raw-input stream for the duration of a
:meth:`~InteractiveCLI.session`.  Bytes read from stdin are parsed into
:class:`~intershell.core.keys.KeyPress` values and delivered to every
registered handler in registration order.  Page code that needs to
*wait* for input creates a controlled future and resolves it from a
handler.

Teardown
--------
:meth:`InteractiveCLI.cleanup` is idempotent and runs on every exit
path: normal completion and exceptions (via the session context
manager), framework ``stop()`` (signal handlers), and interpreter exit
(``atexit``).  It restores the cursor and terminal mode, rejects every
pending controlled future with
:class:`~intershell.exceptions.CancellationError` and drops all
handlers.
"""

from __future__ import annotations

import asyncio
import atexit
import codecs
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

from intershell.core.controlled import ControlledFuture
from intershell.core.keys import KeyPattern, KeyPress, matches, parse_keys
from intershell.core.protocols import KeyHandler
from intershell.exceptions import CancellationError, EnvironmentError
from intershell.infra.terminal import INPUT_OWNERSHIP, InputOwnership, RawMode, Terminal, fileno_or_none

logger = logging.getLogger(__name__)

_READ_SIZE = 1024


class InteractiveCLI:
    """Terminal abstraction handed to pages.

    Parameters
    ----------
    stdin, stdout:
        Streams to use.  Defaults to the process streams.  Non-TTY
        streams (pipes, :class:`io.StringIO`) work too: raw mode and the
        stdin reader are simply not engaged, and keys can be injected
        with :meth:`feed`.
    ownership:
        Ownership record enforcing a single active session per process.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        *,
        ownership: InputOwnership = INPUT_OWNERSHIP,
    ) -> None:
        self._stdin: TextIO = stdin if stdin is not None else sys.stdin
        self._terminal = Terminal(stdout if stdout is not None else sys.stdout)
        self._ownership = ownership

        self._handlers: dict[KeyHandler, None] = {}
        self._pending: set[ControlledFuture[Any]] = set()
        self._raw_mode: RawMode | None = None
        self._reader_fd: int | None = None
        self._reader_loop: asyncio.AbstractEventLoop | None = None
        self._rich_console: Any = None
        self._in_session: bool = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    # ------------------------------------------------------------------
    # Session (raw-mode ownership)
    # ------------------------------------------------------------------

    @property
    def raw_mode_enabled(self) -> bool:
        return self._raw_mode is not None and self._raw_mode.enabled

    @property
    def in_session(self) -> bool:
        return self._in_session

    @contextmanager
    def session(self) -> Iterator[InteractiveCLI]:
        """Own the terminal input for the duration of the ``with`` block.

        Raises
        ------
        TerminalBusyError
            If another instance currently owns the terminal input.
        """
        self._ownership.acquire(self)
        try:
            self._in_session = True
            atexit.register(self.cleanup)
            self._enable_raw_mode()
            self._attach_reader()
            yield self
        finally:
            atexit.unregister(self.cleanup)
            self.cleanup()

    def _enable_raw_mode(self) -> None:
        fd = fileno_or_none(self._stdin)
        if fd is None or not os.isatty(fd):
            logger.debug("stdin is not a TTY; raw mode not enabled")
            return
        self._raw_mode = RawMode(fd)
        self._raw_mode.enable()

    def _attach_reader(self) -> None:
        fd = fileno_or_none(self._stdin)
        if fd is None or not os.isatty(fd):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; stdin reader not attached")
            return
        loop.add_reader(fd, self._on_readable, fd)
        self._reader_fd, self._reader_loop = fd, loop

    def _detach_reader(self) -> None:
        if self._reader_fd is not None and self._reader_loop is not None:
            if not self._reader_loop.is_closed():
                self._reader_loop.remove_reader(self._reader_fd)
        self._reader_fd, self._reader_loop = None, None

    def _on_readable(self, fd: int) -> None:
        try:
            data = os.read(fd, _READ_SIZE)
        except OSError:
            logger.exception("Failed to read from terminal")
            return
        text = self._decoder.decode(data)
        if text:
            self.feed(text)

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def on_key_press(self, handler: KeyHandler) -> None:
        self._handlers[handler] = None

    def off_key_press(self, handler: KeyHandler) -> None:
        self._handlers.pop(handler, None)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def feed(self, data: str) -> None:
        """Parse *data* as raw terminal input and deliver each key."""
        for key in parse_keys(data):
            self.emit_key(key)

    def emit_key(self, key: KeyPress) -> None:
        """Deliver *key* to every handler in registration order.

        A handler that raises is logged and skipped; the rest still run.
        """
        for handler in list(self._handlers):
            if handler not in self._handlers:
                continue
            try:
                handler(key)
            except Exception:
                logger.exception("Error in key press handler")

    # ------------------------------------------------------------------
    # Controlled futures
    # ------------------------------------------------------------------

    def create_controlled_future(self) -> ControlledFuture[Any]:
        """Create a future settled later from a key handler.

        Must be called while an event loop is running.
        """
        controlled: ControlledFuture[Any] = ControlledFuture(on_settle=self._pending.discard)
        self._pending.add(controlled)
        return controlled

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def cancel_pending(self, reason: str = "CLI cleanup - operation cancelled") -> int:
        """Reject every pending controlled future; returns how many."""
        pending = list(self._pending)
        self._pending.clear()
        rejected = 0
        for controlled in pending:
            try:
                if controlled.reject(CancellationError(reason)):
                    rejected += 1
            except RuntimeError:
                # Owning loop already closed; nobody can await it any more.
                logger.debug("Skipped cancelling a future of a closed loop")
        return rejected

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @property
    def terminal(self) -> Terminal:
        return self._terminal

    def write(self, text: str) -> None:
        self._terminal.write(text)

    def write_line(self, text: str = "") -> None:
        self._terminal.write(text + "\n")

    def print(self, *objects: object) -> None:
        """Render *objects* with Rich, or plain text when Rich is missing."""
        try:
            console = self._get_rich_console()
        except EnvironmentError:
            self.write_line(" ".join(str(obj) for obj in objects))
            return
        console.print(*objects)

    def _get_rich_console(self) -> Any:
        if self._rich_console is None:
            try:
                from rich.console import Console
            except ModuleNotFoundError as exc:
                raise EnvironmentError(
                    "rich is not installed. Install with: pip install rich",
                ) from exc
            self._rich_console = Console(file=self._terminal.stream)
        return self._rich_console

    def clear_screen(self) -> None:
        self._terminal.clear_screen()

    def clear_line(self) -> None:
        self._terminal.clear_line()

    def move_to(self, x: int, y: int) -> None:
        self._terminal.move_to(x, y)

    def move_up(self, lines: int = 1) -> None:
        self._terminal.move_up(lines)

    def move_down(self, lines: int = 1) -> None:
        self._terminal.move_down(lines)

    def move_left(self, columns: int = 1) -> None:
        self._terminal.move_left(columns)

    def move_right(self, columns: int = 1) -> None:
        self._terminal.move_right(columns)

    def save_cursor(self) -> None:
        self._terminal.save_cursor()

    def restore_cursor(self) -> None:
        self._terminal.restore_cursor()

    def hide_cursor(self) -> None:
        self._terminal.hide_cursor()

    def show_cursor(self) -> None:
        self._terminal.show_cursor()

    def enable_alt_screen(self) -> None:
        self._terminal.enable_alt_screen()

    def disable_alt_screen(self) -> None:
        self._terminal.disable_alt_screen()

    def get_size(self) -> tuple[int, int]:
        return self._terminal.get_size()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Release the terminal (idempotent).

        A failure to restore the terminal mode is re-raised only after
        pending futures, handlers and ownership have been released.
        """
        try:
            try:
                self._terminal.show_cursor()
            except (OSError, ValueError):
                # Output stream already closed at interpreter shutdown.
                pass

            self._detach_reader()
            if self._raw_mode is not None:
                raw_mode, self._raw_mode = self._raw_mode, None
                raw_mode.disable()
        finally:
            self._decoder.reset()
            self.cancel_pending()
            self._handlers.clear()
            self._in_session = False
            self._ownership.release(self)


# ---------------------------------------------------------------------------
# Waiting helpers
# ---------------------------------------------------------------------------

class _Timeout:
    """Sentinel returned by :func:`wait_for_key_or_timeout`."""

    _instance: _Timeout | None = None

    def __new__(cls) -> _Timeout:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TIMEOUT"

    def __bool__(self) -> bool:
        return False


TIMEOUT = _Timeout()


async def wait_for_keys(cli: InteractiveCLI, patterns: tuple[KeyPattern, ...]) -> KeyPress:
    """Resolve with the first key matching any of *patterns*."""
    controlled = cli.create_controlled_future()

    def handler(key: KeyPress) -> None:
        if any(matches(key, pattern) for pattern in patterns):
            cli.off_key_press(handler)
            controlled.resolve(key)

    cli.on_key_press(handler)
    try:
        return await controlled
    finally:
        cli.off_key_press(handler)


async def wait_for_key(cli: InteractiveCLI, pattern: KeyPattern) -> KeyPress:
    return await wait_for_keys(cli, (pattern,))


async def wait_for_any_key(cli: InteractiveCLI) -> KeyPress:
    return await wait_for_keys(cli, (KeyPattern(),))


async def wait_for_enter(cli: InteractiveCLI) -> None:
    await wait_for_key(cli, KeyPattern(name="return"))


async def wait_for_escape(cli: InteractiveCLI) -> None:
    await wait_for_key(cli, KeyPattern(name="escape"))


async def wait_for_ctrl_c(cli: InteractiveCLI) -> None:
    await wait_for_key(cli, KeyPattern(name="c", ctrl=True))


async def wait_for_key_or_timeout(
    cli: InteractiveCLI,
    pattern: KeyPattern,
    timeout: float,
) -> KeyPress | _Timeout:
    """Resolve with a matching key, or :data:`TIMEOUT` after *timeout* seconds.

    Whichever happens first wins; the key handler and the timer are
    both removed before returning.
    """
    controlled = cli.create_controlled_future()
    loop = asyncio.get_running_loop()

    def handler(key: KeyPress) -> None:
        if matches(key, pattern):
            cli.off_key_press(handler)
            controlled.resolve(key)

    def expire() -> None:
        cli.off_key_press(handler)
        controlled.resolve(TIMEOUT)

    cli.on_key_press(handler)
    timer = loop.call_later(timeout, expire)
    try:
        return await controlled
    finally:
        timer.cancel()
        cli.off_key_press(handler)
