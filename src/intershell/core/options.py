"""Framework configuration.

:class:`FrameworkOptions` is the externally visible configuration
surface.  It validates itself on construction so that a bad value is
reported as a :class:`~intershell.exceptions.ConfigurationError` at
build time rather than surfacing mid-run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

from intershell.core.keys import KeyPattern
from intershell.exceptions import ConfigurationError

RENDER_MODES: frozenset[str] = frozenset({"immediate", "debounced", "throttled"})

LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

DEFAULT_EXIT_KEYS: tuple[KeyPattern, ...] = (KeyPattern(name="c", ctrl=True),)
DEFAULT_HELP_KEY: KeyPattern = KeyPattern(name="f1")


@dataclass(frozen=True, slots=True)
class FrameworkOptions:
    """Recognised framework options with their defaults."""

    debug: bool = False
    """Emit ``debug`` events and log at DEBUG level."""

    log_level: str = "info"
    """One of ``error``, ``warning`` (``warn``), ``info``, ``debug``."""

    enable_hotkeys: bool = True
    """Honour :attr:`exit_keys` and :attr:`help_key` while a page is active."""

    enable_history: bool = True
    max_history_size: int = 50

    render_mode: str = "immediate"
    """``immediate``, ``debounced`` or ``throttled``."""

    render_delay: float = 0.0
    """Seconds used by the ``debounced`` and ``throttled`` render modes."""

    exit_keys: tuple[KeyPattern, ...] = DEFAULT_EXIT_KEYS
    help_key: KeyPattern | None = DEFAULT_HELP_KEY

    fatal_dispatch_errors: bool = False
    """Re-raise dispatch errors instead of reporting them and continuing."""

    def __post_init__(self) -> None:
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"Unknown log level: {self.log_level!r}",
                hint=f"Use one of: {', '.join(sorted(LOG_LEVELS))}",
            )
        if self.render_mode not in RENDER_MODES:
            raise ConfigurationError(
                f"Unknown render mode: {self.render_mode!r}",
                hint=f"Use one of: {', '.join(sorted(RENDER_MODES))}",
            )
        if self.render_delay < 0:
            raise ConfigurationError("render_delay must not be negative.")
        if isinstance(self.max_history_size, bool) or self.max_history_size < 1:
            raise ConfigurationError(
                f"max_history_size must be at least 1, got {self.max_history_size!r}",
            )
        if not isinstance(self.exit_keys, tuple):
            # Lists are accepted but stored as tuples so the value stays hashable.
            object.__setattr__(self, "exit_keys", tuple(self.exit_keys))

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def effective_log_level(self) -> int:
        """The :mod:`logging` level implied by ``debug`` and ``log_level``."""
        if self.debug:
            return logging.DEBUG
        return LOG_LEVELS[self.log_level]

    def merged(self, **changes: Any) -> FrameworkOptions:
        """Return new options with *changes* applied (validated)."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown framework option(s): {', '.join(unknown)}",
            )
        return replace(self, **changes)
