"""Custom exception hierarchy for intershell.

Every error the framework raises on purpose inherits from
:class:`IntershellError` so that the CLI error boundary can render a
clean message without leaking internal stack traces.

Hierarchy
---------
IntershellError
├── ConfigurationError
│   ├── DuplicatePageError
│   └── ContractError
├── NavigationError
├── PluginError
│   └── PluginConflictError
├── DispatchError
│   └── InvalidActionError
├── CancellationError
├── FrameworkStateError
└── EnvironmentError
    └── TerminalError
        └── TerminalBusyError
"""

from __future__ import annotations


class IntershellError(Exception):
    """Base exception for all intershell errors.

    Every user-visible error condition maps to a subclass of this
    exception.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Configuration ---------------------------------------------------------

class ConfigurationError(IntershellError):
    """Raised when builder preconditions or options are invalid.

    Always raised before any terminal I/O takes place.
    """


class DuplicatePageError(ConfigurationError):
    """Raised when two pages share the same ``id``."""

    def __init__(self, page_id: str, *, hint: str | None = None) -> None:
        super().__init__(f"Duplicate page id: {page_id!r}", hint=hint)
        self.page_id: str = page_id


class ContractError(ConfigurationError):
    """Raised when a page, plugin or renderer lacks a required capability."""


# --- Navigation ------------------------------------------------------------

class NavigationError(IntershellError):
    """Raised when a navigation request cannot be honoured."""

    def __init__(
        self,
        message: str,
        *,
        target: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.target: str | None = target


# --- Plugins ---------------------------------------------------------------

class PluginError(IntershellError):
    """Raised when a plugin cannot be installed or removed."""


class PluginConflictError(PluginError):
    """Raised on a duplicate plugin name or a colliding page id."""


# --- State store -----------------------------------------------------------

class DispatchError(IntershellError):
    """Raised when a middleware or reducer fails during dispatch."""

    def __init__(
        self,
        message: str,
        *,
        action_type: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.action_type: str | None = action_type


class InvalidActionError(DispatchError):
    """Raised when something other than a well-formed action is dispatched."""


# --- Lifecycle -------------------------------------------------------------

class CancellationError(IntershellError):
    """Raised into controlled futures still pending at cleanup time."""


class FrameworkStateError(IntershellError):
    """Raised when a framework is run twice or used after being destroyed."""


# --- Environment / terminal ------------------------------------------------

class EnvironmentError(IntershellError):
    """Raised when a required runtime dependency is not available."""


class TerminalError(EnvironmentError):
    """Raised when the terminal cannot be configured."""


class TerminalBusyError(TerminalError):
    """Raised when another instance already owns the terminal input."""
