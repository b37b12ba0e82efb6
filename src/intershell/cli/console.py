"""Stderr console used for diagnostics and error reporting.

Rich is imported lazily so ``intershell --version`` and the error
boundary keep working in an environment where it is missing.
"""

from __future__ import annotations

import sys
from typing import Any

from intershell.exceptions import EnvironmentError


def _load_rich_console_class() -> type[Any]:
    try:
        from rich.console import Console
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Console


def get_rich_console() -> Any:
    """Create a Rich console writing to stderr."""
    return _load_rich_console_class()(stderr=True)


class _StderrConsole:
    """``print``-compatible stderr writer; plain text when Rich is absent."""

    def print(self, *objects: object) -> None:
        try:
            rich_console = get_rich_console()
        except EnvironmentError:
            print(*objects, file=sys.stderr)
            return
        rich_console.print(*objects)


console = _StderrConsole()
