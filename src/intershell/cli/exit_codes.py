"""Process exit codes returned by the ``intershell`` command."""

from __future__ import annotations

SUCCESS: int = 0
"""Command completed without error."""

GENERAL_ERROR: int = 1
"""A known IntershellError was caught and its message displayed."""

UNEXPECTED_ERROR: int = 2
"""An unhandled exception escaped every known error boundary."""

KEYBOARD_INTERRUPT: int = 130
"""Interrupted by Ctrl+C (128 + SIGINT)."""
