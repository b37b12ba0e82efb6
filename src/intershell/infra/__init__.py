"""Infrastructure layer — terminal integration.

This layer wraps all interaction with the operating system's terminal:
raw input mode, the stdin reader and ANSI output.

Rules
-----
* No imports from ``cli``.
* Terminal errors surface as :class:`~intershell.exceptions.TerminalError`.
"""

from intershell.infra.interactive_cli import (
    TIMEOUT,
    InteractiveCLI,
    wait_for_any_key,
    wait_for_ctrl_c,
    wait_for_enter,
    wait_for_escape,
    wait_for_key,
    wait_for_key_or_timeout,
    wait_for_keys,
)
from intershell.infra.terminal import Terminal, TerminalStatus, detect_terminal

__all__: list[str] = [
    "TIMEOUT",
    "InteractiveCLI",
    "Terminal",
    "TerminalStatus",
    "detect_terminal",
    "wait_for_any_key",
    "wait_for_ctrl_c",
    "wait_for_enter",
    "wait_for_escape",
    "wait_for_key",
    "wait_for_key_or_timeout",
    "wait_for_keys",
]
