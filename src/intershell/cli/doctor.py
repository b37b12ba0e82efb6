"""``intershell doctor`` — environment diagnostics.

Collects what an interactive session depends on (Python version, the
UI libraries, terminal capabilities) and prints a summary table.
"""

from __future__ import annotations

import platform
import sys
from importlib import metadata

from intershell.cli import exit_codes
from intershell.cli.console import console
from intershell.infra.terminal import TerminalStatus, detect_terminal
from intershell.version import __version__

Check = tuple[str, str, str]

_OK = "[green]OK[/green]"
_WARN = "[yellow]WARN[/yellow]"
_FAIL = "[red]FAIL[/red]"


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> Check:
    ok = sys.version_info[:2] >= (3, 10)
    status = _OK if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", platform.python_version(), status


def _package_check(distribution: str, *, required: bool) -> Check:
    """Return the installed version of *distribution*.

    A missing required package fails the run; a missing optional one
    only warns.
    """
    try:
        version = metadata.version(distribution)
    except metadata.PackageNotFoundError:
        return distribution, "NOT INSTALLED", _FAIL if required else _WARN
    return distribution, version, _OK


def _terminal_checks(status: TerminalStatus) -> list[Check]:
    tty = "stdin/stdout are TTYs" if status.stdin_tty and status.stdout_tty else "not a TTY"
    return [
        ("Terminal", f"{tty} ({status.term})", _OK if status.interactive else _WARN),
        ("Raw mode", "supported" if status.raw_mode_supported else "unavailable",
         _OK if status.raw_mode_supported else _FAIL),
        ("Size", f"{status.width}x{status.height}", _OK),
    ]


def _os_check() -> Check:
    system = {"Darwin": "macOS"}.get(platform.system(), platform.system())
    return "OS", f"{system} {platform.release()} ({platform.machine()})", _OK


def collect_checks(status: TerminalStatus | None = None) -> list[Check]:
    """Gather every diagnostic row as ``(component, value, status)``."""
    return [
        ("intershell", __version__, _OK),
        _python_version_check(),
        _package_check("rich", required=True),
        _package_check("questionary", required=False),
        *_terminal_checks(status or detect_terminal()),
        _os_check(),
    ]


def _status_plain(status: str) -> str:
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_table(checks: list[Check]) -> None:
    print("\nintershell doctor", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    print(f"{'Component':<12} {'Value':<36} {'Status':<8}", file=sys.stderr)
    print("-" * 60, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<12} {value:<36} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(status: TerminalStatus | None = None) -> int:
    """Print the diagnostics table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` unless a check failed, then
        :data:`exit_codes.GENERAL_ERROR`.
    """
    checks = collect_checks(status)
    has_failure = any("FAIL" in check_status for _, _, check_status in checks)

    try:
        from rich.table import Table
    except ModuleNotFoundError:
        _print_plain_table(checks)
        print("Some checks failed." if has_failure else "All checks passed.", file=sys.stderr)
        return exit_codes.GENERAL_ERROR if has_failure else exit_codes.SUCCESS

    table = Table(
        title="intershell doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=12)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, check_status in checks:
        table.add_row(label, value, check_status)

    console.print()
    console.print(table)
    console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR
    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
