"""Command-line entry point and error boundary for ``intershell``.

Commands
--------
* ``intershell --version``
* ``intershell doctor``               environment diagnostics
* ``intershell demo [NAME]``          run a built-in wizard

:func:`cli` is the only place that turns exceptions into process exit
codes.  :func:`main` takes an explicit *argv* so tests can drive it
without touching ``sys.argv``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from intershell.cli import exit_codes
from intershell.cli.console import console
from intershell.exceptions import ConfigurationError, EnvironmentError, IntershellError, TerminalError
from intershell.version import __version__


def _import_questionary() -> Any:
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "questionary is not installed. Install with: pip install questionary",
            hint="Or name the demo explicitly: intershell demo branch",
        ) from exc
    return questionary


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intershell",
        description="Page-based interactive terminal applications.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("doctor", help="Check the terminal and installed dependencies.")

    demo = commands.add_parser("demo", help="Run a built-in demo wizard.")
    demo.add_argument(
        "name",
        nargs="?",
        default=None,
        help="Demo to run; chosen interactively when omitted.",
    )
    demo.add_argument("--debug", action="store_true", help="Enable debug events and logging.")
    demo.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level.")
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _handle_doctor() -> int:
    from intershell.cli.doctor import run_doctor

    return run_doctor()


def _choose_demo(names: list[str]) -> str:
    from intershell.cli.demos import DEMOS

    questionary = _import_questionary()
    choices = [
        questionary.Choice(title=f"{name:<10} {DEMOS[name].description}", value=name)
        for name in names
    ]
    selected: str | None = questionary.select(
        "Which demo?",
        choices=choices,
        use_arrow_keys=True,
    ).ask()  # None on Ctrl+C / Esc
    if selected is None:
        raise IntershellError(
            "No demo selected.",
            hint="Use the arrow keys to pick a demo, then press Enter.",
        )
    return selected


def _handle_demo(name: str | None, *, debug: bool, verbose: bool) -> int:
    from intershell.cli.demos import DEMOS
    from intershell.cli.log import configure_logging
    from intershell.core.options import FrameworkOptions
    from intershell.infra.terminal import detect_terminal

    if name is not None and name not in DEMOS:
        raise ConfigurationError(
            f"Unknown demo: {name!r}",
            hint=f"Available demos: {', '.join(sorted(DEMOS))}",
        )
    if not detect_terminal().interactive:
        raise TerminalError(
            "Demos need an interactive terminal.",
            hint="Run intershell doctor to see what is missing.",
        )

    demo = DEMOS[name or _choose_demo(sorted(DEMOS))]

    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    configure_logging(level)
    options = FrameworkOptions(
        debug=debug,
        log_level="info" if verbose else "warning",
    )

    framework = demo.build(options)
    final_state = asyncio.run(framework.run())

    console.print(f"\n[bold green]{demo.summarize(final_state)}[/bold green]")
    return exit_codes.SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the intershell CLI and return the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "doctor":
        return _handle_doctor()
    if args.command == "demo":
        return _handle_demo(args.name, debug=args.debug, verbose=args.verbose)

    parser.print_help()
    return exit_codes.SUCCESS


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point; never exits with a raw traceback."""
    try:
        code = main()
        sys.exit(code)
    except IntershellError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {exc.hint}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
