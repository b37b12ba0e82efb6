"""Key-driven prompts for use inside page ``render`` methods.

Each prompt registers a key handler on the CLI, settles a controlled
future from it and always removes the handler before returning.  They
read from the framework's own key stream, so they work unchanged in a
raw-mode session and with keys injected through
:meth:`~intershell.infra.interactive_cli.InteractiveCLI.feed`.

If the session is torn down while a prompt is waiting (exit hotkey,
signal), the await raises
:class:`~intershell.exceptions.CancellationError`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from intershell.core.keys import KeyPress
from intershell.core.models import ValidationResult
from intershell.core.protocols import KeyEventSource
from intershell.exceptions import ConfigurationError

TextValidator = Callable[[str], ValidationResult]


def _is_text(key: KeyPress) -> bool:
    return (
        len(key.sequence) == 1
        and key.sequence.isprintable()
        and not key.ctrl
        and not key.meta
    )


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

async def prompt_text(
    cli: KeyEventSource,
    message: str,
    *,
    default: str | None = None,
    allow_empty: bool = False,
    validator: TextValidator | None = None,
) -> str:
    """Read one line of text.

    Parameters
    ----------
    cli:
        Key source and output.
    message:
        Question shown before the input.
    default:
        Returned when the user submits an empty line.
    allow_empty:
        Accept an empty answer when there is no *default*.
    validator:
        Called on submit; an invalid result prints its errors and the
        prompt starts over.

    Returns
    -------
    str
        The accepted answer.
    """
    suffix = f" ({default})" if default else ""
    prompt_line = f"{message}{suffix}: "
    buffer: list[str] = []
    controlled = cli.create_controlled_future()

    def restart(errors: Sequence[str]) -> None:
        cli.write("\n")
        for error in errors:
            cli.write_line(f"  ! {error}")
        buffer.clear()
        cli.write(prompt_line)

    def handler(key: KeyPress) -> None:
        if key.name == "return":
            value = "".join(buffer)
            if not value and default is not None:
                value = default
            if not value and not allow_empty:
                restart(["A value is required."])
                return
            if validator is not None:
                result = validator(value)
                if not result.is_valid:
                    restart(result.errors)
                    return
            cli.off_key_press(handler)
            cli.write("\n")
            controlled.resolve(value)
        elif key.name == "backspace":
            if buffer:
                buffer.pop()
                cli.write("\b \b")
        elif _is_text(key):
            buffer.append(key.sequence)
            cli.write(key.sequence)

    cli.write(prompt_line)
    cli.on_key_press(handler)
    try:
        return await controlled
    finally:
        cli.off_key_press(handler)


# ---------------------------------------------------------------------------
# Yes / no
# ---------------------------------------------------------------------------

async def confirm(cli: KeyEventSource, message: str, default: bool = False) -> bool:
    """Ask a yes/no question; ``return`` picks *default*."""
    hint = "Y/n" if default else "y/N"
    controlled = cli.create_controlled_future()

    def answer(value: bool) -> None:
        cli.off_key_press(handler)
        cli.write_line("yes" if value else "no")
        controlled.resolve(value)

    def handler(key: KeyPress) -> None:
        if key.name == "return":
            answer(default)
        elif key.sequence in ("y", "Y"):
            answer(True)
        elif key.sequence in ("n", "N"):
            answer(False)

    cli.write(f"{message} ({hint}) ")
    cli.on_key_press(handler)
    try:
        return await controlled
    finally:
        cli.off_key_press(handler)


# ---------------------------------------------------------------------------
# Choice list
# ---------------------------------------------------------------------------

def _option_lines(
    options: Sequence[str],
    cursor: int,
    chosen: set[int],
    multiple: bool,
) -> list[str]:
    lines = []
    for index, option in enumerate(options):
        pointer = ">" if index == cursor else " "
        if multiple:
            mark = "[x]" if index in chosen else "[ ]"
            lines.append(f"{pointer} {mark} {option}")
        else:
            lines.append(f"{pointer} {option}")
    return lines


async def select(
    cli: KeyEventSource,
    message: str,
    options: Sequence[str],
    *,
    multiple: bool = False,
) -> list[str]:
    """Pick from *options* with the arrow keys.

    ``up``/``down`` move (wrapping), ``space`` toggles an option when
    *multiple* is set, ``return`` confirms.  The result is always a
    list: the highlighted option, or the toggled options in display
    order (the highlighted one when nothing was toggled).

    Raises
    ------
    ConfigurationError
        If *options* is empty.
    """
    if not options:
        raise ConfigurationError("select() needs at least one option.")

    cursor = 0
    chosen: set[int] = set()
    controlled = cli.create_controlled_future()

    def draw(first: bool = False) -> None:
        if not first:
            cli.move_up(len(options))
        for line in _option_lines(options, cursor, chosen, multiple):
            cli.clear_line()
            cli.write_line(line)

    def handler(key: KeyPress) -> None:
        nonlocal cursor
        if key.name == "up":
            cursor = (cursor - 1) % len(options)
            draw()
        elif key.name == "down":
            cursor = (cursor + 1) % len(options)
            draw()
        elif key.name == "space" and multiple:
            chosen.symmetric_difference_update({cursor})
            draw()
        elif key.name == "return":
            cli.off_key_press(handler)
            picked = sorted(chosen) if multiple and chosen else [cursor]
            controlled.resolve([options[index] for index in picked])

    cli.write_line(message)
    draw(first=True)
    cli.hide_cursor()
    cli.on_key_press(handler)
    try:
        return await controlled
    finally:
        cli.off_key_press(handler)
        cli.show_cursor()
