"""Ready-made pages for common wizard steps.

Each factory returns a :class:`~intershell.core.pages.FunctionalPage`
whose ``render`` asks one question and returns a
:func:`~intershell.core.reducers.set_field` action with the answer.
The framework dispatches that action, so the framework needs
:func:`~intershell.core.reducers.field_reducer` among its reducers::

    framework = create_simple_framework(
        {"name": ""},
        [create_input_page("name", "Name", "What is your name?", field="name")],
        {"fields": field_reducer},
    )

Every factory clears the screen before drawing its header.  Pass
``clear_screen=False`` when a renderer such as
:class:`~intershell.cli.renderers.PanelRenderer` has already drawn the
top of the page.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from intershell.cli.prompts import TextValidator, confirm, prompt_text, select
from intershell.core.models import Action, NextPage, PageAction
from intershell.core.pages import FunctionalPage, PageBuilder
from intershell.core.protocols import KeyEventSource
from intershell.core.reducers import get_field, set_field
from intershell.infra.interactive_cli import wait_for_any_key

_RULE_WIDTH = 50


def _header(
    cli: KeyEventSource,
    title: str,
    question: str | None = None,
    *,
    clear_screen: bool = True,
) -> None:
    if clear_screen:
        cli.clear_screen()
    cli.print(f"[bold]{title}[/bold]")
    cli.write_line("─" * _RULE_WIDTH)
    if question:
        cli.write_line(question)


def _no_key_action(_key: Any, _state: Any) -> None:
    return None


def _next_page(_state: Any) -> PageAction:
    return NextPage()


def create_input_page(
    page_id: str,
    title: str,
    question: str,
    *,
    field: str,
    validator: TextValidator | None = None,
    default: str | None = None,
    clear_screen: bool = True,
) -> FunctionalPage:
    """Page reading one line of text into ``state[field]``.

    *validator* is applied while typing and again before moving on, so
    a state edited elsewhere cannot slip past it.
    """

    async def render(cli: KeyEventSource, state: Any) -> Action:
        _header(cli, title, question, clear_screen=clear_screen)
        value = await prompt_text(
            cli,
            "Enter value",
            default=default or get_field(state, field) or None,
            allow_empty=validator is None,
            validator=validator,
        )
        return set_field(field, value)

    builder = (
        PageBuilder.create(page_id, title)
        .description(question)
        .render(render)
        .handle_key(_no_key_action)
        .get_next_action(_next_page)
    )
    if validator is not None:
        builder = builder.validate(lambda state: validator(get_field(state, field) or ""))
    return builder.build()


def create_select_page(
    page_id: str,
    title: str,
    question: str,
    options: Sequence[str],
    *,
    field: str,
    multiple: bool = False,
    clear_screen: bool = True,
) -> FunctionalPage:
    """Page choosing from *options*.

    Stores the chosen string, or the list of chosen strings when
    *multiple* is set.
    """
    choices = tuple(options)

    async def render(cli: KeyEventSource, state: Any) -> Action:
        _header(cli, title, clear_screen=clear_screen)
        picked = await select(cli, question, choices, multiple=multiple)
        return set_field(field, picked if multiple else picked[0])

    return (
        PageBuilder.create(page_id, title)
        .description(question)
        .render(render)
        .handle_key(_no_key_action)
        .get_next_action(_next_page)
        .build()
    )


def create_confirm_page(
    page_id: str,
    title: str,
    question: str,
    *,
    field: str,
    default: bool = False,
    clear_screen: bool = True,
) -> FunctionalPage:
    """Page storing a yes/no answer."""

    async def render(cli: KeyEventSource, state: Any) -> Action:
        _header(cli, title, clear_screen=clear_screen)
        answer = await confirm(cli, question, default)
        return set_field(field, answer)

    return (
        PageBuilder.create(page_id, title)
        .description(question)
        .render(render)
        .handle_key(_no_key_action)
        .get_next_action(_next_page)
        .build()
    )


def create_info_page(
    page_id: str,
    title: str,
    content: str | Callable[[Any], str],
    *,
    clear_screen: bool = True,
) -> FunctionalPage:
    """Page showing *content* (text or ``state -> text``) until a key is pressed."""

    async def render(cli: KeyEventSource, state: Any) -> None:
        _header(cli, title, clear_screen=clear_screen)
        cli.write_line(content(state) if callable(content) else content)
        cli.write_line()
        cli.write_line("Press any key to continue...")
        await wait_for_any_key(cli)

    return (
        PageBuilder.create(page_id, title)
        .render(render)
        .handle_key(_no_key_action)
        .get_next_action(_next_page)
        .build()
    )

