"""Built-in demo wizards for ``intershell demo``.

``profile``
    Plain mapping state, assembled entirely from the page factories.
``branch``
    Dataclass state, hand-written pages, a branch-name validator and a
    plugin contributing the :class:`PanelRenderer` and an action log.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from intershell.builder import FrameworkBuilder, create_framework
from intershell.cli.pages import (
    create_confirm_page,
    create_info_page,
    create_input_page,
    create_select_page,
)
from intershell.cli.prompts import confirm, prompt_text, select
from intershell.cli.renderers import PanelRenderer
from intershell.core.models import Action, ChangePage, Exit, NextPage, PageAction, ValidationResult
from intershell.core.options import FrameworkOptions
from intershell.core.pages import FunctionalPage, PageBuilder
from intershell.core.plugins import PluginDefinition
from intershell.core.protocols import KeyEventSource, Next
from intershell.core.reducers import field_reducer, set_field
from intershell.framework import Framework
from intershell.infra.interactive_cli import InteractiveCLI, wait_for_any_key

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Branch naming rules
# ---------------------------------------------------------------------------

BRANCH_PREFIXES: tuple[str, ...] = (
    "feature",
    "bugfix",
    "fix",
    "hotfix",
    "release",
    "docs",
    "refactor",
    "ci",
    "chore",
)

MAX_BRANCH_NAME_LENGTH = 100

_ALLOWED_CHARACTERS = re.compile(r"^[a-zA-Z0-9\-_/]+$")
_CONSECUTIVE_SEPARATORS = re.compile(r"[-_/]{2,}")
_EDGE_SEPARATORS = re.compile(r"(^[-_/]|[-_/]$)")


def validate_branch_name(name: str) -> ValidationResult:
    """Check the part of a branch name after ``<prefix>/``."""
    if not name:
        return ValidationResult.fail("Branch name should be at least 1 character long.")
    if len(name) > MAX_BRANCH_NAME_LENGTH:
        return ValidationResult.fail(
            f"Branch name should be at most {MAX_BRANCH_NAME_LENGTH} characters, "
            f"received: {len(name)}.",
        )
    if not _ALLOWED_CHARACTERS.match(name):
        return ValidationResult.fail(
            "Branch name can only contain letters, numbers, hyphens, "
            "underscores and forward slashes.",
        )
    if _CONSECUTIVE_SEPARATORS.search(name):
        return ValidationResult.fail("Branch name should not have consecutive separators.")
    if _EDGE_SEPARATORS.search(name):
        return ValidationResult.fail("Branch name should not start or end with a separator.")
    return ValidationResult.ok()


@dataclass(frozen=True)
class BranchDraft:
    prefix: str = ""
    name: str = ""
    confirmed: bool = False

    @property
    def branch(self) -> str:
        return f"{self.prefix}/{self.name}"


# ---------------------------------------------------------------------------
# Branch wizard
# ---------------------------------------------------------------------------

def log_actions(action: Action, state: Any, next_: Next) -> Any:
    """Middleware recording every dispatched action at DEBUG level."""
    logger.debug("dispatch %s %r", action.type, action.payload)
    return next_(action)


def _ignore_key(_key: Any, _state: Any) -> None:
    return None


async def _render_prefix(cli: KeyEventSource, state: BranchDraft) -> Action:
    picked = await select(cli, "Branch prefix:", BRANCH_PREFIXES)
    return set_field("prefix", picked[0])


async def _render_name(cli: KeyEventSource, state: BranchDraft) -> Action:
    cli.write_line(f"Creating {state.prefix}/<name>")
    name = await prompt_text(
        cli,
        "Branch name",
        default=state.name or None,
        validator=validate_branch_name,
    )
    return set_field("name", name)


async def _render_confirm(cli: KeyEventSource, state: BranchDraft) -> Action:
    answer = await confirm(cli, f"Create branch {state.branch}?", default=True)
    return set_field("confirmed", answer)


async def _render_summary(cli: KeyEventSource, state: BranchDraft) -> None:
    cli.print(f"[green]Branch name:[/green] [bold]{state.branch}[/bold]")
    cli.write_line("Press any key to exit...")
    await wait_for_any_key(cli)


def _after_confirm(state: BranchDraft) -> PageAction:
    return NextPage() if state.confirmed else ChangePage("prefix")


def branch_pages() -> list[FunctionalPage]:
    return [
        PageBuilder.create("prefix", "Branch prefix")
        .description("Pick the kind of change this branch carries.")
        .icon("🌿")
        .render(_render_prefix)
        .handle_key(_ignore_key)
        .get_next_action(lambda state: NextPage())
        .build(),
        PageBuilder.create("name", "Branch name")
        .description("Letters, numbers, '-', '_' and '/'.")
        .icon("📝")
        .render(_render_name)
        .handle_key(_ignore_key)
        .get_next_action(lambda state: NextPage())
        .validate(lambda state: validate_branch_name(state.name))
        .build(),
        PageBuilder.create("confirm", "Confirm")
        .render(_render_confirm)
        .handle_key(_ignore_key)
        .get_next_action(_after_confirm)
        .build(),
        PageBuilder.create("summary", "Done")
        .render(_render_summary)
        .handle_key(_ignore_key)
        .get_next_action(lambda state: Exit())
        .build(),
    ]


def branch_plugin() -> PluginDefinition:
    return PluginDefinition(
        name="branch-panels",
        version="1.0.0",
        middleware=(log_actions,),
        renderers=(PanelRenderer(border_style="green"),),
    )


def branch_builder() -> FrameworkBuilder:
    return (
        create_framework()
        .with_initial_state(BranchDraft())
        .with_pages(branch_pages())
        .with_reducer("fields", field_reducer)
        .with_plugin(branch_plugin())
    )


# ---------------------------------------------------------------------------
# Profile wizard
# ---------------------------------------------------------------------------

PROFILE_COLORS: tuple[str, ...] = ("red", "green", "blue", "yellow")


def _profile_summary(state: dict[str, Any]) -> str:
    newsletter = "yes" if state.get("newsletter") else "no"
    return (
        f"Name:       {state.get('name') or '-'}\n"
        f"Color:      {state.get('color') or '-'}\n"
        f"Newsletter: {newsletter}"
    )


def profile_builder() -> FrameworkBuilder:
    pages = [
        create_input_page("name", "Your name", "What should we call you?", field="name"),
        create_select_page("color", "Favourite color", "Pick one:", PROFILE_COLORS, field="color"),
        create_confirm_page(
            "newsletter", "Newsletter", "Subscribe to the newsletter?", field="newsletter",
        ),
        create_info_page("summary", "Summary", _profile_summary),
    ]
    return (
        create_framework()
        .with_initial_state({"name": "", "color": None, "newsletter": False})
        .with_pages(pages)
        .with_reducer("fields", field_reducer)
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Demo:
    name: str
    description: str
    builder: Callable[[], FrameworkBuilder]
    summarize: Callable[[Any], str]

    def build(
        self,
        options: FrameworkOptions | None = None,
        cli: InteractiveCLI | None = None,
    ) -> Framework:
        builder = self.builder()
        if options is not None:
            builder = builder.with_options(options)
        if cli is not None:
            builder = builder.with_cli(cli)
        return builder.build()


DEMOS: dict[str, Demo] = {
    demo.name: demo
    for demo in (
        Demo(
            "branch",
            "Name a git branch following prefix/name rules",
            branch_builder,
            lambda state: f"Branch: {state.branch}",
        ),
        Demo(
            "profile",
            "Fill in a small user profile",
            profile_builder,
            _profile_summary,
        ),
    )
}
