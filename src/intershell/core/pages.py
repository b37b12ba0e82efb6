"""Concrete page type and its fluent builder.

:class:`FunctionalPage` stores each page behaviour as a callable field,
which is how most wizards are written.  Classes that implement the same
members directly are equally valid pages.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from intershell.core.keys import KeyPress
from intershell.core.models import Action, NextPage, PageAction, PageMetadata, ValidationResult
from intershell.core.protocols import KeyEventSource
from intershell.exceptions import ContractError

RenderFn = Callable[[KeyEventSource, Any], Awaitable[Action | None]]
KeyFn = Callable[[KeyPress, Any], Action | None]
NextActionFn = Callable[[Any], PageAction]


async def _render_nothing(_cli: KeyEventSource, _state: Any) -> None:
    return None


def _ignore_key(_key: KeyPress, _state: Any) -> None:
    return None


def _always_next(_state: Any) -> PageAction:
    return NextPage()


@dataclass(frozen=True)
class FunctionalPage:
    """Immutable page assembled from callables."""

    id: str
    title: str
    render_fn: RenderFn = _render_nothing
    handle_key_fn: KeyFn = _ignore_key
    next_action_fn: NextActionFn = _always_next
    description: str | None = None
    icon: str | None = None
    can_navigate_to: Callable[[str, Any], bool] | None = None
    on_enter: Callable[[Any], Awaitable[None] | None] | None = None
    on_exit: Callable[[Any], Awaitable[None] | None] | None = None
    validate: Callable[[Any], ValidationResult] | None = None
    can_skip: Callable[[Any], bool] | None = None
    metadata: PageMetadata | None = None

    async def render(self, cli: KeyEventSource, state: Any) -> Action | None:
        return await self.render_fn(cli, state)

    def handle_key(self, key: KeyPress, state: Any) -> Action | None:
        return self.handle_key_fn(key, state)

    def get_next_action(self, state: Any) -> PageAction:
        return self.next_action_fn(state)


class PageBuilder:
    """Fluent construction of :class:`FunctionalPage` values.

    Usage::

        page = (
            PageBuilder.create("welcome", "Welcome")
            .render(show_banner)
            .handle_key(lambda key, state: None)
            .get_next_action(lambda state: NextPage())
            .build()
        )
    """

    def __init__(self, page: FunctionalPage) -> None:
        self._page = page
        self._set: frozenset[str] = frozenset()

    @classmethod
    def create(cls, page_id: str, title: str) -> PageBuilder:
        return cls(FunctionalPage(id=page_id, title=title))

    def _with(self, flag: str | None = None, **changes: Any) -> PageBuilder:
        builder = PageBuilder(replace(self._page, **changes))
        builder._set = self._set | {flag} if flag else self._set
        return builder

    def description(self, description: str) -> PageBuilder:
        return self._with(description=description)

    def icon(self, icon: str) -> PageBuilder:
        return self._with(icon=icon)

    def render(self, render_fn: RenderFn) -> PageBuilder:
        return self._with("render", render_fn=render_fn)

    def handle_key(self, key_fn: KeyFn) -> PageBuilder:
        return self._with("handle_key", handle_key_fn=key_fn)

    def get_next_action(self, next_fn: NextActionFn) -> PageBuilder:
        return self._with("get_next_action", next_action_fn=next_fn)

    def can_navigate_to(self, checker: Callable[[str, Any], bool]) -> PageBuilder:
        return self._with(can_navigate_to=checker)

    def on_enter(self, handler: Callable[[Any], Awaitable[None] | None]) -> PageBuilder:
        return self._with(on_enter=handler)

    def on_exit(self, handler: Callable[[Any], Awaitable[None] | None]) -> PageBuilder:
        return self._with(on_exit=handler)

    def validate(self, validator: Callable[[Any], ValidationResult]) -> PageBuilder:
        return self._with(validate=validator)

    def can_skip(self, checker: Callable[[Any], bool]) -> PageBuilder:
        return self._with(can_skip=checker)

    def metadata(self, metadata: PageMetadata) -> PageBuilder:
        return self._with(metadata=metadata)

    def build(self) -> FunctionalPage:
        """Return the page, failing if a required member was never set."""
        if not self._page.id:
            raise ContractError("Page ID is required")
        if not self._page.title:
            raise ContractError("Page title is required")
        missing = [
            name
            for name in ("render", "handle_key", "get_next_action")
            if name not in self._set
        ]
        if missing:
            raise ContractError(
                f"Page {self._page.id!r} is missing: {', '.join(missing)}",
            )
        return self._page
