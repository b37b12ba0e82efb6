"""Protocols (interfaces) consumed by the core layer.

These define the extension surface of the framework.  Pages, plugins
and renderers are matched structurally — any object with the right
attributes qualifies — and are checked by
:mod:`intershell.core.contracts` when they are registered.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

from intershell.core.keys import KeyPress
from intershell.core.models import Action, PageAction, PageMetadata, ValidationResult

if TYPE_CHECKING:
    from intershell.core.controlled import ControlledFuture


Reducer = Callable[[Any, Action], Any]
"""Pure ``(state, action) -> state`` transition."""

ReducerMap = Mapping[str, Reducer]

Next = Callable[[Action], Any]

Middleware = Callable[[Action, Any, Next], Any]
"""``(action, state, next) -> state``; decides whether/how to call ``next``."""

StateListener = Callable[[Any, Any], None]
"""Subscriber called with ``(new_state, previous_state)``."""

KeyHandler = Callable[[KeyPress], None]


class KeyEventSource(Protocol):
    """The terminal abstraction pages render through.

    :class:`~intershell.infra.interactive_cli.InteractiveCLI` is the
    concrete implementation.
    """

    def on_key_press(self, handler: KeyHandler) -> None: ...  # pragma: no cover

    def off_key_press(self, handler: KeyHandler) -> None: ...  # pragma: no cover

    def create_controlled_future(self) -> ControlledFuture[Any]: ...  # pragma: no cover

    def write(self, text: str) -> None: ...  # pragma: no cover

    def write_line(self, text: str = "") -> None: ...  # pragma: no cover

    def print(self, *objects: object) -> None: ...  # pragma: no cover

    def clear_screen(self) -> None: ...  # pragma: no cover

    def clear_line(self) -> None: ...  # pragma: no cover

    def move_up(self, lines: int = 1) -> None: ...  # pragma: no cover

    def move_to(self, x: int, y: int) -> None: ...  # pragma: no cover

    def hide_cursor(self) -> None: ...  # pragma: no cover

    def show_cursor(self) -> None: ...  # pragma: no cover

    def cleanup(self) -> None: ...  # pragma: no cover


class Page(Protocol):
    """A named unit of interactive behaviour.

    Required members are listed here.  The optional hooks
    (``can_navigate_to``, ``on_enter``, ``on_exit``, ``validate``,
    ``can_skip``) and the ``description``, ``icon`` and ``metadata``
    attributes are looked up with :func:`getattr` and may be absent or
    ``None``.
    """

    id: str
    title: str

    async def render(self, cli: KeyEventSource, state: Any) -> Action | None:
        """Draw the page and await any user input it needs."""
        ...  # pragma: no cover

    def handle_key(self, key: KeyPress, state: Any) -> Action | None:
        """Map a key pressed while the page is active to a store action."""
        ...  # pragma: no cover

    def get_next_action(self, state: Any) -> PageAction:
        """Decide where navigation goes once rendering has finished."""
        ...  # pragma: no cover


class OptionalPageHooks(Protocol):
    """Signatures of the optional page members, for reference."""

    description: str | None
    icon: str | None
    metadata: PageMetadata | None

    def can_navigate_to(self, target: str, state: Any) -> bool: ...  # pragma: no cover

    def on_enter(self, state: Any) -> Awaitable[None] | None: ...  # pragma: no cover

    def on_exit(self, state: Any) -> Awaitable[None] | None: ...  # pragma: no cover

    def validate(self, state: Any) -> ValidationResult: ...  # pragma: no cover

    def can_skip(self, state: Any) -> bool: ...  # pragma: no cover


class Renderer(Protocol):
    """Alternative output strategy contributed by a plugin."""

    name: str

    def can_render(self, page: Page) -> bool: ...  # pragma: no cover

    async def render(
        self, page: Page, state: Any, cli: KeyEventSource,
    ) -> Action | None: ...  # pragma: no cover


class Plugin(Protocol):
    """A bundle of framework contributions.

    Only ``name`` and ``version`` are required; ``pages``, ``reducers``,
    ``middleware``, ``renderers``, ``on_install`` and ``on_uninstall``
    are optional.
    """

    name: str
    version: str

    pages: Iterable[Page]
    reducers: ReducerMap
    middleware: Iterable[Middleware]
    renderers: Iterable[Renderer]
