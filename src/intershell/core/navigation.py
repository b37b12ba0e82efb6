"""Page registry and the navigation state machine.

States are page ids; ``None`` is the pseudo-state before the first
page is entered.  The engine keeps a bounded trail of
:class:`~intershell.core.models.HistoryEntry` values with a cursor
pointing at the current page, which is what ``go_back`` and
``go_forward`` move along.

History model
-------------
* Entering a page appends an entry for it and drops any entries ahead
  of the cursor.
* Leaving a page replaces its entry with a fresh one holding the
  departure snapshot, so going back restores the state exactly as it
  was when the page was left.
* When the trail exceeds ``max_history_size`` the oldest entries are
  evicted first.
"""

from __future__ import annotations

import copy
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any

from intershell.core.contracts import ensure_page
from intershell.core.events import EventBus, FrameworkEvent, NavigationChangeEvent, PageEvent
from intershell.core.models import HistoryEntry
from intershell.core.protocols import Page
from intershell.exceptions import DuplicatePageError, NavigationError

logger = logging.getLogger(__name__)

TransitionHook = Callable[[str, Any], Awaitable[None] | None]


async def maybe_await(value: Any) -> Any:
    """Await *value* when it is awaitable, otherwise return it as-is."""
    if inspect.isawaitable(value):
        return await value
    return value


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class PageRegistry:
    """Ordered set of pages keyed by their unique ``id``."""

    def __init__(self, pages: list[Page] | tuple[Page, ...] = ()) -> None:
        self._pages: dict[str, Page] = {}
        for page in pages:
            self.add(page)

    def add(self, page: Page) -> None:
        ensure_page(page)
        if page.id in self._pages:
            raise DuplicatePageError(page.id)
        self._pages[page.id] = page

    def remove(self, page_id: str) -> Page | None:
        return self._pages.pop(page_id, None)

    def get(self, page_id: str) -> Page | None:
        return self._pages.get(page_id)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._pages

    def __iter__(self) -> Iterator[Page]:
        return iter(list(self._pages.values()))

    def __len__(self) -> int:
        return len(self._pages)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._pages)

    @property
    def first_id(self) -> str | None:
        return next(iter(self._pages), None)

    def next_id(self, page_id: str, state: Any = None) -> str | None:
        """Return the id after *page_id*, skipping pages whose ``can_skip`` is true."""
        return self._neighbour(page_id, state, step=1)

    def previous_id(self, page_id: str, state: Any = None) -> str | None:
        return self._neighbour(page_id, state, step=-1)

    def _neighbour(self, page_id: str, state: Any, *, step: int) -> str | None:
        ids = self.ids
        if page_id not in self._pages:
            return None
        index = ids.index(page_id) + step
        while 0 <= index < len(ids):
            candidate = self._pages[ids[index]]
            can_skip = getattr(candidate, "can_skip", None)
            if can_skip is None or not can_skip(state):
                return candidate.id
            index += step
        return None


# ---------------------------------------------------------------------------
# Transition hooks supplied by the framework
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TransitionHooks:
    """Framework-level callbacks run after the page's own hooks."""

    on_enter: TransitionHook | None = None
    on_exit: TransitionHook | None = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class NavigationEngine:
    """State machine over a :class:`PageRegistry`.

    Parameters
    ----------
    registry:
        The pages that can be navigated to.
    state_getter:
        Returns the current domain state (snapshots are deep copies).
    state_setter:
        Restores a snapshot when moving through history.
    events:
        Receives ``page:exit``, ``page:enter`` and ``navigation:change``.
    enable_history, max_history_size:
        History configuration.
    hooks:
        Extra enter/exit callbacks.
    """

    def __init__(
        self,
        registry: PageRegistry,
        *,
        state_getter: Callable[[], Any],
        state_setter: Callable[[Any], None] | None = None,
        events: EventBus | None = None,
        enable_history: bool = True,
        max_history_size: int = 50,
        hooks: TransitionHooks | None = None,
    ) -> None:
        self._registry = registry
        self._get_state = state_getter
        self._set_state = state_setter
        self._events = events or EventBus()
        self._enable_history = enable_history
        self._max_history_size = max_history_size
        self._hooks = hooks or TransitionHooks()

        self._current_id: str | None = None
        self._entries: list[HistoryEntry] = []
        self._cursor: int = -1
        self._last_timestamp: float = 0.0

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def registry(self) -> PageRegistry:
        return self._registry

    @property
    def current_page_id(self) -> str | None:
        return self._current_id

    @property
    def current_page(self) -> Page | None:
        if self._current_id is None:
            return None
        return self._registry.get(self._current_id)

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def can_navigate(self, target: str) -> bool:
        """Whether :meth:`navigate_to` would accept *target* right now."""
        try:
            self._check_target(target)
        except NavigationError:
            return False
        return True

    def can_go_back(self) -> bool:
        return self._enable_history and self._cursor > 0

    def can_go_forward(self) -> bool:
        return self._enable_history and 0 <= self._cursor < len(self._entries) - 1

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, page_id: str | None = None) -> None:
        """Leave the initial pseudo-state for *page_id* (default: first page)."""
        target = page_id or self._registry.first_id
        if target is None:
            raise NavigationError("No pages are registered.")
        if self._current_id is not None:
            raise NavigationError(
                f"Navigation already started on {self._current_id!r}.", target=target,
            )
        await self.navigate_to(target)

    async def navigate_to(self, target: str) -> None:
        """Move to *target*.

        Raises
        ------
        NavigationError
            If *target* is not registered or the current page's
            ``can_navigate_to`` refuses it.
        """
        page = self._check_target(target)
        origin = self._current_id
        state = self._get_state()

        if origin is not None:
            await self._leave(origin, state)
            self._record_departure(origin)

        self._current_id = target
        self._record_arrival(target)
        await self._arrive(page)

        logger.debug("Navigated from %s to %s", origin, target)
        self._events.emit(
            FrameworkEvent.NAVIGATION_CHANGE,
            NavigationChangeEvent(from_page=origin, to_page=target, state=self._get_state()),
        )

    async def go_back(self) -> HistoryEntry:
        """Step back one entry and restore its snapshot."""
        if not self.can_go_back():
            raise NavigationError(
                "Cannot go back: already at the oldest history entry."
                if self._enable_history
                else "Cannot go back: history is disabled.",
            )
        return await self._move(-1)

    async def go_forward(self) -> HistoryEntry:
        """Step forward one entry and restore its snapshot."""
        if not self.can_go_forward():
            raise NavigationError("Cannot go forward: already at the newest history entry.")
        return await self._move(1)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_target(self, target: str) -> Page:
        page = self._registry.get(target)
        if page is None:
            raise NavigationError(
                f"Page not found: {target!r}",
                target=target,
                hint=f"Registered pages: {', '.join(self._registry.ids) or '(none)'}",
            )
        current = self.current_page
        guard = getattr(current, "can_navigate_to", None) if current else None
        if guard is not None and not guard(target, self._get_state()):
            raise NavigationError(
                f"Navigation to {target!r} not allowed from {self._current_id!r}",
                target=target,
            )
        return page

    async def _move(self, step: int) -> HistoryEntry:
        origin = self._current_id
        assert origin is not None
        entry = self._entries[self._cursor + step]
        page = self._registry.get(entry.page_id)
        if page is None:
            raise NavigationError(
                f"History points at a page that no longer exists: {entry.page_id!r}",
                target=entry.page_id,
            )

        await self._leave(origin, self._get_state())
        self._record_departure(origin)
        self._cursor += step
        entry = self._entries[self._cursor]
        if self._set_state is not None:
            self._set_state(copy.deepcopy(entry.state_snapshot))

        self._current_id = entry.page_id
        await self._arrive(page)
        self._events.emit(
            FrameworkEvent.NAVIGATION_CHANGE,
            NavigationChangeEvent(from_page=origin, to_page=entry.page_id, state=self._get_state()),
        )
        return entry

    async def _leave(self, page_id: str, state: Any) -> None:
        page = self._registry.get(page_id)
        on_exit = getattr(page, "on_exit", None) if page else None
        if on_exit is not None:
            await maybe_await(on_exit(state))
        if self._hooks.on_exit is not None:
            await maybe_await(self._hooks.on_exit(page_id, state))
        self._events.emit(FrameworkEvent.PAGE_EXIT, PageEvent(page_id, state))

    async def _arrive(self, page: Page) -> None:
        state = self._get_state()
        on_enter = getattr(page, "on_enter", None)
        if on_enter is not None:
            await maybe_await(on_enter(state))
        if self._hooks.on_enter is not None:
            await maybe_await(self._hooks.on_enter(page.id, state))
        self._events.emit(FrameworkEvent.PAGE_ENTER, PageEvent(page.id, state))

    def _entry(self, page_id: str) -> HistoryEntry:
        # Wall clocks can step backwards; timestamps must not.
        timestamp = max(time.time(), self._last_timestamp)
        self._last_timestamp = timestamp
        return HistoryEntry(
            page_id=page_id,
            state_snapshot=copy.deepcopy(self._get_state()),
            timestamp=timestamp,
        )

    def _record_departure(self, page_id: str) -> None:
        if not self._enable_history or self._cursor < 0:
            return
        if self._entries[self._cursor].page_id == page_id:
            self._entries[self._cursor] = self._entry(page_id)

    def _record_arrival(self, page_id: str) -> None:
        if not self._enable_history:
            return
        del self._entries[self._cursor + 1:]
        self._entries.append(self._entry(page_id))
        overflow = len(self._entries) - self._max_history_size
        if overflow > 0:
            del self._entries[:overflow]
        self._cursor = len(self._entries) - 1

    def forget(self, page_id: str) -> None:
        """Drop history entries for a page that was unregistered."""
        if page_id == self._current_id:
            raise NavigationError(f"Cannot forget the active page {page_id!r}.", target=page_id)
        before = self._entries[:self._cursor + 1]
        removed_before = sum(1 for entry in before if entry.page_id == page_id)
        self._entries = [entry for entry in self._entries if entry.page_id != page_id]
        self._cursor -= removed_before
