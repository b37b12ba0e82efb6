"""Typed publish/subscribe channel for framework lifecycle events.

Event names form the closed :class:`FrameworkEvent` enum and each event
carries a frozen payload dataclass.  Handlers run synchronously in
subscription order; an exception in one handler is logged and does not
stop delivery to the rest.  Coroutine handlers are scheduled on the
running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from intershell.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class FrameworkEvent(str, Enum):
    STATE_CHANGE = "state:change"
    PAGE_ENTER = "page:enter"
    PAGE_EXIT = "page:exit"
    PAGE_RENDER = "page:render"
    NAVIGATION_CHANGE = "navigation:change"
    ERROR = "error"
    DEBUG = "debug"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StateChangeEvent:
    old_state: Any
    new_state: Any


@dataclass(frozen=True, slots=True)
class PageEvent:
    """Payload of ``page:enter``, ``page:exit`` and ``page:render``."""

    page_id: str
    state: Any


@dataclass(frozen=True, slots=True)
class NavigationChangeEvent:
    from_page: str | None
    to_page: str
    state: Any


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    error: BaseException
    context: str | None = None


@dataclass(frozen=True, slots=True)
class DebugEvent:
    message: str
    data: Any = None


EventHandler = Callable[[Any], Any]


def _coerce(event: FrameworkEvent | str) -> FrameworkEvent:
    try:
        return FrameworkEvent(event)
    except ValueError:
        raise ConfigurationError(
            f"Unknown framework event: {event!r}",
            hint=f"Known events: {', '.join(e.value for e in FrameworkEvent)}",
        ) from None


class EventBus:
    """Framework event emitter.

    Parameters
    ----------
    debug:
        When ``False`` (default) ``debug`` events are dropped without
        calling any handler.
    """

    def __init__(self, *, debug: bool = False) -> None:
        self.debug_enabled: bool = debug
        self._handlers: dict[FrameworkEvent, list[EventHandler]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(_coerce(event), [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        handlers = self._handlers.get(_coerce(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def once(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        """Subscribe *handler* for a single delivery."""
        name = _coerce(event)

        def wrapper(payload: Any) -> Any:
            self.off(name, wrapper)
            return handler(payload)

        self.on(name, wrapper)

    def remove_all_listeners(self, event: FrameworkEvent | str | None = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(_coerce(event), None)

    def listener_count(self, event: FrameworkEvent | str) -> int:
        return len(self._handlers.get(_coerce(event), []))

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self, event: FrameworkEvent | str, payload: Any) -> None:
        name = _coerce(event)
        if name is FrameworkEvent.DEBUG and not self.debug_enabled:
            return

        for handler in list(self._handlers.get(name, [])):
            try:
                result = handler(payload)
            except Exception:
                logger.exception("Error in %s event handler", name.value)
                continue
            if inspect.isawaitable(result):
                self._schedule(name, result)

    def debug(self, message: str, data: Any = None) -> None:
        """Emit a ``debug`` event (no-op unless debug is enabled)."""
        if self.debug_enabled:
            logger.debug("%s %s", message, "" if data is None else data)
            self.emit(FrameworkEvent.DEBUG, DebugEvent(message, data))

    def _schedule(self, name: FrameworkEvent, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Async %s handler ignored: no running event loop", name.value,
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(_guarded(name, awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


async def _guarded(name: FrameworkEvent, awaitable: Any) -> None:
    try:
        await awaitable
    except Exception:
        logger.exception("Error in async %s event handler", name.value)
