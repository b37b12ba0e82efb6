"""Centralised application state: reducers, middleware and subscribers.

Dispatch pipeline
-----------------
1. The action is validated (must be an :class:`~intershell.core.models.Action`).
2. It passes through the middleware chain in registration order.  Each
   middleware receives ``(action, state, next)`` and may transform the
   action, transform the returned state, or short-circuit by not
   calling ``next``.
3. At the end of the chain every reducer in the map is applied in
   insertion order.
4. The resulting state replaces the stored one and subscribers are
   notified synchronously, in subscription order, with
   ``(new_state, previous_state)``.

Only one dispatch runs at a time.  A dispatch issued while another is
in progress (typically from a subscriber) is queued and processed after
the current notification completes, in FIFO order.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from types import MappingProxyType
from typing import Any

from intershell.core.events import ErrorEvent, EventBus, FrameworkEvent, StateChangeEvent
from intershell.core.models import Action
from intershell.core.protocols import Middleware, Reducer, ReducerMap, StateListener
from intershell.exceptions import DispatchError, InvalidActionError

logger = logging.getLogger(__name__)


class StateStore:
    """Single-writer state container.

    Parameters
    ----------
    initial_state:
        The starting domain state.
    reducers:
        Named reducers, applied in mapping order.
    middleware:
        Middleware functions, outermost first.
    events:
        Bus receiving ``state:change`` and ``error`` events.
    fatal_errors:
        Re-raise :class:`DispatchError` instead of reporting it and
        continuing.
    """

    def __init__(
        self,
        initial_state: Any,
        *,
        reducers: ReducerMap | None = None,
        middleware: list[Middleware] | tuple[Middleware, ...] = (),
        events: EventBus | None = None,
        fatal_errors: bool = False,
    ) -> None:
        self._state: Any = initial_state
        self._reducers: dict[str, Reducer] = dict(reducers or {})
        self._middleware: list[Middleware] = list(middleware)
        self._listeners: list[StateListener] = []
        self._events: EventBus = events or EventBus()
        self._fatal_errors: bool = fatal_errors

        self._busy: bool = False
        self._queue: deque[Callable[[], None]] = deque()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> Any:
        return self._state

    def get_state(self) -> Any:
        return self._state

    @property
    def reducers(self) -> MappingProxyType[str, Reducer]:
        return MappingProxyType(self._reducers)

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        return tuple(self._middleware)

    @property
    def is_dispatching(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def dispatch(self, action: Action) -> None:
        """Run *action* through middleware and reducers.

        Raises
        ------
        InvalidActionError
            If *action* is not an :class:`Action`.
        DispatchError
            Only when the store was created with ``fatal_errors=True``.
        """
        if not isinstance(action, Action):
            raise InvalidActionError(
                f"Expected an Action, got {type(action).__name__}",
                hint="Wrap the payload: Action(type='...', payload=...)",
            )
        self._submit(lambda: self._apply(action))

    def replace_state(self, state: Any) -> None:
        """Swap in *state* wholesale (used to restore history snapshots).

        Subscribers are notified as for a dispatch; no reducers run.
        """
        self._submit(lambda: self._commit(state))

    def _submit(self, job: Callable[[], None]) -> None:
        self._queue.append(job)
        if self._busy:
            logger.debug("Dispatch queued behind the one in progress")
            return

        self._busy = True
        try:
            while self._queue:
                self._queue.popleft()()
        except BaseException:
            if self._queue:
                logger.warning(
                    "Dropped %d queued dispatch(es) after a failed dispatch",
                    len(self._queue),
                )
                self._queue.clear()
            raise
        finally:
            self._busy = False

    def _apply(self, action: Action) -> None:
        try:
            new_state = self._run_chain(action)
        except Exception as exc:
            error = DispatchError(
                f"Dispatch of {action.type!r} failed: {exc}",
                action_type=action.type,
            )
            error.__cause__ = exc
            logger.error("%s", error)
            self._events.emit(FrameworkEvent.ERROR, ErrorEvent(error, context="dispatch"))
            if self._fatal_errors:
                raise error from exc
            return

        logger.debug("Action %r applied", action.type)
        self._commit(new_state)

    def _run_chain(self, action: Action) -> Any:
        state = self._state
        chain = tuple(self._middleware)
        reducers = tuple(self._reducers.values())

        def reduce(final_action: Action) -> Any:
            result = state
            for reducer in reducers:
                result = reducer(result, final_action)
            return result

        def step(index: int) -> Callable[[Action], Any]:
            if index == len(chain):
                return reduce

            def call(current: Action) -> Any:
                if not isinstance(current, Action):
                    raise InvalidActionError(
                        f"Middleware passed {type(current).__name__} to next()",
                    )
                return chain[index](current, state, step(index + 1))

            return call

        return step(0)(action)

    def _commit(self, new_state: Any) -> None:
        previous = self._state
        if new_state is previous:
            return
        self._state = new_state

        for listener in list(self._listeners):
            try:
                listener(new_state, previous)
            except Exception:
                logger.exception("Error in state listener")

        self._events.emit(
            FrameworkEvent.STATE_CHANGE,
            StateChangeEvent(old_state=previous, new_state=new_state),
        )

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_subscribers(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Reducers & middleware
    # ------------------------------------------------------------------

    def add_reducer(self, name: str, reducer: Reducer) -> Reducer | None:
        """Register *reducer* under *name*; returns the one it replaced."""
        previous = self._reducers.get(name)
        self._reducers[name] = reducer
        return previous

    def remove_reducer(self, name: str) -> Reducer | None:
        return self._reducers.pop(name, None)

    def add_middleware(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)

    def remove_middleware(self, middleware: Middleware) -> None:
        if middleware in self._middleware:
            self._middleware.remove(middleware)
