"""Controlled futures — the bridge between key events and awaiting code.

A :class:`ControlledFuture` is created *before* the event that settles
it happens.  Page logic awaits it; a key-press handler later calls
:meth:`~ControlledFuture.resolve` or :meth:`~ControlledFuture.reject`.

Settlement happens at most once.  Later calls are no-ops that return
``False``, so two handlers racing for the same future can never
overwrite each other's result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ControlledFuture(Generic[T]):
    """Single-resolution awaitable settled from the outside.

    Parameters
    ----------
    loop:
        Event loop owning the underlying :class:`asyncio.Future`.
        Defaults to the running loop.
    on_settle:
        Called once with this object after it resolves, rejects or is
        cancelled.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        on_settle: Callable[[ControlledFuture[T]], None] | None = None,
    ) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[T] = self._loop.create_future()
        if on_settle is not None:
            self._future.add_done_callback(lambda _f: on_settle(self))

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def resolve(self, value: T) -> bool:
        """Settle with *value*.  Returns ``False`` if already settled."""
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with *error*.  Returns ``False`` if already settled."""
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def future(self) -> asyncio.Future[T]:
        return self._future

    def done(self) -> bool:
        return self._future.done()

    def __await__(self) -> Generator[Any, None, T]:
        return self._future.__await__()
