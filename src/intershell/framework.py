"""Framework orchestrator — wires store, navigation, events and plugins.

Run loop
--------
1. Await any pending plugin install hooks.
2. Open the CLI session (raw-mode ownership, stdin reader) and install
   signal handlers that route to :meth:`Framework.stop`.
3. Enter the first page, then repeat: render the current page, ask it
   for its :data:`~intershell.core.models.PageAction`, apply it.
4. ``Exit`` (or running past the last page) ends the loop and
   :meth:`Framework.run` returns the final state.

The terminal is released on every exit path: normal completion,
exceptions, ``stop()`` (hotkey or signal) and interpreter exit.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from types import MappingProxyType
from typing import Any

from intershell.core.events import ErrorEvent, EventBus, EventHandler, FrameworkEvent, PageEvent
from intershell.core.keys import KeyPress, matches, matches_any
from intershell.core.models import (
    Action,
    ChangePage,
    Custom,
    Exit,
    HistoryEntry,
    NextPage,
    PageAction,
    PrevPage,
    ReRender,
)
from intershell.core.navigation import NavigationEngine, PageRegistry, TransitionHooks, maybe_await
from intershell.core.options import FrameworkOptions
from intershell.core.plugins import PluginManager
from intershell.core.protocols import Middleware, Page, Plugin, ReducerMap, Renderer, StateListener
from intershell.core.store import StateStore
from intershell.exceptions import (
    CancellationError,
    ConfigurationError,
    ContractError,
    FrameworkStateError,
)
from intershell.infra.interactive_cli import InteractiveCLI

logger = logging.getLogger(__name__)

PageCallback = Callable[[Any], Any]
RenderCallback = Callable[[Page], Any]

_STOP_SIGNALS: tuple[str, ...] = ("SIGINT", "SIGTERM", "SIGHUP")


class Framework:
    """A running interactive application.

    Normally created through
    :class:`~intershell.builder.FrameworkBuilder`, which validates its
    inputs first.

    Parameters
    ----------
    initial_state:
        Starting domain state.
    pages:
        Pages in navigation order; ids must be unique.
    reducers:
        Named reducers.
    options:
        Framework options (defaults when ``None``).
    middleware:
        Middleware chain, outermost first.
    cli:
        Terminal abstraction; a default :class:`InteractiveCLI` on the
        process streams is created lazily when omitted.
    handle_signals:
        Route SIGINT/SIGTERM/SIGHUP to :meth:`stop` while running.
    """

    def __init__(
        self,
        initial_state: Any,
        pages: list[Page] | tuple[Page, ...],
        reducers: ReducerMap | None = None,
        options: FrameworkOptions | None = None,
        *,
        middleware: list[Middleware] | tuple[Middleware, ...] = (),
        cli: InteractiveCLI | None = None,
        handle_signals: bool = True,
    ) -> None:
        if not pages:
            raise ConfigurationError(
                "At least one page is required.",
                hint="Use with_pages() or with_page() to add pages.",
            )

        self._options: FrameworkOptions = options or FrameworkOptions()
        logging.getLogger("intershell").setLevel(self._options.effective_log_level)

        self._events = EventBus(debug=self._options.debug)
        self._store = StateStore(
            initial_state,
            reducers=reducers,
            middleware=middleware,
            events=self._events,
            fatal_errors=self._options.fatal_dispatch_errors,
        )
        self._registry = PageRegistry(pages)
        self._navigation = NavigationEngine(
            self._registry,
            state_getter=self._store.get_state,
            state_setter=self._store.replace_state,
            events=self._events,
            enable_history=self._options.enable_history,
            max_history_size=self._options.max_history_size,
            hooks=TransitionHooks(on_enter=self._run_enter_callbacks, on_exit=self._run_exit_callbacks),
        )
        self._plugins = PluginManager(
            self,
            registry=self._registry,
            store=self._store,
            navigation=self._navigation,
        )

        self._cli: InteractiveCLI | None = cli
        self._handle_signals = handle_signals

        self._enter_callbacks: dict[str, list[PageCallback]] = {}
        self._exit_callbacks: dict[str, list[PageCallback]] = {}
        self._before_render: list[RenderCallback] = []
        self._after_render: list[RenderCallback] = []

        self._running: bool = False
        self._stop_requested: bool = False
        self._destroyed: bool = False
        self._active_page: Page | None = None
        self._last_render_at: float | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def options(self) -> FrameworkOptions:
        return self._options

    @property
    def cli(self) -> InteractiveCLI:
        if self._cli is None:
            self._cli = InteractiveCLI()
        return self._cli

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def state(self) -> Any:
        return self._store.state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._navigation.history

    @property
    def navigation(self) -> NavigationEngine:
        return self._navigation

    @property
    def page_ids(self) -> tuple[str, ...]:
        return self._registry.ids

    @property
    def renderers(self) -> MappingProxyType[str, Renderer]:
        return self._plugins.renderers

    # ------------------------------------------------------------------
    # Run / stop
    # ------------------------------------------------------------------

    async def run(self) -> Any:
        """Drive pages until ``Exit``; return the final state.

        Raises
        ------
        FrameworkStateError
            If already running, or after :meth:`stop` / :meth:`cleanup`.
        NavigationError
            If a page requests navigation that cannot happen.
        """
        if self._destroyed:
            raise FrameworkStateError(
                "Framework has been stopped.",
                hint="Build a new framework instance to run again.",
            )
        if self._running:
            raise FrameworkStateError("Framework is already running.")

        self._running = True
        self._stop_requested = False
        self._events.debug("Starting intershell framework")
        cli = self.cli

        try:
            await self._plugins.settle()
            with cli.session():
                cli.on_key_press(self._on_key)
                installed = self._install_signal_handlers()
                try:
                    await self._loop()
                finally:
                    self._remove_signal_handlers(installed)
        except CancellationError:
            if not self._stop_requested:
                raise
            logger.info("Run stopped on request")
        except Exception as exc:
            logger.error("Framework error: %s", exc)
            self._events.emit(FrameworkEvent.ERROR, ErrorEvent(exc, context="run"))
            raise
        finally:
            self._running = False
            self.cleanup()

        logger.debug("intershell framework finished")
        return self._store.state

    async def _loop(self) -> None:
        if self._navigation.current_page_id is None:
            await self._navigation.start()

        while not self._stop_requested:
            page = self._navigation.current_page
            if page is None:
                raise FrameworkStateError(
                    f"Current page not found: {self._navigation.current_page_id!r}",
                )
            await self._render(page)
            if self._stop_requested:
                break

            action = page.get_next_action(self._store.state)
            if not await self._apply_page_action(page, action):
                break

    def stop(self) -> None:
        """Request termination and release the terminal.

        Safe to call from key handlers and signal handlers.  A run
        stopped this way returns the current state.
        """
        if not self._stop_requested:
            self._events.debug("Stop requested")
        self._stop_requested = True
        self.cleanup()

    def cleanup(self) -> None:
        """Release the terminal and drop listeners (idempotent)."""
        if self._cli is not None:
            self._cli.cleanup()
        if self._destroyed:
            return
        self._destroyed = True
        self._events.remove_all_listeners()
        self._store.clear_subscribers()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def _render(self, page: Page) -> None:
        for callback in list(self._before_render):
            await maybe_await(callback(page))

        await self._pace_render()
        state = self._store.state
        self._events.emit(FrameworkEvent.PAGE_RENDER, PageEvent(page.id, state))

        renderer = self._select_renderer(page)
        self._active_page = page
        try:
            if renderer is not None:
                result = await renderer.render(page, state, self.cli)
            else:
                result = await page.render(self.cli, state)
        finally:
            self._active_page = None

        if isinstance(result, Action):
            self.dispatch(result)
        elif result is not None:
            logger.warning("Page %s render returned %r; ignored", page.id, result)

        for callback in list(self._after_render):
            await maybe_await(callback(page))

    async def _pace_render(self) -> None:
        delay = self._options.render_delay
        mode = self._options.render_mode
        loop = asyncio.get_running_loop()
        if delay > 0 and mode == "debounced":
            await asyncio.sleep(delay)
        elif delay > 0 and mode == "throttled" and self._last_render_at is not None:
            remaining = self._last_render_at + delay - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_render_at = loop.time()

    def _select_renderer(self, page: Page) -> Renderer | None:
        for renderer in self._plugins.renderers.values():
            if renderer.can_render(page):
                return renderer
        return None

    # ------------------------------------------------------------------
    # Key routing
    # ------------------------------------------------------------------

    def _on_key(self, key: KeyPress) -> None:
        options = self._options
        if options.enable_hotkeys:
            if matches_any(key, options.exit_keys):
                self._events.debug("Exit key pressed", key)
                self.stop()
                return
            if options.help_key is not None and matches(key, options.help_key):
                self._show_help()
                return

        page = self._active_page
        if page is None:
            return
        action = page.handle_key(key, self._store.state)
        if action is not None:
            self.dispatch(action)

    def _show_help(self) -> None:
        page = self._active_page or self._navigation.current_page
        if page is None:
            return
        exit_keys = ", ".join(str(pattern) for pattern in self._options.exit_keys)
        self.cli.print(f"\n[bold]{page.title}[/bold]")
        description = getattr(page, "description", None)
        if description:
            self.cli.print(description)
        self.cli.print(f"[dim]Exit: {exit_keys}[/dim]\n")

    # ------------------------------------------------------------------
    # Page actions
    # ------------------------------------------------------------------

    async def _apply_page_action(self, page: Page, action: PageAction) -> bool:
        """Apply *action*; return ``False`` when the run should end."""
        state = self._store.state
        self._events.debug(f"Page {page.id} -> {type(action).__name__}", action)

        if isinstance(action, NextPage):
            validate = getattr(page, "validate", None)
            if validate is not None:
                result = validate(state)
                if not result.is_valid:
                    for error in result.errors:
                        self.cli.print(f"[red]{error}[/red]")
                    return True
            target = self._registry.next_id(page.id, state)
            if target is None:
                return False
            await self.navigate_to(target)
        elif isinstance(action, PrevPage):
            if self._navigation.can_go_back():
                await self.go_back()
            else:
                target = self._registry.previous_id(page.id, state)
                if target is not None:
                    await self.navigate_to(target)
        elif isinstance(action, ChangePage):
            await self.navigate_to(action.target)
        elif isinstance(action, ReRender):
            pass
        elif isinstance(action, Exit):
            return False
        elif isinstance(action, Custom):
            self.dispatch(action.payload)
        else:
            raise ContractError(
                f"Page {page.id!r} returned {action!r}, which is not a page action.",
            )
        return True

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_state(self) -> Any:
        return self._store.state

    def dispatch(self, action: Action) -> None:
        self._store.dispatch(action)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def navigate_to(self, page_id: str) -> None:
        """Navigate to *page_id*; raises NavigationError on failure."""
        await self._navigation.navigate_to(page_id)

    async def go_back(self) -> HistoryEntry:
        return await self._navigation.go_back()

    async def go_forward(self) -> HistoryEntry:
        return await self._navigation.go_forward()

    def get_current_page(self) -> Page | None:
        return self._navigation.current_page

    def get_page(self, page_id: str) -> Page | None:
        return self._registry.get(page_id)

    # ------------------------------------------------------------------
    # Events and lifecycle hooks
    # ------------------------------------------------------------------

    def on(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        self._events.on(event, handler)

    def off(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        self._events.off(event, handler)

    def once(self, event: FrameworkEvent | str, handler: EventHandler) -> None:
        self._events.once(event, handler)

    def emit(self, event: FrameworkEvent | str, payload: Any) -> None:
        self._events.emit(event, payload)

    def on_page_enter(self, page_id: str, callback: PageCallback) -> None:
        """Call ``callback(state)`` whenever *page_id* is entered."""
        self._enter_callbacks.setdefault(page_id, []).append(callback)

    def on_page_exit(self, page_id: str, callback: PageCallback) -> None:
        self._exit_callbacks.setdefault(page_id, []).append(callback)

    def on_before_render(self, callback: RenderCallback) -> None:
        self._before_render.append(callback)

    def on_after_render(self, callback: RenderCallback) -> None:
        self._after_render.append(callback)

    async def _run_enter_callbacks(self, page_id: str, state: Any) -> None:
        for callback in list(self._enter_callbacks.get(page_id, ())):
            await maybe_await(callback(state))

    async def _run_exit_callbacks(self, page_id: str, state: Any) -> None:
        for callback in list(self._exit_callbacks.get(page_id, ())):
            await maybe_await(callback(state))

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    def use(self, plugin: Plugin) -> None:
        self._plugins.use(plugin)

    def unuse(self, name: str) -> None:
        self._plugins.unuse(name)

    def get_plugins(self) -> tuple[Plugin, ...]:
        return self._plugins.plugins

    async def settle_plugins(self) -> None:
        """Await plugin install/uninstall hooks started so far."""
        await self._plugins.settle()

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _install_signal_handlers(self) -> list[signal.Signals]:
        if not self._handle_signals:
            return []
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for name in _STOP_SIGNALS:
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows loops and non-main threads cannot install handlers.
                continue
            installed.append(sig)
        return installed

    def _remove_signal_handlers(self, installed: list[signal.Signals]) -> None:
        if not installed:
            return
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
