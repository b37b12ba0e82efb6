"""Fluent, immutable assembly of :class:`~intershell.framework.Framework`.

Every ``with_*`` method returns a **new** builder wrapping a new
:class:`FrameworkConfig`; no builder ever mutates shared collections,
so a builder and its clones can be extended independently.

``build()`` is the fail-fast boundary: missing initial state, an empty
page list, colliding page ids and malformed pages or plugins are all
reported as :class:`~intershell.exceptions.ConfigurationError` before
any terminal I/O happens.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Any, Final

from intershell.core.contracts import ensure_page, ensure_plugin
from intershell.core.keys import KeyPattern
from intershell.core.options import FrameworkOptions
from intershell.core.protocols import Middleware, Page, Plugin, Reducer, ReducerMap
from intershell.exceptions import ConfigurationError, DuplicatePageError
from intershell.framework import Framework
from intershell.infra.interactive_cli import InteractiveCLI


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


@dataclass(frozen=True)
class FrameworkConfig:
    """Everything a builder has accumulated so far."""

    initial_state: Any = UNSET
    pages: tuple[Page, ...] = ()
    reducers: tuple[tuple[str, Reducer], ...] = ()
    options: FrameworkOptions = FrameworkOptions()
    plugins: tuple[Plugin, ...] = ()
    middleware: tuple[Middleware, ...] = ()
    cli: InteractiveCLI | None = None

    @property
    def reducer_map(self) -> dict[str, Reducer]:
        """Reducers by name; a later registration replaces an earlier one."""
        return dict(self.reducers)


class FrameworkBuilder:
    """Fluent configuration of a framework instance."""

    def __init__(self, config: FrameworkConfig | None = None) -> None:
        self._config: FrameworkConfig = config or FrameworkConfig()

    @property
    def config(self) -> FrameworkConfig:
        return self._config

    def _with(self, **changes: Any) -> FrameworkBuilder:
        return FrameworkBuilder(replace(self._config, **changes))

    # ------------------------------------------------------------------
    # State, pages, reducers
    # ------------------------------------------------------------------

    def with_initial_state(self, state: Any) -> FrameworkBuilder:
        """Set the initial state (deep-copied; later caller edits don't leak in)."""
        return self._with(initial_state=copy.deepcopy(state))

    def with_pages(self, pages: list[Page] | tuple[Page, ...]) -> FrameworkBuilder:
        return self._with(pages=self._config.pages + tuple(pages))

    def with_page(self, page: Page) -> FrameworkBuilder:
        return self.with_pages((page,))

    def with_reducers(self, reducers: ReducerMap) -> FrameworkBuilder:
        return self._with(reducers=self._config.reducers + tuple(reducers.items()))

    def with_reducer(self, name: str, reducer: Reducer) -> FrameworkBuilder:
        return self._with(reducers=self._config.reducers + ((name, reducer),))

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def with_options(self, options: FrameworkOptions | None = None, **changes: Any) -> FrameworkBuilder:
        """Replace the options, or merge individual option *changes*."""
        base = options if options is not None else self._config.options
        return self._with(options=base.merged(**changes) if changes else base)

    def with_debug(self, enabled: bool = True) -> FrameworkBuilder:
        return self.with_options(debug=enabled)

    def with_log_level(self, level: str) -> FrameworkBuilder:
        return self.with_options(log_level=level)

    def with_hotkeys(
        self,
        enabled: bool = True,
        *,
        exit_keys: tuple[KeyPattern, ...] | None = None,
        help_key: KeyPattern | None = None,
    ) -> FrameworkBuilder:
        changes: dict[str, Any] = {"enable_hotkeys": enabled}
        if exit_keys is not None:
            changes["exit_keys"] = tuple(exit_keys)
        if help_key is not None:
            changes["help_key"] = help_key
        return self.with_options(**changes)

    def with_history(self, enabled: bool = True, max_size: int = 50) -> FrameworkBuilder:
        return self.with_options(enable_history=enabled, max_history_size=max_size)

    def with_render_mode(self, mode: str, delay: float = 0.0) -> FrameworkBuilder:
        return self.with_options(render_mode=mode, render_delay=delay)

    # ------------------------------------------------------------------
    # Plugins & middleware
    # ------------------------------------------------------------------

    def with_plugins(self, plugins: list[Plugin] | tuple[Plugin, ...]) -> FrameworkBuilder:
        return self._with(plugins=self._config.plugins + tuple(plugins))

    def with_plugin(self, plugin: Plugin) -> FrameworkBuilder:
        return self.with_plugins((plugin,))

    def with_middleware(
        self, middleware: list[Middleware] | tuple[Middleware, ...],
    ) -> FrameworkBuilder:
        return self._with(middleware=self._config.middleware + tuple(middleware))

    def with_middleware_function(self, middleware: Middleware) -> FrameworkBuilder:
        return self.with_middleware((middleware,))

    def with_cli(self, cli: InteractiveCLI) -> FrameworkBuilder:
        """Use *cli* instead of a default terminal on the process streams."""
        return self._with(cli=cli)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> FrameworkBuilder:
        return FrameworkBuilder()

    def clone(self) -> FrameworkBuilder:
        """Return an independent builder.

        Collections are immutable tuples already; the initial state is
        deep-copied so nested objects are never shared.
        """
        config = self._config
        if config.initial_state is not UNSET:
            config = replace(config, initial_state=copy.deepcopy(config.initial_state))
        return FrameworkBuilder(config)

    def validate(self) -> None:
        """Check every build precondition without building.

        Raises
        ------
        ConfigurationError
            Initial state unset, no pages, duplicate page ids, or a
            malformed page (:class:`ContractError`) or plugin.
        """
        config = self._config
        if config.initial_state is UNSET:
            raise ConfigurationError(
                "Initial state is required.",
                hint="Use with_initial_state() to set it.",
            )
        if not config.pages:
            raise ConfigurationError(
                "At least one page is required.",
                hint="Use with_pages() or with_page() to add pages.",
            )

        seen: set[str] = set()
        for page in config.pages:
            ensure_page(page)
            if page.id in seen:
                raise DuplicatePageError(page.id, hint="Every page needs a unique id.")
            seen.add(page.id)

        for plugin in config.plugins:
            ensure_plugin(plugin)

    def build(self) -> Framework:
        """Create the framework and install the configured plugins."""
        self.validate()
        config = self._config

        framework = Framework(
            copy.deepcopy(config.initial_state),
            config.pages,
            config.reducer_map,
            config.options,
            middleware=config.middleware,
            cli=config.cli,
        )
        for plugin in config.plugins:
            framework.use(plugin)
        return framework


def create_framework() -> FrameworkBuilder:
    """Start a new builder."""
    return FrameworkBuilder()


def create_simple_framework(
    initial_state: Any,
    pages: list[Page] | tuple[Page, ...],
    reducers: ReducerMap | None = None,
) -> Framework:
    """Build a framework from state, pages and optional reducers."""
    builder = create_framework().with_initial_state(initial_state).with_pages(pages)
    if reducers:
        builder = builder.with_reducers(reducers)
    return builder.build()
