"""Plugin installation and removal.

A plugin contributes pages, reducers, middleware and renderers.  The
manager validates the whole bundle before touching anything, then
merges the contributions:

* pages: appended to the registry; an id collision is a conflict;
* reducers: last installed wins for a given name; the reducer it
  replaced is remembered and restored on uninstall;
* middleware: appended to the chain in installation order;
* renderers: registered by name.

Registry mutation is synchronous.  ``on_install`` / ``on_uninstall``
may be coroutine functions; their awaitables are collected and driven
by :meth:`PluginManager.settle`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from intershell.core.contracts import ensure_plugin
from intershell.core.navigation import NavigationEngine, PageRegistry
from intershell.core.protocols import Middleware, Page, Plugin, Reducer, Renderer
from intershell.core.store import StateStore
from intershell.exceptions import NavigationError, PluginConflictError, PluginError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginDefinition:
    """Convenience concrete plugin.

    Any object with the same attributes is accepted by the manager.
    """

    name: str
    version: str
    pages: tuple[Page, ...] = ()
    reducers: dict[str, Reducer] = field(default_factory=dict)
    middleware: tuple[Middleware, ...] = ()
    renderers: tuple[Renderer, ...] = ()
    on_install: Callable[[Any], Awaitable[None] | None] | None = None
    on_uninstall: Callable[[Any], Awaitable[None] | None] | None = None


@dataclass
class _Installation:
    """What one plugin changed, so it can be undone."""

    plugin: Plugin
    page_ids: list[str] = field(default_factory=list)
    reducers: dict[str, Reducer] = field(default_factory=dict)
    replaced_reducers: dict[str, Reducer | None] = field(default_factory=dict)
    middleware: list[Middleware] = field(default_factory=list)
    renderer_names: list[str] = field(default_factory=list)


class PluginManager:
    """Installs and uninstalls plugins against live framework parts.

    Parameters
    ----------
    host:
        The object handed to ``on_install`` / ``on_uninstall`` (the
        framework instance).
    registry, store, navigation:
        The framework parts plugins contribute to.
    """

    def __init__(
        self,
        host: Any,
        *,
        registry: PageRegistry,
        store: StateStore,
        navigation: NavigationEngine | None = None,
    ) -> None:
        self._host = host
        self._registry = registry
        self._store = store
        self._navigation = navigation
        self._installed: dict[str, _Installation] = {}
        self._renderers: dict[str, Renderer] = {}
        self._pending: list[Awaitable[Any]] = []

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        return tuple(inst.plugin for inst in self._installed.values())

    @property
    def renderers(self) -> MappingProxyType[str, Renderer]:
        return MappingProxyType(self._renderers)

    def get(self, name: str) -> Plugin | None:
        inst = self._installed.get(name)
        return inst.plugin if inst else None

    def __contains__(self, name: object) -> bool:
        return name in self._installed

    # ------------------------------------------------------------------
    # Install / uninstall
    # ------------------------------------------------------------------

    def use(self, plugin: Plugin) -> None:
        """Install *plugin*.

        Raises
        ------
        ContractError
            If the plugin or one of its contributions is malformed.
        PluginConflictError
            If the name is already installed, or a page id or renderer
            name collides.  Nothing is applied in that case.
        """
        ensure_plugin(plugin)
        if plugin.name in self._installed:
            raise PluginConflictError(
                f"Plugin {plugin.name!r} is already installed.",
                hint="Uninstall it first with unuse(name).",
            )

        pages = list(getattr(plugin, "pages", None) or ())
        seen: set[str] = set()
        for page in pages:
            if page.id in self._registry or page.id in seen:
                raise PluginConflictError(
                    f"Plugin {plugin.name!r} contributes page {page.id!r}, "
                    "which is already registered.",
                )
            seen.add(page.id)

        renderers = list(getattr(plugin, "renderers", None) or ())
        seen = set()
        for renderer in renderers:
            if renderer.name in self._renderers or renderer.name in seen:
                raise PluginConflictError(
                    f"Plugin {plugin.name!r} contributes renderer {renderer.name!r}, "
                    "which is already registered.",
                )
            seen.add(renderer.name)

        inst = _Installation(plugin=plugin)
        for page in pages:
            self._registry.add(page)
            inst.page_ids.append(page.id)

        for name, reducer in (getattr(plugin, "reducers", None) or {}).items():
            replaced = self._store.add_reducer(name, reducer)
            if replaced is not None:
                logger.info("Plugin %s overrides reducer %r", plugin.name, name)
            inst.reducers[name] = reducer
            inst.replaced_reducers[name] = replaced

        for middleware in getattr(plugin, "middleware", None) or ():
            self._store.add_middleware(middleware)
            inst.middleware.append(middleware)

        for renderer in renderers:
            self._renderers[renderer.name] = renderer
            inst.renderer_names.append(renderer.name)

        self._installed[plugin.name] = inst
        logger.info("Plugin %s v%s installed", plugin.name, plugin.version)
        self._run_hook(plugin, "on_install")

    def unuse(self, name: str) -> None:
        """Reverse everything plugin *name* contributed.

        Raises
        ------
        PluginError
            If no such plugin is installed, or one of its pages is the
            active page.
        """
        inst = self._installed.get(name)
        if inst is None:
            raise PluginError(f"Plugin not installed: {name!r}")

        navigation = self._navigation
        if navigation is not None and navigation.current_page_id in inst.page_ids:
            raise PluginError(
                f"Cannot uninstall {name!r} while its page "
                f"{navigation.current_page_id!r} is active.",
            )

        for page_id in inst.page_ids:
            self._registry.remove(page_id)
            if navigation is not None:
                try:
                    navigation.forget(page_id)
                except NavigationError:
                    logger.warning("History for %s could not be cleared", page_id)

        for reducer_name, reducer in inst.reducers.items():
            replaced = inst.replaced_reducers.get(reducer_name)
            if self._store.reducers.get(reducer_name) is not reducer:
                # A later plugin overrode it; that plugin now falls back
                # to whatever this one had replaced.
                for other in self._installed.values():
                    if other.replaced_reducers.get(reducer_name) is reducer:
                        other.replaced_reducers[reducer_name] = replaced
                continue
            if replaced is None:
                self._store.remove_reducer(reducer_name)
            else:
                self._store.add_reducer(reducer_name, replaced)

        for middleware in inst.middleware:
            self._store.remove_middleware(middleware)

        for renderer_name in inst.renderer_names:
            self._renderers.pop(renderer_name, None)

        del self._installed[name]
        logger.info("Plugin %s uninstalled", name)
        self._run_hook(inst.plugin, "on_uninstall")

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _run_hook(self, plugin: Plugin, hook_name: str) -> None:
        hook = getattr(plugin, hook_name, None)
        if hook is None:
            return
        result = hook(self._host)
        if not inspect.isawaitable(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending.append(result)
            return
        self._pending.append(loop.create_task(_as_coroutine(result)))

    async def settle(self) -> None:
        """Await every hook started by :meth:`use` / :meth:`unuse` so far."""
        while self._pending:
            pending, self._pending = self._pending, []
            for awaitable in pending:
                await awaitable


async def _as_coroutine(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
