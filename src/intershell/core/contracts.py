"""Registration-time capability checks.

Pages, plugins and renderers are plain objects.  Before one is
accepted, the members the framework will later call are verified here
so that a malformed contribution fails with a clear
:class:`~intershell.exceptions.ContractError` instead of crashing in
the middle of a run.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from intershell.exceptions import ContractError

_PAGE_METHODS: tuple[str, ...] = ("render", "handle_key", "get_next_action")
_PAGE_OPTIONAL_HOOKS: tuple[str, ...] = (
    "can_navigate_to",
    "on_enter",
    "on_exit",
    "validate",
    "can_skip",
)
_RENDERER_METHODS: tuple[str, ...] = ("can_render", "render")
_PLUGIN_OPTIONAL_HOOKS: tuple[str, ...] = ("on_install", "on_uninstall")


def _describe(obj: Any) -> str:
    name = getattr(obj, "id", None) or getattr(obj, "name", None)
    return f"{type(obj).__name__}({name!r})" if name else type(obj).__name__


def _require_text(obj: Any, attr: str, kind: str) -> str:
    value = getattr(obj, attr, None)
    if not isinstance(value, str) or not value.strip():
        raise ContractError(
            f"{kind} {_describe(obj)} must define a non-empty string '{attr}'.",
        )
    return value


def _require_callables(obj: Any, names: tuple[str, ...], kind: str) -> None:
    missing = [name for name in names if not callable(getattr(obj, name, None))]
    if missing:
        raise ContractError(
            f"{kind} {_describe(obj)} is missing required method(s): {', '.join(missing)}",
        )


def _optional_callables(obj: Any, names: tuple[str, ...], kind: str) -> None:
    for name in names:
        value = getattr(obj, name, None)
        if value is not None and not callable(value):
            raise ContractError(
                f"{kind} {_describe(obj)} has a non-callable '{name}'.",
            )


# ---------------------------------------------------------------------------
# Public checks
# ---------------------------------------------------------------------------

def ensure_page(page: Any) -> Any:
    """Verify *page* satisfies the page contract and return it."""
    _require_text(page, "id", "Page")
    _require_text(page, "title", "Page")
    _require_callables(page, _PAGE_METHODS, "Page")
    _optional_callables(page, _PAGE_OPTIONAL_HOOKS, "Page")
    return page


def ensure_renderer(renderer: Any) -> Any:
    """Verify *renderer* satisfies the renderer contract and return it."""
    _require_text(renderer, "name", "Renderer")
    _require_callables(renderer, _RENDERER_METHODS, "Renderer")
    return renderer


def ensure_plugin(plugin: Any) -> Any:
    """Verify *plugin* and every contribution it carries.

    Pages and renderers inside the plugin are checked too, so nothing
    is merged into the framework unless the whole bundle is valid.
    """
    _require_text(plugin, "name", "Plugin")
    _require_text(plugin, "version", "Plugin")
    _optional_callables(plugin, _PLUGIN_OPTIONAL_HOOKS, "Plugin")

    for page in getattr(plugin, "pages", None) or ():
        ensure_page(page)
    for renderer in getattr(plugin, "renderers", None) or ():
        ensure_renderer(renderer)

    reducers = getattr(plugin, "reducers", None) or {}
    if not isinstance(reducers, Mapping):
        raise ContractError(f"Plugin {_describe(plugin)} reducers must be a mapping.")
    for name, reducer in reducers.items():
        if not isinstance(name, str) or not callable(reducer):
            raise ContractError(
                f"Plugin {_describe(plugin)} has an invalid reducer entry {name!r}.",
            )

    for middleware in getattr(plugin, "middleware", None) or ():
        if not callable(middleware):
            raise ContractError(
                f"Plugin {_describe(plugin)} has a non-callable middleware.",
            )
    return plugin
