"""Core layer — framework logic with no terminal I/O.

Rules
-----
* No ``print()`` calls and no direct terminal access; pages reach the
  terminal only through the :class:`KeyEventSource` they are handed.
* No imports from ``cli`` or ``infra``.
"""

from intershell.core.controlled import ControlledFuture
from intershell.core.events import EventBus, FrameworkEvent
from intershell.core.keys import KeyPattern, KeyPress, matches, parse_key, parse_keys
from intershell.core.models import (
    Action,
    ChangePage,
    Custom,
    Exit,
    HistoryEntry,
    NextPage,
    PageAction,
    PageMetadata,
    PrevPage,
    ReRender,
    ValidationResult,
)
from intershell.core.navigation import NavigationEngine, PageRegistry
from intershell.core.options import FrameworkOptions
from intershell.core.pages import FunctionalPage, PageBuilder
from intershell.core.plugins import PluginDefinition, PluginManager
from intershell.core.reducers import field_reducer, get_field, set_field
from intershell.core.store import StateStore

__all__: list[str] = [
    "Action",
    "ChangePage",
    "ControlledFuture",
    "Custom",
    "EventBus",
    "Exit",
    "FrameworkEvent",
    "FrameworkOptions",
    "FunctionalPage",
    "HistoryEntry",
    "KeyPattern",
    "KeyPress",
    "NavigationEngine",
    "NextPage",
    "PageAction",
    "PageBuilder",
    "PageMetadata",
    "PageRegistry",
    "PluginDefinition",
    "PluginManager",
    "PrevPage",
    "ReRender",
    "StateStore",
    "ValidationResult",
    "field_reducer",
    "get_field",
    "matches",
    "parse_key",
    "parse_keys",
    "set_field",
]
