"""Built-in reducer for storing page results in the state.

The page factories in :mod:`intershell.cli.pages` return
``set_field`` actions from ``render``; :func:`field_reducer` applies
them to mapping or dataclass states without mutating the input state.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from intershell.core.models import Action
from intershell.exceptions import InvalidActionError

SET_FIELD: str = "intershell/set-field"


def set_field(name: str, value: Any) -> Action:
    """Action storing *value* under *name*."""
    return Action(SET_FIELD, payload={"field": name, "value": value})


def field_reducer(state: Any, action: Action) -> Any:
    if action.type != SET_FIELD:
        return state

    payload = action.payload
    if not isinstance(payload, Mapping) or not isinstance(payload.get("field"), str):
        raise InvalidActionError(
            f"{SET_FIELD} payload must be a mapping with a string 'field'",
            action_type=action.type,
        )
    name, value = payload["field"], payload.get("value")

    if isinstance(state, Mapping):
        return {**state, name: value}
    if dataclasses.is_dataclass(state) and not isinstance(state, type):
        return dataclasses.replace(state, **{name: value})
    raise InvalidActionError(
        f"Cannot set field {name!r} on state of type {type(state).__name__}",
        action_type=action.type,
    )


def get_field(state: Any, name: str, default: Any = None) -> Any:
    """Read *name* from a mapping or dataclass state."""
    if isinstance(state, Mapping):
        return state.get(name, default)
    return getattr(state, name, default)
