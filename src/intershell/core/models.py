"""Domain models for intershell.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access and validation of their own shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Union

from intershell.exceptions import InvalidActionError


# ---------------------------------------------------------------------------
# Store actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Action:
    """A state-store action.

    ``type`` selects the behaviour reducers apply; ``payload`` carries
    the data.  Construction fails fast on a missing or non-string type.
    """

    type: str
    payload: Any = None
    meta: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise InvalidActionError(
                f"Action type must be a non-empty string, got {self.type!r}",
            )

    def with_payload(self, payload: Any) -> Action:
        """Return a copy of this action carrying *payload*."""
        return replace(self, payload=payload)


# ---------------------------------------------------------------------------
# Page actions (closed variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class NextPage:
    """Advance to the next page in registry order."""


@dataclass(frozen=True, slots=True)
class PrevPage:
    """Return to the previous page (history first, then registry order)."""


@dataclass(frozen=True, slots=True)
class ChangePage:
    """Jump to the page identified by ``target``."""

    target: str


@dataclass(frozen=True, slots=True)
class ReRender:
    """Render the current page again."""


@dataclass(frozen=True, slots=True)
class Exit:
    """Terminate the run loop; ``run()`` resolves with the final state."""


@dataclass(frozen=True, slots=True)
class Custom:
    """Dispatch ``payload`` into the store and stay on the current page."""

    payload: Action


PageAction = Union[NextPage, PrevPage, ChangePage, ReRender, Exit, Custom]
"""Exactly one of these is produced per page evaluation cycle."""

PAGE_ACTION_TYPES: tuple[type, ...] = (NextPage, PrevPage, ChangePage, ReRender, Exit, Custom)


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a page or collaborator validation."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, *warnings: str) -> ValidationResult:
        return cls(is_valid=True, warnings=warnings)

    @classmethod
    def fail(cls, *errors: str) -> ValidationResult:
        return cls(is_valid=False, errors=errors)


# ---------------------------------------------------------------------------
# Page metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Optional categorisation attached to a page."""

    tags: tuple[str, ...] = ()
    category: str | None = None
    difficulty: Literal["easy", "medium", "hard"] | None = None
    estimated_time: float | None = None
    """Expected time on the page, in seconds."""
    version: str | None = None


# ---------------------------------------------------------------------------
# Navigation history
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A recorded visit to a page.

    Entries are never mutated; the navigation engine replaces an entry
    with a fresh one when it needs a newer snapshot.
    """

    page_id: str
    state_snapshot: Any
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)
