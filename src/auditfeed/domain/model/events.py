"""Immutable value types flowing through the timeline pipeline.

``RawEvent`` rows come from the change-log collaborator and are never mutated.
``ConsolidatedEvent`` and ``DisplayEvent`` are recomputed from scratch on every
pipeline run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import EventKind, EventType, ReferenceKind

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    old_value: object = None
    new_value: object = None

    @property
    def is_noop(self) -> bool:
        return self.old_value == self.new_value


@dataclass(frozen=True, slots=True, kw_only=True, eq=False)
class RawEvent:
    """One change-log row as captured by the upstream triggers.

    ``metadata`` is deliberately untyped: producers write mappings, JSON strings,
    or nothing at all. Readers go through ``domain.timeline.metadata``.

    Two rows are the same row when their change-log ids match.
    """

    id: int
    event_type: EventType
    entity_type: str
    entity_id: str
    user_id: str
    timestamp: datetime
    changes: tuple[FieldChange, ...] = ()
    description: str | None = None
    metadata: object = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RawEvent):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True, slots=True)
class EntityReference:
    """Pointer to a user, organization or skill with a display name.

    ``id`` is absent when only a name could be recovered. ``name`` is never
    blank; blank names are replaced by ``"Unknown <Kind>"``.
    """

    kind: ReferenceKind
    name: str
    id: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            object.__setattr__(self, "name", fallback_name(self.kind))
        else:
            object.__setattr__(self, "name", self.name.strip())

    @classmethod
    def unknown(cls, kind: ReferenceKind) -> EntityReference:
        return cls(kind=kind, name=fallback_name(kind))

    @property
    def is_unknown(self) -> bool:
        return self.id is None and self.name == fallback_name(self.kind)


def fallback_name(kind: ReferenceKind) -> str:
    return f"Unknown {kind.label}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ConsolidatedEvent:
    """One deduplicated, merged, classified activity item."""

    source_event_ids: frozenset[int]
    kind: EventKind
    event_type: EventType
    entity_type: str
    entity_id: str
    actor: EntityReference
    timestamp: datetime
    primary_target: EntityReference | None = None
    secondary_target: EntityReference | None = None
    changes: tuple[FieldChange, ...] = ()
    proficiency: str | None = None
    notes: str | None = None
    role: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.source_event_ids:
            raise ValueError("Consolidated event must fold at least one raw event")

    @property
    def latest_source_id(self) -> int:
        return max(self.source_event_ids)


@dataclass(frozen=True, slots=True)
class DisplayReference:
    kind: ReferenceKind
    name: str
    link: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DisplayEvent:
    """Rendering-ready activity item; needs no further resolution."""

    key: str
    kind: EventKind
    event_type: EventType
    actor: DisplayReference
    verb: str
    timestamp: datetime
    timestamp_text: str
    relative_time: str
    summary: str
    connector: str | None = None
    primary: DisplayReference | None = None
    secondary: DisplayReference | None = None
    change_lines: tuple[str, ...] = ()
    proficiency: str | None = None
    notes: str | None = None
    role: str | None = None
    source_event_ids: tuple[int, ...] = field(default_factory=tuple)
