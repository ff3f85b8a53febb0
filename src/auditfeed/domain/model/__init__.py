"""Domain model for the activity feed."""

from __future__ import annotations

from .enums import EventKind, EventType, Proficiency, ReferenceKind
from .events import (
    ConsolidatedEvent,
    DisplayEvent,
    DisplayReference,
    EntityReference,
    FieldChange,
    RawEvent,
    fallback_name,
)

__all__ = [
    "ConsolidatedEvent",
    "DisplayEvent",
    "DisplayReference",
    "EntityReference",
    "EventKind",
    "EventType",
    "FieldChange",
    "Proficiency",
    "RawEvent",
    "ReferenceKind",
    "fallback_name",
]
