"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class EventKind(StrEnum):
    """Semantic classification of one activity item."""

    GENERIC_INSERT = "generic-insert"
    GENERIC_UPDATE = "generic-update"
    GENERIC_DELETE = "generic-delete"
    RELATIONSHIP_ASSIGNMENT = "relationship-assignment"
    SKILL_APPLICATION = "skill-application"
    SKILL_REMOVAL = "skill-removal"
    REQUIRED_SKILL_SET = "required-skill-set"

    @property
    def is_generic(self) -> bool:
        return self in _GENERIC_KINDS

    @classmethod
    def generic_for(cls, event_type: EventType) -> EventKind:
        return _GENERIC_BY_EVENT_TYPE[event_type]


_GENERIC_KINDS = frozenset(
    {EventKind.GENERIC_INSERT, EventKind.GENERIC_UPDATE, EventKind.GENERIC_DELETE}
)
_GENERIC_BY_EVENT_TYPE = {
    EventType.INSERT: EventKind.GENERIC_INSERT,
    EventType.UPDATE: EventKind.GENERIC_UPDATE,
    EventType.DELETE: EventKind.GENERIC_DELETE,
}


class ReferenceKind(StrEnum):
    """The three first-class business entity kinds."""

    USER = "user"
    ORGANIZATION = "organization"
    SKILL = "skill"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Proficiency(StrEnum):
    NOVICE = "Novice"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"
