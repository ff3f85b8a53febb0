"""Rendering of consolidated events into self-contained display items.

Responsibilities of this stage:
- pick the verb phrase and connector from ``(kind, event_type)`` only
- render field changes (identifier fields hidden, values reduced and bounded)
- re-resolve display names and build entity links
- produce absolute and relative time text and a plain summary sentence
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, timedelta
from typing import TYPE_CHECKING

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.model import (
    DisplayEvent,
    DisplayReference,
    EventKind,
    EventType,
    ReferenceKind,
)
from auditfeed.domain.time_windows import utcnow

from .changes import is_identifier_field
from .classify import reference_layout

if TYPE_CHECKING:
    from datetime import datetime, tzinfo

    from auditfeed.domain.model import ConsolidatedEvent, EntityReference, FieldChange
    from auditfeed.domain.time_windows import Clock

    from .resolve import EntityResolver

ELLIPSIS = "…"
ARROW = "→"

LINK_PREFIXES: Mapping[ReferenceKind, str] = {
    ReferenceKind.USER: "/users/",
    ReferenceKind.ORGANIZATION: "/customers/",
    ReferenceKind.SKILL: "/skills/",
}

PLACEHOLDERS: Mapping[ReferenceKind, str] = {
    ReferenceKind.USER: "a user",
    ReferenceKind.ORGANIZATION: "a customer",
    ReferenceKind.SKILL: "a skill",
}

NOUNS: Mapping[ReferenceKind, str] = {
    ReferenceKind.USER: "user",
    ReferenceKind.ORGANIZATION: "customer",
    ReferenceKind.SKILL: "skill",
}

# (verb, connector) per kind and event type.
VERBS: Mapping[tuple[EventKind, EventType], tuple[str, str | None]] = {
    (EventKind.GENERIC_INSERT, EventType.INSERT): ("created", None),
    (EventKind.GENERIC_UPDATE, EventType.UPDATE): ("updated", None),
    (EventKind.GENERIC_DELETE, EventType.DELETE): ("deleted", None),
    (EventKind.RELATIONSHIP_ASSIGNMENT, EventType.INSERT): ("assigned", "to"),
    (EventKind.RELATIONSHIP_ASSIGNMENT, EventType.UPDATE): ("updated assignment of", "at"),
    (EventKind.RELATIONSHIP_ASSIGNMENT, EventType.DELETE): ("removed", "from"),
    (EventKind.SKILL_APPLICATION, EventType.INSERT): ("applied", "at"),
    (EventKind.SKILL_APPLICATION, EventType.UPDATE): ("updated application of", "at"),
    (EventKind.SKILL_APPLICATION, EventType.DELETE): ("removed", "from"),
    (EventKind.SKILL_REMOVAL, EventType.INSERT): ("removed", "from"),
    (EventKind.SKILL_REMOVAL, EventType.UPDATE): ("removed", "from"),
    (EventKind.SKILL_REMOVAL, EventType.DELETE): ("removed", "from"),
    (EventKind.REQUIRED_SKILL_SET, EventType.INSERT): ("set required skill", "for"),
    (EventKind.REQUIRED_SKILL_SET, EventType.UPDATE): ("updated required skill", "for"),
    (EventKind.REQUIRED_SKILL_SET, EventType.DELETE): ("removed required skill", "from"),
}

_GENERIC_VERBS: Mapping[EventType, str] = {
    EventType.INSERT: "created",
    EventType.UPDATE: "updated",
    EventType.DELETE: "deleted",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def verb_phrase(kind: EventKind, event_type: EventType) -> tuple[str, str | None]:
    """Return ``(verb, connector)``; depends on nothing but its arguments."""

    phrase = VERBS.get((kind, event_type))
    if phrase is not None:
        return phrase
    # A generic kind paired with a different event type cannot come out of the
    # classifier, but the table must still be total.
    return _GENERIC_VERBS[event_type], None


def humanize_field(name: str) -> str:
    spaced = _CAMEL_BOUNDARY.sub(" ", name.strip()).replace("_", " ")
    return " ".join(word.capitalize() for word in spaced.split())


def format_value(value: object, *, budget: int = 60) -> str:
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, Mapping):
        name = value.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return _truncate(json.dumps(value, default=str, ensure_ascii=False), budget)
    if isinstance(value, (list, tuple)):
        return _truncate(json.dumps(value, default=str, ensure_ascii=False), budget)
    return str(value)


def _truncate(text: str, budget: int) -> str:
    if len(text) <= budget:
        return text
    return text[: budget - 1] + ELLIPSIS


def format_change(change: FieldChange, *, budget: int = 60) -> str | None:
    """Render ``"Field: old → new"``; identifier fields render as ``None``."""

    if is_identifier_field(change.field):
        return None
    old = format_value(change.old_value, budget=budget)
    new = format_value(change.new_value, budget=budget)
    return f"{humanize_field(change.field)}: {old} {ARROW} {new}"


def format_timestamp(value: datetime, zone: tzinfo = UTC) -> str:
    """Absolute time such as ``March 5, 2025 at 3:04 PM``."""

    local = _aware(value).astimezone(zone)
    hour = local.hour % 12 or 12
    return f"{local:%B} {local.day}, {local.year} at {hour}:{local:%M} {local:%p}"


def relative_time(value: datetime, now: datetime) -> str:
    delta = _aware(now) - _aware(value)
    if delta < timedelta(seconds=45):
        return "just now"
    minutes = int(delta.total_seconds() // 60)
    if minutes < 60:
        return _ago(max(minutes, 1), "minute")
    hours = minutes // 60
    if hours < 24:
        return _ago(hours, "hour")
    days = hours // 24
    if days < 30:
        return _ago(days, "day")
    if days < 365:
        return _ago(days // 30, "month")
    return _ago(days // 365, "year")


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@dataclass(slots=True)
class Formatter:
    """Turn ``ConsolidatedEvent`` values into ``DisplayEvent`` values."""

    resolver: EntityResolver
    settings: FeedSettings = field(default_factory=FeedSettings)
    clock: Clock = utcnow

    def format(self, event: ConsolidatedEvent, *, now: datetime | None = None) -> DisplayEvent:
        reference_time = now if now is not None else self.clock()
        verb, connector = verb_phrase(event.kind, event.event_type)
        actor = self.display_reference(event.actor)
        primary = self._optional(event.primary_target)
        secondary = self._optional(event.secondary_target)
        change_lines = tuple(
            line
            for line in (
                format_change(change, budget=self.settings.value_budget)
                for change in event.changes
            )
            if line is not None
        )
        return DisplayEvent(
            key=f"{event.entity_type}:{event.entity_id}:{event.latest_source_id}",
            kind=event.kind,
            event_type=event.event_type,
            actor=actor,
            verb=verb,
            connector=connector,
            primary=primary,
            secondary=secondary,
            change_lines=change_lines,
            proficiency=event.proficiency,
            notes=event.notes,
            role=event.role,
            timestamp=event.timestamp,
            timestamp_text=format_timestamp(event.timestamp, self.settings.zone),
            relative_time=relative_time(event.timestamp, reference_time),
            summary=self._summary(event, actor, verb, connector, primary, secondary),
            source_event_ids=tuple(sorted(event.source_event_ids, reverse=True)),
        )

    def display_reference(self, reference: EntityReference) -> DisplayReference:
        name = reference.name
        ref_id = reference.id
        if ref_id is not None:
            resolved = self.resolver.resolve(reference.kind, ref_id)
            if not resolved.is_unknown:
                name = resolved.name
                ref_id = resolved.id
        link = f"{LINK_PREFIXES[reference.kind]}{ref_id}" if ref_id is not None else None
        return DisplayReference(kind=reference.kind, name=name, link=link)

    def _optional(self, reference: EntityReference | None) -> DisplayReference | None:
        return self.display_reference(reference) if reference is not None else None

    def _summary(
        self,
        event: ConsolidatedEvent,
        actor: DisplayReference,
        verb: str,
        connector: str | None,
        primary: DisplayReference | None,
        secondary: DisplayReference | None,
    ) -> str:
        primary_kind, secondary_kind = reference_layout(
            event.kind, event.entity_type, self.settings.tables
        )
        if event.kind.is_generic:
            subject = (
                f"{NOUNS[primary.kind]} {primary.name}"
                if primary is not None
                else f"a {humanize_field(event.entity_type).lower()} record"
            )
            return f"{actor.name} {verb} {subject}"

        parts = [actor.name, verb, _phrase(primary, primary_kind)]
        if connector is not None:
            parts.extend((connector, _phrase(secondary, secondary_kind)))
        if event.role:
            parts.extend(("as", event.role))
        if event.proficiency and event.kind is not EventKind.SKILL_REMOVAL:
            parts.append(f"with {event.proficiency} proficiency")
        return " ".join(parts)


def _phrase(reference: DisplayReference | None, kind: ReferenceKind | None) -> str:
    if reference is not None:
        return reference.name
    if kind is None:
        return "an entity"
    return PLACEHOLDERS[kind]
