from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from auditfeed.config.feed import FeedSettings
from auditfeed.domain.model import (
    ConsolidatedEvent,
    EntityReference,
    EventKind,
    EventType,
    FieldChange,
    ReferenceKind,
)
from auditfeed.domain.timeline import Formatter, format_change, format_value, verb_phrase
from auditfeed.domain.timeline.format import format_timestamp, humanize_field, relative_time

from tests.support.references import ACME_ID, JANE_ID, REACT_ID

if TYPE_CHECKING:
    from auditfeed.domain.timeline import EntityResolver

STAMP = datetime(2025, 3, 5, 15, 4, tzinfo=UTC)


def _event(**overrides: object) -> ConsolidatedEvent:
    values: dict[str, object] = {
        "source_event_ids": frozenset({5, 9}),
        "kind": EventKind.GENERIC_INSERT,
        "event_type": EventType.INSERT,
        "entity_type": "customers",
        "entity_id": ACME_ID,
        "actor": EntityReference(kind=ReferenceKind.USER, id=JANE_ID, name="Jane Doe"),
        "timestamp": STAMP,
        "primary_target": EntityReference(
            kind=ReferenceKind.ORGANIZATION, id=ACME_ID, name="Acme"
        ),
    }
    values.update(overrides)
    return ConsolidatedEvent(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("kind", "event_type", "expected"),
    [
        (EventKind.GENERIC_INSERT, EventType.INSERT, ("created", None)),
        (EventKind.GENERIC_DELETE, EventType.DELETE, ("deleted", None)),
        (EventKind.SKILL_APPLICATION, EventType.INSERT, ("applied", "at")),
        (EventKind.SKILL_REMOVAL, EventType.UPDATE, ("removed", "from")),
        (EventKind.RELATIONSHIP_ASSIGNMENT, EventType.INSERT, ("assigned", "to")),
        (EventKind.REQUIRED_SKILL_SET, EventType.INSERT, ("set required skill", "for")),
    ],
)
def test_verb_phrase_depends_only_on_kind_and_type(
    kind: EventKind, event_type: EventType, expected: tuple[str, str | None]
) -> None:
    assert verb_phrase(kind, event_type) == expected


def test_verb_table_is_total() -> None:
    for kind in EventKind:
        for event_type in EventType:
            verb, _connector = verb_phrase(kind, event_type)
            assert verb


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "None"),
        (True, "Yes"),
        (False, "No"),
        (3, "3"),
        ({"id": 1, "name": "Acme"}, "Acme"),
        ([1, 2], "[1, 2]"),
    ],
)
def test_format_value(value: object, expected: str) -> None:
    assert format_value(value) == expected


def test_format_value_bounds_serialized_containers() -> None:
    text = format_value({"payload": "x" * 200}, budget=20)

    assert len(text) == 20
    assert text.endswith("…")


def test_format_change_renders_arrow_and_hides_identifiers() -> None:
    assert format_change(FieldChange("isActive", False, True)) == "Is Active: No → Yes"
    assert format_change(FieldChange("first_name", None, "Jane")) == "First Name: None → Jane"
    assert format_change(FieldChange("customer_id", "a", "b")) is None
    assert format_change(FieldChange("ownerId", "a", "b")) is None
    assert format_change(FieldChange("paid", 0, 1)) == "Paid: 0 → 1"


def test_humanize_field() -> None:
    assert humanize_field("proficiency_level") == "Proficiency Level"
    assert humanize_field("startDate") == "Start Date"


def test_absolute_timestamp_text() -> None:
    assert format_timestamp(STAMP) == "March 5, 2025 at 3:04 PM"
    assert format_timestamp(datetime(2025, 1, 9, 0, 5, tzinfo=UTC)) == "January 9, 2025 at 12:05 AM"


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(seconds=10), "just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=65), "2 months ago"),
        (timedelta(days=800), "2 years ago"),
    ],
)
def test_relative_time(delta: timedelta, expected: str) -> None:
    assert relative_time(STAMP - delta, STAMP) == expected


def test_generic_summary_and_links(resolver: EntityResolver) -> None:
    formatter = Formatter(resolver)

    display = formatter.format(_event(), now=STAMP + timedelta(hours=2))

    assert display.summary == "Jane Doe created customer Acme"
    assert display.actor.link == f"/users/{JANE_ID}"
    assert display.primary is not None
    assert display.primary.link == f"/customers/{ACME_ID}"
    assert display.relative_time == "2 hours ago"
    assert display.timestamp_text == "March 5, 2025 at 3:04 PM"
    assert display.source_event_ids == (9, 5)
    assert display.key == f"customers:{ACME_ID}:9"


def test_skill_summary_with_name_only_references(resolver: EntityResolver) -> None:
    event = _event(
        kind=EventKind.SKILL_APPLICATION,
        entity_type="skill_applications",
        entity_id="41",
        primary_target=EntityReference(kind=ReferenceKind.SKILL, name="React"),
        secondary_target=EntityReference(kind=ReferenceKind.ORGANIZATION, name="Acme"),
        proficiency="Expert",
    )

    display = Formatter(resolver).format(event, now=STAMP)

    assert display.summary == "Jane Doe applied React at Acme with Expert proficiency"
    assert display.primary is not None
    assert display.primary.link is None
    assert display.connector == "at"


def test_missing_targets_render_placeholders(resolver: EntityResolver) -> None:
    event = _event(
        kind=EventKind.RELATIONSHIP_ASSIGNMENT,
        entity_type="user_customers",
        entity_id="88",
        primary_target=None,
        role="Developer",
    )

    display = Formatter(resolver).format(event, now=STAMP)

    assert display.summary == "Jane Doe assigned a user to a customer as Developer"


def test_display_names_are_re_resolved(resolver: EntityResolver) -> None:
    event = _event(
        kind=EventKind.SKILL_REMOVAL,
        event_type=EventType.DELETE,
        entity_type="skill_applications",
        entity_id="42",
        primary_target=EntityReference(kind=ReferenceKind.SKILL, id=REACT_ID, name="Old name"),
        proficiency="Advanced",
    )

    display = Formatter(resolver).format(event, now=STAMP)

    assert display.primary is not None
    assert display.primary.name == "React"
    assert display.summary == "Jane Doe removed React from a customer"


def test_change_lines_and_timezone(resolver: EntityResolver) -> None:
    event = _event(
        kind=EventKind.GENERIC_UPDATE,
        event_type=EventType.UPDATE,
        changes=(FieldChange("name", "Acme", "Acme Corp"), FieldChange("org_id", 1, 2)),
    )
    settings = FeedSettings(timezone="America/New_York")

    display = Formatter(resolver, settings).format(event, now=STAMP)

    assert display.change_lines == ("Name: Acme → Acme Corp",)
    assert display.timestamp_text == "March 5, 2025 at 10:04 AM"
    assert display.summary == "Jane Doe updated customer Acme"
