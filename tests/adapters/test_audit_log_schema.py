from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from auditfeed.adapters.audit_log import (
    AuditLogRow,
    UnsupportedEventTypeError,
    parse_named_record,
    parse_profile_record,
    parse_raw_event,
    parse_raw_events,
)
from auditfeed.domain.model import EventType, FieldChange
from auditfeed.domain.timeline import ReferenceRecord


@pytest.fixture
def sample_row() -> dict[str, object]:
    return {
        "id": 101,
        "event_type": "update",
        "entity_type": "customers",
        "entity_id": 42,
        "user_id": "3f2c9a1e-7b4d-4c2a-9e8f-1a2b3c4d5e6f",
        "event_time": "2025-03-05T15:04:00",
        "description": "  ",
        "changes": [
            {"field": "name", "oldValue": "Acme", "newValue": "Acme Corp"},
            {"field": "", "old_value": 1, "new_value": 2},
            "garbage",
        ],
        "metadata": json.dumps({"customer_name": "Acme Corp"}),
    }


def test_parse_raw_event_normalizes_row(sample_row: dict[str, object]) -> None:
    raw = parse_raw_event(sample_row)

    assert raw.id == 101
    assert raw.event_type is EventType.UPDATE
    assert raw.entity_id == "42"
    assert raw.timestamp == datetime(2025, 3, 5, 15, 4, tzinfo=UTC)
    assert raw.description is None
    assert raw.changes == (FieldChange("name", "Acme", "Acme Corp"),)
    assert raw.metadata == {"customer_name": "Acme Corp"}


def test_changes_map_form_is_accepted(sample_row: dict[str, object]) -> None:
    sample_row["changes"] = {"is_active": {"old": True, "new": False}, "bad": 3}

    raw = parse_raw_event(sample_row)

    assert raw.changes == (FieldChange("is_active", True, False),)


def test_timestamp_alias_and_undecodable_metadata(sample_row: dict[str, object]) -> None:
    del sample_row["event_time"]
    sample_row["timestamp"] = "2025-03-05T16:04:00+01:00"
    sample_row["metadata"] = "{broken"

    raw = parse_raw_event(sample_row)

    assert raw.timestamp == datetime(2025, 3, 5, 15, 4, tzinfo=UTC)
    assert raw.metadata == {}


def test_legacy_label_becomes_type_hint(sample_row: dict[str, object]) -> None:
    sample_row["event_type"] = "skill_applied"
    sample_row["metadata"] = None

    raw = parse_raw_event(sample_row)

    assert raw.event_type is EventType.INSERT
    assert raw.metadata == {"type": "SKILL_APPLIED"}


def test_crud_synonyms_carry_no_type_hint(sample_row: dict[str, object]) -> None:
    sample_row["event_type"] = "Deleted"

    raw = parse_raw_event(sample_row)

    assert raw.event_type is EventType.DELETE
    assert raw.metadata == {"customer_name": "Acme Corp"}
    assert AuditLogRow.model_validate(sample_row).legacy_label is None


def test_unknown_event_type_is_rejected(sample_row: dict[str, object]) -> None:
    sample_row["event_type"] = "TRUNCATE"

    with pytest.raises(UnsupportedEventTypeError):
        parse_raw_event(sample_row)


def test_parse_raw_events_skips_unreadable_rows(
    sample_row: dict[str, object], caplog: pytest.LogCaptureFixture
) -> None:
    broken = {"id": "not-a-number", "event_type": "INSERT"}

    events = parse_raw_events([broken, sample_row])

    assert [event.id for event in events] == [101]
    assert "Skipping unreadable audit-log row" in caplog.text


def test_missing_required_fields_raise_validation_error() -> None:
    with pytest.raises(ValidationError):
        parse_raw_event({"id": 1, "event_type": "INSERT"})


def test_reference_rows_become_records() -> None:
    assert parse_profile_record(
        {"id": "u-1", "first_name": "Jane", "last_name": " ", "email": "jane@example.com"}
    ) == ReferenceRecord(id="u-1", name="Jane")
    assert parse_profile_record({"id": "u-2", "email": "bot@example.com"}) == ReferenceRecord(
        id="u-2", name="bot@example.com"
    )
    assert parse_named_record({"id": 7, "name": "Acme", "extra": 1}) == ReferenceRecord(
        id="7", name="Acme"
    )
