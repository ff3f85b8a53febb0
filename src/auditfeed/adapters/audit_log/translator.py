"""Translate audit-log and reference rows into domain values."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from auditfeed.domain.model import EventType, FieldChange, RawEvent
from auditfeed.domain.timeline.resolve import ReferenceRecord

from .schema import AuditLogRow, NamedRow, ProfileRow

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import AuditLogRowInput

log = getLogger(__name__)


class UnsupportedEventTypeError(ValueError):
    """Raised for audit-log labels that map onto no CRUD event type."""


def _ensure_row(row: AuditLogRowInput) -> AuditLogRow:
    if isinstance(row, AuditLogRow):
        return row
    return AuditLogRow.model_validate(row)


def parse_raw_event(row: AuditLogRowInput) -> RawEvent:
    payload = _ensure_row(row)
    crud = payload.crud_event_type
    if crud is None:
        raise UnsupportedEventTypeError(f"Unsupported audit-log event type: {payload.event_type}")

    metadata = payload.metadata
    label = payload.legacy_label
    if label is not None:
        hinted: dict[str, object] = dict(metadata) if isinstance(metadata, Mapping) else {}
        hinted.setdefault("type", label)
        metadata = hinted

    timestamp = payload.event_time
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)

    return RawEvent(
        id=payload.id,
        event_type=EventType(crud),
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        user_id=payload.user_id,
        timestamp=timestamp,
        changes=tuple(
            FieldChange(field=change.field, old_value=change.old_value, new_value=change.new_value)
            for change in payload.changes
        ),
        description=payload.description,
        metadata=metadata,
    )


def parse_raw_events(rows: Iterable[AuditLogRowInput]) -> list[RawEvent]:
    """Parse every row, skipping (and logging) rows that cannot be read at all."""

    events: list[RawEvent] = []
    for row in rows:
        try:
            events.append(parse_raw_event(row))
        except (ValidationError, UnsupportedEventTypeError) as exc:
            log.warning("Skipping unreadable audit-log row: %s", exc)
    return events


def parse_profile_record(row: ProfileRow | Mapping[str, object]) -> ReferenceRecord:
    payload = row if isinstance(row, ProfileRow) else ProfileRow.model_validate(row)
    return ReferenceRecord(id=payload.id, name=payload.display_name)


def parse_named_record(row: NamedRow | Mapping[str, object]) -> ReferenceRecord:
    payload = row if isinstance(row, NamedRow) else NamedRow.model_validate(row)
    return ReferenceRecord(id=payload.id, name=payload.name or "")
