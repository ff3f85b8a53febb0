"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, cast, func, insert, or_, select

from auditfeed.adapters.audit_log import parse_raw_events
from auditfeed.adapters.sqlalchemy.mappings import (
    REFERENCE_TABLE_BY_KIND,
    audit_log_table,
    profile_table,
)
from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.timeline.resolve import ReferenceRecord

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy import ColumnElement, RowMapping
    from sqlalchemy.orm import Session

    from auditfeed.domain.model import RawEvent
    from auditfeed.domain.timeline.scope import FeedScope


class SqlAlchemyChangeLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, event: RawEvent) -> None:
        self.session.execute(
            insert(audit_log_table).values(
                id=event.id,
                event_type=event.event_type.value,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                user_id=event.user_id,
                event_time=event.timestamp,
                description=event.description,
                changes=[
                    {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
                    for c in event.changes
                ],
                metadata_=event.metadata,
            )
        )

    def list_window(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> list[RawEvent]:
        """Return the newest ``limit`` rows in the window, oldest first.

        A scope only pre-filters; the exact relevance check happens in the domain.
        """

        columns = audit_log_table.c
        stmt = select(audit_log_table).order_by(columns.event_time.desc(), columns.id.desc())
        if since is not None:
            stmt = stmt.where(columns.event_time >= since)
        if until is not None:
            stmt = stmt.where(columns.event_time <= until)
        if scope is not None:
            stmt = stmt.where(_scope_clause(scope))
        rows = self.session.execute(stmt.limit(limit)).mappings().all()
        payloads = [
            {
                "id": row[columns.id],
                "event_type": row[columns.event_type],
                "entity_type": row[columns.entity_type],
                "entity_id": row[columns.entity_id],
                "user_id": row[columns.user_id],
                "event_time": row[columns.event_time],
                "description": row[columns.description],
                "changes": row[columns.changes],
                "metadata": row[columns.metadata_],
            }
            for row in reversed(rows)
        ]
        return parse_raw_events(payloads)

    def latest_event_id(self) -> int | None:
        return self.session.execute(select(func.max(audit_log_table.c.id))).scalar_one_or_none()


def _scope_clause(scope: FeedScope) -> ColumnElement[bool]:
    columns = audit_log_table.c
    clauses: list[ColumnElement[bool]] = [
        columns.entity_id == scope.id,
        cast(columns.metadata_, String).contains(scope.id),
        cast(columns.changes, String).contains(scope.id),
    ]
    if scope.kind is ReferenceKind.USER:
        clauses.append(columns.user_id == scope.id)
    return or_(*clauses)


class SqlAlchemyReferenceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_records(self, kind: ReferenceKind) -> list[ReferenceRecord]:
        table = REFERENCE_TABLE_BY_KIND[kind]
        rows = self.session.execute(select(table).order_by(table.c.id)).mappings().all()
        if kind is ReferenceKind.USER:
            return [ReferenceRecord(id=row[table.c.id], name=_profile_name(row)) for row in rows]
        return [ReferenceRecord(id=row[table.c.id], name=row[table.c.name]) for row in rows]

    def add_record(self, kind: ReferenceKind, record: ReferenceRecord) -> None:
        if kind is ReferenceKind.USER:
            first, _, last = record.name.partition(" ")
            self.session.execute(
                insert(profile_table).values(id=record.id, first_name=first, last_name=last or None)
            )
            return
        table = REFERENCE_TABLE_BY_KIND[kind]
        self.session.execute(insert(table).values(id=record.id, name=record.name))


def _profile_name(row: RowMapping) -> str:
    columns = profile_table.c
    parts = [row[columns.first_name], row[columns.last_name]]
    name = " ".join(part for part in parts if part)
    return name or (row[columns.email] or "")
