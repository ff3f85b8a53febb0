"""Ports for reading the persisted change log and reference tables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from auditfeed.domain.model import RawEvent, ReferenceKind
    from auditfeed.domain.timeline.resolve import ReferenceRecord
    from auditfeed.domain.timeline.scope import FeedScope


@runtime_checkable
class ChangeLogRepository(Protocol):
    """Read and append access to stored audit-log rows."""

    def add(self, event: RawEvent) -> None: ...

    def list_window(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> list[RawEvent]: ...

    def latest_event_id(self) -> int | None: ...


@runtime_checkable
class ReferenceRepository(Protocol):
    """Bulk ``{id, name}`` listings for one entity kind at a time."""

    def list_records(self, kind: ReferenceKind) -> list[ReferenceRecord]: ...

    def add_record(self, kind: ReferenceKind, record: ReferenceRecord) -> None: ...


type ReferenceRecords = Iterable[ReferenceRecord]


__all__ = ["ChangeLogRepository", "ReferenceRecords", "ReferenceRepository"]
