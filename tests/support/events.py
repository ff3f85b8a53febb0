"""Reusable raw-event factories and fake change-log sources."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from itertools import count
from typing import TYPE_CHECKING

from auditfeed.domain.model import EventType, FieldChange, RawEvent
from auditfeed.domain.ports import ChangeLogBatch

from .references import JANE_ID

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from auditfeed.domain.timeline import FeedScope

BASE_TIME = datetime(2025, 3, 5, 15, 0, tzinfo=UTC)

_ids = count(1000)


def at(seconds: float = 0.0) -> datetime:
    """Timestamp ``seconds`` after the shared base time."""

    return BASE_TIME + timedelta(seconds=seconds)


def make_raw_event(
    *,
    id: int | None = None,  # noqa: A002
    event_type: EventType = EventType.INSERT,
    entity_type: str = "customers",
    entity_id: str = "1",
    user_id: str = JANE_ID,
    timestamp: datetime | None = None,
    changes: Sequence[FieldChange] = (),
    description: str | None = None,
    metadata: object = None,
) -> RawEvent:
    return RawEvent(
        id=id if id is not None else next(_ids),
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        timestamp=timestamp or at(),
        changes=tuple(changes),
        description=description,
        metadata=metadata,
    )


def change(field: str, old: object, new: object) -> FieldChange:
    return FieldChange(field=field, old_value=old, new_value=new)


class FakeChangeLogSource:
    """In-memory change log; each call can be intercepted through ``before_return``."""

    def __init__(
        self,
        events: Sequence[RawEvent] = (),
        *,
        error: Exception | None = None,
    ) -> None:
        self.events = list(events)
        self.error = error
        self.calls: list[dict[str, object]] = []
        self.before_return: Callable[[int], None] | None = None

    def __call__(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> ChangeLogBatch:
        call_number = len(self.calls) + 1
        self.calls.append({"scope": scope, "since": since, "until": until, "limit": limit})
        if self.error is not None:
            raise self.error
        snapshot = tuple(self.events[-limit:])
        if self.before_return is not None:
            self.before_return(call_number)
        return ChangeLogBatch(events=snapshot, latest_event_id=self.latest_event_id())

    def latest_event_id(self) -> int | None:
        return max((event.id for event in self.events), default=None)
