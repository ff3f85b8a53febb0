"""Ports for fetching change-log rows and reference data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from auditfeed.domain.model import RawEvent, ReferenceKind
    from auditfeed.domain.timeline.resolve import ReferenceRecord
    from auditfeed.domain.timeline.scope import FeedScope


class SourceError(RuntimeError):
    """Raised by adapters when a fetch or subscription fails.

    The feed controller turns it into a recoverable error state.
    """


class ReferenceRefreshError(SourceError):
    """Raised when reference data could not be reloaded."""


@dataclass(slots=True)
class ChangeLogBatch:
    """Window of raw change-log rows, oldest first."""

    events: tuple[RawEvent, ...]
    latest_event_id: int | None = None


@runtime_checkable
class ChangeLogSource(Protocol):
    """Callable port returning a bounded window of change-log rows."""

    def __call__(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> ChangeLogBatch: ...

    def latest_event_id(self) -> int | None: ...


type ReferenceCollections = Mapping[ReferenceKind, Iterable[ReferenceRecord]]


@runtime_checkable
class ReferenceSource(Protocol):
    """Bulk listing of ``{id, name}`` records per entity kind."""

    def __call__(self) -> ReferenceCollections: ...


@runtime_checkable
class AsyncReferenceSource(Protocol):
    async def __call__(self) -> ReferenceCollections: ...


__all__ = [
    "AsyncReferenceSource",
    "ChangeLogBatch",
    "ChangeLogSource",
    "ReferenceCollections",
    "ReferenceRefreshError",
    "ReferenceSource",
    "SourceError",
]
