"""Change-log and reference sources reading through a SQLAlchemy unit of work."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from auditfeed.adapters.sqlalchemy.unit_of_work import SqlAlchemyFeedUnitOfWork
from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.ports.fetching import ChangeLogBatch, ReferenceRefreshError, SourceError

if TYPE_CHECKING:
    from datetime import datetime

    from auditfeed.domain.ports import ChangeLogSource, FeedUnitOfWork, ReferenceSource
    from auditfeed.domain.ports.fetching import ReferenceCollections
    from auditfeed.domain.timeline.scope import FeedScope

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], FeedUnitOfWork]


@dataclass(slots=True)
class SqlAlchemyChangeLogSource:
    uow_factory: UnitOfWorkFactory = field(default=SqlAlchemyFeedUnitOfWork)

    def __call__(
        self,
        *,
        scope: FeedScope | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 200,
    ) -> ChangeLogBatch:
        try:
            with self.uow_factory() as uow:
                change_log = uow.repositories.change_log
                events = change_log.list_window(scope=scope, since=since, until=until, limit=limit)
                latest = change_log.latest_event_id()
        except SQLAlchemyError as exc:
            log.exception("Reading the change log failed")
            raise SourceError(f"Reading the change log failed: {exc}") from exc
        return ChangeLogBatch(events=tuple(events), latest_event_id=latest)

    def latest_event_id(self) -> int | None:
        try:
            with self.uow_factory() as uow:
                return uow.repositories.change_log.latest_event_id()
        except SQLAlchemyError as exc:
            raise SourceError(f"Reading the change log failed: {exc}") from exc


@dataclass(slots=True)
class SqlAlchemyReferenceSource:
    uow_factory: UnitOfWorkFactory = field(default=SqlAlchemyFeedUnitOfWork)

    def __call__(self) -> ReferenceCollections:
        try:
            with self.uow_factory() as uow:
                references = uow.repositories.references
                return {kind: references.list_records(kind) for kind in ReferenceKind}
        except SQLAlchemyError as exc:
            raise ReferenceRefreshError(f"Reading reference tables failed: {exc}") from exc


if TYPE_CHECKING:
    _change_log_check: ChangeLogSource = SqlAlchemyChangeLogSource()
    _reference_check: ReferenceSource = SqlAlchemyReferenceSource()
