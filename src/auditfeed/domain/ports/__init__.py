"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    AsyncReferenceSource,
    ChangeLogBatch,
    ChangeLogSource,
    ReferenceCollections,
    ReferenceRefreshError,
    ReferenceSource,
    SourceError,
)
from .persistence import ChangeLogRepository, ReferenceRepository
from .subscription import ChangeCallback, ChangeSubscription, Unsubscribe
from .unit_of_work import FeedRepositories, FeedUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "AsyncReferenceSource",
    "ChangeCallback",
    "ChangeLogBatch",
    "ChangeLogRepository",
    "ChangeLogSource",
    "ChangeSubscription",
    "FeedRepositories",
    "FeedUnitOfWork",
    "ReferenceCollections",
    "ReferenceRefreshError",
    "ReferenceRepository",
    "ReferenceSource",
    "RepositoryCollection",
    "SourceError",
    "UnitOfWork",
    "Unsubscribe",
]
