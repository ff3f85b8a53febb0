"""SQLAlchemy adapter package for the activity feed."""

from __future__ import annotations

from .mappings import (
    audit_log_table,
    create_all_tables,
    customer_table,
    mapper_registry,
    profile_table,
    skill_table,
)
from .repositories import SqlAlchemyChangeLogRepository, SqlAlchemyReferenceRepository
from .sources import SqlAlchemyChangeLogSource, SqlAlchemyReferenceSource
from .unit_of_work import (
    SqlAlchemyFeedUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyChangeLogRepository",
    "SqlAlchemyChangeLogSource",
    "SqlAlchemyFeedUnitOfWork",
    "SqlAlchemyReferenceRepository",
    "SqlAlchemyReferenceSource",
    "StartupError",
    "audit_log_table",
    "create_all_tables",
    "customer_table",
    "is_started",
    "mapper_registry",
    "profile_table",
    "skill_table",
    "shutdown",
    "startup",
]
