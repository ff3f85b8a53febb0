"""SQLAlchemy table metadata for the change log and reference tables."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)

from auditfeed.domain.model import ReferenceKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Change log ------------------------------------------------------------------

audit_log_table = Table(
    "audit_logs",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(32), nullable=False),
    Column("entity_type", String(64), nullable=False),
    Column("entity_id", String(255), nullable=False),
    Column("user_id", String(255), nullable=False, default=""),
    Column("event_time", UTCDateTime(), nullable=False),
    Column("description", Text, nullable=True),
    Column("changes", JSON, nullable=True),
    # ``metadata`` is reserved on table column collections.
    Column("metadata", JSON, nullable=True, key="metadata_"),
    Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    Index("ix_audit_logs_event_time", "event_time"),
)

# Reference tables ------------------------------------------------------------

profile_table = Table(
    "profiles",
    mapper_registry.metadata,
    Column("id", String(64), primary_key=True),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("email", String(255), nullable=True),
)

customer_table = Table(
    "customers",
    mapper_registry.metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
)

skill_table = Table(
    "skills",
    mapper_registry.metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
)

REFERENCE_TABLE_BY_KIND: dict[ReferenceKind, Table] = {
    ReferenceKind.USER: profile_table,
    ReferenceKind.ORGANIZATION: customer_table,
    ReferenceKind.SKILL: skill_table,
}


def create_all_tables(engine: Engine) -> None:
    log.debug("Creating change-log tables on %s", engine.url)
    mapper_registry.metadata.create_all(engine)
