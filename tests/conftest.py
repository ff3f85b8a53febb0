from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from auditfeed.adapters.sqlalchemy import create_all_tables
from auditfeed.adapters.sqlalchemy.unit_of_work import SqlAlchemyFeedUnitOfWork, shutdown, startup
from auditfeed.domain.timeline import EntityResolver, ReferenceCache

from tests.support.references import make_reference_cache

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

NOW = datetime(2025, 3, 5, 15, 4, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def reference_cache() -> ReferenceCache:
    return make_reference_cache(clock=lambda: NOW)


@pytest.fixture
def resolver(reference_cache: ReferenceCache) -> EntityResolver:
    return EntityResolver(reference_cache)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyFeedUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyFeedUnitOfWork:
        return SqlAlchemyFeedUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
