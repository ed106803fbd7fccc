from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from hygienist.adapters.sqlalchemy import create_all_tables
from hygienist.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyStores,
    open_stores,
    shutdown,
    startup,
)
from hygienist.domain.reconciliation import ReconciliationEngine
from tests.helpers.stores import (
    InMemoryDocumentRepository,
    InMemoryExclusionStore,
    RecordingChangeLog,
)

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_stores(sqlite_engine: Engine) -> Iterator[SqlAlchemyStores]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield open_stores()
    finally:
        shutdown()


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def change_log() -> RecordingChangeLog:
    return RecordingChangeLog()


@pytest.fixture
def reconciler(
    repository: InMemoryDocumentRepository,
    change_log: RecordingChangeLog,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        repository=repository,
        exclusions=InMemoryExclusionStore(),
        change_log=change_log,
    )
