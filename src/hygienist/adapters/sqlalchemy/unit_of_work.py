"""SQLAlchemy engine lifecycle and store wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from hygienist.adapters.sqlalchemy.mappings import create_all_tables
from hygienist.adapters.sqlalchemy.repositories import (
    SqlAlchemyChangeLog,
    SqlAlchemyDocumentRepository,
    SqlAlchemyExclusionStore,
)
from hygienist.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy adapter is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call hygienist.adapters.sqlalchemy."
                "unit_of_work.startup() before opening the stores."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, schema and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_config().uri)
    create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


@dataclass(frozen=True, slots=True)
class SqlAlchemyStores:
    documents: SqlAlchemyDocumentRepository
    exclusions: SqlAlchemyExclusionStore
    change_log: SqlAlchemyChangeLog


def open_stores() -> SqlAlchemyStores:
    """Build the three stores on the started engine."""

    factory = _STATE.session_factory
    return SqlAlchemyStores(
        documents=SqlAlchemyDocumentRepository(factory),
        exclusions=SqlAlchemyExclusionStore(factory),
        change_log=SqlAlchemyChangeLog(factory),
    )


if TYPE_CHECKING:
    from hygienist.domain.ports import ChangeLog, DocumentRepository, ExclusionStore

    _documents_check: DocumentRepository = SqlAlchemyDocumentRepository(sessionmaker())
    _exclusions_check: ExclusionStore = SqlAlchemyExclusionStore(sessionmaker())
    _change_log_check: ChangeLog = SqlAlchemyChangeLog(sessionmaker())
