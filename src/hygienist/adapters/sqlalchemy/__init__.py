"""SQLAlchemy adapter package for hygienist."""

from __future__ import annotations

from .mappings import (
    change_log_table,
    create_all_tables,
    dedupe_exclusion_table,
    document_table,
    mapper_registry,
)
from .repositories import (
    SqlAlchemyChangeLog,
    SqlAlchemyDocumentRepository,
    SqlAlchemyExclusionStore,
)
from .unit_of_work import (
    SqlAlchemyStores,
    StartupError,
    configured_engine,
    is_started,
    open_stores,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyChangeLog",
    "SqlAlchemyDocumentRepository",
    "SqlAlchemyExclusionStore",
    "SqlAlchemyStores",
    "StartupError",
    "change_log_table",
    "configured_engine",
    "create_all_tables",
    "dedupe_exclusion_table",
    "document_table",
    "is_started",
    "mapper_registry",
    "open_stores",
    "shutdown",
    "startup",
]
