"""SQLAlchemy table metadata for the document store, exclusions and change log."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)

from hygienist.domain.model import AuditAction, Collection, EntityType

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

# Documents -------------------------------------------------------------------

document_table = Table(
    "document",
    mapper_registry.metadata,
    Column("collection", Enum(Collection, native_enum=False, length=32), nullable=False),
    Column("id", String, nullable=False),
    Column("fields", JSON, nullable=False, default=dict),
    Column("updated_at", UTCDateTime, nullable=False, default=lambda: datetime.now(tz=UTC)),
    PrimaryKeyConstraint("collection", "id"),
)

# Exclusions ------------------------------------------------------------------

dedupe_exclusion_table = Table(
    "dedupe_exclusion",
    mapper_registry.metadata,
    Column("entity_type", Enum(EntityType, native_enum=False, length=16), nullable=False),
    Column("id_low", String, nullable=False),
    Column("id_high", String, nullable=False),
    Column("reason", Text, nullable=False, default=""),
    Column("created_at", UTCDateTime, nullable=False),
    PrimaryKeyConstraint("entity_type", "id_low", "id_high"),
)

# Change log ------------------------------------------------------------------

change_log_table = Table(
    "change_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("action", Enum(AuditAction, native_enum=False, length=16), nullable=False),
    Column("entity", String, nullable=False),
    Column("collection", Enum(Collection, native_enum=False, length=32), nullable=False),
    Column("document_id", String, nullable=False),
    Column("before", JSON, nullable=True),
    Column("after", JSON, nullable=True),
    Column("origin", String, nullable=False),
    Column("timestamp", UTCDateTime, nullable=False),
    Index("ix_change_log_document", "collection", "document_id"),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the registered metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
