"""Repository implementations backed by SQLAlchemy sessions.

Each call runs in its own transaction taken from the session factory, so a
``commit_batch`` is all-or-nothing and a single ``put`` is visible on return.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from hygienist.adapters.sqlalchemy.mappings import (
    change_log_table,
    dedupe_exclusion_table,
    document_table,
)
from hygienist.domain.model import StoredDocument, WriteMode
from hygienist.domain.ports import ExclusionRecord, PutMutation
from hygienist.domain.reconciliation.errors import DocumentNotFoundError, RepositoryError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import Session, sessionmaker

    from hygienist.domain.model import AuditEntry, Collection, EntityType
    from hygienist.domain.ports import Mutation


def _json_safe(fields: Mapping[str, Any]) -> dict[str, Any]:
    return cast(dict[str, Any], json.loads(json.dumps(dict(fields), default=str)))


@contextmanager
def _translate_errors(
    action: str,
    *,
    collection: Collection | None = None,
    document_id: str | None = None,
) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise RepositoryError(
            f"Failed to {action}: {exc}", collection=collection, document_id=document_id
        ) from exc


def _document_filter(collection: Collection, document_id: str) -> ColumnElement[bool]:
    return and_(document_table.c.collection == collection, document_table.c.id == document_id)


class SqlAlchemyDocumentRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def list_all(self, collection: Collection) -> list[StoredDocument]:
        stmt = (
            select(document_table.c.id, document_table.c.fields)
            .where(document_table.c.collection == collection)
            .order_by(document_table.c.id)
        )
        with _translate_errors("list documents", collection=collection):
            with self.session_factory() as session:
                rows = session.execute(stmt).all()
        return [StoredDocument(collection, row.id, dict(row.fields or {})) for row in rows]

    def get(self, collection: Collection, document_id: str) -> StoredDocument | None:
        stmt = select(document_table.c.fields).where(_document_filter(collection, document_id))
        with _translate_errors("read document", collection=collection, document_id=document_id):
            with self.session_factory() as session:
                fields = session.execute(stmt).scalar_one_or_none()
        if fields is None:
            return None
        return StoredDocument(collection, document_id, dict(fields))

    def put(
        self,
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        mode: WriteMode = WriteMode.MERGE,
    ) -> None:
        with _translate_errors("write document", collection=collection, document_id=document_id):
            with self.session_factory.begin() as session:
                self._put(session, collection, document_id, fields, mode)

    def delete(self, collection: Collection, document_id: str) -> None:
        with _translate_errors("delete document", collection=collection, document_id=document_id):
            with self.session_factory.begin() as session:
                self._delete(session, collection, document_id)

    def commit_batch(self, mutations: Sequence[Mutation]) -> None:
        if not mutations:
            return
        with _translate_errors("commit batch"):
            with self.session_factory.begin() as session:
                for mutation in mutations:
                    if isinstance(mutation, PutMutation):
                        self._put(
                            session,
                            mutation.collection,
                            mutation.document_id,
                            mutation.fields,
                            mutation.mode,
                        )
                    else:
                        self._delete(session, mutation.collection, mutation.document_id)

    @staticmethod
    def _put(
        session: Session,
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        mode: WriteMode,
    ) -> None:
        where = _document_filter(collection, document_id)
        current = session.execute(select(document_table.c.fields).where(where)).scalar_one_or_none()
        now = datetime.now(tz=UTC)
        if current is None:
            if mode is WriteMode.UPDATE:
                raise DocumentNotFoundError(collection, document_id)
            session.execute(
                insert(document_table).values(
                    collection=collection,
                    id=document_id,
                    fields=_json_safe(fields),
                    updated_at=now,
                )
            )
            return
        merged = fields if mode is WriteMode.OVERWRITE else {**current, **fields}
        session.execute(
            update(document_table).where(where).values(fields=_json_safe(merged), updated_at=now)
        )

    @staticmethod
    def _delete(session: Session, collection: Collection, document_id: str) -> None:
        session.execute(delete(document_table).where(_document_filter(collection, document_id)))


class SqlAlchemyExclusionStore:
    """Persist "not a duplicate" pairs keyed by entity type and sorted id pair."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get(self, entity_type: EntityType, id_low: str, id_high: str) -> ExclusionRecord | None:
        stmt = select(dedupe_exclusion_table).where(
            dedupe_exclusion_table.c.entity_type == entity_type,
            dedupe_exclusion_table.c.id_low == id_low,
            dedupe_exclusion_table.c.id_high == id_high,
        )
        with _translate_errors("read exclusion"):
            with self.session_factory() as session:
                row = session.execute(stmt).one_or_none()
        return None if row is None else self._to_record(row)

    def save(self, record: ExclusionRecord) -> None:
        where = and_(
            dedupe_exclusion_table.c.entity_type == record.entity_type,
            dedupe_exclusion_table.c.id_low == record.id_low,
            dedupe_exclusion_table.c.id_high == record.id_high,
        )
        with _translate_errors("save exclusion"):
            with self.session_factory.begin() as session:
                exists = session.execute(
                    select(dedupe_exclusion_table.c.id_low).where(where)
                ).first()
                if exists is None:
                    session.execute(
                        insert(dedupe_exclusion_table).values(
                            entity_type=record.entity_type,
                            id_low=record.id_low,
                            id_high=record.id_high,
                            reason=record.reason,
                            created_at=record.created_at,
                        )
                    )
                else:
                    session.execute(
                        update(dedupe_exclusion_table)
                        .where(where)
                        .values(reason=record.reason, created_at=record.created_at)
                    )

    def list_for(self, entity_type: EntityType) -> list[ExclusionRecord]:
        stmt = (
            select(dedupe_exclusion_table)
            .where(dedupe_exclusion_table.c.entity_type == entity_type)
            .order_by(dedupe_exclusion_table.c.id_low, dedupe_exclusion_table.c.id_high)
        )
        with _translate_errors("list exclusions"):
            with self.session_factory() as session:
                rows = session.execute(stmt).all()
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: Any) -> ExclusionRecord:
        return ExclusionRecord(
            entity_type=row.entity_type,
            id_low=row.id_low,
            id_high=row.id_high,
            reason=row.reason,
            created_at=row.created_at,
        )


class SqlAlchemyChangeLog:
    """Append-only audit rows."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def record(self, entry: AuditEntry) -> None:
        with _translate_errors(
            "record change", collection=entry.collection, document_id=entry.document_id
        ):
            with self.session_factory.begin() as session:
                session.execute(
                    insert(change_log_table).values(
                        action=entry.action,
                        entity=entry.entity,
                        collection=entry.collection,
                        document_id=entry.document_id,
                        before=None if entry.before is None else _json_safe(entry.before),
                        after=None if entry.after is None else _json_safe(entry.after),
                        origin=entry.origin,
                        timestamp=entry.timestamp,
                    )
                )

    def history(self, collection: Collection, document_id: str) -> list[dict[str, Any]]:
        """Audit rows for one document, oldest first."""

        stmt = (
            select(change_log_table)
            .where(
                change_log_table.c.collection == collection,
                change_log_table.c.document_id == document_id,
            )
            .order_by(change_log_table.c.id)
        )
        with _translate_errors("read change log", collection=collection, document_id=document_id):
            with self.session_factory() as session:
                rows = session.execute(stmt).mappings().all()
        return [dict(row) for row in rows]
