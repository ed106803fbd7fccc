"""In-memory fakes for the document store, exclusion store and change log."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from hygienist.domain.model import Collection, StoredDocument, WriteMode
from hygienist.domain.ports import PutMutation
from hygienist.domain.reconciliation import DocumentNotFoundError, RepositoryError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from hygienist.domain.model import AuditEntry, EntityType
    from hygienist.domain.ports import ExclusionRecord, Mutation


@dataclass
class InMemoryDocumentRepository:
    """Dict-backed store with per-document failure injection.

    Any write touching a ``(collection, id)`` listed in ``failing`` raises
    ``RepositoryError``; a batch containing such a write commits nothing.
    """

    documents: dict[Collection, dict[str, dict[str, Any]]] = field(default_factory=dict)
    failing: set[tuple[Collection, str]] = field(default_factory=set)
    committed_batches: list[list[Mutation]] = field(default_factory=list)
    unreachable: bool = False

    def seed(
        self,
        *,
        people: Iterable[Mapping[str, Any]] = (),
        schedules: Iterable[Mapping[str, Any]] = (),
        rooms: Iterable[Mapping[str, Any]] = (),
    ) -> InMemoryDocumentRepository:
        for collection, docs in (
            (Collection.PEOPLE, people),
            (Collection.SCHEDULES, schedules),
            (Collection.ROOMS, rooms),
        ):
            for doc in docs:
                fields = {name: value for name, value in doc.items() if name != "id"}
                self._collection(collection)[doc["id"]] = fields
        return self

    def fail_on(self, collection: Collection, document_id: str) -> None:
        self.failing.add((collection, document_id))

    def fields_of(self, collection: Collection, document_id: str) -> dict[str, Any] | None:
        return self._collection(collection).get(document_id)

    def ids(self, collection: Collection) -> list[str]:
        return sorted(self._collection(collection))

    def list_all(self, collection: Collection) -> list[StoredDocument]:
        self._check_reachable()
        return [
            StoredDocument(collection, document_id, dict(fields))
            for document_id, fields in sorted(self._collection(collection).items())
        ]

    def get(self, collection: Collection, document_id: str) -> StoredDocument | None:
        self._check_reachable()
        fields = self._collection(collection).get(document_id)
        return None if fields is None else StoredDocument(collection, document_id, dict(fields))

    def put(
        self,
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        mode: WriteMode = WriteMode.MERGE,
    ) -> None:
        self._check_writable(collection, document_id)
        self._apply_put(self.documents, collection, document_id, fields, mode)

    def delete(self, collection: Collection, document_id: str) -> None:
        self._check_writable(collection, document_id)
        self._collection(collection).pop(document_id, None)

    def commit_batch(self, mutations: Sequence[Mutation]) -> None:
        for mutation in mutations:
            self._check_writable(mutation.collection, mutation.document_id)
        staged = {name: {key: dict(value) for key, value in docs.items()}
                  for name, docs in self.documents.items()}
        for mutation in mutations:
            if isinstance(mutation, PutMutation):
                self._apply_put(
                    staged, mutation.collection, mutation.document_id, mutation.fields, mutation.mode
                )
            else:
                staged.setdefault(mutation.collection, {}).pop(mutation.document_id, None)
        self.documents = staged
        self.committed_batches.append(list(mutations))

    @staticmethod
    def _apply_put(
        documents: dict[Collection, dict[str, dict[str, Any]]],
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        mode: WriteMode,
    ) -> None:
        docs = documents.setdefault(collection, {})
        current = docs.get(document_id)
        if current is None and mode is WriteMode.UPDATE:
            raise DocumentNotFoundError(collection, document_id)
        if current is None or mode is WriteMode.OVERWRITE:
            docs[document_id] = dict(fields)
        else:
            docs[document_id] = {**current, **fields}

    def _collection(self, collection: Collection) -> dict[str, dict[str, Any]]:
        return self.documents.setdefault(collection, {})

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise RepositoryError("store unreachable")

    def _check_writable(self, collection: Collection, document_id: str) -> None:
        self._check_reachable()
        if (collection, document_id) in self.failing:
            raise RepositoryError(
                f"injected failure for {collection}/{document_id}",
                collection=collection,
                document_id=document_id,
            )


@dataclass
class InMemoryExclusionStore:
    records: dict[tuple[EntityType, str, str], ExclusionRecord] = field(default_factory=dict)

    def get(self, entity_type: EntityType, id_low: str, id_high: str) -> ExclusionRecord | None:
        return self.records.get((entity_type, id_low, id_high))

    def save(self, record: ExclusionRecord) -> None:
        self.records[(record.entity_type, record.id_low, record.id_high)] = record

    def list_for(self, entity_type: EntityType) -> list[ExclusionRecord]:
        return [record for key, record in sorted(self.records.items()) if key[0] == entity_type]


@dataclass
class RecordingChangeLog:
    entries: list[AuditEntry] = field(default_factory=list)
    broken: bool = False

    def record(self, entry: AuditEntry) -> None:
        if self.broken:
            raise RuntimeError("change log offline")
        self.entries.append(entry)

    def actions(self) -> list[tuple[str, str, str]]:
        return [(str(e.action), str(e.collection), e.document_id) for e in self.entries]
