"""Ports for the document store, the exclusion registry and the change log."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

from hygienist.domain.model import WriteMode

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from hygienist.domain.model import AuditEntry, Collection, EntityType, StoredDocument

# Upper bound on mutations per atomic batch commit.
MAX_BATCH_MUTATIONS: Final[int] = 500


@dataclass(frozen=True, slots=True, kw_only=True)
class PutMutation:
    collection: Collection
    document_id: str
    fields: Mapping[str, Any] = field(compare=False, hash=False)
    mode: WriteMode = WriteMode.MERGE


@dataclass(frozen=True, slots=True, kw_only=True)
class DeleteMutation:
    collection: Collection
    document_id: str


type Mutation = PutMutation | DeleteMutation


@runtime_checkable
class DocumentRepository(Protocol):
    """Collection-keyed document store.

    ``commit_batch`` applies all mutations or none of them; callers keep batches at
    or below the store's batch cap. Implementations raise ``RepositoryError`` for
    I/O failures and for ``WriteMode.UPDATE`` on a missing document.
    """

    def list_all(self, collection: Collection) -> list[StoredDocument]: ...

    def get(self, collection: Collection, document_id: str) -> StoredDocument | None: ...

    def put(
        self,
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        mode: WriteMode = WriteMode.MERGE,
    ) -> None: ...

    def delete(self, collection: Collection, document_id: str) -> None: ...

    def commit_batch(self, mutations: Sequence[Mutation]) -> None: ...


@dataclass(frozen=True, slots=True, kw_only=True)
class ExclusionRecord:
    entity_type: EntityType
    id_low: str
    id_high: str
    reason: str
    created_at: datetime


@runtime_checkable
class ExclusionStore(Protocol):
    """Persisted pairs declared "not a duplicate"; keys are always sorted id pairs."""

    def get(self, entity_type: EntityType, id_low: str, id_high: str) -> ExclusionRecord | None: ...

    def save(self, record: ExclusionRecord) -> None: ...

    def list_for(self, entity_type: EntityType) -> list[ExclusionRecord]: ...


@runtime_checkable
class ChangeLog(Protocol):
    """Append-only audit sink."""

    def record(self, entry: AuditEntry) -> None: ...
