"""Repository writes paired with change-log entries.

Every mutation that reaches the store is followed by one audit entry. The audit
sink is best effort: a failing change log is logged and never undoes or fails the
write it describes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from hygienist.domain.model import AuditAction, AuditEntry
from hygienist.domain.ports import MAX_BATCH_MUTATIONS, DeleteMutation, PutMutation

from .errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from hygienist.domain.model import Collection, WriteMode
    from hygienist.domain.ports import ChangeLog, DocumentRepository, Mutation

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class PendingWrite:
    """One mutation plus what its audit entry should say."""

    mutation: Mutation
    action: AuditAction
    entity: str
    before: Mapping[str, Any] | None = None


def chunked[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size < 1:
        raise ValidationError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def validate_batch_size(batch_size: int) -> int:
    if not 1 <= batch_size <= MAX_BATCH_MUTATIONS:
        raise ValidationError(
            f"batch_size must be within 1..{MAX_BATCH_MUTATIONS}, got {batch_size}"
        )
    return batch_size


@dataclass(slots=True, kw_only=True)
class AuditedWriter:
    repository: DocumentRepository
    change_log: ChangeLog | None = None
    origin: str = "hygienist"

    def put(
        self,
        collection: Collection,
        document_id: str,
        fields: Mapping[str, Any],
        *,
        mode: WriteMode,
        action: AuditAction,
        entity: str,
        before: Mapping[str, Any] | None = None,
    ) -> None:
        self.repository.put(collection, document_id, fields, mode)
        self._audit(
            PendingWrite(
                mutation=PutMutation(
                    collection=collection, document_id=document_id, fields=fields, mode=mode
                ),
                action=action,
                entity=entity,
                before=before,
            )
        )

    def delete(
        self,
        collection: Collection,
        document_id: str,
        *,
        entity: str,
        before: Mapping[str, Any] | None = None,
    ) -> None:
        self.repository.delete(collection, document_id)
        self._audit(
            PendingWrite(
                mutation=DeleteMutation(collection=collection, document_id=document_id),
                action=AuditAction.DELETE,
                entity=entity,
                before=before,
            )
        )

    def commit(self, writes: Sequence[PendingWrite]) -> None:
        """Commit ``writes`` as one atomic batch, then audit each of them."""

        if not writes:
            return
        validate_batch_size(len(writes))
        self.repository.commit_batch([write.mutation for write in writes])
        for write in writes:
            self._audit(write)

    def _audit(self, write: PendingWrite) -> None:
        if self.change_log is None:
            return
        mutation = write.mutation
        entry = AuditEntry(
            action=write.action,
            entity=write.entity,
            collection=mutation.collection,
            document_id=mutation.document_id,
            after=dict(mutation.fields) if isinstance(mutation, PutMutation) else None,
            before=dict(write.before) if write.before is not None else None,
            origin=self.origin,
        )
        try:
            self.change_log.record(entry)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "Change log entry for %s/%s (%s) was not recorded: %s",
                mutation.collection,
                mutation.document_id,
                write.action,
                exc,
            )
