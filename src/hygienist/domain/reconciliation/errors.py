"""Reconciliation error taxonomy.

Per-item failures in batch operations are captured as instances of these classes
and reported on the item; anything else propagates to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hygienist.domain.model import Collection


class ReconciliationError(RuntimeError):
    """Base class for reconciliation failures."""


class ValidationError(ReconciliationError, ValueError):
    """Malformed input to a merge, plan or apply call."""


class RepositoryError(ReconciliationError):
    """Document store I/O failure, including documents that vanished."""

    def __init__(
        self,
        message: str,
        *,
        collection: Collection | None = None,
        document_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.collection = collection
        self.document_id = document_id


class DocumentNotFoundError(RepositoryError):
    def __init__(self, collection: Collection, document_id: str) -> None:
        super().__init__(
            f"{collection}/{document_id} does not exist",
            collection=collection,
            document_id=document_id,
        )


class ReferenceIntegrityError(ReconciliationError):
    """A delete was refused because the record is still referenced."""

    def __init__(self, collection: Collection, document_id: str, references: int) -> None:
        super().__init__(
            f"{collection}/{document_id} is still referenced {references} time(s)"
        )
        self.collection = collection
        self.document_id = document_id
        self.references = references


class DependencyBlockedError(ReconciliationError):
    """A change was not applied because one of its dependencies was not."""

    def __init__(self, change_id: str, blocked_by: str, *, deselected: bool = False) -> None:
        cause = "was not selected" if deselected else "did not apply"
        super().__init__(f"{change_id} blocked: dependency {blocked_by} {cause}")
        self.change_id = change_id
        self.blocked_by = blocked_by
        self.deselected = deselected
