"""Load and dump JSON snapshot exports through a document repository."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from hygienist.domain.model import Collection, WriteMode
from hygienist.domain.ports import MAX_BATCH_MUTATIONS, PutMutation
from hygienist.domain.reconciliation.errors import ValidationError
from hygienist.domain.reconciliation.writes import chunked, validate_batch_size

from .schema import SnapshotPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hygienist.domain.ports import DocumentRepository

log = logging.getLogger(__name__)

SNAPSHOT_COLLECTIONS: tuple[Collection, ...] = (
    Collection.PEOPLE,
    Collection.SCHEDULES,
    Collection.ROOMS,
)


@dataclass(slots=True)
class LoadResult:
    counts: dict[str, int] = field(default_factory=dict["str", "int"])
    batches: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def parse_snapshot(payload: Mapping[str, Any]) -> SnapshotPayload:
    try:
        return SnapshotPayload.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid snapshot: {exc}") from exc


def read_snapshot(path: Path) -> SnapshotPayload:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValidationError(f"{path} must contain a JSON object")
    return parse_snapshot(raw)


def load_snapshot(
    snapshot: SnapshotPayload,
    repository: DocumentRepository,
    *,
    batch_size: int = MAX_BATCH_MUTATIONS,
) -> LoadResult:
    """Overwrite-write every document of ``snapshot`` in atomic batches."""

    validate_batch_size(batch_size)
    mutations: list[PutMutation] = []
    result = LoadResult()
    for collection in SNAPSHOT_COLLECTIONS:
        documents = getattr(snapshot, collection.value)
        seen: set[str] = set()
        for document in documents:
            if document.id in seen:
                raise ValidationError(f"Duplicate id {document.id!r} in {collection}")
            seen.add(document.id)
            mutations.append(
                PutMutation(
                    collection=collection,
                    document_id=document.id,
                    fields=document.fields(),
                    mode=WriteMode.OVERWRITE,
                )
            )
        result.counts[collection.value] = len(documents)

    for chunk in chunked(mutations, batch_size):
        repository.commit_batch(chunk)
        result.batches += 1
        log.debug("Committed snapshot batch %s (%s documents)", result.batches, len(chunk))

    log.info("Loaded %s documents in %s batches: %s", result.total, result.batches, result.counts)
    return result


def load_snapshot_file(
    path: Path,
    repository: DocumentRepository,
    *,
    batch_size: int = MAX_BATCH_MUTATIONS,
) -> LoadResult:
    return load_snapshot(read_snapshot(path), repository, batch_size=batch_size)


def dump_snapshot(repository: DocumentRepository) -> dict[str, list[dict[str, Any]]]:
    """Export the three record collections in the snapshot shape."""

    return {
        collection.value: [
            {"id": document.id, **document.fields} for document in repository.list_all(collection)
        ]
        for collection in SNAPSHOT_COLLECTIONS
    }
