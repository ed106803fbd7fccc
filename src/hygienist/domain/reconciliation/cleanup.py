"""Deletion of orphaned people and spaces, and term-scoped rollback of sections.

Without a scope only structural orphans are candidates. With a term scope the
candidates are the term's sections, the structural orphans, and the people and
spaces cited by that term's sections alone. A scope-only record is deleted only
together with every in-scope section citing it, and sections are deleted first.

Deletion re-reads the store and re-counts references right before writing, so a
record that gained a reference since the scan is refused with
``ReferenceIntegrityError`` instead of deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hygienist.domain.model import AuditAction, EntityType, OrphanClass
from hygienist.domain.ports import MAX_BATCH_MUTATIONS, DeleteMutation

from .errors import ReconciliationError, ReferenceIntegrityError, ValidationError
from .references import ReferenceGraph
from .snapshot import Snapshot
from .writes import PendingWrite, chunked, validate_batch_size

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from hygienist.domain.model import Record

    from .writes import AuditedWriter

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class CleanupResult:
    dry_run: bool
    scope: str | None
    would_delete: dict[str, int] = field(default_factory=dict["str", "int"])
    deleted_ids: tuple[str, ...] = ()
    failed: int = 0
    errors: list[str] = field(default_factory=list["str"])

    @property
    def deleted(self) -> int:
        return len(self.deleted_ids)


def _removable(graph: ReferenceGraph, record: Record) -> bool:
    if graph.classify(record.entity_type, record.id) is OrphanClass.STRUCTURAL:
        return True
    return graph.is_scope_only(record.entity_type, record.id)


def _candidates(snapshot: Snapshot, graph: ReferenceGraph) -> list[Record]:
    candidates: list[Record] = []
    if graph.scope is not None:
        candidates.extend(section for section in snapshot.sections if graph.in_scope(section))
    candidates.extend(person for person in snapshot.people if _removable(graph, person))
    candidates.extend(
        space for space in snapshot.spaces if space.is_active and _removable(graph, space)
    )
    return candidates


def _refusal(snapshot: Snapshot, graph: ReferenceGraph, record_id: str) -> ReconciliationError:
    for entity_type in (EntityType.PERSON, EntityType.SPACE):
        record = snapshot.get(entity_type, record_id)
        if record is None:
            continue
        count = graph.count_for(entity_type, record_id)
        if count.total:
            return ReferenceIntegrityError(record.collection, record_id, count.total)
        return ValidationError(f"{record.collection}/{record_id} is not a cleanup candidate")
    section = snapshot.get(EntityType.SECTION, record_id)
    if section is not None:
        return ValidationError(f"{section.collection}/{record_id} is outside the cleanup scope")
    return ValidationError(f"{record_id!r} is not a person, room or in-scope section")


def _verify(
    snapshot: Snapshot,
    graph: ReferenceGraph,
    targets: Sequence[Record],
) -> tuple[list[Record], list[ReconciliationError]]:
    """Current versions of ``targets`` that are still safe to delete together."""

    sections: list[Record] = []
    refusals: list[ReconciliationError] = []
    for record in targets:
        if record.entity_type is not EntityType.SECTION:
            continue
        current = snapshot.section(record.id)
        if current is None:
            continue
        if not graph.in_scope(current):
            refusals.append(
                ValidationError(f"{current.collection}/{current.id} left the cleanup scope")
            )
            continue
        sections.append(current)
    section_ids = {section.id for section in sections}

    verified: list[Record] = list(sections)
    for record in targets:
        if record.entity_type is EntityType.SECTION:
            continue
        current = snapshot.get(record.entity_type, record.id)
        if current is None:
            continue
        remaining = graph.count_for(record.entity_type, record.id).remaining(section_ids)
        if remaining:
            refusals.append(ReferenceIntegrityError(current.collection, current.id, remaining))
            continue
        verified.append(current)
    return verified, refusals


def select_targets(
    snapshot: Snapshot,
    scope: str | None,
    selected_ids: Iterable[str] | None,
) -> tuple[list[Record], list[ReconciliationError]]:
    """Cleanup candidates matching ``selected_ids`` (all when ``None``) plus refusals."""

    graph = ReferenceGraph.build(snapshot, scope)
    candidates = _candidates(snapshot, graph)
    if selected_ids is None:
        return candidates, []

    by_id: dict[str, list[Record]] = {}
    for record in candidates:
        by_id.setdefault(record.id, []).append(record)
    chosen: list[Record] = []
    refusals: list[ReconciliationError] = []
    for record_id in dict.fromkeys(selected_ids):
        records = by_id.get(record_id)
        if records is None:
            refusals.append(_refusal(snapshot, graph, record_id))
            continue
        chosen.extend(records)
    targets, unsafe = _verify(snapshot, graph, chosen)
    return targets, refusals + unsafe


def _delete_chunks(
    records: Sequence[Record],
    *,
    writer: AuditedWriter,
    batch_size: int,
    errors: list[str],
) -> tuple[list[str], set[str]]:
    deleted: list[str] = []
    failed: set[str] = set()
    for chunk in chunked(records, batch_size):
        writes = [
            PendingWrite(
                mutation=DeleteMutation(collection=record.collection, document_id=record.id),
                action=AuditAction.DELETE,
                entity=str(record.entity_type),
                before=record.fields,
            )
            for record in chunk
        ]
        try:
            writer.commit(writes)
        except ReconciliationError as exc:
            errors.extend(f"{record.collection}/{record.id}: {exc}" for record in chunk)
            failed.update(record.id for record in chunk)
            continue
        deleted.extend(record.id for record in chunk)
    return deleted, failed


def cleanup_orphans(
    *,
    writer: AuditedWriter,
    scope: str | None = None,
    selected_ids: Iterable[str] | None = None,
    confirm: bool = False,
    batch_size: int = MAX_BATCH_MUTATIONS,
) -> CleanupResult:
    validate_batch_size(batch_size)
    snapshot = Snapshot.load(writer.repository)
    targets, refusals = select_targets(snapshot, scope, selected_ids)
    errors = [str(refusal) for refusal in refusals]

    would_delete: dict[str, int] = {}
    for record in targets:
        would_delete[str(record.collection)] = would_delete.get(str(record.collection), 0) + 1

    if not confirm:
        log.info("Cleanup dry run scope=%s would delete %s", scope or "all", would_delete)
        return CleanupResult(
            dry_run=True,
            scope=scope,
            would_delete=would_delete,
            failed=len(refusals),
            errors=errors,
        )

    fresh = Snapshot.load(writer.repository)
    graph = ReferenceGraph.build(fresh, scope)
    verified, unsafe = _verify(fresh, graph, targets)
    errors.extend(str(refusal) for refusal in unsafe)

    sections = [record for record in verified if record.entity_type is EntityType.SECTION]
    deleted, failed_sections = _delete_chunks(
        sections, writer=writer, batch_size=batch_size, errors=errors
    )
    rest: list[Record] = []
    for record in verified:
        if record.entity_type is EntityType.SECTION:
            continue
        blocking = graph.count_for(record.entity_type, record.id).sections & failed_sections
        if blocking:
            errors.append(
                f"{record.collection}/{record.id}: still cited by {', '.join(sorted(blocking))}"
            )
            continue
        rest.append(record)
    removed, _ = _delete_chunks(rest, writer=writer, batch_size=batch_size, errors=errors)
    deleted.extend(removed)

    log.info(
        "Cleanup scope=%s deleted %s records, %s refused or failed",
        scope or "all",
        len(deleted),
        len(errors),
    )
    return CleanupResult(
        dry_run=False,
        scope=scope,
        would_delete=would_delete,
        deleted_ids=tuple(deleted),
        failed=len(errors),
        errors=errors,
    )
