"""Selective, dependency-ordered application of change plans.

Responsibilities of this stage:
- close the operator's selection over dependencies
- write changes in waves so every dependency commits before its dependents
- report each change as applied, failed or blocked

A wave holds the changes whose dependencies all sit in earlier waves. Each wave is
committed in chunks of at most ``batch_size`` mutations; a chunk is atomic, and a
chunk that fails is retried change by change so one bad write does not sink its
neighbours. Dependents of a failed, blocked or unselected change are reported as
blocked and never written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from hygienist.domain.model import (
    ENTITY_TYPE_BY_COLLECTION,
    AuditAction,
    ChangeAction,
    ChangeStatus,
    WriteMode,
)
from hygienist.domain.ports import MAX_BATCH_MUTATIONS, PutMutation

from .errors import DependencyBlockedError, ReconciliationError, ValidationError
from .writes import PendingWrite, chunked, validate_batch_size

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .graph import DependencyGraph
    from .plan import Change, ChangePlan
    from .writes import AuditedWriter

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangeOutcome:
    change_id: str
    status: ChangeStatus
    error: str | None = None


@dataclass(slots=True)
class ApplyResult:
    """Per-change report of one apply run."""

    applied_count: int = 0
    failed_count: int = 0
    blocked_count: int = 0
    errors: list[str] = field(default_factory=list["str"])
    outcomes: dict[str, ChangeOutcome] = field(default_factory=dict["str", "ChangeOutcome"])
    committed_chunks: int = 0
    failed_chunks: int = 0

    def status_of(self, change_id: str) -> ChangeStatus | None:
        outcome = self.outcomes.get(change_id)
        return outcome.status if outcome else None

    def record(self, change_id: str, status: ChangeStatus, error: str | None = None) -> None:
        self.outcomes[change_id] = ChangeOutcome(change_id=change_id, status=status, error=error)
        if status is ChangeStatus.APPLIED:
            self.applied_count += 1
            return
        if status is ChangeStatus.FAILED:
            self.failed_count += 1
        else:
            self.blocked_count += 1
        if error:
            self.errors.append(error)


def resolve_selection(
    plan: ChangePlan,
    selected_ids: Iterable[str] | None,
    *,
    expand_dependencies: bool = True,
    graph: DependencyGraph | None = None,
) -> frozenset[str]:
    """Selected ids, closed over their dependencies unless ``expand_dependencies`` is off.

    ``None`` selects the whole plan.
    """

    graph = graph or plan.graph()
    if selected_ids is None:
        return frozenset(graph.nodes)
    selected = list(selected_ids)
    unknown = sorted(change_id for change_id in selected if change_id not in graph)
    if unknown:
        raise ValidationError(f"Unknown change ids: {', '.join(unknown)}")
    if not expand_dependencies:
        return frozenset(selected)
    return graph.select(selected)


def deselect(
    plan: ChangePlan,
    selected_ids: Iterable[str],
    removed_ids: Iterable[str],
) -> frozenset[str]:
    """Drop ``removed_ids`` and everything that depends on them from a selection."""

    return plan.graph().deselect(selected_ids, removed_ids)


def _pending_write(change: Change, now: str) -> PendingWrite:
    creates = change.action is ChangeAction.UPSERT and change.creates
    fields = {**change.data, "updatedAt": now}
    if creates:
        fields.setdefault("createdAt", now)
    return PendingWrite(
        mutation=PutMutation(
            collection=change.collection,
            document_id=change.document_id,
            fields=fields,
            mode=WriteMode.MERGE if change.action is ChangeAction.UPSERT else WriteMode.UPDATE,
        ),
        action=AuditAction.CREATE if creates else AuditAction.UPDATE,
        entity=str(ENTITY_TYPE_BY_COLLECTION[change.collection]),
        before=change.before,
    )


def _waves(graph: DependencyGraph, order: list[str]) -> list[list[str]]:
    depth: dict[str, int] = {}
    waves: list[list[str]] = []
    for change_id in order:
        level = 1 + max(
            (depth[dep] for dep in graph.dependencies(change_id) if dep in depth), default=-1
        )
        depth[change_id] = level
        if level == len(waves):
            waves.append([])
        waves[level].append(change_id)
    return waves


def apply_plan(
    plan: ChangePlan,
    selected_ids: Iterable[str] | None,
    *,
    writer: AuditedWriter,
    batch_size: int = MAX_BATCH_MUTATIONS,
    expand_dependencies: bool = True,
) -> ApplyResult:
    validate_batch_size(batch_size)
    graph = plan.graph()
    selection = resolve_selection(
        plan, selected_ids, expand_dependencies=expand_dependencies, graph=graph
    )
    changes = {change.id: change for change in plan.changes}
    result = ApplyResult()
    now = datetime.now(tz=UTC).isoformat()

    for wave in _waves(graph, graph.topological_order(selection)):
        ready: list[Change] = []
        for change_id in wave:
            blocker = _blocker(graph, change_id, selection, result)
            if blocker is not None:
                result.record(change_id, ChangeStatus.BLOCKED, str(blocker))
                continue
            ready.append(changes[change_id])
        for chunk in chunked(ready, batch_size):
            _commit_chunk(chunk, writer=writer, result=result, now=now)

    log.info(
        "Applied plan %s: %s applied, %s failed, %s blocked (%s chunks committed, %s failed)",
        plan.task,
        result.applied_count,
        result.failed_count,
        result.blocked_count,
        result.committed_chunks,
        result.failed_chunks,
    )
    return result


def _blocker(
    graph: DependencyGraph,
    change_id: str,
    selection: frozenset[str],
    result: ApplyResult,
) -> DependencyBlockedError | None:
    for dependency in graph.dependencies(change_id):
        if dependency not in selection:
            return DependencyBlockedError(change_id, dependency, deselected=True)
        if result.status_of(dependency) is not ChangeStatus.APPLIED:
            return DependencyBlockedError(change_id, dependency)
    return None


def _commit_chunk(
    chunk: Sequence[Change],
    *,
    writer: AuditedWriter,
    result: ApplyResult,
    now: str,
) -> None:
    batch = list(chunk)
    try:
        writer.commit([_pending_write(change, now) for change in batch])
    except ReconciliationError as exc:
        result.failed_chunks += 1
        log.warning("Chunk of %s changes failed, retrying one by one: %s", len(batch), exc)
        if len(batch) == 1:
            result.record(batch[0].id, ChangeStatus.FAILED, f"{batch[0].id}: {exc}")
            return
        for change in batch:
            _commit_chunk([change], writer=writer, result=result, now=now)
        return
    result.committed_chunks += 1
    for change in batch:
        result.record(change.id, ChangeStatus.APPLIED)
    log.debug("Committed chunk of %s changes", len(batch))
