"""Orchestrator for the reconciliation subsystem.

The engine binds the document repository, the exclusion store and the change log
to the stage functions and exposes the operation surface used by the CLI:
duplicate scans and merges, orphan scans and cleanup, plan build/apply and the
health report. Every analysis reads a fresh snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hygienist.domain.model import ConflictPolicy, EntityType
from hygienist.domain.ports import MAX_BATCH_MUTATIONS

from .apply import apply_plan
from .cleanup import cleanup_orphans
from .deduplicate import detect_duplicates
from .errors import ValidationError
from .exclusions import ExclusionRegistry
from .health import build_health_report
from .merge import MergeResolver
from .plan import build_plan
from .references import find_orphaned, resolve_scope
from .scoring import DEFAULT_POLICIES
from .snapshot import Snapshot
from .tasks import DEFAULT_TASKS, task_registry
from .writes import AuditedWriter, validate_batch_size

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from hygienist.domain.ports import ChangeLog, DocumentRepository, ExclusionRecord, ExclusionStore

    from .apply import ApplyResult
    from .cleanup import CleanupResult
    from .deduplicate import DuplicateCandidate
    from .health import HealthReport
    from .merge import BatchSummary, MergeOutcome, Overrides
    from .plan import ChangePlan, PlanTask
    from .references import OrphanIssue
    from .scoring import AnyPolicy

log = logging.getLogger(__name__)


def _default_floors() -> dict[EntityType, float]:
    return {entity_type: policy.floor for entity_type, policy in DEFAULT_POLICIES.items()}


@dataclass(slots=True, kw_only=True)
class ReconciliationEngine:
    """Run reconciliation operations against one repository."""

    repository: DocumentRepository
    exclusions: ExclusionStore
    change_log: ChangeLog | None = None
    floors: dict[EntityType, float] = field(default_factory=_default_floors)
    batch_size: int = MAX_BATCH_MUTATIONS
    conflict_policy: ConflictPolicy = ConflictPolicy.PRIMARY_WINS
    origin: str = "hygienist"
    tasks: tuple[PlanTask, ...] = DEFAULT_TASKS

    def __post_init__(self) -> None:
        validate_batch_size(self.batch_size)
        for entity_type, floor in self.floors.items():
            if not 0.0 <= floor <= 1.0:
                raise ValidationError(f"{entity_type} floor must be within [0, 1], got {floor}")

    @property
    def writer(self) -> AuditedWriter:
        return AuditedWriter(
            repository=self.repository, change_log=self.change_log, origin=self.origin
        )

    @property
    def registry(self) -> ExclusionRegistry:
        return ExclusionRegistry(self.exclusions)

    def policy_for(self, entity_type: EntityType) -> AnyPolicy:
        policy = DEFAULT_POLICIES[entity_type]
        floor = self.floors.get(entity_type)
        return policy if floor is None else policy.with_floor(floor)  # pyright: ignore[reportReturnType]

    def snapshot(self) -> Snapshot:
        return Snapshot.load(self.repository)

    # --- duplicates ---------------------------------------------------------

    def scan_duplicates(
        self,
        entity_type: EntityType,
        *,
        snapshot: Snapshot | None = None,
    ) -> list[DuplicateCandidate]:
        return detect_duplicates(
            snapshot or self.snapshot(),
            self.policy_for(entity_type),
            excluded=self.registry.excluded_pairs(entity_type),
        )

    def mark_not_duplicate(
        self,
        entity_type: EntityType,
        id_a: str,
        id_b: str,
        reason: str = "",
    ) -> ExclusionRecord:
        return self.registry.mark_excluded(entity_type, id_a, id_b, reason)

    def merge_records(
        self,
        candidate: DuplicateCandidate,
        overrides: Overrides | None = None,
    ) -> MergeOutcome:
        return self._resolver().merge(candidate, overrides)

    def merge_by_ids(
        self,
        entity_type: EntityType,
        primary_id: str,
        secondary_id: str,
        overrides: Overrides | None = None,
    ) -> MergeOutcome:
        """Merge two records named by id; ``primary_id`` survives."""

        return self._resolver().merge_ids(entity_type, primary_id, secondary_id, overrides)

    def merge_many(
        self,
        candidates: Sequence[DuplicateCandidate],
        overrides: Mapping[tuple[str, str], Overrides] | None = None,
    ) -> BatchSummary:
        return self._resolver().merge_many(candidates, overrides)

    def _resolver(self) -> MergeResolver:
        return MergeResolver(
            writer=self.writer,
            conflict_policy=self.conflict_policy,
            batch_size=self.batch_size,
        )

    # --- orphans ------------------------------------------------------------

    def find_orphaned(self, scope: str | None = None) -> list[OrphanIssue]:
        return find_orphaned(self.snapshot(), scope)

    def cleanup_orphans(
        self,
        scope: str | None = None,
        selected_ids: Iterable[str] | None = None,
        *,
        confirm: bool = False,
    ) -> CleanupResult:
        return cleanup_orphans(
            writer=self.writer,
            scope=scope,
            selected_ids=selected_ids,
            confirm=confirm,
            batch_size=self.batch_size,
        )

    # --- plans --------------------------------------------------------------

    def build_plan(self, task_name: str, scope: str | None = None) -> ChangePlan:
        registry = task_registry(self.tasks)
        task = registry.get(task_name)
        if task is None:
            known = ", ".join(sorted(registry))
            raise ValidationError(f"Unknown plan task {task_name!r}; known tasks: {known}")
        resolve_scope(scope)
        proposals = task.propose(self.snapshot(), scope)
        return build_plan(task.name, proposals, scope=scope)

    def apply_plan(
        self,
        plan: ChangePlan,
        selected_ids: Iterable[str] | None = None,
        *,
        expand_dependencies: bool = True,
    ) -> ApplyResult:
        return apply_plan(
            plan,
            selected_ids,
            writer=self.writer,
            batch_size=self.batch_size,
            expand_dependencies=expand_dependencies,
        )

    # --- health -------------------------------------------------------------

    def health_report(self) -> HealthReport:
        snapshot = self.snapshot()
        duplicates = sum(
            len(self.scan_duplicates(entity_type, snapshot=snapshot)) for entity_type in EntityType
        )
        report = build_health_report(
            snapshot,
            duplicates=duplicates,
            orphan_issues=find_orphaned(snapshot),
        )
        log.info("Health score %s (%s)", report.health_score, report.issues)
        return report


__all__ = ["ReconciliationEngine"]
