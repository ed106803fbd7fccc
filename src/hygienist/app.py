"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from hygienist.adapters.snapshot import load_snapshot_file
from hygienist.adapters.sqlalchemy.unit_of_work import is_started, open_stores, startup
from hygienist.config import get_hygiene_config
from hygienist.domain.model import EntityType
from hygienist.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from hygienist.adapters.snapshot import LoadResult
    from hygienist.adapters.sqlalchemy.unit_of_work import SqlAlchemyStores
    from hygienist.config import HygieneConfig
    from hygienist.domain.ports import ExclusionRecord
    from hygienist.domain.reconciliation import (
        ApplyResult,
        BatchSummary,
        ChangePlan,
        CleanupResult,
        DuplicateCandidate,
        HealthReport,
        MergeOutcome,
        OrphanIssue,
    )
    from hygienist.domain.reconciliation.merge import Overrides


log = getLogger(__name__)


def build_reconciler(
    *,
    config: HygieneConfig | None = None,
    stores: SqlAlchemyStores | None = None,
) -> ReconciliationEngine:
    """Wire a reconciliation engine onto the configured SQLAlchemy stores."""

    if stores is None:
        if not is_started():
            startup()
        stores = open_stores()
    effective_config = config or get_hygiene_config()
    return ReconciliationEngine(
        repository=stores.documents,
        exclusions=stores.exclusions,
        change_log=stores.change_log,
        floors={
            EntityType.PERSON: effective_config.person_floor,
            EntityType.SECTION: effective_config.section_floor,
            EntityType.SPACE: effective_config.space_floor,
        },
        batch_size=effective_config.batch_size,
        conflict_policy=effective_config.conflict_policy,
        origin=effective_config.origin,
    )


def import_snapshot(
    path: Path,
    *,
    reconciler: ReconciliationEngine | None = None,
) -> LoadResult:
    effective = reconciler or build_reconciler()
    log.info("Importing snapshot %s", path)
    return load_snapshot_file(path, effective.repository, batch_size=effective.batch_size)


def scan_duplicates(
    entity_type: EntityType,
    *,
    reconciler: ReconciliationEngine | None = None,
) -> list[DuplicateCandidate]:
    candidates = (reconciler or build_reconciler()).scan_duplicates(entity_type)
    log.info("Found %s %s duplicate candidates", len(candidates), entity_type)
    return candidates


def mark_not_duplicate(
    entity_type: EntityType,
    id_a: str,
    id_b: str,
    *,
    reason: str = "",
    reconciler: ReconciliationEngine | None = None,
) -> ExclusionRecord:
    return (reconciler or build_reconciler()).mark_not_duplicate(entity_type, id_a, id_b, reason)


def merge_pair(
    entity_type: EntityType,
    primary_id: str,
    secondary_id: str,
    *,
    overrides: Overrides | None = None,
    reconciler: ReconciliationEngine | None = None,
) -> MergeOutcome:
    effective = reconciler or build_reconciler()
    return effective.merge_by_ids(entity_type, primary_id, secondary_id, overrides)


def merge_detected(
    entity_type: EntityType,
    *,
    min_confidence: float | None = None,
    overrides: Mapping[tuple[str, str], Overrides] | None = None,
    reconciler: ReconciliationEngine | None = None,
) -> BatchSummary:
    """Scan ``entity_type`` and merge every candidate at or above ``min_confidence``."""

    effective = reconciler or build_reconciler()
    candidates = effective.scan_duplicates(entity_type)
    if min_confidence is not None:
        candidates = [c for c in candidates if c.confidence >= min_confidence]
    # A record merged away earlier in the batch fails its later pairs with RepositoryError.
    return effective.merge_many(candidates, overrides)


def scan_orphans(
    scope: str | None = None,
    *,
    reconciler: ReconciliationEngine | None = None,
) -> list[OrphanIssue]:
    issues = (reconciler or build_reconciler()).find_orphaned(scope)
    log.info("Found %s orphan issues (scope=%s)", len(issues), scope)
    return issues


def cleanup_orphans(
    scope: str | None = None,
    selected_ids: Iterable[str] | None = None,
    *,
    confirm: bool = False,
    reconciler: ReconciliationEngine | None = None,
) -> CleanupResult:
    effective = reconciler or build_reconciler()
    return effective.cleanup_orphans(scope, selected_ids, confirm=confirm)


def build_backfill_plan(
    task: str,
    scope: str | None = None,
    *,
    reconciler: ReconciliationEngine | None = None,
) -> ChangePlan:
    plan = (reconciler or build_reconciler()).build_plan(task, scope)
    log.info("Plan %s (scope=%s) has %s changes", plan.task, scope, len(plan.changes))
    return plan


def apply_backfill_plan(
    task: str,
    scope: str | None = None,
    selected_ids: Iterable[str] | None = None,
    *,
    expand_dependencies: bool = True,
    reconciler: ReconciliationEngine | None = None,
) -> ApplyResult:
    """Rebuild the plan for ``task`` and apply the selected changes."""

    effective = reconciler or build_reconciler()
    plan = effective.build_plan(task, scope)
    return effective.apply_plan(plan, selected_ids, expand_dependencies=expand_dependencies)


def health_report(*, reconciler: ReconciliationEngine | None = None) -> HealthReport:
    return (reconciler or build_reconciler()).health_report()
