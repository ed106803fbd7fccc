"""Reconciliation subsystem for scheduling records.

Every stage reads a ``Snapshot`` of people, sections and spaces taken from the
document repository: duplicate detection and merging, reference analysis with
orphan cleanup, dependency-ordered backfill plans and the health report.
``ReconciliationEngine`` binds the stages to concrete ports.
"""

from __future__ import annotations

from .apply import ApplyResult, ChangeOutcome, apply_plan, deselect, resolve_selection
from .cleanup import CleanupResult, cleanup_orphans, select_targets
from .deduplicate import DuplicateCandidate, choose_primary, detect_duplicates
from .engine import ReconciliationEngine
from .errors import (
    DependencyBlockedError,
    DocumentNotFoundError,
    ReconciliationError,
    ReferenceIntegrityError,
    RepositoryError,
    ValidationError,
)
from .exclusions import ExclusionRegistry, pair_key
from .graph import DependencyGraph
from .health import HealthReport, MissingData, build_health_report, health_score
from .merge import BatchSummary, MergeOutcome, MergeResolver, merge_fields
from .plan import Change, ChangePlan, PlanTask, ProposedChange, build_plan, change_id
from .references import OrphanIssue, ReferenceGraph, find_orphaned, resolve_scope
from .scoring import DEFAULT_POLICIES, Score, ScoringPolicy, score_pair
from .snapshot import Snapshot
from .tasks import (
    DEFAULT_TASKS,
    IdentityKeysTask,
    InstructorLinksTask,
    OfficeRoomsTask,
    SpaceLinksTask,
    derive_identity,
    task_registry,
)
from .writes import AuditedWriter, PendingWrite

__all__ = [
    "DEFAULT_POLICIES",
    "DEFAULT_TASKS",
    "ApplyResult",
    "AuditedWriter",
    "BatchSummary",
    "Change",
    "ChangeOutcome",
    "ChangePlan",
    "CleanupResult",
    "DependencyBlockedError",
    "DependencyGraph",
    "DocumentNotFoundError",
    "DuplicateCandidate",
    "ExclusionRegistry",
    "HealthReport",
    "IdentityKeysTask",
    "InstructorLinksTask",
    "MergeOutcome",
    "MergeResolver",
    "MissingData",
    "OfficeRoomsTask",
    "OrphanIssue",
    "PendingWrite",
    "PlanTask",
    "ProposedChange",
    "ReconciliationEngine",
    "ReconciliationError",
    "ReferenceGraph",
    "ReferenceIntegrityError",
    "RepositoryError",
    "Score",
    "ScoringPolicy",
    "Snapshot",
    "SpaceLinksTask",
    "ValidationError",
    "apply_plan",
    "build_health_report",
    "build_plan",
    "change_id",
    "choose_primary",
    "cleanup_orphans",
    "deselect",
    "derive_identity",
    "detect_duplicates",
    "find_orphaned",
    "health_score",
    "merge_fields",
    "pair_key",
    "resolve_scope",
    "resolve_selection",
    "score_pair",
    "select_targets",
    "task_registry",
]
