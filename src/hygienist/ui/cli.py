# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from hygienist.app import (
    apply_backfill_plan,
    build_backfill_plan,
    cleanup_orphans,
    health_report,
    import_snapshot,
    mark_not_duplicate,
    merge_detected,
    merge_pair,
    scan_duplicates,
    scan_orphans,
)
from hygienist.config import ConfigurationError, configure_logging
from hygienist.domain.model import EntityType, MergeSide
from hygienist.domain.reconciliation import DEFAULT_TASKS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

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

log = logging.getLogger(__name__)

ENTITY_CHOICES = [entity_type.value for entity_type in EntityType]
TASK_CHOICES = [task.name for task in DEFAULT_TASKS]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile scheduling records")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load = subparsers.add_parser("load", help="Import a JSON snapshot into the store")
    load.add_argument("path", type=Path, help="Snapshot file with people, schedules and rooms")

    duplicates = subparsers.add_parser("duplicates", help="List duplicate candidates")
    duplicates.add_argument("--type", dest="entity_type", choices=ENTITY_CHOICES, required=True)

    not_duplicate = subparsers.add_parser(
        "not-duplicate",
        help="Record that two records are distinct",
    )
    not_duplicate.add_argument("--type", dest="entity_type", choices=ENTITY_CHOICES, required=True)
    not_duplicate.add_argument("id_a")
    not_duplicate.add_argument("id_b")
    not_duplicate.add_argument("--reason", default="", help="Why the pair is distinct")

    merge = subparsers.add_parser("merge", help="Merge duplicates into their primary record")
    merge.add_argument("--type", dest="entity_type", choices=ENTITY_CHOICES, required=True)
    merge.add_argument("primary_id", nargs="?", help="Record that survives the merge")
    merge.add_argument("secondary_id", nargs="?", help="Record merged away")
    merge.add_argument(
        "--override",
        action="append",
        default=[],
        metavar="FIELD=SIDE",
        help="Take FIELD from 'primary' or 'secondary' (repeatable)",
    )
    merge.add_argument(
        "--all",
        action="store_true",
        help="Merge every detected candidate instead of one pair",
    )
    merge.add_argument(
        "--min-confidence",
        type=float,
        help="With --all, only merge candidates at or above this confidence",
    )

    orphans = subparsers.add_parser("orphans", help="List orphaned and broken records")
    orphans.add_argument("--scope", help="Term code or label, e.g. 202530 or 'Fall 2025'")

    cleanup = subparsers.add_parser(
        "cleanup", help="Delete orphans, or a term and the records only it uses"
    )
    cleanup.add_argument("--scope", help="Term code or label")
    cleanup.add_argument("--id", dest="ids", action="append", help="Restrict to these ids")
    cleanup.add_argument("--confirm", action="store_true", help="Delete (default is a dry run)")

    plan = subparsers.add_parser("plan", help="Show a backfill plan")
    plan.add_argument("task", choices=TASK_CHOICES)
    plan.add_argument("--scope", help="Term code or label")

    apply = subparsers.add_parser("apply", help="Apply a backfill plan")
    apply.add_argument("task", choices=TASK_CHOICES)
    apply.add_argument("--scope", help="Term code or label")
    apply.add_argument("--id", dest="ids", action="append", help="Apply only these change ids")
    apply.add_argument(
        "--no-expand",
        dest="expand_dependencies",
        action="store_false",
        help="Do not pull in dependencies of selected changes",
    )

    subparsers.add_parser("health", help="Summarise data quality")

    return parser.parse_args(list(argv))


def _parse_overrides(values: Sequence[str]) -> dict[str, MergeSide]:
    overrides: dict[str, MergeSide] = {}
    for value in values:
        name, sep, side = value.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid override {value!r}; expected FIELD=primary|secondary")
        try:
            overrides[name.strip()] = MergeSide(side.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid override side in {value!r}") from exc
    return overrides


def _validate_merge_args(args: argparse.Namespace) -> None:
    if args.all:
        if args.primary_id or args.secondary_id:
            raise ValueError("--all does not take record ids")
        return
    if not (args.primary_id and args.secondary_id):
        raise ValueError("merge needs PRIMARY_ID and SECONDARY_ID, or --all")
    if args.min_confidence is not None:
        raise ValueError("--min-confidence only applies with --all")


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _candidate_payload(candidate: DuplicateCandidate) -> dict[str, Any]:
    return {
        "entity_type": candidate.entity_type,
        "primary": candidate.primary.id,
        "secondary": candidate.secondary.id,
        "confidence": round(candidate.confidence, 4),
        "reason": candidate.reason,
    }


def _orphan_payload(issue: OrphanIssue) -> dict[str, Any]:
    return {
        "kind": issue.kind,
        "severity": issue.severity,
        "id": issue.record.id,
        "reason": issue.reason,
        "orphan_class": issue.orphan_class,
        "cleanup_candidate": issue.is_cleanup_candidate,
    }


def _merge_payload(outcome: MergeOutcome) -> dict[str, Any]:
    return {
        "primary": outcome.primary_id,
        "secondary": outcome.secondary_id,
        "success": outcome.success,
        "references_rewritten": outcome.references_rewritten,
        "error": None if outcome.error is None else str(outcome.error),
    }


def _summary_payload(summary: BatchSummary) -> dict[str, Any]:
    return {
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "errors": summary.errors,
    }


def _plan_payload(plan: ChangePlan) -> dict[str, Any]:
    return {
        "task": plan.task,
        "scope": plan.scope,
        "changes": [
            {
                "id": change.id,
                "label": change.label,
                "data": dict(change.data),
                "before": None if change.before is None else dict(change.before),
                "depends_on": list(change.depends_on),
            }
            for change in plan.changes
        ],
    }


def _apply_payload(result: ApplyResult) -> dict[str, Any]:
    return {
        "applied": result.applied_count,
        "failed": result.failed_count,
        "blocked": result.blocked_count,
        "errors": result.errors,
        "outcomes": {
            change_id: {"status": outcome.status, "error": outcome.error}
            for change_id, outcome in result.outcomes.items()
        },
    }


def _cleanup_payload(result: CleanupResult) -> dict[str, Any]:
    return {
        "dry_run": result.dry_run,
        "scope": result.scope,
        "would_delete": result.would_delete,
        "deleted": list(result.deleted_ids),
        "failed": result.failed,
        "errors": result.errors,
    }


def _health_payload(report: HealthReport) -> dict[str, Any]:
    return {
        "health_score": report.health_score,
        "counts": dict(report.counts),
        "issues": report.issues,
        "missing_data": asdict(report.missing_data),
        "generated_at": report.generated_at.isoformat(),
    }


def _run(args: argparse.Namespace) -> None:  # noqa: C901
    if args.command == "load":
        result = import_snapshot(args.path)
        _emit({"loaded": result.counts, "batches": result.batches})
    elif args.command == "duplicates":
        candidates = scan_duplicates(EntityType(args.entity_type))
        _emit([_candidate_payload(candidate) for candidate in candidates])
    elif args.command == "not-duplicate":
        record = mark_not_duplicate(
            EntityType(args.entity_type), args.id_a, args.id_b, reason=args.reason
        )
        _emit({"id_low": record.id_low, "id_high": record.id_high, "reason": record.reason})
    elif args.command == "merge":
        overrides = _parse_overrides(args.override)
        entity_type = EntityType(args.entity_type)
        if args.all:
            if overrides:
                raise ValueError("--override applies to a single pair")  # noqa: TRY301
            summary = merge_detected(entity_type, min_confidence=args.min_confidence)
            log.info(summary.describe())
            _emit(_summary_payload(summary))
        else:
            outcome = merge_pair(
                entity_type, args.primary_id, args.secondary_id, overrides=overrides or None
            )
            _emit(_merge_payload(outcome))
    elif args.command == "orphans":
        _emit([_orphan_payload(issue) for issue in scan_orphans(args.scope)])
    elif args.command == "cleanup":
        result = cleanup_orphans(args.scope, args.ids, confirm=args.confirm)
        _emit(_cleanup_payload(result))
    elif args.command == "plan":
        _emit(_plan_payload(build_backfill_plan(args.task, args.scope)))
    elif args.command == "apply":
        result = apply_backfill_plan(
            args.task,
            args.scope,
            args.ids,
            expand_dependencies=args.expand_dependencies,
        )
        _emit(_apply_payload(result))
    elif args.command == "health":
        _emit(_health_payload(health_report()))
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command == "merge":
            _validate_merge_args(parsed_args)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _run(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("Invalid request")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    main()
