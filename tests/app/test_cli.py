from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from hygienist.domain.model import EntityType, MergeSide
from hygienist.domain.reconciliation import (
    ApplyResult,
    BatchSummary,
    CleanupResult,
    MergeOutcome,
    ValidationError,
)
from hygienist.ui import cli

if TYPE_CHECKING:
    from collections.abc import Callable


def _recorder(result: object) -> tuple[dict[str, object], Callable[..., object]]:
    captured: dict[str, object] = {}

    def fake(*args: object, **kwargs: object) -> object:
        captured["args"] = args
        captured.update(kwargs)
        return result

    return captured, fake


def test_merge_pair_passes_overrides(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    captured, fake = _recorder(MergeOutcome(primary_id="a", secondary_id="b", success=True))
    monkeypatch.setattr(cli, "merge_pair", fake)

    cli.main(["merge", "--type", "person", "a", "b", "--override", "firstName=Secondary"])

    assert captured["args"] == (EntityType.PERSON, "a", "b")
    assert captured["overrides"] == {"firstName": MergeSide.SECONDARY}
    assert json.loads(capsys.readouterr().out)["success"] is True


def test_merge_all_uses_min_confidence(monkeypatch: pytest.MonkeyPatch) -> None:
    captured, fake = _recorder(BatchSummary(succeeded=2, failed=0))
    monkeypatch.setattr(cli, "merge_detected", fake)

    cli.main(["merge", "--type", "space", "--all", "--min-confidence", "0.95"])

    assert captured["args"] == (EntityType.SPACE,)
    assert captured["min_confidence"] == 0.95


@pytest.mark.parametrize(
    "argv",
    [
        ["merge", "--type", "person", "a"],
        ["merge", "--type", "person", "--all", "a", "b"],
        ["merge", "--type", "person", "a", "b", "--min-confidence", "0.9"],
    ],
)
def test_invalid_merge_arguments_exit_with_usage_error(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)

    assert exc.value.code == 2


def test_malformed_override_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["merge", "--type", "person", "a", "b", "--override", "firstName=both"])

    assert exc.value.code == 2


def test_apply_forwards_selection(monkeypatch: pytest.MonkeyPatch) -> None:
    captured, fake = _recorder(ApplyResult())
    monkeypatch.setattr(cli, "apply_backfill_plan", fake)

    cli.main(
        [
            "apply",
            "space-links",
            "--scope",
            "Fall 2025",
            "--id",
            "merge:schedules/s1",
            "--no-expand",
        ]
    )

    assert captured["args"] == ("space-links", "Fall 2025", ["merge:schedules/s1"])
    assert captured["expand_dependencies"] is False


def test_cleanup_defaults_to_dry_run(monkeypatch: pytest.MonkeyPatch) -> None:
    captured, fake = _recorder(CleanupResult(dry_run=True, scope=None))
    monkeypatch.setattr(cli, "cleanup_orphans", fake)

    cli.main(["cleanup"])

    assert captured["args"] == (None, None)
    assert captured["confirm"] is False


def test_domain_validation_errors_exit_with_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*_: object, **__: object) -> object:
        raise ValidationError("Unrecognised term scope 'someday'")

    monkeypatch.setattr(cli, "scan_orphans", fail)

    with pytest.raises(SystemExit) as exc:
        cli.main(["orphans", "--scope", "someday"])

    assert exc.value.code == 2


def test_unexpected_errors_exit_with_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*_: object, **__: object) -> object:
        raise RuntimeError("disk full")

    monkeypatch.setattr(cli, "health_report", fail)

    with pytest.raises(SystemExit) as exc:
        cli.main(["health"])

    assert exc.value.code == 1


def test_unknown_task_is_rejected_by_the_parser() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["plan", "rename-everything"])

    assert exc.value.code == 2
