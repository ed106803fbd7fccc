from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from hygienist.domain.model import AuditAction, Collection
from hygienist.domain.reconciliation import ReconciliationEngine
from tests.helpers.records import person_doc, room_doc, section_doc
from tests.helpers.stores import InMemoryDocumentRepository, InMemoryExclusionStore

if TYPE_CHECKING:
    from hygienist.domain.model import StoredDocument
    from tests.helpers.stores import RecordingChangeLog


def _seed(repository: InMemoryDocumentRepository) -> InMemoryDocumentRepository:
    return repository.seed(
        people=[person_doc("p1"), person_doc("p2"), person_doc("p3")],
        rooms=[
            room_doc("r1", "MCF:101"),
            room_doc("r2", "MCF:102"),
            room_doc("r3", "MCF:103"),
            room_doc("r4", "MCF:104"),
        ],
        schedules=[
            section_doc("fall", term="202530", instructorId="p3", spaceIds=["r2", "r4"]),
            section_doc("spring", term="202640", instructorId="p1", spaceIds=["MCF:103", "r4"]),
        ],
    )


def test_dry_run_counts_without_deleting(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
    change_log: RecordingChangeLog,
) -> None:
    _seed(repository)

    scoped = reconciler.cleanup_orphans("Fall 2025")
    unscoped = reconciler.cleanup_orphans(None)

    assert scoped.dry_run
    assert scoped.would_delete == {"schedules": 1, "people": 2, "rooms": 2}
    assert unscoped.would_delete == {"people": 1, "rooms": 1}
    assert scoped.deleted_ids == ()
    assert repository.ids(Collection.PEOPLE) == ["p1", "p2", "p3"]
    assert change_log.entries == []


def test_unscoped_cleanup_deletes_structural_orphans_only(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
    change_log: RecordingChangeLog,
) -> None:
    _seed(repository)

    result = reconciler.cleanup_orphans(None, confirm=True)

    assert set(result.deleted_ids) == {"p2", "r1"}
    assert repository.ids(Collection.PEOPLE) == ["p1", "p3"]
    assert repository.ids(Collection.ROOMS) == ["r2", "r3", "r4"]
    assert sorted(change_log.actions()) == [
        (str(AuditAction.DELETE), str(Collection.PEOPLE), "p2"),
        (str(AuditAction.DELETE), str(Collection.ROOMS), "r1"),
    ]
    assert change_log.entries[0].before == {}


def test_term_cleanup_removes_the_term_and_records_only_it_used(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
    change_log: RecordingChangeLog,
) -> None:
    _seed(repository)

    result = reconciler.cleanup_orphans("Fall 2025", confirm=True)

    assert result.deleted_ids == ("fall", "p2", "p3", "r1", "r2")
    assert result.errors == []
    assert repository.ids(Collection.SCHEDULES) == ["spring"]
    assert repository.ids(Collection.PEOPLE) == ["p1"]
    assert repository.ids(Collection.ROOMS) == ["r3", "r4"]
    assert change_log.actions()[0] == (
        str(AuditAction.DELETE),
        str(Collection.SCHEDULES),
        "fall",
    )
    assert len(repository.committed_batches) == 2


def test_scope_only_record_needs_its_sections_selected(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
) -> None:
    _seed(repository)

    alone = reconciler.cleanup_orphans("Fall 2025", ["p3"], confirm=True)

    assert alone.deleted_ids == ()
    assert alone.errors == ["people/p3 is still referenced 1 time(s)"]

    together = reconciler.cleanup_orphans("Fall 2025", ["p3", "fall"], confirm=True)

    assert together.deleted_ids == ("fall", "p3")
    assert repository.ids(Collection.PEOPLE) == ["p1", "p2"]


def test_selecting_records_cited_outside_the_term_is_refused(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
) -> None:
    _seed(repository)

    result = reconciler.cleanup_orphans(
        "Fall 2025", ["p1", "p2", "r4", "spring", "zzz"], confirm=True
    )

    assert result.deleted_ids == ("p2",)
    assert result.failed == 4
    assert "people/p1 is still referenced 1 time(s)" in result.errors
    assert "rooms/r4 is still referenced 2 time(s)" in result.errors
    assert "schedules/spring is outside the cleanup scope" in result.errors
    assert "'zzz' is not a person, room or in-scope section" in result.errors
    assert "p1" in repository.ids(Collection.PEOPLE)


@dataclass
class _RacingRepository(InMemoryDocumentRepository):
    """Gains the ``late`` section after the first schedules read."""

    late: dict[str, Any] = field(default_factory=dict)
    schedule_reads: int = 0

    def list_all(self, collection: Collection) -> list[StoredDocument]:
        if collection is Collection.SCHEDULES:
            self.schedule_reads += 1
            if self.schedule_reads == 2:
                self.seed(schedules=[self.late])
        return super().list_all(collection)


def test_record_referenced_since_the_scan_is_not_deleted() -> None:
    repository = _seed(
        _RacingRepository(late=section_doc("late", section="09", instructorId="p2"))
    )
    reconciler = ReconciliationEngine(repository=repository, exclusions=InMemoryExclusionStore())

    result = reconciler.cleanup_orphans(None, ["p2"], confirm=True)

    assert result.deleted_ids == ()
    assert result.errors == ["people/p2 is still referenced 1 time(s)"]
    assert "p2" in repository.ids(Collection.PEOPLE)


def test_scope_only_record_cited_by_another_term_since_the_scan_survives() -> None:
    repository = _seed(
        _RacingRepository(
            late=section_doc("late", term="202640", section="09", instructorId="p3")
        )
    )
    reconciler = ReconciliationEngine(repository=repository, exclusions=InMemoryExclusionStore())

    result = reconciler.cleanup_orphans("Fall 2025", confirm=True)

    assert result.deleted_ids == ("fall", "p2", "r1", "r2")
    assert result.errors == ["people/p3 is still referenced 1 time(s)"]
    assert "p3" in repository.ids(Collection.PEOPLE)


def test_failed_section_delete_keeps_the_records_it_cites(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
) -> None:
    _seed(repository)
    repository.fail_on(Collection.SCHEDULES, "fall")

    result = reconciler.cleanup_orphans("Fall 2025", confirm=True)

    assert result.deleted_ids == ("p2", "r1")
    assert result.errors[0].startswith("schedules/fall:")
    assert result.errors[1:] == [
        "people/p3: still cited by fall",
        "rooms/r2: still cited by fall",
    ]
    assert repository.ids(Collection.PEOPLE) == ["p1", "p3"]


def test_failed_delete_batch_is_reported(
    reconciler: ReconciliationEngine,
    repository: InMemoryDocumentRepository,
) -> None:
    _seed(repository)
    repository.fail_on(Collection.ROOMS, "r1")

    result = reconciler.cleanup_orphans(None, ["r1"], confirm=True)

    assert result.deleted == 0
    assert result.failed == 1
    assert result.errors[0].startswith("rooms/r1:")
