from __future__ import annotations

from typing import TYPE_CHECKING

from hygienist import app
from hygienist.adapters.sqlalchemy.unit_of_work import SqlAlchemyStores
from hygienist.config import HygieneConfig
from hygienist.domain.model import Collection, ConflictPolicy, EntityType
from tests.helpers.records import person_doc
from tests.helpers.stores import (
    InMemoryDocumentRepository,
    InMemoryExclusionStore,
    RecordingChangeLog,
)

if TYPE_CHECKING:
    from pathlib import Path


def _stores(repository: InMemoryDocumentRepository) -> SqlAlchemyStores:
    return SqlAlchemyStores(
        documents=repository,  # pyright: ignore[reportArgumentType]
        exclusions=InMemoryExclusionStore(),  # pyright: ignore[reportArgumentType]
        change_log=RecordingChangeLog(),  # pyright: ignore[reportArgumentType]
    )


def test_build_reconciler_applies_config() -> None:
    config = HygieneConfig(
        person_floor=0.8,
        batch_size=25,
        conflict_policy=ConflictPolicy.MOST_RECENT,
        origin="nightly",
    )

    reconciler = app.build_reconciler(config=config, stores=_stores(InMemoryDocumentRepository()))

    assert reconciler.floors[EntityType.PERSON] == 0.8
    assert reconciler.floors[EntityType.SECTION] == 0.90
    assert reconciler.batch_size == 25
    assert reconciler.conflict_policy is ConflictPolicy.MOST_RECENT
    assert reconciler.writer.origin == "nightly"


def test_merge_detected_honours_min_confidence() -> None:
    repository = InMemoryDocumentRepository().seed(
        people=[
            person_doc("a", email="a@x.edu", lastName="Adams"),
            person_doc("b", email="a@x.edu", lastName="Adams"),
            person_doc("c", firstName="Jane", lastName="Smith"),
            person_doc("d", firstName="Jane", lastName="Smith"),
        ]
    )
    reconciler = app.build_reconciler(config=HygieneConfig(), stores=_stores(repository))

    summary = app.merge_detected(EntityType.PERSON, min_confidence=0.95, reconciler=reconciler)

    assert (summary.succeeded, summary.failed) == (1, 0)
    assert repository.ids(Collection.PEOPLE) == ["a", "c", "d"]


def test_import_snapshot_uses_the_reconciler_store(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text('{"rooms": [{"id": "r1", "spaceKey": "MCF:101"}]}', encoding="utf-8")
    repository = InMemoryDocumentRepository()
    reconciler = app.build_reconciler(config=HygieneConfig(), stores=_stores(repository))

    result = app.import_snapshot(path, reconciler=reconciler)

    assert result.counts["rooms"] == 1
    assert repository.ids(Collection.ROOMS) == ["r1"]
