from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from hygienist.domain.model import AuditAction, AuditEntry, Collection, EntityType, WriteMode
from hygienist.domain.ports import DeleteMutation, ExclusionRecord, PutMutation
from hygienist.domain.reconciliation import DocumentNotFoundError

if TYPE_CHECKING:
    from hygienist.adapters.sqlalchemy.unit_of_work import SqlAlchemyStores


def test_put_modes(sqlite_stores: SqlAlchemyStores) -> None:
    documents = sqlite_stores.documents
    documents.put(Collection.PEOPLE, "p1", {"firstName": "Jane", "phone": "555"})

    documents.put(Collection.PEOPLE, "p1", {"lastName": "Smith"}, WriteMode.MERGE)
    merged = documents.get(Collection.PEOPLE, "p1")
    documents.put(Collection.PEOPLE, "p1", {"email": "j@x.edu"}, WriteMode.OVERWRITE)
    overwritten = documents.get(Collection.PEOPLE, "p1")

    assert merged is not None
    assert merged.fields == {"firstName": "Jane", "phone": "555", "lastName": "Smith"}
    assert overwritten is not None
    assert overwritten.fields == {"email": "j@x.edu"}


def test_update_of_a_missing_document_fails(sqlite_stores: SqlAlchemyStores) -> None:
    with pytest.raises(DocumentNotFoundError):
        sqlite_stores.documents.put(Collection.ROOMS, "ghost", {"x": 1}, WriteMode.UPDATE)

    assert sqlite_stores.documents.get(Collection.ROOMS, "ghost") is None


def test_collections_are_separate_namespaces(sqlite_stores: SqlAlchemyStores) -> None:
    documents = sqlite_stores.documents
    documents.put(Collection.PEOPLE, "x1", {"kind": "person"})
    documents.put(Collection.ROOMS, "x1", {"kind": "room"})
    documents.put(Collection.ROOMS, "a0", {"kind": "room"})

    assert [doc.id for doc in documents.list_all(Collection.ROOMS)] == ["a0", "x1"]
    person = documents.get(Collection.PEOPLE, "x1")
    assert person is not None
    assert person.fields == {"kind": "person"}


def test_commit_batch_is_all_or_nothing(sqlite_stores: SqlAlchemyStores) -> None:
    documents = sqlite_stores.documents
    documents.put(Collection.PEOPLE, "p1", {"firstName": "Jane"})

    with pytest.raises(DocumentNotFoundError):
        documents.commit_batch(
            [
                PutMutation(
                    collection=Collection.ROOMS,
                    document_id="r1",
                    fields={"spaceKey": "MCF:101"},
                    mode=WriteMode.MERGE,
                ),
                DeleteMutation(collection=Collection.PEOPLE, document_id="p1"),
                PutMutation(
                    collection=Collection.SCHEDULES,
                    document_id="missing",
                    fields={"spaceIds": ["r1"]},
                    mode=WriteMode.UPDATE,
                ),
            ]
        )

    assert documents.get(Collection.ROOMS, "r1") is None
    assert documents.get(Collection.PEOPLE, "p1") is not None


def test_commit_batch_applies_every_mutation(sqlite_stores: SqlAlchemyStores) -> None:
    documents = sqlite_stores.documents
    documents.put(Collection.PEOPLE, "p1", {"firstName": "Jane"})

    documents.commit_batch(
        [
            PutMutation(
                collection=Collection.ROOMS,
                document_id="r1",
                fields={"spaceKey": "MCF:101"},
                mode=WriteMode.MERGE,
            ),
            DeleteMutation(collection=Collection.PEOPLE, document_id="p1"),
        ]
    )

    assert documents.get(Collection.ROOMS, "r1") is not None
    assert documents.list_all(Collection.PEOPLE) == []


def test_deleting_a_missing_document_is_a_no_op(sqlite_stores: SqlAlchemyStores) -> None:
    sqlite_stores.documents.delete(Collection.PEOPLE, "ghost")


def test_exclusion_upsert_keeps_one_row(sqlite_stores: SqlAlchemyStores) -> None:
    store = sqlite_stores.exclusions
    created = datetime(2025, 1, 1, tzinfo=UTC)
    store.save(
        ExclusionRecord(
            entity_type=EntityType.PERSON, id_low="a", id_high="b", reason="", created_at=created
        )
    )
    store.save(
        ExclusionRecord(
            entity_type=EntityType.PERSON,
            id_low="a",
            id_high="b",
            reason="siblings",
            created_at=created,
        )
    )

    [record] = store.list_for(EntityType.PERSON)
    assert record.reason == "siblings"
    assert record.created_at == created
    assert store.get(EntityType.PERSON, "a", "b") == record
    assert store.get(EntityType.SPACE, "a", "b") is None


def test_change_log_history_is_ordered(sqlite_stores: SqlAlchemyStores) -> None:
    log = sqlite_stores.change_log
    for action, after in ((AuditAction.CREATE, {"n": 1}), (AuditAction.DELETE, None)):
        log.record(
            AuditEntry(
                action=action,
                entity="space",
                collection=Collection.ROOMS,
                document_id="r1",
                after=after,
                origin="tests",
            )
        )

    history = log.history(Collection.ROOMS, "r1")

    assert [row["action"] for row in history] == [AuditAction.CREATE, AuditAction.DELETE]
    assert history[0]["after"] == {"n": 1}
    assert history[1]["after"] is None
    assert history[0]["timestamp"].tzinfo is not None
