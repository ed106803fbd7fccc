from __future__ import annotations

import pytest

from hygienist.domain.model import ChangeAction, Collection
from hygienist.domain.reconciliation import (
    IdentityKeysTask,
    InstructorLinksTask,
    OfficeRoomsTask,
    SpaceLinksTask,
    ValidationError,
    derive_identity,
    task_registry,
)
from hygienist.domain.reconciliation.tasks import space_document_id
from tests.helpers.records import make_section, make_snapshot, person_doc, room_doc, section_doc


def test_space_document_ids_are_deterministic() -> None:
    assert space_document_id("MCF:101") == "space_MCF_101"
    assert space_document_id("GOEBEL:101.1") == "space_GOEBEL_101_1"


def test_space_links_reuse_existing_rooms() -> None:
    snapshot = make_snapshot(
        rooms=[room_doc("r1", "MCF:101")],
        schedules=[section_doc("s1", roomNames=["MCF 101"])],
    )

    [proposal] = SpaceLinksTask().propose(snapshot, None)

    assert proposal.document_id == "s1"
    assert proposal.data == {"spaceIds": ["r1"]}
    assert proposal.consumes == ()


def test_space_links_create_one_room_per_missing_key() -> None:
    snapshot = make_snapshot(
        schedules=[
            section_doc("s1", roomNames=["MCF 101"]),
            section_doc("s2", section="02", roomNames=["MCF 101 and MCF 102"]),
        ]
    )

    proposals = SpaceLinksTask().propose(snapshot, None)

    created = [p for p in proposals if p.collection is Collection.ROOMS]
    assert [p.document_id for p in created] == ["space_MCF_101", "space_MCF_102"]
    assert all(p.action is ChangeAction.UPSERT and p.data["type"] == "Classroom" for p in created)
    links = {p.document_id: p for p in proposals if p.collection is Collection.SCHEDULES}
    assert links["s2"].data == {"spaceIds": ["space_MCF_101", "space_MCF_102"]}
    assert links["s2"].consumes == ("space:MCF:101", "space:MCF:102")


def test_space_links_skip_online_sections_and_other_terms() -> None:
    snapshot = make_snapshot(
        schedules=[
            section_doc("s1", roomNames=["Online"]),
            section_doc("s2", term="202610", roomNames=["MCF 101"]),
        ]
    )

    assert SpaceLinksTask().propose(snapshot, "Fall 2025") == []


def test_office_rooms_create_office_spaces() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("p1", office="MCF 205"),
            person_doc("p2", office="MCF 206", hasNoOffice=True),
            person_doc("p3", office="Remote"),
        ]
    )

    proposals = OfficeRoomsTask().propose(snapshot, None)

    assert [(p.collection, p.document_id) for p in proposals] == [
        (Collection.ROOMS, "space_MCF_205"),
        (Collection.PEOPLE, "p1"),
    ]
    assert proposals[0].data["type"] == "Office"
    assert proposals[1].data == {"officeSpaceId": "space_MCF_205"}


def test_derive_identity_orders_keys_by_strength() -> None:
    identity = derive_identity(make_section("s1", clssId="88", crn="41234"))

    assert identity.keys[:2] == ("clss:202530:88", "crn:202530:41234")
    assert identity.keys[2].startswith("section:202530_CSI_1430_")
    assert identity.source == "clss"


def test_identity_keys_are_idempotent() -> None:
    section = section_doc("s1", crn="41234")
    [proposal] = IdentityKeysTask().propose(make_snapshot(schedules=[section]), None)

    applied = {**section, **proposal.data}

    assert IdentityKeysTask().propose(make_snapshot(schedules=[applied]), None) == []


def test_instructor_links_need_a_unique_name_match() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("p1", firstName="Jane", lastName="Smith"),
            person_doc("p2", firstName="Sam", lastName="Lee"),
            person_doc("p3", firstName="Sam", lastName="Lee"),
        ],
        schedules=[
            section_doc("s1", instructorName="Jane Smith"),
            section_doc("s2", section="02", instructorName="Sam Lee"),
            section_doc("s3", section="03", instructorName="Nobody Known"),
        ],
    )

    [proposal] = InstructorLinksTask().propose(snapshot, None)

    assert proposal.document_id == "s1"
    assert proposal.data == {"instructorId": "p1", "instructorIds": ["p1"]}


def test_task_registry_rejects_duplicate_names() -> None:
    assert sorted(task_registry()) == [
        "identity-keys",
        "instructor-links",
        "office-rooms",
        "space-links",
    ]
    with pytest.raises(ValidationError):
        task_registry([SpaceLinksTask(), SpaceLinksTask()])
