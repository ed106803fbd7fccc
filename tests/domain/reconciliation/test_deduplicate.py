from __future__ import annotations

import pytest

from hygienist.domain.model import EntityType
from hygienist.domain.reconciliation import (
    DuplicateCandidate,
    ValidationError,
    choose_primary,
    detect_duplicates,
)
from hygienist.domain.reconciliation.deduplicate import block_keys
from hygienist.domain.reconciliation.scoring import PERSON_POLICY, SECTION_POLICY, SPACE_POLICY
from tests.helpers.records import (
    make_person,
    make_snapshot,
    person_doc,
    room_doc,
    section_doc,
)


def test_same_email_people_produce_one_candidate() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("a", email="j.smith@x.edu", firstName="J", lastName="Smith"),
            person_doc("b", email="j.smith@x.edu", firstName="Jane", lastName="Smith"),
        ]
    )

    candidates = detect_duplicates(snapshot, PERSON_POLICY)

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.entity_type is EntityType.PERSON
    assert candidate.confidence == 1.0
    assert candidate.reason == "Same email"
    assert [record.id for record in candidate.records] == ["a", "b"]


def test_excluded_pairs_are_skipped() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("a", email="j.smith@x.edu"),
            person_doc("b", email="j.smith@x.edu"),
        ]
    )

    assert detect_duplicates(snapshot, PERSON_POLICY, excluded=frozenset({("a", "b")})) == []


def test_candidates_below_the_floor_are_dropped() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("a", firstName="Jane", lastName="Smith"),
            person_doc("b", firstName="Jane", lastName="Smith"),
        ]
    )

    assert len(detect_duplicates(snapshot, PERSON_POLICY)) == 1
    assert detect_duplicates(snapshot, PERSON_POLICY.with_floor(0.95)) == []


def test_blocking_keeps_unrelated_buildings_apart() -> None:
    snapshot = make_snapshot(
        rooms=[
            room_doc("r1", "MCF:101"),
            room_doc("r2", "MCF:101"),
            room_doc("r3", "GOB:101"),
        ]
    )

    candidates = detect_duplicates(snapshot, SPACE_POLICY)

    assert [(c.primary.id, c.secondary.id) for c in candidates] == [("r1", "r2")]
    assert candidates[0].confidence >= 0.95


def test_sections_use_the_stricter_floor() -> None:
    meetings = [{"day": "T", "startTime": "11:00", "endTime": "12:15"}]
    snapshot = make_snapshot(
        schedules=[
            section_doc("s1", section="01", instructorId="p1", meetingPatterns=meetings),
            section_doc("s2", section="02", instructorId="p1", meetingPatterns=meetings),
            section_doc("s3", section="03", crn="11111"),
            section_doc("s4", section="03", crn="11111"),
        ]
    )

    candidates = detect_duplicates(snapshot, SECTION_POLICY)

    # s1/s2 only reach 0.85 without shared rooms.
    assert [(c.primary.id, c.secondary.id, c.reason) for c in candidates] == [
        ("s3", "s4", "Same CRN")
    ]


def test_candidates_are_ranked_by_confidence_then_ids() -> None:
    snapshot = make_snapshot(
        people=[
            person_doc("c", firstName="Jane", lastName="Smith"),
            person_doc("d", firstName="Jane", lastName="Smith"),
            person_doc("a", email="x@y.edu", lastName="Brown"),
            person_doc("b", email="x@y.edu", lastName="Brown"),
        ]
    )

    candidates = detect_duplicates(snapshot, PERSON_POLICY)

    assert [(c.primary.id, c.secondary.id) for c in candidates] == [("a", "b"), ("c", "d")]


def test_choose_primary_prefers_complete_then_recent_then_smaller_id() -> None:
    sparse = make_person("a", firstName="Jane")
    complete = make_person("z", firstName="Jane", lastName="Smith", email="j@x.edu")
    older = make_person("b", firstName="Jane", updatedAt="2024-01-01T00:00:00+00:00")
    newer = make_person("c", firstName="Jane", updatedAt="2025-01-01T00:00:00+00:00")

    assert choose_primary(sparse, complete) == (complete, sparse)
    assert choose_primary(older, newer) == (newer, older)
    assert choose_primary(make_person("y"), make_person("x"))[0].id == "x"


def test_candidate_requires_distinct_records() -> None:
    person = make_person("a")
    with pytest.raises(ValidationError):
        DuplicateCandidate(
            entity_type=EntityType.PERSON,
            primary=person,
            secondary=person,
            confidence=1.0,
            reason="same",
        )


def test_person_block_keys_use_surname_initial() -> None:
    keys = block_keys(make_person("a", firstName="Jane", lastName="Smith", email="j@x.edu"))

    assert ("initial", "s") in keys
    assert ("email", "j@x.edu") in keys
