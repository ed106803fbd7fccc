from __future__ import annotations

from hygienist.domain.model import LocationType
from tests.helpers.records import make_person, make_section, make_space


def test_person_splits_legacy_display_name() -> None:
    person = make_person("p1", name="Smith, Jane", email=" Jane.Smith@Baylor.edu ")

    assert (person.first_name, person.last_name) == ("Jane", "Smith")
    assert person.email == "jane.smith@baylor.edu"


def test_person_reads_baylor_id_and_office_from_legacy_fields() -> None:
    person = make_person(
        "p1",
        firstName="Jane",
        lastName="Smith",
        externalIds={"baylorId": "123-45-6789"},
        officeRoomId="room-1",
        phone="+1 (254) 710-1234",
    )

    assert person.baylor_id == "123456789"
    assert person.office_space_id == "room-1"
    assert person.phone == "2547101234"


def test_section_collects_instructor_ids_across_shapes() -> None:
    section = make_section(
        "s1",
        instructorId="p1",
        instructorIds=["p1", "p2"],
        instructorAssignments=[{"personId": "p3"}, {"personId": "p2"}],
    )

    assert section.instructor_ids == ("p1", "p2", "p3")


def test_section_normalizes_course_term_and_embedded_crn() -> None:
    section = make_section("s1", course="csi1430", section="02 (33070)", term="Fall 2025")

    assert section.course_code == "CSI 1430"
    assert section.section == "02"
    assert section.crn == "33070"
    assert section.term_code == "202530"


def test_section_location_type_from_room_names() -> None:
    online = make_section("s1", roomNames=["Online"])
    placed = make_section("s2", roomNames=["Goebel 101"])
    tba = make_section("s3", roomName="TBA")

    assert online.location_type is LocationType.VIRTUAL
    assert online.is_unplaced
    assert placed.location_type is LocationType.PHYSICAL
    assert tba.is_unplaced


def test_section_meeting_key_is_order_independent() -> None:
    first = make_section(
        "s1",
        meetingPatterns=[
            {"day": "W", "startTime": "10:00", "endTime": "10:50"},
            {"day": "M", "startTime": "10:00", "endTime": "10:50"},
        ],
    )
    second = make_section(
        "s2",
        meetingPatterns=[
            {"day": "m", "start": "10:00", "end": "10:50"},
            {"day": "W", "start": "10:00", "end": "10:50"},
        ],
    )

    assert first.meeting_key == second.meeting_key == "M|10:00|10:50;W|10:00|10:50"


def test_space_key_is_derived_both_ways() -> None:
    from_key = make_space("r1", "mcf:101")
    from_parts = make_space("r2", "", buildingCode="mcf", roomNumber="101a")

    assert (from_key.building_code, from_key.space_number) == ("MCF", "101")
    assert from_key.space_key == "MCF:101"
    assert from_parts.space_key == "MCF:101A"
    assert from_parts.is_active


def test_space_inactive_flag_accepts_strings() -> None:
    space = make_space("r1", "MCF:101", isActive="false")

    assert not space.is_active
