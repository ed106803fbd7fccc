"""Canonical record types built once from raw documents.

Loading resolves the legacy field names that accumulated in the store (``name``
instead of first/last, ``officeRoomId``, ``instructorId`` vs ``instructorIds`` vs
``instructorAssignments``, ``term`` labels vs ``termCode``, ``roomNumber``...) so the
analyses below only ever see one shape per record type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from .documents import StoredDocument
from .enums import Collection, EntityType, LocationType
from .locations import detect_location_type, normalize_term_code
from .text import (
    build_space_key,
    clean,
    digits_only,
    extract_crn,
    normalize_baylor_id,
    normalize_building_code,
    normalize_email,
    normalize_phone,
    normalize_section_number,
    normalize_space_key,
    normalize_space_number,
    parse_space_key,
    split_full_name,
    standardize_course_code,
    unique,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_bool(value: Any, *, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


@dataclass(frozen=True, slots=True, kw_only=True)
class Person:
    entity_type: ClassVar[EntityType] = EntityType.PERSON
    collection: ClassVar[Collection] = Collection.PEOPLE

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    baylor_id: str = ""
    phone: str = ""
    office: str = ""
    office_space_id: str = ""
    job_title: str = ""
    has_no_phone: bool = False
    has_no_office: bool = False
    updated_at: str = ""
    completeness: int = 0
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.id

    @classmethod
    def from_document(cls, document: StoredDocument) -> Person:
        data = document.fields
        first = clean(data.get("firstName"))
        last = clean(data.get("lastName"))
        if not first and not last:
            first, last = split_full_name(data.get("name"))
        external_ids = data.get("externalIds")
        baylor_raw = data.get("baylorId")
        if not clean(baylor_raw) and isinstance(external_ids, dict):
            baylor_raw = external_ids.get("baylorId")
        return cls(
            id=document.id,
            first_name=first,
            last_name=last,
            email=normalize_email(data.get("email")),
            baylor_id=normalize_baylor_id(baylor_raw),
            phone=normalize_phone(data.get("phone")),
            office=clean(data.get("office")),
            office_space_id=clean(data.get("officeSpaceId") or data.get("officeRoomId")),
            job_title=clean(data.get("jobTitle")),
            has_no_phone=_as_bool(data.get("hasNoPhone")),
            has_no_office=_as_bool(data.get("hasNoOffice")),
            updated_at=clean(data.get("updatedAt")),
            completeness=document.completeness(),
            fields=data,
        )


@dataclass(frozen=True, slots=True)
class Meeting:
    day: str
    start: str
    end: str


def _meetings(data: Mapping[str, Any]) -> tuple[Meeting, ...]:
    meetings: list[Meeting] = []
    for item in _as_list(data.get("meetingPatterns")):
        if not isinstance(item, dict):
            continue
        meeting = Meeting(
            day=clean(item.get("day")).upper(),
            start=clean(item.get("startTime") or item.get("start")),
            end=clean(item.get("endTime") or item.get("end")),
        )
        if meeting.day or meeting.start or meeting.end:
            meetings.append(meeting)
    return tuple(dict.fromkeys(meetings))


def instructor_ids_of(data: Mapping[str, Any]) -> tuple[str, ...]:
    """Every person id a schedule document cites, across the legacy field shapes."""

    assignment_ids = [
        item.get("personId")
        for item in _as_list(data.get("instructorAssignments"))
        if isinstance(item, dict)
    ]
    return unique(
        [
            *_as_list(data.get("instructorId")),
            *_as_list(data.get("instructorIds")),
            *assignment_ids,
        ]
    )


def room_names_of(data: Mapping[str, Any]) -> tuple[str, ...]:
    return unique(
        [
            *_as_list(data.get("spaceDisplayNames")),
            *_as_list(data.get("roomNames")),
            *_as_list(data.get("roomName")),
        ]
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class Section:
    entity_type: ClassVar[EntityType] = EntityType.SECTION
    collection: ClassVar[Collection] = Collection.SCHEDULES

    id: str
    course_code: str = ""
    section: str = ""
    term_code: str = ""
    crn: str = ""
    clss_id: str = ""
    instructor_ids: tuple[str, ...] = ()
    instructor_name: str = ""
    meetings: tuple[Meeting, ...] = ()
    space_ids: tuple[str, ...] = ()
    room_names: tuple[str, ...] = ()
    location_type: LocationType = LocationType.UNKNOWN
    updated_at: str = ""
    completeness: int = 0
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def display_name(self) -> str:
        label = f"{self.course_code} {self.section}".strip()
        return f"{label} ({self.term_code})" if self.term_code else label or self.id

    @property
    def meeting_key(self) -> str:
        return ";".join(
            f"{meeting.day}|{meeting.start}|{meeting.end}" for meeting in sorted(
                self.meetings, key=lambda meeting: (meeting.day, meeting.start, meeting.end)
            )
        )

    @property
    def is_unplaced(self) -> bool:
        """True when the section meets online or needs no room."""

        return self.location_type in {LocationType.VIRTUAL, LocationType.NONE}

    @classmethod
    def from_document(cls, document: StoredDocument) -> Section:
        data = document.fields
        section_raw = data.get("section") or data.get("sectionNumber")
        crn = digits_only(data.get("crn") or data.get("CRN")) or extract_crn(section_raw)
        term_code = normalize_term_code(data.get("termCode")) or normalize_term_code(
            data.get("term")
        )
        room_names = room_names_of(data)
        return cls(
            id=document.id,
            course_code=standardize_course_code(data.get("courseCode")),
            section=normalize_section_number(section_raw),
            term_code=term_code,
            crn=crn,
            clss_id=clean(data.get("clssId")),
            instructor_ids=instructor_ids_of(data),
            instructor_name=clean(data.get("instructorName")),
            meetings=_meetings(data),
            space_ids=unique(_as_list(data.get("spaceIds"))),
            room_names=room_names,
            location_type=_section_location_type(data, room_names),
            updated_at=clean(data.get("updatedAt")),
            completeness=document.completeness(),
            fields=data,
        )


def _section_location_type(data: Mapping[str, Any], room_names: tuple[str, ...]) -> LocationType:
    if _as_bool(data.get("isOnline")):
        return LocationType.VIRTUAL
    explicit = clean(data.get("locationType")).lower()
    if explicit in {"virtual", "online"}:
        return LocationType.VIRTUAL
    if explicit in {"none", "no_room"}:
        return LocationType.NONE
    if explicit == "physical" or data.get("spaceIds"):
        return LocationType.PHYSICAL
    if room_names:
        return detect_location_type(room_names[0])
    return LocationType.UNKNOWN


@dataclass(frozen=True, slots=True, kw_only=True)
class Space:
    entity_type: ClassVar[EntityType] = EntityType.SPACE
    collection: ClassVar[Collection] = Collection.ROOMS

    id: str
    building_code: str = ""
    building_name: str = ""
    space_number: str = ""
    space_key: str = ""
    name: str = ""
    is_active: bool = True
    updated_at: str = ""
    completeness: int = 0
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def display_name(self) -> str:
        return self.name or self.space_key or self.id

    @classmethod
    def from_document(cls, document: StoredDocument) -> Space:
        data = document.fields
        building_code = normalize_building_code(data.get("buildingCode"))
        space_number = normalize_space_number(data.get("spaceNumber") or data.get("roomNumber"))
        space_key = normalize_space_key(data.get("spaceKey"))
        parsed = parse_space_key(space_key)
        if parsed is not None:
            building_code = building_code or parsed[0]
            space_number = space_number or parsed[1]
        if not space_key:
            space_key = build_space_key(building_code, space_number)
        return cls(
            id=document.id,
            building_code=building_code,
            building_name=clean(data.get("buildingName") or data.get("building")),
            space_number=space_number,
            space_key=space_key,
            name=clean(data.get("displayName") or data.get("name")),
            is_active=_as_bool(data.get("isActive"), default=True),
            updated_at=clean(data.get("updatedAt")),
            completeness=document.completeness(),
            fields=data,
        )


type Record = Person | Section | Space

RECORD_TYPES: dict[EntityType, type[Person] | type[Section] | type[Space]] = {
    EntityType.PERSON: Person,
    EntityType.SECTION: Section,
    EntityType.SPACE: Space,
}


def record_from_document(entity_type: EntityType, document: StoredDocument) -> Record:
    return RECORD_TYPES[entity_type].from_document(document)
