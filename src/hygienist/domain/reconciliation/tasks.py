"""Backfill tasks that propose change plans.

- ``space-links``: resolve section room names to spaces, creating missing ones
- ``office-rooms``: resolve people's office labels to spaces, creating missing ones
- ``identity-keys``: derive section identity keys, strongest first
- ``instructor-links``: link sections to the one person matching the instructor name

Every task only proposes fields that differ from what is stored, so a plan built
right after applying the same plan is empty.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from hygienist.domain.model import ChangeAction, Collection
from hygienist.domain.model.locations import parse_room_label, parse_rooms
from hygienist.domain.model.text import (
    normalize_full_name,
    slugify,
    split_full_name,
    unique,
)

from .errors import ValidationError
from .plan import ProposedChange, diff_fields
from .references import resolve_scope

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from hygienist.domain.model import Fields, ParsedRoom, Person, Section, Space

    from .plan import PlanTask
    from .snapshot import Snapshot

log = logging.getLogger(__name__)

IDENTITY_STRENGTH: Final[dict[str, int]] = {
    "clss": 4,
    "crn": 3,
    "section": 2,
    "composite": 1,
}


def space_document_id(space_key: str) -> str:
    """Deterministic room document id for a space key ("MCF:101" -> "space_MCF_101")."""

    return f"space_{slugify(space_key).upper()}"


def space_produce_key(space_key: str) -> str:
    return f"space:{space_key}"


def _sections_in_scope(snapshot: Snapshot, scope: str | None) -> list[Section]:
    term_code = resolve_scope(scope)
    return [
        section
        for section in snapshot.sections
        if term_code is None or section.term_code == term_code
    ]


def _space_fields(room: ParsedRoom, space_type: str) -> Fields:
    return {
        "spaceKey": room.space_key,
        "buildingCode": room.building_code,
        "buildingName": room.building_name,
        "spaceNumber": room.space_number,
        "name": room.display_name,
        "type": space_type,
        "isActive": True,
    }


@dataclass(slots=True)
class _SpaceResolver:
    """Maps parsed rooms to space ids, proposing one creation per unknown key."""

    snapshot: Snapshot
    space_type: str
    creations: dict[str, ProposedChange]

    def resolve(self, room: ParsedRoom) -> tuple[str, str | None]:
        """Return ``(space_id, consumed_key)``; the key is set for new spaces."""

        existing = self.snapshot.space_by_key(room.space_key)
        if existing is not None:
            return existing.id, None
        document_id = space_document_id(room.space_key)
        produced = space_produce_key(room.space_key)
        if room.space_key not in self.creations:
            self.creations[room.space_key] = ProposedChange(
                collection=Collection.ROOMS,
                document_id=document_id,
                action=ChangeAction.UPSERT,
                data=_space_fields(room, self.space_type),
                label=f"Create room {room.display_name}",
                produces=(produced,),
            )
        return document_id, produced


def _before(current: Mapping[str, object], changed: Mapping[str, object]) -> Fields:
    return {name: current.get(name) for name in changed}


@dataclass(slots=True, frozen=True)
class SpaceLinksTask:
    name: str = "space-links"

    def propose(self, snapshot: Snapshot, scope: str | None) -> list[ProposedChange]:
        resolver = _SpaceResolver(snapshot=snapshot, space_type="Classroom", creations={})
        aliases = snapshot.building_aliases()
        updates: list[ProposedChange] = []

        for section in _sections_in_scope(snapshot, scope):
            if section.is_unplaced or not section.room_names:
                continue
            resolved: list[str] = []
            consumed: list[str] = []
            new_keys: set[str] = set()
            for room_name in section.room_names:
                _, rooms = parse_rooms(room_name, aliases)
                for room in rooms:
                    space_id, key = resolver.resolve(room)
                    resolved.append(space_id)
                    if key is not None:
                        consumed.append(key)
                        new_keys.add(room.space_key)
            if not resolved:
                continue
            kept = [
                reference
                for reference in section.space_ids
                if reference.upper() not in new_keys
                and not any(
                    space.id in resolved for space in snapshot.spaces_for_reference(reference)
                )
            ]
            desired = list(unique([*resolved, *kept]))
            if set(desired) == set(section.space_ids):
                continue
            data = diff_fields(section.fields, {"spaceIds": desired})
            updates.append(
                ProposedChange(
                    collection=Collection.SCHEDULES,
                    document_id=section.id,
                    action=ChangeAction.MERGE,
                    data=data,
                    label=f"Link {section.display_name} to {', '.join(desired)}",
                    before=_before(section.fields, data),
                    consumes=tuple(unique(consumed)),
                )
            )
        return [*resolver.creations.values(), *updates]


@dataclass(slots=True, frozen=True)
class OfficeRoomsTask:
    name: str = "office-rooms"

    def propose(self, snapshot: Snapshot, scope: str | None) -> list[ProposedChange]:
        resolver = _SpaceResolver(snapshot=snapshot, space_type="Office", creations={})
        aliases = snapshot.building_aliases()
        people = _people_in_scope(snapshot, scope)
        updates: list[ProposedChange] = []

        for person in people:
            if person.has_no_office or not person.office:
                continue
            if person.office_space_id and snapshot.spaces_for_reference(person.office_space_id):
                continue
            room = parse_room_label(person.office, aliases)
            if room is None:
                log.debug("Office label %r of %s is not a room", person.office, person.id)
                continue
            space_id, key = resolver.resolve(room)
            data = diff_fields(person.fields, {"officeSpaceId": space_id})
            if not data:
                continue
            updates.append(
                ProposedChange(
                    collection=Collection.PEOPLE,
                    document_id=person.id,
                    action=ChangeAction.MERGE,
                    data=data,
                    label=f"Set office of {person.display_name} to {room.display_name}",
                    before=_before(person.fields, data),
                    consumes=(key,) if key is not None else (),
                )
            )
        return [*resolver.creations.values(), *updates]


def _people_in_scope(snapshot: Snapshot, scope: str | None) -> list[Person]:
    if resolve_scope(scope) is None:
        return list(snapshot.people)
    teaching = {
        person_id
        for section in _sections_in_scope(snapshot, scope)
        for person_id in section.instructor_ids
    }
    return [person for person in snapshot.people if person.id in teaching]


def _key_part(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", value).strip("_")


@dataclass(frozen=True, slots=True)
class SectionIdentity:
    keys: tuple[str, ...]

    @property
    def primary_key(self) -> str:
        return self.keys[0] if self.keys else ""

    @property
    def source(self) -> str:
        return self.primary_key.partition(":")[0]


def identity_strength(key: str) -> int:
    return IDENTITY_STRENGTH.get(key.partition(":")[0], 0)


def derive_identity(section: Section) -> SectionIdentity:
    """Identity keys of a section, strongest first (clss > crn > section > composite)."""

    term = _key_part(section.term_code)
    keys: list[str] = []
    if term and section.clss_id:
        keys.append(f"clss:{term}:{_key_part(section.clss_id)}")
    if term and section.crn:
        keys.append(f"crn:{term}:{section.crn}")
    course = _key_part(section.course_code).upper()
    if term and course and section.section:
        keys.append(f"section:{term}_{course}_{_key_part(section.section)}")
    if section.space_ids:
        room_key = "|".join(sorted(_key_part(ref) for ref in section.space_ids))
    else:
        room_key = "|".join(sorted(name.lower() for name in section.room_names))
    meeting_key = _key_part(section.meeting_key)
    if term and course and meeting_key and room_key:
        keys.append(f"composite:{course}:{term}:{meeting_key}:{_key_part(room_key)}")
    keys.sort(key=identity_strength, reverse=True)
    return SectionIdentity(keys=tuple(keys))


@dataclass(slots=True, frozen=True)
class IdentityKeysTask:
    name: str = "identity-keys"

    def propose(self, snapshot: Snapshot, scope: str | None) -> list[ProposedChange]:
        proposals: list[ProposedChange] = []
        for section in _sections_in_scope(snapshot, scope):
            identity = derive_identity(section)
            if not identity.keys:
                continue
            data = diff_fields(
                section.fields,
                {
                    "identityKey": identity.primary_key,
                    "identityKeys": list(identity.keys),
                    "identitySource": identity.source,
                },
            )
            if not data:
                continue
            proposals.append(
                ProposedChange(
                    collection=Collection.SCHEDULES,
                    document_id=section.id,
                    action=ChangeAction.MERGE,
                    data=data,
                    label=f"Identity {identity.primary_key} for {section.display_name}",
                    before=_before(section.fields, data),
                )
            )
        return proposals


def _people_by_name(people: Iterable[Person]) -> dict[str, list[Person]]:
    index: dict[str, list[Person]] = {}
    for person in people:
        name = normalize_full_name(person.first_name, person.last_name)
        if name:
            index.setdefault(name, []).append(person)
    return index


@dataclass(slots=True, frozen=True)
class InstructorLinksTask:
    name: str = "instructor-links"

    def propose(self, snapshot: Snapshot, scope: str | None) -> list[ProposedChange]:
        by_name = _people_by_name(snapshot.people)
        proposals: list[ProposedChange] = []
        ambiguous = 0
        for section in _sections_in_scope(snapshot, scope):
            if section.instructor_ids or not section.instructor_name:
                continue
            matches = by_name.get(normalize_full_name(*split_full_name(section.instructor_name)), [])
            if len(matches) > 1:
                ambiguous += 1
            if len(matches) != 1:
                continue
            person = matches[0]
            data = diff_fields(
                section.fields,
                {"instructorId": person.id, "instructorIds": [person.id]},
            )
            proposals.append(
                ProposedChange(
                    collection=Collection.SCHEDULES,
                    document_id=section.id,
                    action=ChangeAction.MERGE,
                    data=data,
                    label=f"Link {section.display_name} to {person.display_name}",
                    before=_before(section.fields, data),
                )
            )
        if ambiguous:
            log.info("Skipped %s sections whose instructor name matches several people", ambiguous)
        return proposals


DEFAULT_TASKS: Final[tuple[PlanTask, ...]] = (
    SpaceLinksTask(),
    OfficeRoomsTask(),
    IdentityKeysTask(),
    InstructorLinksTask(),
)


def task_registry(tasks: Iterable[PlanTask] = DEFAULT_TASKS) -> dict[str, PlanTask]:
    registry: dict[str, PlanTask] = {}
    for task in tasks:
        if task.name in registry:
            raise ValidationError(f"Duplicate plan task {task.name!r}")
        registry[task.name] = task
    return registry
