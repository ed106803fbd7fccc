"""Immutable, normalized view of the three record collections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hygienist.domain.model import Collection, EntityType, Person, Section, Space

if TYPE_CHECKING:
    from collections.abc import Iterable

    from hygienist.domain.model import Record, StoredDocument
    from hygienist.domain.ports import DocumentRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Records of one read pass over the store, in stable id order."""

    people: tuple[Person, ...] = ()
    sections: tuple[Section, ...] = ()
    spaces: tuple[Space, ...] = ()
    _by_id: dict[tuple[EntityType, str], Record] = field(
        default_factory=dict["tuple[EntityType, str]", "Record"], repr=False, compare=False
    )
    _by_key: dict[str, list[Space]] = field(
        default_factory=dict["str", "list[Space]"], repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for record in (*self.people, *self.sections, *self.spaces):
            self._by_id[(record.entity_type, record.id)] = record
        for space in self.spaces:
            if space.space_key:
                self._by_key.setdefault(space.space_key, []).append(space)

    @classmethod
    def from_documents(
        cls,
        *,
        people: Iterable[StoredDocument] = (),
        schedules: Iterable[StoredDocument] = (),
        rooms: Iterable[StoredDocument] = (),
    ) -> Snapshot:
        return cls(
            people=tuple(sorted((Person.from_document(doc) for doc in people), key=_by_id)),
            sections=tuple(
                sorted((Section.from_document(doc) for doc in schedules), key=_by_id)
            ),
            spaces=tuple(sorted((Space.from_document(doc) for doc in rooms), key=_by_id)),
        )

    @classmethod
    def load(cls, repository: DocumentRepository) -> Snapshot:
        snapshot = cls.from_documents(
            people=repository.list_all(Collection.PEOPLE),
            schedules=repository.list_all(Collection.SCHEDULES),
            rooms=repository.list_all(Collection.ROOMS),
        )
        log.debug(
            "Loaded snapshot people=%s sections=%s spaces=%s",
            len(snapshot.people),
            len(snapshot.sections),
            len(snapshot.spaces),
        )
        return snapshot

    def records(self, entity_type: EntityType) -> tuple[Record, ...]:
        if entity_type is EntityType.PERSON:
            return self.people
        if entity_type is EntityType.SECTION:
            return self.sections
        return self.spaces

    def get(self, entity_type: EntityType, record_id: str) -> Record | None:
        return self._by_id.get((entity_type, record_id))

    def person(self, person_id: str) -> Person | None:
        record = self.get(EntityType.PERSON, person_id)
        return record if isinstance(record, Person) else None

    def section(self, section_id: str) -> Section | None:
        record = self.get(EntityType.SECTION, section_id)
        return record if isinstance(record, Section) else None

    def space(self, space_id: str) -> Space | None:
        record = self.get(EntityType.SPACE, space_id)
        return record if isinstance(record, Space) else None

    def space_by_key(self, space_key: str) -> Space | None:
        """First space (by id) carrying ``space_key``."""

        matches = self._by_key.get(space_key.upper())
        return matches[0] if matches else None

    def resolve_space(self, reference: str) -> Space | None:
        """Resolve a schedule space reference given as document id or space key."""

        return self.space(reference) or self.space_by_key(reference)

    def spaces_for_reference(self, reference: str) -> tuple[Space, ...]:
        """All spaces a reference may mean: the one with that id, else every key match."""

        space = self.space(reference)
        if space is not None:
            return (space,)
        return tuple(self._by_key.get(reference.upper(), ()))

    def building_aliases(self) -> dict[str, str]:
        """Lower-cased building names and codes mapped to building codes."""

        aliases: dict[str, str] = {}
        for space in self.spaces:
            if not space.building_code:
                continue
            aliases.setdefault(space.building_code.lower(), space.building_code)
            if space.building_name:
                aliases.setdefault(space.building_name.lower(), space.building_code)
        return aliases

    def counts(self) -> dict[str, int]:
        return {
            str(Collection.PEOPLE): len(self.people),
            str(Collection.SCHEDULES): len(self.sections),
            str(Collection.ROOMS): len(self.spaces),
        }


def _by_id(record: Record) -> str:
    return record.id
