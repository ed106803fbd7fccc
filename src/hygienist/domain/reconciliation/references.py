"""Cross-collection references: counting, rewriting and orphan detection.

Sections cite people (``instructorId``, ``instructorIds``,
``instructorAssignments[].personId``) and spaces (``spaceIds``, holding either
room document ids or ``BUILDING:NUMBER`` space keys). People cite spaces through
``officeSpaceId`` (legacy ``officeRoomId``).

A person or space is classified relative to a scope (a term code):

- referenced: cited by an in-scope section, or used as someone's office
- scope orphan: cited only by sections of other terms; reported, never a cleanup candidate
- structural orphan: cited nowhere at all

Under a term scope, a referenced record whose only citations are that term's
sections is scope-only: it goes away together with the term's sections.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from hygienist.domain.model import (
    Collection,
    EntityType,
    OrphanClass,
    OrphanKind,
    Severity,
    normalize_term_code,
)
from hygienist.domain.model.text import clean, unique

from .errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Set

    from hygienist.domain.model import Fields, Record, Section

    from .snapshot import Snapshot

log = logging.getLogger(__name__)

type Replacements = Mapping[str, str]
type Rewrite = Callable[[Mapping[str, Any], Replacements], Fields | None]

SEVERITY_ORDER: Final[dict[Severity, int]] = {
    Severity.HIGH: 0,
    Severity.MEDIUM: 1,
    Severity.LOW: 2,
}


# --- rewriting ----------------------------------------------------------------


def _replace_all(values: list[Any], replacements: Replacements) -> list[str] | None:
    if not any(clean(value) in replacements for value in values):
        return None
    return list(unique(replacements.get(clean(value), clean(value)) for value in values))


def rewrite_instructor_references(
    fields: Mapping[str, Any],
    replacements: Replacements,
) -> Fields | None:
    """Changed instructor fields of a schedule document, or ``None`` if it cites none."""

    changes: Fields = {}
    instructor_id = fields.get("instructorId")
    if isinstance(instructor_id, str) and clean(instructor_id) in replacements:
        changes["instructorId"] = replacements[clean(instructor_id)]

    instructor_ids = fields.get("instructorIds")
    if isinstance(instructor_ids, list):
        rewritten = _replace_all(instructor_ids, replacements)
        if rewritten is not None:
            changes["instructorIds"] = rewritten

    assignments = fields.get("instructorAssignments")
    if isinstance(assignments, list) and any(
        isinstance(item, dict) and clean(item.get("personId")) in replacements
        for item in assignments
    ):
        seen: set[str] = set()
        rewritten_assignments: list[Any] = []
        for item in assignments:
            if not isinstance(item, dict):
                rewritten_assignments.append(item)
                continue
            person_id = clean(item.get("personId"))
            person_id = replacements.get(person_id, person_id)
            if person_id and person_id in seen:
                continue
            seen.add(person_id)
            rewritten_assignments.append({**item, "personId": person_id})
        changes["instructorAssignments"] = rewritten_assignments
    return changes or None


def rewrite_schedule_space_references(
    fields: Mapping[str, Any],
    replacements: Replacements,
) -> Fields | None:
    space_ids = fields.get("spaceIds")
    if not isinstance(space_ids, list):
        return None
    rewritten = _replace_all(space_ids, replacements)
    return {"spaceIds": rewritten} if rewritten is not None else None


def rewrite_office_references(
    fields: Mapping[str, Any],
    replacements: Replacements,
) -> Fields | None:
    changes: Fields = {}
    for name in ("officeSpaceId", "officeRoomId"):
        value = clean(fields.get(name))
        if value and value in replacements:
            changes[name] = replacements[value]
    return changes or None


@dataclass(frozen=True, slots=True)
class ReferenceRule:
    """Where records of one type are cited, and how to repoint the citation."""

    collection: Collection
    rewrite: Rewrite


REFERENCE_RULES: Final[dict[EntityType, tuple[ReferenceRule, ...]]] = {
    EntityType.PERSON: (ReferenceRule(Collection.SCHEDULES, rewrite_instructor_references),),
    EntityType.SPACE: (
        ReferenceRule(Collection.SCHEDULES, rewrite_schedule_space_references),
        ReferenceRule(Collection.PEOPLE, rewrite_office_references),
    ),
    EntityType.SECTION: (),
}


def reference_tokens(record: Record) -> set[str]:
    """Every string another document may use to cite ``record``."""

    tokens = {record.id}
    space_key = getattr(record, "space_key", "")
    if space_key:
        tokens.add(space_key)
    return tokens


# --- counting -----------------------------------------------------------------


def resolve_scope(scope: str | None) -> str | None:
    """Normalize a term label or code; ``None`` means the whole store."""

    if scope is None or not scope.strip():
        return None
    term_code = normalize_term_code(scope)
    if not term_code:
        raise ValidationError(f"Unrecognised term scope {scope!r}")
    return term_code


@dataclass(slots=True)
class ReferenceCount:
    in_scope: int = 0
    out_of_scope: int = 0
    offices: int = 0
    sections: set[str] = field(default_factory=set["str"])  # in-scope citing sections

    @property
    def total(self) -> int:
        return self.in_scope + self.out_of_scope + self.offices

    def add(self, section_id: str, *, in_scope: bool) -> None:
        if in_scope:
            self.in_scope += 1
            self.sections.add(section_id)
        else:
            self.out_of_scope += 1

    def remaining(self, deleted_sections: Set[str]) -> int:
        """Citations left once ``deleted_sections`` are gone."""

        return self.out_of_scope + self.offices + len(self.sections.difference(deleted_sections))


@dataclass(slots=True)
class ReferenceGraph:
    """Reverse reference counts per person id and per space id."""

    scope: str | None
    people: dict[str, ReferenceCount] = field(default_factory=dict["str", "ReferenceCount"])
    spaces: dict[str, ReferenceCount] = field(default_factory=dict["str", "ReferenceCount"])
    missing_people: dict[str, tuple[str, ...]] = field(
        default_factory=dict["str", "tuple[str, ...]"]
    )
    missing_spaces: dict[str, tuple[str, ...]] = field(
        default_factory=dict["str", "tuple[str, ...]"]
    )

    @classmethod
    def build(cls, snapshot: Snapshot, scope: str | None = None) -> ReferenceGraph:
        graph = cls(scope=resolve_scope(scope))
        for person in snapshot.people:
            graph.people[person.id] = ReferenceCount()
        for space in snapshot.spaces:
            graph.spaces[space.id] = ReferenceCount()

        for section in snapshot.sections:
            in_scope = graph.in_scope(section)
            missing_people = [
                person_id for person_id in section.instructor_ids if person_id not in graph.people
            ]
            for person_id in section.instructor_ids:
                if person_id in graph.people:
                    graph.people[person_id].add(section.id, in_scope=in_scope)
            missing_spaces: list[str] = []
            for reference in section.space_ids:
                spaces = snapshot.spaces_for_reference(reference)
                if not spaces:
                    missing_spaces.append(reference)
                for space in spaces:
                    graph.spaces[space.id].add(section.id, in_scope=in_scope)
            if missing_people:
                graph.missing_people[section.id] = tuple(missing_people)
            if missing_spaces:
                graph.missing_spaces[section.id] = tuple(missing_spaces)

        for person in snapshot.people:
            if not person.office_space_id:
                continue
            for office in snapshot.spaces_for_reference(person.office_space_id):
                graph.spaces[office.id].offices += 1
        return graph

    def in_scope(self, section: Section) -> bool:
        return self.scope is None or section.term_code == self.scope

    def count_for(self, entity_type: EntityType, record_id: str) -> ReferenceCount:
        counts = self.people if entity_type is EntityType.PERSON else self.spaces
        return counts.get(record_id, ReferenceCount())

    def classify(self, entity_type: EntityType, record_id: str) -> OrphanClass:
        if entity_type is EntityType.SECTION:
            raise ValidationError("Sections are not reference targets")
        count = self.count_for(entity_type, record_id)
        if count.in_scope or count.offices:
            return OrphanClass.REFERENCED
        if count.out_of_scope:
            return OrphanClass.SCOPE_ORPHAN
        return OrphanClass.STRUCTURAL

    def is_scope_only(self, entity_type: EntityType, record_id: str) -> bool:
        """Cited, but only by sections of the scoped term."""

        if self.scope is None:
            return False
        count = self.count_for(entity_type, record_id)
        return bool(count.in_scope) and not count.out_of_scope and not count.offices


# --- orphan issues ------------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class OrphanIssue:
    kind: OrphanKind
    record: Record
    reason: str
    severity: Severity
    orphan_class: OrphanClass | None = None

    @property
    def entity_type(self) -> EntityType:
        return self.record.entity_type

    @property
    def is_cleanup_candidate(self) -> bool:
        """Structural orphans only; broken sections are repaired and scope orphans kept."""

        return self.orphan_class is OrphanClass.STRUCTURAL

    def sort_key(self) -> tuple[int, str, str]:
        return SEVERITY_ORDER[self.severity], str(self.kind), self.record.id


def _unreferenced_issue(
    graph: ReferenceGraph,
    record: Record,
    reason: str,
) -> OrphanIssue | None:
    orphan_class = graph.classify(record.entity_type, record.id)
    if orphan_class is OrphanClass.REFERENCED:
        return None
    if orphan_class is OrphanClass.SCOPE_ORPHAN:
        reason = f"Referenced only outside term {graph.scope}"
    kind = (
        OrphanKind.ORPHANED_PERSON
        if record.entity_type is EntityType.PERSON
        else OrphanKind.ORPHANED_SPACE
    )
    return OrphanIssue(
        kind=kind,
        record=record,
        reason=reason,
        severity=Severity.LOW,
        orphan_class=orphan_class,
    )


def find_orphaned(
    snapshot: Snapshot,
    scope: str | None = None,
    *,
    graph: ReferenceGraph | None = None,
) -> list[OrphanIssue]:
    """Integrity issues of in-scope sections plus orphaned people and active spaces."""

    graph = graph or ReferenceGraph.build(snapshot, scope)
    issues: list[OrphanIssue] = []

    for section in snapshot.sections:
        if not graph.in_scope(section):
            continue
        if not section.instructor_ids:
            issues.append(
                OrphanIssue(
                    kind=OrphanKind.ORPHANED_SCHEDULE,
                    record=section,
                    reason="No instructor assigned",
                    severity=Severity.HIGH,
                )
            )
        elif section.id in graph.missing_people:
            missing = ", ".join(graph.missing_people[section.id])
            issues.append(
                OrphanIssue(
                    kind=OrphanKind.ORPHANED_SCHEDULE,
                    record=section,
                    reason=f"Instructor not found: {missing}",
                    severity=Severity.HIGH,
                )
            )
        if section.id in graph.missing_spaces and not section.is_unplaced:
            missing = ", ".join(graph.missing_spaces[section.id])
            issues.append(
                OrphanIssue(
                    kind=OrphanKind.ORPHANED_SPACE,
                    record=section,
                    reason=f"Space not found: {missing}",
                    severity=Severity.MEDIUM,
                )
            )

    for person in snapshot.people:
        issue = _unreferenced_issue(graph, person, "Not referenced by any section")
        if issue is not None:
            issues.append(issue)
    for space in snapshot.spaces:
        if not space.is_active:
            continue
        issue = _unreferenced_issue(graph, space, "Not referenced by any section or office")
        if issue is not None:
            issues.append(issue)

    issues.sort(key=OrphanIssue.sort_key)
    log.info(
        "Orphan scan scope=%s: %s issues (%s cleanup candidates)",
        graph.scope or "all",
        len(issues),
        sum(1 for issue in issues if issue.is_cleanup_candidate),
    )
    return issues
