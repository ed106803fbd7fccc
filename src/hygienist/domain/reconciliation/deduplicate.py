"""Blocking-key duplicate detection over a snapshot.

Responsibilities of this stage:
- partition records of one type into blocks sharing a cheap key
- score every pair inside a block once, keeping pairs at or above the floor
- drop pairs registered as "not a duplicate"
- order the survivors by confidence, ties by ids

Detection is a pure read; nothing is written.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass
from functools import singledispatch
from itertools import combinations
from typing import TYPE_CHECKING

from hygienist.domain.model import Person, Section, Space
from hygienist.domain.model.text import name_tokens, normalize_text

from .errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from hygienist.domain.model import EntityType, Record

    from .exclusions import PairKey
    from .scoring import AnyPolicy
    from .snapshot import Snapshot

type BlockKey = tuple[Hashable, ...]
log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class DuplicateCandidate:
    """Two records believed to be one; ``primary`` survives a merge."""

    entity_type: EntityType
    primary: Record
    secondary: Record
    confidence: float
    reason: str

    def __post_init__(self) -> None:
        if self.primary.id == self.secondary.id:
            raise ValidationError(f"Candidate pairs {self.primary.id!r} with itself")

    @property
    def records(self) -> tuple[Record, Record]:
        return self.primary, self.secondary

    @property
    def pair(self) -> PairKey:
        low, high = sorted((self.primary.id, self.secondary.id))
        return low, high

    def sort_key(self) -> tuple[float, str, str]:
        return -self.confidence, self.primary.id, self.secondary.id


def choose_primary[R: (Person, Section, Space)](left: R, right: R) -> tuple[R, R]:
    """Order a pair as ``(primary, secondary)``.

    The more complete record wins, then the more recently updated one, then the
    lexicographically smaller id.
    """

    left_rank = (left.completeness, left.updated_at)
    right_rank = (right.completeness, right.updated_at)
    if left_rank != right_rank:
        return (left, right) if left_rank > right_rank else (right, left)
    return (left, right) if left.id < right.id else (right, left)


@singledispatch
def block_keys(_record: object) -> tuple[BlockKey, ...]:
    return ()


@block_keys.register
def _(person: Person) -> tuple[BlockKey, ...]:
    keys: list[BlockKey] = []
    surname = name_tokens(person.last_name) or name_tokens(person.first_name)
    if surname:
        keys.append(("initial", surname[-1][0]))
    if person.email:
        keys.append(("email", person.email))
    if person.baylor_id:
        keys.append(("baylor_id", person.baylor_id))
    return tuple(keys)


@block_keys.register
def _(section: Section) -> tuple[BlockKey, ...]:
    keys: list[BlockKey] = []
    if section.course_code and section.term_code:
        keys.append(("course_term", section.course_code, section.term_code))
    if section.crn and section.term_code:
        keys.append(("crn_term", section.crn, section.term_code))
    return tuple(keys)


@block_keys.register
def _(space: Space) -> tuple[BlockKey, ...]:
    keys: list[BlockKey] = []
    if space.building_code:
        keys.append(("building", space.building_code))
    name = normalize_text(space.name)
    if name:
        keys.append(("name", name))
    return tuple(keys)


def build_blocks(records: Iterable[Record]) -> dict[BlockKey, list[Record]]:
    blocks: dict[BlockKey, list[Record]] = {}
    for record in records:
        for key in block_keys(record):
            blocks.setdefault(key, []).append(record)
    return blocks


def detect_duplicates(
    snapshot: Snapshot,
    policy: AnyPolicy,
    *,
    excluded: frozenset[PairKey] = frozenset(),
) -> list[DuplicateCandidate]:
    """Return ranked duplicate candidates of ``policy.entity_type``."""

    records = snapshot.records(policy.entity_type)
    blocks = build_blocks(records)
    seen: set[PairKey] = set()
    candidates: list[DuplicateCandidate] = []
    skipped_excluded = 0

    for block_key in sorted(blocks, key=repr):
        for left, right in combinations(blocks[block_key], 2):
            if left.id == right.id:
                continue
            low, high = sorted((left.id, right.id))
            if (low, high) in seen:
                continue
            seen.add((low, high))
            if (low, high) in excluded:
                skipped_excluded += 1
                continue
            score = policy.score(left, right)  # pyright: ignore[reportArgumentType]
            if score is None or not policy.accepts(score):
                continue
            primary, secondary = choose_primary(left, right)
            candidates.append(
                DuplicateCandidate(
                    entity_type=policy.entity_type,
                    primary=primary,
                    secondary=secondary,
                    confidence=score.confidence,
                    reason=score.reason,
                )
            )

    candidates.sort(key=DuplicateCandidate.sort_key)
    log.info(
        "Scanned %s %s records in %s blocks: %s candidates, %s excluded pairs skipped",
        len(records),
        policy.entity_type,
        len(blocks),
        len(candidates),
        skipped_excluded,
    )
    return candidates
