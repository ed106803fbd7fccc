"""Pairwise similarity scoring for people, sections and spaces.

Each entity type has a ``ScoringPolicy``: an ordered tuple of comparators, strongest
signal first, plus the weights those comparators read. The first comparator that
recognises the pair decides the score. Every comparator is symmetric in its two
record arguments so ``score(a, b)`` equals ``score(b, a)``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Final

from rapidfuzz.distance import Levenshtein

from hygienist.domain.model import EntityType, Person, Section, Space
from hygienist.domain.model.text import (
    canonical_first_name,
    comparable_space_number,
    name_tokens,
    normalize_full_name,
    normalize_text,
)

DEFAULT_FLOOR: Final[float] = 0.70
SECTION_FLOOR: Final[float] = 0.90

type Weights = Mapping[str, float]


@dataclass(frozen=True, slots=True)
class Score:
    confidence: float
    reason: str


type Comparator[R] = Callable[[R, R, Weights], Score | None]


@dataclass(frozen=True, slots=True, kw_only=True)
class ScoringPolicy[R: (Person, Section, Space)]:
    """Ordered comparators, their weights, and the candidate floor."""

    entity_type: EntityType
    record_type: type[R]
    floor: float
    comparators: tuple[Comparator[R], ...]
    weights: Weights = field(default_factory=dict["str", "float"], hash=False)

    def score(self, left: R, right: R) -> Score | None:
        """Return the first comparator's score, ignoring the floor."""

        if not isinstance(left, self.record_type) or not isinstance(right, self.record_type):
            raise ValueError(
                f"{self.entity_type} policy cannot score "
                f"{type(left).__name__} against {type(right).__name__}"
            )
        for comparator in self.comparators:
            result = comparator(left, right, self.weights)
            if result is not None:
                return result
        return None

    def accepts(self, score: Score | None) -> bool:
        return score is not None and score.confidence >= self.floor

    def with_floor(self, floor: float) -> ScoringPolicy[R]:
        return replace(self, floor=floor)


# --- people -----------------------------------------------------------------

PERSON_WEIGHTS: Final[Weights] = {
    "same_email": 1.0,
    "same_baylor_id": 1.0,
    "same_name": 0.90,
    "same_name_cap": 0.95,
    "same_name_bonus": 0.025,
    "job_title_penalty": 0.05,
    "nickname": 0.95,
    "prefix_factor": 0.9,
    "middle_name": 0.95,
}


def same_email(left: Person, right: Person, weights: Weights) -> Score | None:
    if left.email and left.email == right.email:
        return Score(weights["same_email"], "Same email")
    return None


def same_baylor_id(left: Person, right: Person, weights: Weights) -> Score | None:
    if left.baylor_id and left.baylor_id == right.baylor_id:
        return Score(weights["same_baylor_id"], "Same Baylor ID")
    return None


def same_full_name(left: Person, right: Person, weights: Weights) -> Score | None:
    name = normalize_full_name(left.first_name, left.last_name)
    if not name or name != normalize_full_name(right.first_name, right.last_name):
        return None
    confidence = weights["same_name"]
    if left.phone and left.phone == right.phone:
        confidence += weights["same_name_bonus"]
    office = normalize_text(left.office)
    if office and office == normalize_text(right.office):
        confidence += weights["same_name_bonus"]
    if (
        left.job_title
        and right.job_title
        and normalize_text(left.job_title) != normalize_text(right.job_title)
    ):
        confidence -= weights["job_title_penalty"]
    return Score(round(min(confidence, weights["same_name_cap"]), 4), "Same name")


def name_part_similarity(left: str, right: str, weights: Weights = PERSON_WEIGHTS) -> float:
    """Similarity of two name tokens in [0, 1]; nicknames count as near-equal."""

    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if canonical_first_name(left) == canonical_first_name(right):
        return weights["nickname"]
    if left.startswith(right) or right.startswith(left):
        shorter, longer = sorted((len(left), len(right)))
        return shorter / longer * weights["prefix_factor"]
    return Levenshtein.normalized_similarity(left, right)


def full_name_similarity(left: Person, right: Person, weights: Weights = PERSON_WEIGHTS) -> float:
    left_parts = name_tokens(f"{left.first_name} {left.last_name}")
    right_parts = name_tokens(f"{right.first_name} {right.last_name}")
    if not left_parts or not right_parts:
        return 0.0
    if left_parts == right_parts:
        return 1.0
    if len(left_parts) != len(right_parts):
        if abs(len(left_parts) - len(right_parts)) != 1:
            return 0.0
        longer, shorter = sorted((left_parts, right_parts), key=len, reverse=True)
        if [longer[0], longer[-1]] == shorter:
            return weights["middle_name"]
        return 0.0
    total = sum(
        name_part_similarity(a, b, weights) for a, b in zip(left_parts, right_parts, strict=True)
    )
    return total / len(left_parts)


def similar_name(left: Person, right: Person, weights: Weights) -> Score | None:
    similarity = round(full_name_similarity(left, right, weights), 4)
    if similarity <= 0.0:
        return None
    return Score(similarity, f"Similar names ({similarity:.0%})")


# --- sections ---------------------------------------------------------------

SECTION_WEIGHTS: Final[Weights] = {
    "same_crn": 1.0,
    "same_section": 0.98,
    "same_crn_in_term": 0.99,
    "same_offering": 0.85,
    "same_offering_rooms": 0.05,
    "same_offering_cap": 0.95,
}


def same_course_section_term(left: Section, right: Section, weights: Weights) -> Score | None:
    identity = (left.course_code, left.section, left.term_code)
    if not all(identity) or identity != (right.course_code, right.section, right.term_code):
        return None
    if left.crn and left.crn == right.crn:
        return Score(weights["same_crn"], "Same CRN")
    return Score(weights["same_section"], "Same course/section/semester")


def same_crn_and_term(left: Section, right: Section, weights: Weights) -> Score | None:
    if left.crn and left.term_code and (left.crn, left.term_code) == (
        right.crn,
        right.term_code,
    ):
        return Score(weights["same_crn_in_term"], "Same CRN in term")
    return None


def same_offering(left: Section, right: Section, weights: Weights) -> Score | None:
    if not left.course_code or not left.term_code:
        return None
    if (left.course_code, left.term_code) != (right.course_code, right.term_code):
        return None
    if not left.instructor_ids or set(left.instructor_ids) != set(right.instructor_ids):
        return None
    if not left.meeting_key or left.meeting_key != right.meeting_key:
        return None
    confidence = weights["same_offering"]
    if left.space_ids and set(left.space_ids) == set(right.space_ids):
        confidence += weights["same_offering_rooms"]
    return Score(
        round(min(confidence, weights["same_offering_cap"]), 4),
        "Likely same offering, different section label",
    )


# --- spaces -----------------------------------------------------------------

SPACE_WEIGHTS: Final[Weights] = {
    "same_space_key": 1.0,
    "same_building_number": 0.95,
    "same_name": 0.90,
}


def same_space_key(left: Space, right: Space, weights: Weights) -> Score | None:
    if left.space_key and left.space_key == right.space_key:
        return Score(weights["same_space_key"], "Same space key")
    return None


def same_building_and_number(left: Space, right: Space, weights: Weights) -> Score | None:
    if not left.building_code or left.building_code != right.building_code:
        return None
    number = comparable_space_number(left.space_number)
    if number and number == comparable_space_number(right.space_number):
        return Score(weights["same_building_number"], "Same building and room number")
    return None


def same_room_name(left: Space, right: Space, weights: Weights) -> Score | None:
    name = normalize_text(left.name)
    if name and name == normalize_text(right.name):
        return Score(weights["same_name"], "Same room name")
    return None


PERSON_POLICY: Final = ScoringPolicy(
    entity_type=EntityType.PERSON,
    record_type=Person,
    floor=DEFAULT_FLOOR,
    comparators=(same_email, same_baylor_id, same_full_name, similar_name),
    weights=PERSON_WEIGHTS,
)
SECTION_POLICY: Final = ScoringPolicy(
    entity_type=EntityType.SECTION,
    record_type=Section,
    floor=SECTION_FLOOR,
    comparators=(same_course_section_term, same_crn_and_term, same_offering),
    weights=SECTION_WEIGHTS,
)
SPACE_POLICY: Final = ScoringPolicy(
    entity_type=EntityType.SPACE,
    record_type=Space,
    floor=DEFAULT_FLOOR,
    comparators=(same_space_key, same_building_and_number, same_room_name),
    weights=SPACE_WEIGHTS,
)

type AnyPolicy = ScoringPolicy[Person] | ScoringPolicy[Section] | ScoringPolicy[Space]

DEFAULT_POLICIES: Final[dict[EntityType, AnyPolicy]] = {
    EntityType.PERSON: PERSON_POLICY,
    EntityType.SECTION: SECTION_POLICY,
    EntityType.SPACE: SPACE_POLICY,
}


def score_pair(left: Person | Section | Space, right: Person | Section | Space) -> Score | None:
    """Score two records of the same type with the default policy."""

    if type(left) is not type(right):
        raise ValueError(
            f"Cannot score {type(left).__name__} against {type(right).__name__}"
        )
    policy = DEFAULT_POLICIES[left.entity_type]
    return policy.score(left, right)  # pyright: ignore[reportArgumentType]
