"""Term codes and room-label parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .enums import LocationType
from .text import build_space_key, clean, normalize_space_number, slugify

if TYPE_CHECKING:
    from collections.abc import Mapping

SEASON_BY_CODE: Final[Mapping[str, str]] = {
    "10": "Winter",
    "30": "Fall",
    "40": "Spring",
    "50": "Summer",
}
_CODE_BY_SEASON: Final[Mapping[str, str]] = {
    season.lower(): code for code, season in SEASON_BY_CODE.items()
}
TWO_DIGIT_YEAR_BASE: Final[int] = 2000

_TERM_CODE_RE = re.compile(r"^\d{6}$")
_TERM_LABEL_RE = re.compile(r"^([A-Za-z]+)[\s-]*(\d{2}|\d{4})$")

_VIRTUAL_PATTERNS: Final = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bonline\b",
        r"\bzoom\b",
        r"\bvirtual\b",
        r"^asynchronous$",
        r"^remote$",
    )
)
_NO_ROOM_PATTERNS: Final = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^tba$",
        r"^to\s+be\s+(announced|assigned)$",
        r"^no\s+room(\s+needed)?$",
        r"^\(?none\s+assigned\)?$",
        r"^n/?a$",
        r"^general\s+assignment",
        r"^off\s+campus$",
        r"^arranged$",
    )
)
_MULTI_ROOM_SPLIT_RE = re.compile(r"\s*[;,\n]\s*|\s*/\s*(?=\D)|\s+and\s+", re.IGNORECASE)
_DECIMAL_NUMBER_RE = re.compile(r"(\d{2,4}\.\d{1,3}[A-Za-z]?)\s*$")
_SIMPLE_NUMBER_RE = re.compile(r"(\d{2,4}[A-Za-z]?(?:-[A-Za-z])?)\s*$")
_TRAILING_TOKEN_RE = re.compile(r"([\w./-]+)\s*$")


def normalize_term_code(value: object) -> str:
    """Return a six digit term code ("Fall 2025" -> "202530") or ``""``."""

    text = clean(value)
    if not text:
        return ""
    if _TERM_CODE_RE.match(text):
        return text
    match = _TERM_LABEL_RE.match(text)
    if match is None:
        return ""
    code = _CODE_BY_SEASON.get(match.group(1).lower())
    if code is None:
        return ""
    year_token = match.group(2)
    year = int(year_token) + TWO_DIGIT_YEAR_BASE if len(year_token) == 2 else int(year_token)
    return f"{year}{code}"


def term_label(term_code: str) -> str:
    if not _TERM_CODE_RE.match(term_code):
        return ""
    season = SEASON_BY_CODE.get(term_code[4:])
    if season is None:
        return ""
    return f"{season} {term_code[:4]}"


def detect_location_type(value: object) -> LocationType:
    text = clean(value)
    if not text:
        return LocationType.NONE
    if any(pattern.search(text) for pattern in _VIRTUAL_PATTERNS):
        return LocationType.VIRTUAL
    if any(pattern.search(text) for pattern in _NO_ROOM_PATTERNS):
        return LocationType.NONE
    return LocationType.PHYSICAL


@dataclass(frozen=True, slots=True)
class ParsedRoom:
    raw: str
    building_code: str
    building_name: str
    space_number: str

    @property
    def space_key(self) -> str:
        return build_space_key(self.building_code, self.space_number)

    @property
    def display_name(self) -> str:
        return f"{self.building_name} {self.space_number}".strip()


def extract_space_number(label: str) -> str:
    text = " ".join(label.split())
    if not text:
        return ""
    if re.fullmatch(r"\d+[A-Za-z]?", text):
        return normalize_space_number(text)
    for pattern in (_DECIMAL_NUMBER_RE, _SIMPLE_NUMBER_RE):
        match = pattern.search(text)
        if match:
            return normalize_space_number(match.group(1))
    match = _TRAILING_TOKEN_RE.search(text)
    if match and any(ch.isdigit() for ch in match.group(1)):
        return normalize_space_number(match.group(1))
    return ""


def parse_room_label(
    label: object,
    buildings: Mapping[str, str] | None = None,
) -> ParsedRoom | None:
    """Parse one physical room label such as ``"Goebel Building 101"``.

    ``buildings`` maps lower-cased building names/aliases to building codes; known
    names win over the fallback of treating the words before the number as the
    building name. Returns ``None`` for virtual, no-room or unparseable labels.
    """

    raw = clean(label)
    if detect_location_type(raw) is not LocationType.PHYSICAL:
        return None
    space_number = extract_space_number(raw)
    if not space_number:
        return None

    without_parens = " ".join(re.sub(r"\([^)]*\)", " ", raw).split())
    lowered = without_parens.lower()
    for alias in sorted(buildings or {}, key=len, reverse=True):
        if alias and lowered.startswith(alias):
            name = without_parens[: len(alias)].strip()
            return ParsedRoom(
                raw=raw,
                building_code=(buildings or {})[alias],
                building_name=name,
                space_number=space_number,
            )

    words: list[str] = []
    for word in without_parens.split():
        if any(ch.isdigit() for ch in word):
            break
        words.append(word)
    building_name = " ".join(words)
    if not building_name:
        return None
    return ParsedRoom(
        raw=raw,
        building_code=slugify(building_name).upper(),
        building_name=building_name,
        space_number=space_number,
    )


def _expand_shared_numbers(label: str) -> list[str]:
    """``"Goebel 101/109"`` -> ``["Goebel 101", "Goebel 109"]``."""

    if "/" not in label:
        return [label]
    first_digit = next((index for index, ch in enumerate(label) if ch.isdigit()), -1)
    if first_digit == -1:
        return [label]
    prefix = label[:first_digit].strip()
    tokens = [token.strip() for token in label[first_digit:].split("/") if token.strip()]
    if len(tokens) < 2 or not all(any(ch.isdigit() for ch in token) for token in tokens):
        return [label]
    return [f"{prefix} {token}".strip() for token in tokens]


def split_room_labels(value: object) -> list[str]:
    text = clean(value)
    if not text:
        return []
    parts: list[str] = []
    for part in _MULTI_ROOM_SPLIT_RE.split(text):
        if part and part.strip():
            parts.extend(_expand_shared_numbers(part.strip()))
    return parts


def parse_rooms(
    value: object,
    buildings: Mapping[str, str] | None = None,
) -> tuple[LocationType, list[ParsedRoom]]:
    """Parse a possibly multi-room string into its physical rooms."""

    location_type = detect_location_type(value)
    if location_type is not LocationType.PHYSICAL:
        return location_type, []
    rooms = [
        parsed
        for part in split_room_labels(value)
        if (parsed := parse_room_label(part, buildings)) is not None
    ]
    return (LocationType.PHYSICAL if rooms else LocationType.UNKNOWN), rooms
