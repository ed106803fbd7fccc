"""Pure string normalizers shared by record loading, scoring and planning."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Mapping
from typing import Any, Final

BAYLOR_ID_LENGTH: Final[int] = 9

_PAREN_RE = re.compile(r"\s*\([^)]*\)\s*")
_EMBEDDED_CRN_RE = re.compile(r"\((\d{5,6})\)")
_COURSE_CODE_RE = re.compile(r"^([A-Z]+)\s*(\d.*)$")
_LEADING_ZEROS_RE = re.compile(r"^0+(?=\d)")

# Diminutive -> formal first name.
NICKNAMES: Final[Mapping[str, str]] = {
    "bob": "robert",
    "bobby": "robert",
    "rob": "robert",
    "robbie": "robert",
    "bill": "william",
    "billy": "william",
    "will": "william",
    "willie": "william",
    "jim": "james",
    "jimmy": "james",
    "jamie": "james",
    "mike": "michael",
    "mickey": "michael",
    "mick": "michael",
    "dave": "david",
    "davey": "david",
    "steve": "steven",
    "stevie": "steven",
    "chris": "christopher",
    "matt": "matthew",
    "dan": "daniel",
    "danny": "daniel",
    "tom": "thomas",
    "tommy": "thomas",
    "joe": "joseph",
    "joey": "joseph",
    "tony": "anthony",
    "nick": "nicholas",
    "andy": "andrew",
    "alex": "alexander",
    "liz": "elizabeth",
    "beth": "elizabeth",
    "betty": "elizabeth",
    "sue": "susan",
    "susie": "susan",
    "katie": "katherine",
    "kate": "katherine",
    "kathy": "katherine",
    "patty": "patricia",
    "pat": "patricia",
    "trish": "patricia",
}


def clean(value: object) -> str:
    """Return ``value`` as a stripped string; ``None`` and non-scalars become ``""``."""

    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return ""
    return str(value).strip()


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Mapping, list, tuple, set)):
        return len(value) == 0
    return False


def normalize_text(value: object) -> str:
    text = unicodedata.normalize("NFKC", clean(value))
    text = text.casefold()
    text = "".join(ch for ch in text if not unicodedata.category(ch).startswith("P"))
    return " ".join(text.split())


def normalize_email(value: object) -> str:
    return clean(value).lower()


def name_tokens(value: object) -> list[str]:
    """Split a name into normalized tokens, dropping middle initials."""

    tokens = normalize_text(value).split()
    if len(tokens) <= 1:
        return tokens
    return [token for token in tokens if len(token) > 1] or tokens


def normalize_full_name(first: object, last: object) -> str:
    return " ".join(name_tokens(f"{clean(first)} {clean(last)}"))


def split_full_name(value: object) -> tuple[str, str]:
    """Split a display name into ``(first, last)``; ``"Last, First"`` is honoured."""

    text = " ".join(clean(value).split())
    if not text:
        return "", ""
    if "," in text:
        last, _, first = text.partition(",")
        return first.strip(), last.strip()
    first, _, last = text.rpartition(" ")
    if not first:
        return last, ""
    return first, last


def canonical_first_name(value: str) -> str:
    token = value.lower().strip()
    return NICKNAMES.get(token, token)


def digits_only(value: object) -> str:
    return "".join(ch for ch in clean(value) if ch.isdigit())


def normalize_phone(value: object) -> str:
    digits = digits_only(value)
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def normalize_baylor_id(value: object) -> str:
    """Return the 9-digit Baylor ID or ``""`` when the value is not one."""

    digits = digits_only(value)
    return digits if len(digits) == BAYLOR_ID_LENGTH else ""


def normalize_space_number(value: object) -> str:
    return "".join(clean(value).split()).upper()


def comparable_space_number(value: object) -> str:
    """Space number with leading zeros of the numeric part removed ("0101A" -> "101A")."""

    return _LEADING_ZEROS_RE.sub("", normalize_space_number(value))


def normalize_building_code(value: object) -> str:
    return "".join(clean(value).split()).upper()


def build_space_key(building_code: object, space_number: object) -> str:
    code = normalize_building_code(building_code)
    number = normalize_space_number(space_number)
    if not code or not number:
        return ""
    return f"{code}:{number}"


def parse_space_key(value: object) -> tuple[str, str] | None:
    text = clean(value)
    code, sep, number = text.partition(":")
    if not sep:
        return None
    code = normalize_building_code(code)
    number = normalize_space_number(number)
    if not code or not number:
        return None
    return code, number


def normalize_space_key(value: object) -> str:
    parsed = parse_space_key(value)
    if parsed is None:
        return ""
    return f"{parsed[0]}:{parsed[1]}"


def standardize_course_code(value: object) -> str:
    """Upper-case and separate subject from number ("csi1430" -> "CSI 1430")."""

    text = " ".join(clean(value).upper().split())
    match = _COURSE_CODE_RE.match(text)
    if match is None:
        return text
    return f"{match.group(1)} {match.group(2).strip()}"


def normalize_section_number(value: object) -> str:
    """Drop embedded CRNs and trailing words ("01 (33070)" -> "01")."""

    text = _PAREN_RE.sub(" ", clean(value)).strip()
    if not text:
        return ""
    return text.split()[0].upper()


def extract_crn(value: object) -> str:
    match = _EMBEDDED_CRN_RE.search(clean(value))
    return match.group(1) if match else ""


def slugify(value: object) -> str:
    return re.sub(r"[^a-z0-9]+", "_", clean(value).lower()).strip("_")


def unique(values: Iterable[str]) -> tuple[str, ...]:
    """Dedupe non-blank strings while preserving first-seen order."""

    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = clean(value)
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return tuple(result)
