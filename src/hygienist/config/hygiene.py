"""Tuning knobs for duplicate detection, merging and plan application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from hygienist.domain.model import ConflictPolicy
from hygienist.domain.ports import MAX_BATCH_MUTATIONS

from .env import optional_env_float, optional_env_int
from .errors import ConfigurationError

MAX_BATCH_SIZE: Final[int] = MAX_BATCH_MUTATIONS
DEFAULT_FLOOR: Final[float] = 0.70
DEFAULT_SECTION_FLOOR: Final[float] = 0.90
DEFAULT_ORIGIN: Final[str] = "hygienist"


@dataclass(frozen=True, slots=True, kw_only=True)
class HygieneConfig:
    person_floor: float = DEFAULT_FLOOR
    section_floor: float = DEFAULT_SECTION_FLOOR
    space_floor: float = DEFAULT_FLOOR
    batch_size: int = MAX_BATCH_SIZE
    conflict_policy: ConflictPolicy = ConflictPolicy.PRIMARY_WINS
    origin: str = DEFAULT_ORIGIN

    def __post_init__(self) -> None:
        for name in ("person_floor", "section_floor", "space_floor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"batch_size must be within 1..{MAX_BATCH_SIZE}, got {self.batch_size}"
            )
        if not self.origin.strip():
            raise ConfigurationError("origin must not be blank")


def _conflict_policy_from_env() -> ConflictPolicy:
    raw = os.getenv("HYGIENIST_CONFLICT_POLICY")
    if raw is None or not raw.strip():
        return ConflictPolicy.PRIMARY_WINS
    try:
        return ConflictPolicy(raw.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in ConflictPolicy)
        raise ConfigurationError(
            f"HYGIENIST_CONFLICT_POLICY must be one of: {allowed}; got {raw!r}"
        ) from exc


def get_hygiene_config() -> HygieneConfig:
    origin = os.getenv("HYGIENIST_ORIGIN")
    return HygieneConfig(
        person_floor=optional_env_float("HYGIENIST_PERSON_FLOOR", DEFAULT_FLOOR),
        section_floor=optional_env_float("HYGIENIST_SECTION_FLOOR", DEFAULT_SECTION_FLOOR),
        space_floor=optional_env_float("HYGIENIST_SPACE_FLOOR", DEFAULT_FLOOR),
        batch_size=optional_env_int("HYGIENIST_BATCH_SIZE", MAX_BATCH_SIZE),
        conflict_policy=_conflict_policy_from_env(),
        origin=origin.strip() if origin and origin.strip() else DEFAULT_ORIGIN,
    )
