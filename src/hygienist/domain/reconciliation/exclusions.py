"""Registry of record pairs reviewers declared "not a duplicate"."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from hygienist.domain.ports import ExclusionRecord

from .errors import ValidationError

if TYPE_CHECKING:
    from hygienist.domain.model import EntityType
    from hygienist.domain.ports import ExclusionStore

log = logging.getLogger(__name__)

type PairKey = tuple[str, str]


def pair_key(id_a: str, id_b: str) -> PairKey:
    """Unordered pair as a sorted tuple."""

    if not id_a or not id_b:
        raise ValidationError("Exclusion pairs need two non-empty ids")
    if id_a == id_b:
        raise ValidationError(f"Cannot exclude {id_a!r} from itself")
    low, high = sorted((id_a, id_b))
    return low, high


@dataclass(slots=True)
class ExclusionRegistry:
    store: ExclusionStore

    def is_excluded(self, entity_type: EntityType, id_a: str, id_b: str) -> bool:
        low, high = pair_key(id_a, id_b)
        return self.store.get(entity_type, low, high) is not None

    def mark_excluded(
        self,
        entity_type: EntityType,
        id_a: str,
        id_b: str,
        reason: str = "",
    ) -> ExclusionRecord:
        """Persist the pair; re-marking keeps ``created_at`` and replaces the reason."""

        low, high = pair_key(id_a, id_b)
        existing = self.store.get(entity_type, low, high)
        record = ExclusionRecord(
            entity_type=entity_type,
            id_low=low,
            id_high=high,
            reason=reason,
            created_at=existing.created_at if existing else datetime.now(tz=UTC),
        )
        self.store.save(record)
        log.info("Marked %s pair %s/%s as not duplicate", entity_type, low, high)
        return record

    def excluded_pairs(self, entity_type: EntityType) -> frozenset[PairKey]:
        return frozenset(
            (record.id_low, record.id_high) for record in self.store.list_for(entity_type)
        )
