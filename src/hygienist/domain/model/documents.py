"""Raw stored documents as handed over by a repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from .text import is_empty

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .enums import Collection

type Fields = dict[str, Any]

# Bookkeeping fields that never count towards record completeness.
BOOKKEEPING_FIELDS: Final[frozenset[str]] = frozenset(
    {"id", "createdAt", "updatedAt", "mergedAt", "mergedFrom", "identitySource"}
)


@dataclass(frozen=True, slots=True)
class StoredDocument:
    collection: Collection
    id: str
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def completeness(self) -> int:
        """Number of populated, non-bookkeeping fields."""

        return sum(
            1
            for name, value in self.fields.items()
            if name not in BOOKKEEPING_FIELDS and not is_empty(value)
        )
