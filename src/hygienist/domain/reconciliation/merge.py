"""Merge a duplicate pair into its primary record.

A merge runs in a fixed order, and a failure at any step leaves the secondary
record in place:

1. re-read both documents (a vanished document fails with ``RepositoryError``)
2. merge-write the resolved field set into the primary
3. repoint every citation of the secondary to the primary
4. re-check that nothing still cites the secondary
5. delete the secondary
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

from hygienist.domain.model import (
    COLLECTION_BY_ENTITY_TYPE,
    ENTITY_TYPE_BY_COLLECTION,
    AuditAction,
    ConflictPolicy,
    EntityType,
    MergeSide,
    WriteMode,
    record_from_document,
)
from hygienist.domain.model.text import clean, is_empty
from hygienist.domain.ports import MAX_BATCH_MUTATIONS, PutMutation

from .errors import (
    DocumentNotFoundError,
    ReconciliationError,
    ReferenceIntegrityError,
    ValidationError,
)
from .references import REFERENCE_RULES, reference_tokens
from .writes import PendingWrite, chunked, validate_batch_size

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from hygienist.domain.model import Collection, Fields, StoredDocument

    from .deduplicate import DuplicateCandidate
    from .writes import AuditedWriter

log = logging.getLogger(__name__)

type Overrides = Mapping[str, MergeSide | str]

# Fields never carried over from the secondary record.
SKIPPED_FIELDS: Final[frozenset[str]] = frozenset({"id", "mergedAt", "mergedFrom", "updatedAt"})

UNION_FIELDS: Final[dict[EntityType, frozenset[str]]] = {
    EntityType.PERSON: frozenset({"roles", "programs", "identityKeys"}),
    EntityType.SECTION: frozenset(
        {
            "instructorIds",
            "spaceIds",
            "spaceDisplayNames",
            "roomNames",
            "meetingPatterns",
            "instructorAssignments",
            "identityKeys",
        }
    ),
    EntityType.SPACE: frozenset({"aliases", "features"}),
}
MAX_FIELDS: Final[frozenset[str]] = frozenset({"enrollment", "maxEnrollment", "capacity"})
MAPPING_FIELDS: Final[frozenset[str]] = frozenset({"externalIds"})


def _union_key(value: Any) -> Any:
    if isinstance(value, dict):
        if "personId" in value:
            return ("person", clean(value.get("personId")))
        if "day" in value:
            return (
                "meeting",
                clean(value.get("day")).upper(),
                clean(value.get("startTime") or value.get("start")),
                clean(value.get("endTime") or value.get("end")),
            )
        return tuple(sorted((key, repr(item)) for key, item in value.items()))
    return clean(value) if isinstance(value, str) else repr(value)


def union_values(primary: Any, secondary: Any) -> list[Any]:
    """Order-preserving union of two list values, primary items first."""

    merged: list[Any] = []
    seen: set[Any] = set()
    for value in (primary, secondary):
        items = value if isinstance(value, list) else ([] if is_empty(value) else [value])
        for item in items:
            if is_empty(item):
                continue
            key = _union_key(item)
            if key in seen:
                continue
            seen.add(key)
            merged.append(item)
    return merged


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _max_value(primary: Any, secondary: Any) -> Any:
    """The larger count, as stored; a value that does not parse is never displaced."""

    ours, theirs = _as_number(primary), _as_number(secondary)
    if ours is not None and theirs is not None:
        return secondary if theirs > ours else primary
    return secondary if is_empty(primary) else primary


def _validated_overrides(
    overrides: Overrides | None,
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any],
) -> dict[str, MergeSide]:
    validated: dict[str, MergeSide] = {}
    for name, side in (overrides or {}).items():
        if name not in primary and name not in secondary:
            raise ValidationError(f"Override names unknown field {name!r}")
        try:
            validated[name] = MergeSide(side)
        except ValueError as exc:
            raise ValidationError(f"Override for {name!r} has unknown side {side!r}") from exc
    return validated


def merge_fields(
    primary: Mapping[str, Any],
    secondary: Mapping[str, Any],
    *,
    entity_type: EntityType,
    overrides: Overrides | None = None,
    policy: ConflictPolicy = ConflictPolicy.PRIMARY_WINS,
) -> Fields:
    """Resolve the merged field set of two raw documents.

    Explicit overrides win. Otherwise list fields are unioned, enrollment and
    capacity take the maximum, mappings are combined, and for everything else an
    empty side yields to the other. Two different non-empty values are settled by
    ``policy``.
    """

    sides = _validated_overrides(overrides, primary, secondary)
    secondary_newer = clean(secondary.get("updatedAt")) > clean(primary.get("updatedAt"))
    union_fields = UNION_FIELDS[entity_type]
    merged: Fields = {}

    for name in [*primary, *(key for key in secondary if key not in primary)]:
        if name in SKIPPED_FIELDS:
            continue
        ours, theirs = primary.get(name), secondary.get(name)
        if name in sides:
            merged[name] = theirs if sides[name] is MergeSide.SECONDARY else ours
        elif name in union_fields:
            merged[name] = union_values(ours, theirs)
        elif name in MAX_FIELDS:
            merged[name] = _max_value(ours, theirs)
        elif name in MAPPING_FIELDS and isinstance(ours, dict) and isinstance(theirs, dict):
            combined = {key: value for key, value in theirs.items() if not is_empty(value)}
            combined.update({key: value for key, value in ours.items() if not is_empty(value)})
            merged[name] = combined
        elif is_empty(ours):
            merged[name] = theirs
        elif is_empty(theirs) or ours == theirs:
            merged[name] = ours
        elif policy is ConflictPolicy.SECONDARY_WINS or (
            policy is ConflictPolicy.MOST_RECENT and secondary_newer
        ):
            merged[name] = theirs
        else:
            merged[name] = ours
    return merged


def stamp_merge(
    merged: Fields,
    *,
    primary: Mapping[str, Any],
    secondary_id: str,
    now: datetime | None = None,
) -> Fields:
    timestamp = (now or datetime.now(tz=UTC)).isoformat()
    previous = primary.get("mergedFrom")
    return {
        **merged,
        "mergedAt": timestamp,
        "mergedFrom": union_values(previous if isinstance(previous, list) else [], [secondary_id]),
        "updatedAt": timestamp,
    }


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeOutcome:
    primary_id: str
    secondary_id: str
    success: bool
    error: ReconciliationError | None = None
    references_rewritten: int = 0

    @property
    def message(self) -> str:
        if self.success:
            return f"merged {self.secondary_id} into {self.primary_id}"
        return f"{self.secondary_id} -> {self.primary_id}: {self.error}"


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchSummary:
    succeeded: int
    failed: int
    errors: list[str] = field(default_factory=list["str"])
    outcomes: tuple[MergeOutcome, ...] = ()

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[MergeOutcome]) -> BatchSummary:
        collected = tuple(outcomes)
        return cls(
            succeeded=sum(1 for outcome in collected if outcome.success),
            failed=sum(1 for outcome in collected if not outcome.success),
            errors=[outcome.message for outcome in collected if not outcome.success],
            outcomes=collected,
        )

    def describe(self) -> str:
        text = f"Merged {self.succeeded} of {self.succeeded + self.failed}"
        if self.failed:
            text += f"; {self.failed} failed: " + "; ".join(self.errors)
        return text


@dataclass(slots=True, kw_only=True)
class MergeResolver:
    writer: AuditedWriter
    conflict_policy: ConflictPolicy = ConflictPolicy.PRIMARY_WINS
    batch_size: int = MAX_BATCH_MUTATIONS

    def merge(
        self,
        candidate: DuplicateCandidate,
        overrides: Overrides | None = None,
    ) -> MergeOutcome:
        """Merge one candidate; reconciliation errors are reported on the outcome."""

        return self.merge_ids(
            candidate.entity_type, candidate.primary.id, candidate.secondary.id, overrides
        )

    def merge_ids(
        self,
        entity_type: EntityType,
        primary_id: str,
        secondary_id: str,
        overrides: Overrides | None = None,
    ) -> MergeOutcome:
        try:
            rewritten = self._merge(entity_type, primary_id, secondary_id, overrides)
        except ReconciliationError as exc:
            log.warning(
                "Merge of %s %s into %s failed: %s",
                entity_type,
                secondary_id,
                primary_id,
                exc,
            )
            return MergeOutcome(
                primary_id=primary_id, secondary_id=secondary_id, success=False, error=exc
            )
        log.info(
            "Merged %s %s into %s (%s references rewritten)",
            entity_type,
            secondary_id,
            primary_id,
            rewritten,
        )
        return MergeOutcome(
            primary_id=primary_id,
            secondary_id=secondary_id,
            success=True,
            references_rewritten=rewritten,
        )

    def merge_many(
        self,
        candidates: Sequence[DuplicateCandidate],
        overrides: Mapping[tuple[str, str], Overrides] | None = None,
    ) -> BatchSummary:
        """Merge candidates one by one; a failed pair never stops its siblings."""

        outcomes = [
            self.merge(candidate, (overrides or {}).get(candidate.pair))
            for candidate in candidates
        ]
        summary = BatchSummary.from_outcomes(outcomes)
        log.info(summary.describe())
        return summary

    def _merge(
        self,
        entity_type: EntityType,
        primary_id: str,
        secondary_id: str,
        overrides: Overrides | None,
    ) -> int:
        if primary_id == secondary_id:
            raise ValidationError(f"Cannot merge {primary_id!r} into itself")
        validate_batch_size(self.batch_size)
        collection = COLLECTION_BY_ENTITY_TYPE[entity_type]
        repository = self.writer.repository
        primary_doc = repository.get(collection, primary_id)
        if primary_doc is None:
            raise DocumentNotFoundError(collection, primary_id)
        secondary_doc = repository.get(collection, secondary_id)
        if secondary_doc is None:
            raise DocumentNotFoundError(collection, secondary_id)

        merged = merge_fields(
            primary_doc.fields,
            secondary_doc.fields,
            entity_type=entity_type,
            overrides=overrides,
            policy=self.conflict_policy,
        )
        merged = stamp_merge(merged, primary=primary_doc.fields, secondary_id=secondary_id)
        self.writer.put(
            collection,
            primary_id,
            merged,
            mode=WriteMode.MERGE,
            action=AuditAction.MERGE,
            entity=str(entity_type),
            before=primary_doc.fields,
        )

        replacements = _replacements(entity_type, primary_doc, secondary_doc)
        rewritten = self._rewrite_references(entity_type, replacements)

        remaining = self._count_citations(entity_type, replacements)
        if remaining:
            raise ReferenceIntegrityError(collection, secondary_id, remaining)

        self.writer.delete(
            collection,
            secondary_id,
            entity=str(entity_type),
            before=secondary_doc.fields,
        )
        return rewritten

    def _rewrite_references(self, entity_type: EntityType, replacements: dict[str, str]) -> int:
        if not replacements:
            return 0
        pending: list[PendingWrite] = []
        for rule in REFERENCE_RULES[entity_type]:
            for document in self.writer.repository.list_all(rule.collection):
                changes = rule.rewrite(document.fields, replacements)
                if changes is None:
                    continue
                pending.append(
                    PendingWrite(
                        mutation=PutMutation(
                            collection=rule.collection,
                            document_id=document.id,
                            fields={**changes, "updatedAt": datetime.now(tz=UTC).isoformat()},
                            mode=WriteMode.UPDATE,
                        ),
                        action=AuditAction.UPDATE,
                        entity=_entity_label(rule.collection),
                        before={name: document.fields.get(name) for name in changes},
                    )
                )
        for chunk in chunked(pending, self.batch_size):
            self.writer.commit(chunk)
        return len(pending)

    def _count_citations(self, entity_type: EntityType, replacements: dict[str, str]) -> int:
        if not replacements:
            return 0
        return sum(
            1
            for rule in REFERENCE_RULES[entity_type]
            for document in self.writer.repository.list_all(rule.collection)
            if rule.rewrite(document.fields, replacements) is not None
        )


def _replacements(
    entity_type: EntityType,
    primary: StoredDocument,
    secondary: StoredDocument,
) -> dict[str, str]:
    """Map every token citing the secondary to the token that should replace it."""

    if not REFERENCE_RULES[entity_type]:
        return {}
    primary_record = record_from_document(entity_type, primary)
    secondary_record = record_from_document(entity_type, secondary)
    replacements = {secondary.id: primary.id}
    primary_tokens = reference_tokens(primary_record)
    for token in reference_tokens(secondary_record) - {secondary.id}:
        if token in primary_tokens:
            # Shared space keys keep resolving to the survivor.
            continue
        replacements[token] = getattr(primary_record, "space_key", "") or primary.id
    return replacements


def _entity_label(collection: Collection) -> str:
    return str(ENTITY_TYPE_BY_COLLECTION[collection])
