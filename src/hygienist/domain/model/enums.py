"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    """Discriminator for the three reconciled record types."""

    PERSON = "person"
    SECTION = "section"
    SPACE = "space"


class Collection(StrEnum):
    PEOPLE = "people"
    SCHEDULES = "schedules"
    ROOMS = "rooms"
    DEDUPE_EXCLUSIONS = "dedupeExclusions"
    CHANGE_LOG = "changeLog"


COLLECTION_BY_ENTITY_TYPE: dict[EntityType, Collection] = {
    EntityType.PERSON: Collection.PEOPLE,
    EntityType.SECTION: Collection.SCHEDULES,
    EntityType.SPACE: Collection.ROOMS,
}

ENTITY_TYPE_BY_COLLECTION: dict[Collection, EntityType] = {
    collection: entity_type for entity_type, collection in COLLECTION_BY_ENTITY_TYPE.items()
}


class WriteMode(StrEnum):
    """How a put combines with an existing document.

    ``OVERWRITE`` replaces the stored fields, ``MERGE`` creates or shallow-merges,
    ``UPDATE`` shallow-merges into an existing document and fails when it is absent.
    """

    OVERWRITE = "overwrite"
    MERGE = "merge"
    UPDATE = "update"


class ChangeAction(StrEnum):
    UPSERT = "upsert"
    MERGE = "merge"


class ChangeStatus(StrEnum):
    APPLIED = "applied"
    FAILED = "failed"
    BLOCKED = "blocked"


class OrphanKind(StrEnum):
    ORPHANED_SCHEDULE = "orphaned_schedule"
    ORPHANED_SPACE = "orphaned_space"
    ORPHANED_PERSON = "orphaned_person"


class OrphanClass(StrEnum):
    """Reference classification of a person or space relative to a scope."""

    REFERENCED = "referenced"
    SCOPE_ORPHAN = "scope_orphan"
    STRUCTURAL = "structural"


class Severity(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MergeSide(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ConflictPolicy(StrEnum):
    """Tie-break when both merge sides carry a non-empty, different value."""

    PRIMARY_WINS = "primary_wins"
    SECONDARY_WINS = "secondary_wins"
    MOST_RECENT = "most_recent"


class AuditAction(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MERGE = "MERGE"


class LocationType(StrEnum):
    PHYSICAL = "physical"
    VIRTUAL = "virtual"
    NONE = "none"
    UNKNOWN = "unknown"
