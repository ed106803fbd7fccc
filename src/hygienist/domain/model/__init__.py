"""Domain model for scheduling records."""

from __future__ import annotations

from .audit import AuditEntry
from .documents import BOOKKEEPING_FIELDS, Fields, StoredDocument
from .enums import (
    COLLECTION_BY_ENTITY_TYPE,
    ENTITY_TYPE_BY_COLLECTION,
    AuditAction,
    ChangeAction,
    ChangeStatus,
    Collection,
    ConflictPolicy,
    EntityType,
    LocationType,
    MergeSide,
    OrphanClass,
    OrphanKind,
    Severity,
    WriteMode,
)
from .locations import ParsedRoom, normalize_term_code, parse_room_label, parse_rooms, term_label
from .records import (
    RECORD_TYPES,
    Meeting,
    Person,
    Record,
    Section,
    Space,
    instructor_ids_of,
    record_from_document,
    room_names_of,
)

__all__ = [
    "BOOKKEEPING_FIELDS",
    "COLLECTION_BY_ENTITY_TYPE",
    "ENTITY_TYPE_BY_COLLECTION",
    "RECORD_TYPES",
    "AuditAction",
    "AuditEntry",
    "ChangeAction",
    "ChangeStatus",
    "Collection",
    "ConflictPolicy",
    "EntityType",
    "Fields",
    "LocationType",
    "Meeting",
    "MergeSide",
    "OrphanClass",
    "OrphanKind",
    "ParsedRoom",
    "Person",
    "Record",
    "Section",
    "Severity",
    "Space",
    "StoredDocument",
    "WriteMode",
    "instructor_ids_of",
    "normalize_term_code",
    "parse_room_label",
    "parse_rooms",
    "record_from_document",
    "room_names_of",
    "term_label",
]
