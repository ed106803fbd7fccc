"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    MAX_BATCH_MUTATIONS,
    ChangeLog,
    DeleteMutation,
    DocumentRepository,
    ExclusionRecord,
    ExclusionStore,
    Mutation,
    PutMutation,
)

__all__ = [
    "MAX_BATCH_MUTATIONS",
    "ChangeLog",
    "DeleteMutation",
    "DocumentRepository",
    "ExclusionRecord",
    "ExclusionStore",
    "Mutation",
    "PutMutation",
]
