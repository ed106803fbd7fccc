"""Append-only audit entries written after each committed mutation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .enums import AuditAction, Collection


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditEntry:
    action: AuditAction
    entity: str
    collection: Collection
    document_id: str
    after: Mapping[str, Any] | None = None
    before: Mapping[str, Any] | None = None
    origin: str = "hygienist"
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
