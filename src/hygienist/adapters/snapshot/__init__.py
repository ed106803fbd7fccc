"""JSON snapshot import and export."""

from __future__ import annotations

from .loader import (
    LoadResult,
    dump_snapshot,
    load_snapshot,
    load_snapshot_file,
    parse_snapshot,
    read_snapshot,
)
from .schema import SnapshotDocument, SnapshotPayload

__all__ = [
    "LoadResult",
    "SnapshotDocument",
    "SnapshotPayload",
    "dump_snapshot",
    "load_snapshot",
    "load_snapshot_file",
    "parse_snapshot",
    "read_snapshot",
]
