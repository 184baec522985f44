"""Process-local cache of the last committed progress snapshot per user."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from ..models import AggregateSnapshot


def _normalize_user_id(user_id: str) -> str:
    normalized = str(user_id).strip()
    if not normalized:
        raise ValueError("User id cannot be empty when caching progress snapshots.")
    return normalized


@dataclass
class _SnapshotEntry:
    snapshot: AggregateSnapshot
    cached_at: datetime


class SnapshotCache:
    """In-memory view-state for committed snapshots. Never persisted."""

    def __init__(self) -> None:
        self._entries: Dict[str, _SnapshotEntry] = {}

    def get(self, user_id: str) -> Optional[AggregateSnapshot]:
        entry = self._entries.get(_normalize_user_id(user_id))
        if entry is None:
            return None
        return entry.snapshot.model_copy(deep=True)

    def set(self, user_id: str, snapshot: AggregateSnapshot) -> None:
        self._entries[_normalize_user_id(user_id)] = _SnapshotEntry(
            snapshot=snapshot.model_copy(deep=True),
            cached_at=datetime.now(timezone.utc),
        )

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(_normalize_user_id(user_id), None)

    def clear(self) -> None:
        self._entries.clear()


snapshot_cache = SnapshotCache()

__all__ = ["SnapshotCache", "snapshot_cache"]
