"""In-memory caches shared across the progress engine."""

from .snapshot_cache import snapshot_cache, SnapshotCache

__all__ = ["snapshot_cache", "SnapshotCache"]
