from __future__ import annotations

from typing import Iterator

import pytest

from learning_progress.cache import SnapshotCache
from learning_progress.config import Settings, get_settings
from learning_progress.models import AggregateSnapshot, CategoryProgress, ContentCategory


@pytest.fixture
def fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_read_progress_environment(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("PROGRESS_API_BASE_URL", "https://api.example.org/")
    monkeypatch.setenv("PROGRESS_TOTAL_DUAS", "12")

    settings = get_settings()

    assert settings.api_base_url == "https://api.example.org/"
    assert settings.category_totals()[ContentCategory.DUA] == 12
    assert settings.category_totals()[ContentCategory.KALMA] == 6
    assert get_settings() is settings


def test_invalid_configuration_is_reported(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("PROGRESS_REQUEST_TIMEOUT_SECONDS", "0")

    with pytest.raises(RuntimeError, match="Invalid progress engine configuration"):
        get_settings()


def test_default_totals() -> None:
    totals = Settings(api_base_url="http://progress.test").category_totals()
    assert totals == {
        ContentCategory.STORY: 10,
        ContentCategory.KALMA: 6,
        ContentCategory.DUA: 10,
        ContentCategory.NAMAZ: 11,
    }


def test_snapshot_cache_returns_copies() -> None:
    cache = SnapshotCache()
    snapshot = AggregateSnapshot(
        generation=3,
        per_category={ContentCategory.STORY: CategoryProgress(count=1, total=10, percentage=10)},
        overall_percentage=10,
    )

    cache.set(" user-1 ", snapshot)
    cached = cache.get("user-1")
    assert cached == snapshot
    assert cached is not snapshot

    cached.per_category[ContentCategory.STORY].count = 9
    assert cache.get("user-1").progress_for(ContentCategory.STORY).count == 1

    cache.invalidate("user-1")
    assert cache.get("user-1") is None
    with pytest.raises(ValueError):
        cache.get("   ")
