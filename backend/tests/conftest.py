from __future__ import annotations

from typing import Any, Dict, Iterator, List

import httpx
import pytest

from learning_progress.api_client import ProgressApiClient
from learning_progress.cache import SnapshotCache
from learning_progress.config import Settings
from learning_progress.telemetry import TelemetryEvent, listening

BASE_URL = "http://progress.test"
USER_ID = "user-42"
TOKEN = "secret-token"


def catalog_payload() -> List[Dict[str, Any]]:
    return [
        {
            "name": {"en": "Kalmas", "ur": "کلمے"},
            "quizzes": [
                {"_id": "k-intro", "title": {"en": "Kalma Basics", "ur": "کلمہ"}},
                {"_id": "k-2", "title": {"en": "Kalma Part 2", "ur": "حصہ 2"}},
                {"_id": "k-review", "title": {"en": "Kalma Review", "ur": "جائزہ"}},
            ],
        },
        {
            "name": {"en": "Dua", "ur": "دعائیں"},
            "quizzes": [
                {"_id": "d-1", "title": {"en": "Morning Duas", "ur": "صبح"}},
            ],
        },
    ]


class FakeProgressBackend:
    """Routes keyed by URL path; values are JSON bodies, responses, exceptions or callables."""

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {
            f"/progress/storyprogress/{USER_ID}": [
                {"title": "Prophet Adam", "titleUrdu": "حضرت آدم", "completionDate": "2024-01-15T10:30:00Z"},
                {"title": "Prophet Nuh", "completionDate": "16/01/2024"},
            ],
            f"/progress/kalmaprogress/{USER_ID}": [
                {"title": "First Kalma", "completionDate": "2024-01-17"},
            ],
            f"/progress/duaprogress/{USER_ID}": [
                {"topic": "Before eating", "topicUrdu": "کھانے سے پہلے", "completionDate": "18-01-2024"},
                {"topic": "After eating"},
                {"topic": "Before sleeping"},
            ],
            f"/progress/namazprogress/{USER_ID}": [
                {"category": "Fajr", "dua": "Sana"},
            ],
            f"/progress/quizprogress/{USER_ID}": {
                "totalQuizzes": 8,
                "attemptedQuizzes": 3,
                "categoryProgress": [
                    {"category": "Kalmas", "totalQuizzes": 3, "attemptedQuizzes": 2, "questionCompletionPercentage": 40},
                    {"category": "Dua", "totalQuizzes": 5, "attemptedQuizzes": 1},
                ],
            },
            f"/quiz/scores/{USER_ID}": {
                "scores": [
                    {"quizId": "k-review", "category": "Kalmas", "score": 6, "totalQuestions": 5, "percentage": 60, "date": "2024-02-01T08:00:00Z"},
                    {"quizId": "k-2", "category": "kalmas", "score": 8, "totalQuestions": 5, "percentage": 80, "date": "02/02/2024"},
                    {"quizId": "d-1", "category": "Dua", "score": 10, "totalQuestions": 5, "percentage": 100},
                ]
            },
            f"/quiz/scores/{USER_ID}/k-2": {
                "quizId": "k-2",
                "category": "Kalmas",
                "score": 8,
                "totalQuestions": 5,
                "percentage": 80,
                "date": "02/02/2024",
            },
            "/quiz/quizzes": catalog_payload(),
        }
        self.requests: List[httpx.Request] = []

    def set_route(self, path: str, value: Any) -> None:
        self.routes[path] = value

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Route not found"})
        if isinstance(route, Exception):
            raise route
        if callable(route):
            result = route(request)
            if not isinstance(result, httpx.Response):
                result = await result
            return result
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=BASE_URL, request_timeout_seconds=5)


@pytest.fixture
def fake_backend() -> FakeProgressBackend:
    return FakeProgressBackend()


@pytest.fixture
def api_client(settings: Settings, fake_backend: FakeProgressBackend) -> ProgressApiClient:
    transport = httpx.MockTransport(fake_backend.handler)
    return ProgressApiClient(settings, client=httpx.AsyncClient(transport=transport))


@pytest.fixture
def cache() -> SnapshotCache:
    return SnapshotCache()


@pytest.fixture
def events() -> Iterator[List[TelemetryEvent]]:
    with listening() as collected:
        yield collected
