"""Async HTTP client for the progress and quiz backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import DecodeFailure, NetworkFailure, ServerError
from .models import ContentCategory

logger = logging.getLogger(__name__)


class ProgressApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` mapping failures onto ``ProgressError``s.

    Transport problems raise :class:`NetworkFailure`, non-2xx answers raise
    :class:`ServerError` and non-JSON bodies raise :class:`DecodeFailure`.
    Empty bodies decode to ``None``. Timeouts are left to the underlying
    client.
    """

    def __init__(self, settings: Settings, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self._base_url = settings.api_base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self._close_client = client is None

    async def __aenter__(self) -> "ProgressApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._close_client:
            await self._client.aclose()

    async def fetch_category_progress(
        self,
        category: ContentCategory,
        user_id: str,
        auth_token: str,
    ) -> Any:
        if category is ContentCategory.QUIZ:
            raise ValueError("Quiz progress is fetched with fetch_quiz_progress().")
        return await self._get_json(f"/progress/{category.endpoint_slug}/{_segment(user_id)}", auth_token=auth_token)

    async def fetch_quiz_progress(self, user_id: str, auth_token: Optional[str] = None) -> Any:
        return await self._get_json(f"/progress/quizprogress/{_segment(user_id)}", auth_token=auth_token)

    async def fetch_quiz_scores(self, user_id: str, auth_token: str) -> Any:
        return await self._get_json(f"/quiz/scores/{_segment(user_id)}", auth_token=auth_token)

    async def fetch_quiz_score(self, user_id: str, auth_token: str, quiz_id: str) -> Any:
        return await self._get_json(
            f"/quiz/scores/{_segment(user_id)}/{_segment(quiz_id)}",
            auth_token=auth_token,
        )

    async def fetch_quiz_catalog(self) -> Any:
        return await self._get_json("/quiz/quizzes")

    async def _get_json(self, path: str, *, auth_token: Optional[str] = None) -> Any:
        url = f"{self._base_url}{path}"
        headers: Dict[str, str] = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        try:
            response = await self._client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise ServerError(
                f"GET {path} returned HTTP {status_code}",
                status_code=status_code,
                server_message=_server_message(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"GET {path} failed: {exc}") from exc

        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeFailure(f"GET {path} returned a body that is not JSON") from exc


def _segment(value: str) -> str:
    return quote(str(value).strip(), safe="")


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


__all__ = ["ProgressApiClient"]
