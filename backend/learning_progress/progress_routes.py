"""REST controller over the progress orchestrator for UI clients."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from .api_client import ProgressApiClient
from .cache import snapshot_cache
from .config import get_settings
from .dates import display_date
from .errors import ProgressAggregationError, ProgressError, ServerError
from .models import CONTENT_CATEGORIES, AggregateSnapshot, QuizProgressSummary, ResolvedQuizAttempt
from .orchestrator import AggregateProgressOrchestrator

router = APIRouter(prefix="/api/progress", tags=["progress"])
logger = logging.getLogger(__name__)

_api_client: Optional[ProgressApiClient] = None
_orchestrators: Dict[str, AggregateProgressOrchestrator] = {}


def get_api_client() -> ProgressApiClient:
    global _api_client
    if _api_client is None:
        _api_client = ProgressApiClient(get_settings())
    return _api_client


async def get_orchestrator(
    user_id: str,
    client: ProgressApiClient = Depends(get_api_client),
) -> AsyncIterator[AggregateProgressOrchestrator]:
    """Share one orchestrator per user while its refreshes are pending.

    Concurrent requests for the same user join the same in-flight refresh.
    Idle orchestrators are dropped; committed snapshots live on in the
    snapshot cache.
    """
    key = user_id.strip()
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User id is required.")
    orchestrator = _orchestrators.get(key)
    if orchestrator is None:
        orchestrator = AggregateProgressOrchestrator(client)
        _orchestrators[key] = orchestrator
    try:
        yield orchestrator
    finally:
        if not orchestrator.is_refreshing and not orchestrator.is_refreshing_quiz:
            if _orchestrators.get(key) is orchestrator:
                del _orchestrators[key]


async def close_api_client() -> None:
    global _api_client
    if _api_client is not None:
        await _api_client.aclose()
        _api_client = None
    _orchestrators.clear()


def reset_orchestrators() -> None:
    _orchestrators.clear()
    snapshot_cache.clear()


def _optional_bearer(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _bearer_token(token: Optional[str] = Depends(_optional_bearer)) -> str:
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token not found.",
        )
    return token


def _upstream_failure(exc: ProgressError) -> HTTPException:
    message = "Failed to fetch progress"
    if isinstance(exc, ServerError) and exc.server_message:
        message = exc.server_message
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"message": message, "retryable": True},
    )


def _snapshot_payload(snapshot: AggregateSnapshot) -> Dict[str, Any]:
    categories: List[Dict[str, Any]] = []
    for category in CONTENT_CATEGORIES:
        progress = snapshot.progress_for(category)
        record = snapshot.records.get(category)
        items = record.completed_items if record is not None else []
        categories.append(
            {
                "category": category.value,
                "count": progress.count,
                "total": progress.total,
                "percentage": progress.percentage,
                "items": [
                    {
                        "title": item.display_title,
                        "title_urdu": item.display_title_urdu,
                        "dua": item.dua,
                        "completion_date": item.completion_date,
                        "completion_date_display": display_date(item.completion_date),
                    }
                    for item in items
                ],
            }
        )
    return {
        "generation": snapshot.generation,
        "generated_at": snapshot.generated_at.isoformat(),
        "overall_percentage": snapshot.overall_percentage,
        "categories": categories,
    }


@router.get("/{user_id}", status_code=status.HTTP_200_OK)
async def read_progress(
    user_id: str,
    refresh: bool = Query(default=True),
    token: str = Depends(_bearer_token),
    orchestrator: AggregateProgressOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if not refresh:
        cached = snapshot_cache.get(user_id)
        if cached is not None:
            return _snapshot_payload(cached)

    try:
        snapshot = await orchestrator.refresh(user_id, token)
    except ProgressAggregationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": exc.user_message,
                "failed_categories": [category.value for category in exc.failed_categories],
                "retryable": exc.retryable,
            },
        ) from exc

    if snapshot is None:
        snapshot = orchestrator.snapshot
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A newer progress refresh is still running.",
        )
    return _snapshot_payload(snapshot)


@router.get("/{user_id}/quiz", response_model=QuizProgressSummary, status_code=status.HTTP_200_OK)
async def read_quiz_progress(
    user_id: str,
    token: Optional[str] = Depends(_optional_bearer),
    orchestrator: AggregateProgressOrchestrator = Depends(get_orchestrator),
) -> QuizProgressSummary:
    try:
        summary = await orchestrator.refresh_quiz_progress(user_id, token)
    except ProgressError as exc:
        raise _upstream_failure(exc) from exc

    if summary is None:
        summary = orchestrator.quiz_summary
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A newer quiz progress refresh is still running.",
        )
    return summary


@router.get(
    "/{user_id}/quiz/{category}/attempts",
    response_model=List[ResolvedQuizAttempt],
    status_code=status.HTTP_200_OK,
)
async def read_quiz_attempts(
    user_id: str,
    category: str,
    token: str = Depends(_bearer_token),
    orchestrator: AggregateProgressOrchestrator = Depends(get_orchestrator),
) -> List[ResolvedQuizAttempt]:
    if not category.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category is required.")
    try:
        return await orchestrator.quiz_attempts(user_id, token, category)
    except ProgressError as exc:
        raise _upstream_failure(exc) from exc


@router.get(
    "/{user_id}/quiz/{category}/attempts/{quiz_id}",
    response_model=ResolvedQuizAttempt,
    status_code=status.HTTP_200_OK,
)
async def read_quiz_score(
    user_id: str,
    category: str,
    quiz_id: str,
    token: str = Depends(_bearer_token),
    orchestrator: AggregateProgressOrchestrator = Depends(get_orchestrator),
) -> ResolvedQuizAttempt:
    if not category.strip() or not quiz_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category and quiz id are required.")
    try:
        attempt = await orchestrator.quiz_score(user_id, token, category, quiz_id)
    except ProgressError as exc:
        raise _upstream_failure(exc) from exc

    if attempt is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"No score found for this quiz in {category.strip()}.", "retryable": True},
        )
    return attempt


__all__ = [
    "close_api_client",
    "get_api_client",
    "get_orchestrator",
    "reset_orchestrators",
    "router",
]
