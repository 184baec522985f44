"""Refresh orchestration for the progress overview and quiz views.

A refresh fetches the four content categories concurrently and only builds a
snapshot once every request has settled. If any of them fails nothing is
committed and the caller receives a single :class:`ProgressAggregationError`.

Only one fan-out runs per set of credentials: a refresh requested while an
identical one is pending (initial load racing pull-to-refresh) awaits the
pending result. A refresh with different credentials takes a new generation
number. Results are committed only while their number is still the latest
one issued, so a slow response from an older refresh can never overwrite a
newer snapshot. Superseded calls return ``None``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Tuple

from .api_client import ProgressApiClient
from .cache import SnapshotCache, snapshot_cache
from .config import Settings, get_settings
from .errors import DecodeFailure, ProgressAggregationError, ProgressError
from .models import (
    CONTENT_CATEGORIES,
    AggregateSnapshot,
    CategoryDefinition,
    CategoryProgress,
    ContentCategory,
    ProgressRecord,
    QuizProgressSummary,
    ResolvedQuizAttempt,
)
from .progress_calculator import build_quiz_summary, build_record, category_progress, overall_percentage
from .quiz_resolver import flatten_catalog, parse_attempt, parse_attempts, resolve
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class AggregateProgressOrchestrator:
    """Owns the committed progress view-state for one screen or user."""

    def __init__(
        self,
        client: ProgressApiClient,
        *,
        settings: Optional[Settings] = None,
        totals: Optional[Mapping[ContentCategory, int]] = None,
        cache: Optional[SnapshotCache] = None,
    ) -> None:
        if totals is None:
            totals = (settings or get_settings()).category_totals()
        self._client = client
        self._definitions: Dict[ContentCategory, CategoryDefinition] = {
            category: CategoryDefinition(key=category, total_population=totals.get(category, 0))
            for category in CONTENT_CATEGORIES
        }
        self._cache = cache if cache is not None else snapshot_cache
        self._generation = 0
        self._quiz_generation = 0
        self._in_flight = False
        self._quiz_in_flight = False
        self._snapshot: Optional[AggregateSnapshot] = None
        self._quiz_summary: Optional[QuizProgressSummary] = None
        self._last_error: Optional[ProgressError] = None
        self._pending: Optional["asyncio.Future[Optional[AggregateSnapshot]]"] = None
        self._pending_key: Optional[Tuple[str, str]] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight

    @property
    def is_refreshing_quiz(self) -> bool:
        return self._quiz_in_flight

    @property
    def snapshot(self) -> Optional[AggregateSnapshot]:
        return self._snapshot

    @property
    def quiz_summary(self) -> Optional[QuizProgressSummary]:
        return self._quiz_summary

    @property
    def last_error(self) -> Optional[ProgressError]:
        return self._last_error

    async def refresh(self, user_id: str, auth_token: str) -> Optional[AggregateSnapshot]:
        """Fetch and commit a new snapshot for ``user_id``.

        A call made while a refresh with the same credentials is pending joins
        that refresh instead of fanning out again. Raises
        :class:`ProgressAggregationError` when any category fetch fails and
        this refresh is still the latest one.
        """
        if not str(user_id).strip():
            raise ValueError("User id is required to refresh progress.")

        pending = self._pending
        if pending is not None and not pending.done() and self._pending_key == (user_id, auth_token):
            logger.debug("Joining in-flight progress refresh for user %s", user_id)
            return await asyncio.shield(pending)

        self._generation += 1
        generation = self._generation
        self._in_flight = True
        task = asyncio.ensure_future(self._run_refresh(generation, user_id, auth_token))
        self._pending = task
        self._pending_key = (user_id, auth_token)
        return await asyncio.shield(task)

    async def _run_refresh(
        self,
        generation: int,
        user_id: str,
        auth_token: str,
    ) -> Optional[AggregateSnapshot]:
        try:
            results = await asyncio.gather(
                *(self._fetch_record(category, user_id, auth_token) for category in CONTENT_CATEGORIES),
                return_exceptions=True,
            )
        finally:
            if generation == self._generation:
                self._in_flight = False
                self._pending = None
                self._pending_key = None

        if generation != self._generation:
            logger.info(
                "Discarding stale progress refresh (generation=%s, latest=%s)",
                generation,
                self._generation,
            )
            emit_event("progress_refresh", status="stale", user_id=user_id, generation=generation)
            return None

        records: Dict[ContentCategory, ProgressRecord] = {}
        failures: Dict[ContentCategory, ProgressError] = {}
        for category, result in zip(CONTENT_CATEGORIES, results):
            if isinstance(result, ProgressError):
                failures[category] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                records[category] = result

        if failures:
            error = ProgressAggregationError(
                failures,
                retry=functools.partial(self.refresh, user_id, auth_token),
            )
            self._cache.invalidate(user_id)
            self._snapshot = None
            self._last_error = error
            logger.warning(
                "Progress refresh failed for user %s: %s",
                user_id,
                "; ".join(f"{category.value}: {exc}" for category, exc in failures.items()),
            )
            emit_event(
                "progress_refresh",
                status="failed",
                user_id=user_id,
                generation=generation,
                failed_categories=[category.value for category in failures],
            )
            raise error

        snapshot = self._build_snapshot(generation, records)
        self._cache.set(user_id, snapshot)
        self._snapshot = snapshot
        self._last_error = None
        emit_event(
            "progress_refresh",
            status="success",
            user_id=user_id,
            generation=generation,
            overall_percentage=snapshot.overall_percentage,
        )
        return snapshot

    async def refresh_quiz_progress(
        self,
        user_id: str,
        auth_token: Optional[str] = None,
    ) -> Optional[QuizProgressSummary]:
        """Refresh the quiz summary from the server's pre-aggregated totals."""
        self._quiz_generation += 1
        generation = self._quiz_generation
        self._quiz_in_flight = True
        try:
            payload = await self._recover_decode(
                self._client.fetch_quiz_progress(user_id, auth_token),
                "quiz progress",
            )
        except ProgressError as exc:
            if generation != self._quiz_generation:
                return None
            logger.warning("Quiz progress refresh failed for user %s: %s", user_id, exc)
            emit_event("quiz_progress_refresh", status="failed", user_id=user_id, generation=generation)
            raise
        finally:
            if generation == self._quiz_generation:
                self._quiz_in_flight = False

        if generation != self._quiz_generation:
            logger.info("Discarding stale quiz progress refresh (generation=%s)", generation)
            return None

        summary = build_quiz_summary(payload, generation)
        self._quiz_summary = summary
        emit_event(
            "quiz_progress_refresh",
            status="success",
            user_id=user_id,
            generation=generation,
            percentage=summary.progress.percentage,
        )
        return summary

    async def quiz_attempts(
        self,
        user_id: str,
        auth_token: str,
        category: str,
    ) -> List[ResolvedQuizAttempt]:
        """Resolve a user's attempts in one quiz category against the catalog."""
        scores_payload, catalog_payload = await asyncio.gather(
            self._recover_decode(self._client.fetch_quiz_scores(user_id, auth_token), "quiz scores"),
            self._recover_decode(self._client.fetch_quiz_catalog(), "quiz catalog"),
        )
        return resolve(flatten_catalog(catalog_payload), parse_attempts(scores_payload), category)

    async def quiz_score(
        self,
        user_id: str,
        auth_token: str,
        category: str,
        quiz_id: str,
    ) -> Optional[ResolvedQuizAttempt]:
        """Fetch the user's score for one quiz, labelled through the catalog.

        Returns ``None`` when the user has no score for that quiz.
        """
        score_payload, catalog_payload = await asyncio.gather(
            self._recover_decode(self._client.fetch_quiz_score(user_id, auth_token, quiz_id), "quiz score"),
            self._recover_decode(self._client.fetch_quiz_catalog(), "quiz catalog"),
        )
        attempt = parse_attempt(score_payload)
        if attempt is None:
            logger.info("No score for quiz %s of user %s", quiz_id, user_id)
            return None

        # The single-score payload may omit the identifiers the request already carries.
        defaults: Dict[str, Any] = {}
        if not attempt.quiz_id:
            defaults["quiz_id"] = quiz_id.strip()
        if not attempt.category:
            defaults["category"] = category.strip()
        if defaults:
            attempt = attempt.model_copy(update=defaults)

        resolved = resolve(flatten_catalog(catalog_payload), [attempt], attempt.category)
        return resolved[0]

    async def _fetch_record(
        self,
        category: ContentCategory,
        user_id: str,
        auth_token: str,
    ) -> ProgressRecord:
        payload = await self._recover_decode(
            self._client.fetch_category_progress(category, user_id, auth_token),
            f"{category.value} progress",
        )
        return build_record(category, payload)

    async def _recover_decode(self, request: Awaitable[Any], label: str) -> Any:
        try:
            return await request
        except DecodeFailure as exc:
            logger.warning("Treating undecodable %s response as empty: %s", label, exc)
            emit_event("decode_failure", source=label)
            return None

    def _build_snapshot(
        self,
        generation: int,
        records: Dict[ContentCategory, ProgressRecord],
    ) -> AggregateSnapshot:
        per_category: Dict[ContentCategory, CategoryProgress] = {
            category: category_progress(records[category], self._definitions[category].total_population)
            for category in CONTENT_CATEGORIES
        }
        return AggregateSnapshot(
            generation=generation,
            per_category=per_category,
            records=records,
            overall_percentage=overall_percentage(per_category.values()),
        )


__all__ = ["AggregateProgressOrchestrator"]
