"""Per-category completion math."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List

from .models import (
    CategoryProgress,
    CompletedItem,
    ContentCategory,
    ProgressRecord,
    QuizCategoryProgress,
    QuizProgressSummary,
    coerce_int,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percentage(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def compute_progress(completed_count: int, total_count: int) -> CategoryProgress:
    """Return count, total and a percentage clamped to [0, 100].

    Totals are client-side constants and can be stale, so a completed count
    above the total still yields 100.
    """
    completed = max(0, int(completed_count))
    total = max(0, int(total_count))
    percentage = clamp_percentage(completed / total * 100) if total > 0 else 0
    return CategoryProgress(count=completed, total=total, percentage=percentage)


def count_completed(items: Any) -> int:
    """Number of completed items; anything that is not a list counts as none."""
    if isinstance(items, list):
        return len(items)
    return 0


def build_record(category: ContentCategory, payload: Any) -> ProgressRecord:
    if not isinstance(payload, list):
        if payload is not None:
            logger.warning(
                "Expected a list of completed %s items, got %s; treating as empty",
                category.value,
                type(payload).__name__,
            )
        return ProgressRecord(category=category)

    items = []
    for index, raw in enumerate(payload):
        if isinstance(raw, dict):
            items.append(CompletedItem.model_validate(raw))
            continue
        # Still a completed item for counting purposes, just without details.
        logger.warning("Malformed %s progress entry at index %s", category.value, index)
        items.append(CompletedItem(title=raw if isinstance(raw, str) else ""))
    return ProgressRecord(category=category, completed_items=items)


def category_progress(record: ProgressRecord, total_count: int) -> CategoryProgress:
    return compute_progress(count_completed(record.completed_items), total_count)


def overall_percentage(progress_values: Iterable[CategoryProgress]) -> int:
    percentages = [progress.percentage for progress in progress_values]
    if not percentages:
        return 0
    return clamp_percentage(sum(percentages) / len(percentages))


def build_quiz_summary(payload: Any, generation: int = 0) -> QuizProgressSummary:
    """Summarize the server's pre-aggregated quiz totals.

    Missing or malformed fields fall back to zero so a user without any quiz
    history still gets an empty summary.
    """
    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning("Quiz progress payload is %s, expected an object", type(payload).__name__)
        payload = {}

    total = max(0, coerce_int(payload.get("totalQuizzes")))
    attempted = max(0, coerce_int(payload.get("attemptedQuizzes")))

    categories: List[QuizCategoryProgress] = []
    raw_categories = payload.get("categoryProgress")
    if isinstance(raw_categories, list):
        for raw in raw_categories:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed quiz category progress: %r", raw)
                continue
            entry = QuizCategoryProgress.model_validate(raw)
            entry.progress = compute_progress(entry.attempted_quizzes, entry.total_quizzes)
            categories.append(entry)

    return QuizProgressSummary(
        generation=generation,
        total_quizzes=total,
        attempted_quizzes=attempted,
        progress=compute_progress(attempted, total),
        categories=categories,
    )


__all__ = [
    "build_quiz_summary",
    "build_record",
    "category_progress",
    "clamp_percentage",
    "compute_progress",
    "count_completed",
    "overall_percentage",
    "round_half_up",
]
