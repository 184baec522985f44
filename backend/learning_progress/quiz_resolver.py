"""Join quiz attempts with the quiz catalog and label them "Quiz N".

Score records only carry the catalog's opaque quiz id, while the catalog
groups quizzes by category with free-form bilingual titles. The display
ordinal of a quiz is taken from the first run of digits in its title
("Part 2" -> ``Quiz 2``); titles without digits are numbered in catalog
order. Attempts whose quiz id is missing from the catalog are still shown,
labelled with the raw id.

Categories are matched case-insensitively after trimming whitespace, on
both the catalog and the attempt side.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from .dates import display_date
from .models import (
    QuizAttempt,
    QuizCatalogEntry,
    ResolvedQuizAttempt,
    optional_text,
    text_or_empty,
)
from .telemetry import emit_event

logger = logging.getLogger(__name__)

_DIGIT_RUN = re.compile(r"\d+")
_SCORE_FIELDS = ("score", "percentage", "totalQuestions", "total_questions")


def category_key(value: Any) -> str:
    return text_or_empty(value).strip().casefold()


def first_ordinal(text: Any) -> Optional[int]:
    """Integer value of the first digit run in ``text``; non-strings have none."""
    match = _DIGIT_RUN.search(text_or_empty(text))
    if match is None:
        return None
    return int(match.group())


def quiz_label(ordinal: Any) -> str:
    return f"Quiz {ordinal}"


def title_ordinal(entry: QuizCatalogEntry) -> Optional[int]:
    if entry.ordinal_hint is not None:
        return entry.ordinal_hint
    ordinal = first_ordinal(entry.title_en)
    if ordinal is None:
        ordinal = first_ordinal(entry.title_ur)
    return ordinal


def matches_category(entry: QuizCatalogEntry, category: str) -> bool:
    key = category_key(category)
    if category_key(entry.category) == key:
        return True
    return entry.category_urdu is not None and category_key(entry.category_urdu) == key


def flatten_catalog(payload: Any) -> List[QuizCatalogEntry]:
    """Flatten the grouped ``/quiz/quizzes`` payload in encounter order.

    Groups look like ``{"name": {"en", "ur"}, "quizzes": [...]}``. Entries
    that are already flat (carrying their own ``category``) are accepted too.
    """
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        if payload is not None:
            logger.warning("Quiz catalog payload is %s, expected a list", type(payload).__name__)
        return []

    entries: List[QuizCatalogEntry] = []
    for group in payload:
        if not isinstance(group, dict):
            logger.warning("Skipping malformed quiz catalog group: %r", group)
            continue
        quizzes = group.get("quizzes")
        if isinstance(quizzes, list):
            name_en, name_ur = _group_names(group.get("name"))
            for raw in quizzes:
                entry = _catalog_entry(raw, name_en, name_ur)
                if entry is not None:
                    entries.append(entry)
        elif "quizzes" not in group:
            entry = _catalog_entry(group, None, None)
            if entry is not None:
                entries.append(entry)
    return entries


def parse_attempts(payload: Any) -> List[QuizAttempt]:
    """Decode ``{"scores": [...]}`` (or a bare list) into quiz attempts."""
    raw_scores = payload.get("scores") if isinstance(payload, dict) else payload
    if not isinstance(raw_scores, list):
        if raw_scores is not None:
            logger.warning("Quiz scores payload is %s, expected a list", type(raw_scores).__name__)
        return []

    attempts: List[QuizAttempt] = []
    for index, raw in enumerate(raw_scores):
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed quiz score at index %s", index)
            continue
        attempts.append(QuizAttempt.model_validate(raw))
    return attempts


def parse_attempt(payload: Any) -> Optional[QuizAttempt]:
    """Decode the single score returned for one quiz; ``None`` when there is none."""
    if isinstance(payload, dict) and isinstance(payload.get("score"), dict):
        payload = payload["score"]
    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning("Quiz score payload is %s, expected an object", type(payload).__name__)
        return None
    if not any(key in payload for key in _SCORE_FIELDS):
        return None
    return QuizAttempt.model_validate(payload)


def build_label_index(entries: Sequence[QuizCatalogEntry]) -> Dict[str, str]:
    """Map quiz id to its "Quiz N" label for one category's catalog entries."""
    ordinals = [title_ordinal(entry) for entry in entries]
    claimed: Set[int] = {ordinal for ordinal in ordinals if ordinal is not None}
    labels: Dict[str, str] = {}
    fallback = 1
    for entry, ordinal in zip(entries, ordinals):
        if entry.quiz_id in labels:
            continue
        if ordinal is None:
            while fallback in claimed:
                fallback += 1
            ordinal = fallback
            claimed.add(ordinal)
            fallback += 1
        labels[entry.quiz_id] = quiz_label(ordinal)
    return labels


def resolve(
    catalog: Iterable[QuizCatalogEntry],
    attempts: Iterable[QuizAttempt],
    category: str,
) -> List[ResolvedQuizAttempt]:
    """Label every attempt of ``category`` and order them by quiz ordinal."""
    entries = [entry for entry in catalog if matches_category(entry, category)]
    labels = build_label_index(entries)
    key = category_key(category)

    resolved: List[ResolvedQuizAttempt] = []
    for attempt in attempts:
        if category_key(attempt.category) != key:
            continue
        label = labels.get(attempt.quiz_id)
        matched = label is not None
        if label is None:
            label = quiz_label(attempt.quiz_id)
            logger.warning(
                "Quiz attempt %s in category %s has no catalog match", attempt.quiz_id, attempt.category
            )
            emit_event("quiz_identity_mismatch", quiz_id=attempt.quiz_id, category=attempt.category)
        resolved.append(
            ResolvedQuizAttempt(
                **attempt.model_dump(),
                display_label=label,
                ordinal=first_ordinal(label),
                matched=matched,
                attempt_date_display=display_date(attempt.attempt_date),
            )
        )

    resolved.sort(key=_sort_key)
    return resolved


def _sort_key(attempt: ResolvedQuizAttempt) -> Tuple[bool, int]:
    if attempt.ordinal is None:
        return (True, 0)
    return (False, attempt.ordinal)


def _group_names(name: Any) -> Tuple[Optional[str], Optional[str]]:
    if isinstance(name, dict):
        return optional_text(name.get("en")), optional_text(name.get("ur"))
    return optional_text(name), None


def _catalog_entry(raw: Any, name_en: Optional[str], name_ur: Optional[str]) -> Optional[QuizCatalogEntry]:
    if not isinstance(raw, dict):
        logger.warning("Skipping malformed quiz catalog entry: %r", raw)
        return None
    values = dict(raw)
    if name_en is not None:
        values["category"] = name_en
    if name_ur is not None:
        values["category_urdu"] = name_ur
    try:
        entry = QuizCatalogEntry.model_validate(values)
    except ValidationError as exc:
        logger.warning("Skipping undecodable quiz catalog entry: %s", exc)
        return None
    if not entry.quiz_id:
        logger.warning("Skipping quiz catalog entry without an id")
        return None
    return entry.model_copy(update={"ordinal_hint": title_ordinal(entry)})


__all__ = [
    "build_label_index",
    "category_key",
    "first_ordinal",
    "flatten_catalog",
    "matches_category",
    "parse_attempt",
    "parse_attempts",
    "quiz_label",
    "resolve",
    "title_ordinal",
]
