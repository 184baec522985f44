"""Progress, quiz catalog and snapshot models.

Payloads from the progress backend are loosely structured JSON (camelCase
keys, missing fields, numbers sent as strings). The ``mode="before"``
validators below accept those payloads as well as snake_case keyword
construction, so decoding problems on individual fields degrade to defaults
instead of failing the whole record.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ContentCategory(str, Enum):
    STORY = "Story"
    KALMA = "Kalma"
    DUA = "Dua"
    NAMAZ = "Namaz"
    QUIZ = "Quiz"

    @property
    def endpoint_slug(self) -> str:
        return f"{self.value.lower()}progress"


# Categories that contribute to the overall percentage, in fetch order.
CONTENT_CATEGORIES: Tuple[ContentCategory, ...] = (
    ContentCategory.STORY,
    ContentCategory.KALMA,
    ContentCategory.DUA,
    ContentCategory.NAMAZ,
)


def text_or_empty(value: Any) -> str:
    """Return ``value`` when it is a string, otherwise an empty string."""
    return value if isinstance(value, str) else ""


def optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def identifier_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def coerce_int(value: Any, default: int = 0) -> int:
    number = coerce_float(value, float(default))
    return int(number)


def coerce_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _pick(values: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in values and values[key] is not None:
            return values[key]
    return None


class CategoryDefinition(BaseModel):
    """A content vertical and the number of items it contains."""

    model_config = ConfigDict(frozen=True)

    key: ContentCategory
    total_population: int = Field(ge=0)


class CompletedItem(BaseModel):
    """One finished story, kalma, dua or namaz step."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    title_urdu: Optional[str] = None
    completion_date: Optional[str] = None
    topic: Optional[str] = None
    topic_urdu: Optional[str] = None
    category: Optional[str] = None
    dua: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        normalized = {
            key: value
            for key, value in values.items()
            if key not in {"titleUrdu", "completionDate", "topicUrdu"}
        }
        normalized["title"] = text_or_empty(values.get("title"))
        normalized["title_urdu"] = optional_text(_pick(values, "title_urdu", "titleUrdu"))
        normalized["completion_date"] = optional_text(_pick(values, "completion_date", "completionDate"))
        normalized["topic"] = optional_text(values.get("topic"))
        normalized["topic_urdu"] = optional_text(_pick(values, "topic_urdu", "topicUrdu"))
        normalized["category"] = optional_text(values.get("category"))
        normalized["dua"] = optional_text(values.get("dua"))
        return normalized

    @property
    def display_title(self) -> str:
        return self.title or self.topic or self.category or ""

    @property
    def display_title_urdu(self) -> Optional[str]:
        return self.title_urdu or self.topic_urdu


class ProgressRecord(BaseModel):
    category: ContentCategory
    completed_items: List[CompletedItem] = Field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return len(self.completed_items)


class CategoryProgress(BaseModel):
    count: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)


class QuizCatalogEntry(BaseModel):
    """A quiz listed in the catalog, flattened out of its category group."""

    quiz_id: str
    category: str = ""
    category_urdu: Optional[str] = None
    title_en: str = ""
    title_ur: str = ""
    ordinal_hint: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        normalized = dict(values)
        normalized["quiz_id"] = identifier_text(_pick(values, "quiz_id", "quizId", "_id", "id"))

        category = values.get("category")
        if isinstance(category, dict):
            normalized["category"] = text_or_empty(category.get("en"))
            normalized.setdefault("category_urdu", optional_text(category.get("ur")))
        else:
            normalized["category"] = text_or_empty(category)
        normalized["category_urdu"] = optional_text(normalized.get("category_urdu"))

        title = values.get("title")
        if isinstance(title, dict):
            title_en, title_ur = title.get("en"), title.get("ur")
        else:
            title_en, title_ur = title, None
        normalized["title_en"] = text_or_empty(_pick(values, "title_en") or title_en)
        normalized["title_ur"] = text_or_empty(_pick(values, "title_ur") or title_ur)
        return normalized


class QuizAttempt(BaseModel):
    """A user's recorded score for one quiz."""

    quiz_id: str = ""
    category: str = ""
    score: int = 0
    total_questions: int = 0
    percentage: float = 0.0
    attempt_date: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        normalized = dict(values)
        normalized["quiz_id"] = identifier_text(_pick(values, "quiz_id", "quizId", "_id"))
        normalized["category"] = text_or_empty(values.get("category")).strip()
        normalized["score"] = coerce_int(values.get("score"))
        normalized["total_questions"] = coerce_int(_pick(values, "total_questions", "totalQuestions"))
        normalized["percentage"] = coerce_float(values.get("percentage"))
        normalized["attempt_date"] = optional_text(_pick(values, "attempt_date", "attemptDate", "date"))
        return normalized


class ResolvedQuizAttempt(QuizAttempt):
    """Quiz attempt joined with the catalog and labelled for display."""

    display_label: str
    ordinal: Optional[int] = None
    matched: bool = True
    attempt_date_display: str = ""


class QuizCategoryProgress(BaseModel):
    """Server-side pre-aggregated quiz totals for one quiz category."""

    category: str = ""
    total_quizzes: int = 0
    attempted_quizzes: int = 0
    question_completion_percentage: float = 0.0
    progress: CategoryProgress = Field(default_factory=CategoryProgress)

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        normalized = dict(values)
        normalized["category"] = text_or_empty(values.get("category"))
        normalized["total_quizzes"] = max(0, coerce_int(_pick(values, "total_quizzes", "totalQuizzes")))
        normalized["attempted_quizzes"] = max(0, coerce_int(_pick(values, "attempted_quizzes", "attemptedQuizzes")))
        normalized["question_completion_percentage"] = coerce_float(
            _pick(values, "question_completion_percentage", "questionCompletionPercentage")
        )
        return normalized


class QuizProgressSummary(BaseModel):
    generation: int = 0
    total_quizzes: int = 0
    attempted_quizzes: int = 0
    progress: CategoryProgress = Field(default_factory=CategoryProgress)
    categories: List[QuizCategoryProgress] = Field(default_factory=list)


class AggregateSnapshot(BaseModel):
    """Point-in-time progress across the four content categories.

    Quiz progress is tracked by :class:`QuizProgressSummary` and is not part
    of ``overall_percentage``.
    """

    generation: int
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    per_category: Dict[ContentCategory, CategoryProgress] = Field(default_factory=dict)
    records: Dict[ContentCategory, ProgressRecord] = Field(default_factory=dict)
    overall_percentage: int = Field(default=0, ge=0, le=100)

    def progress_for(self, category: ContentCategory) -> CategoryProgress:
        return self.per_category.get(category, CategoryProgress())


__all__ = [
    "AggregateSnapshot",
    "CONTENT_CATEGORIES",
    "CategoryDefinition",
    "CategoryProgress",
    "CompletedItem",
    "ContentCategory",
    "ProgressRecord",
    "QuizAttempt",
    "QuizCatalogEntry",
    "QuizCategoryProgress",
    "QuizProgressSummary",
    "ResolvedQuizAttempt",
    "coerce_float",
    "coerce_int",
    "identifier_text",
    "optional_text",
    "text_or_empty",
]
