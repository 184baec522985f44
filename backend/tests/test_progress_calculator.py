from __future__ import annotations

import pytest

from learning_progress.models import CategoryProgress, ContentCategory
from learning_progress.progress_calculator import (
    build_quiz_summary,
    build_record,
    compute_progress,
    count_completed,
    overall_percentage,
)


@pytest.mark.parametrize("total", [0, 1, 6, 10, 11])
@pytest.mark.parametrize("completed", [0, 1, 5, 10, 12, 250])
def test_percentage_stays_within_bounds(completed: int, total: int) -> None:
    progress = compute_progress(completed, total)
    assert 0 <= progress.percentage <= 100


def test_zero_total_yields_zero() -> None:
    assert compute_progress(0, 0).percentage == 0
    assert compute_progress(4, 0).percentage == 0


def test_completed_above_stale_total_clamps_to_100() -> None:
    progress = compute_progress(12, 10)
    assert progress.percentage == 100
    assert progress.count == 12
    assert progress.total == 10


def test_percentage_rounds_half_up() -> None:
    assert compute_progress(1, 8).percentage == 13  # 12.5
    assert compute_progress(1, 6).percentage == 17
    assert compute_progress(5, 11).percentage == 45


def test_negative_inputs_are_treated_as_zero() -> None:
    progress = compute_progress(-3, 10)
    assert progress.count == 0
    assert progress.percentage == 0


def test_count_completed_tolerates_missing_collections() -> None:
    assert count_completed(None) == 0
    assert count_completed({"items": [1, 2]}) == 0
    assert count_completed("oops") == 0
    assert count_completed([{}, {}]) == 2


def test_build_record_decodes_category_specific_fields() -> None:
    record = build_record(
        ContentCategory.DUA,
        [
            {"topic": "Before eating", "topicUrdu": "کھانے سے پہلے", "completionDate": "2024-01-15"},
            {"title": 42, "topic": None},
            "legacy-entry",
        ],
    )

    assert record.completed_count == 3
    first, second, third = record.completed_items
    assert first.display_title == "Before eating"
    assert first.display_title_urdu == "کھانے سے پہلے"
    assert first.completion_date == "2024-01-15"
    assert second.title == ""
    assert third.title == "legacy-entry"


def test_build_record_for_new_user_is_empty() -> None:
    assert build_record(ContentCategory.STORY, None).completed_count == 0
    assert build_record(ContentCategory.STORY, {"message": "no progress"}).completed_count == 0


def test_namaz_items_keep_category_and_dua() -> None:
    record = build_record(ContentCategory.NAMAZ, [{"category": "Fajr", "dua": "Sana", "step": 1}])
    item = record.completed_items[0]
    assert item.category == "Fajr"
    assert item.dua == "Sana"
    assert item.display_title == "Fajr"
    assert item.model_extra == {"step": 1}


def test_overall_percentage_is_mean_of_categories() -> None:
    values = [
        CategoryProgress(count=5, total=10, percentage=50),
        CategoryProgress(count=6, total=6, percentage=100),
        CategoryProgress(count=0, total=10, percentage=0),
        CategoryProgress(count=1, total=11, percentage=9),
    ]
    assert overall_percentage(values) == 40  # 39.75
    assert overall_percentage([]) == 0


def test_quiz_summary_uses_server_totals() -> None:
    summary = build_quiz_summary(
        {
            "totalQuizzes": 8,
            "attemptedQuizzes": "3",
            "categoryProgress": [
                {"category": "Kalmas", "totalQuizzes": 3, "attemptedQuizzes": 2, "questionCompletionPercentage": 40},
                {"category": "Dua", "totalQuizzes": 0, "attemptedQuizzes": 1},
                "bad-entry",
            ],
        },
        generation=4,
    )

    assert summary.generation == 4
    assert summary.total_quizzes == 8
    assert summary.attempted_quizzes == 3
    assert summary.progress.percentage == 38
    assert [entry.category for entry in summary.categories] == ["Kalmas", "Dua"]
    assert summary.categories[0].progress.percentage == 67
    assert summary.categories[0].question_completion_percentage == pytest.approx(40.0)
    assert summary.categories[1].progress.percentage == 0


def test_quiz_summary_defaults_when_payload_missing() -> None:
    summary = build_quiz_summary(None)
    assert summary.total_quizzes == 0
    assert summary.progress.percentage == 0
    assert summary.categories == []
