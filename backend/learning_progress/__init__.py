"""Learning progress aggregation and normalization engine."""

from .dates import DateSentinel, display_date, format_display, normalize
from .errors import (
    DecodeFailure,
    NetworkFailure,
    ProgressAggregationError,
    ProgressError,
    ServerError,
)
from .orchestrator import AggregateProgressOrchestrator
from .progress_calculator import compute_progress
from .quiz_resolver import resolve

__all__ = [
    "AggregateProgressOrchestrator",
    "DateSentinel",
    "DecodeFailure",
    "NetworkFailure",
    "ProgressAggregationError",
    "ProgressError",
    "ServerError",
    "compute_progress",
    "display_date",
    "format_display",
    "normalize",
    "resolve",
]
