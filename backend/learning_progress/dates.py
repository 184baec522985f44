"""Normalization of the date strings found in progress and quiz payloads.

Completion and attempt dates arrive in several encodings depending on which
backend path wrote them: ISO-8601 timestamps, ``DD/MM/YYYY``, ``YYYY-MM-DD``
and ``DD-MM-YYYY``. :func:`normalize` maps all of them to a calendar date or
to a :class:`DateSentinel`, and never raises.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

_MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_GENERIC_FORMATS = (
    "%Y.%m.%d",
    "%d.%m.%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%a %b %d %Y",
)

_FOUR_DIGITS = re.compile(r"^\d{4}$")


class DateSentinel(str, Enum):
    NO_DATE = "No Date"
    INVALID = "Invalid Date"


NormalizedDate = Union[date, DateSentinel]


def normalize(raw: Any) -> NormalizedDate:
    """Parse ``raw`` into a calendar date, or return a sentinel."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if raw is None:
        return DateSentinel.NO_DATE
    if not isinstance(raw, str):
        logger.debug("Unparseable date value of type %s", type(raw).__name__)
        return DateSentinel.INVALID

    text = raw.strip()
    if not text:
        return DateSentinel.NO_DATE

    parsed = _parse(text)
    if parsed is None:
        logger.debug("Unparseable date string %r", raw)
        return DateSentinel.INVALID
    return parsed


def format_display(value: NormalizedDate) -> str:
    """Render a normalized date as ``"{short month} {day}, {year}"``."""
    if isinstance(value, DateSentinel):
        return value.value
    return f"{_MONTH_ABBREVIATIONS[value.month - 1]} {value.day}, {value.year}"


def display_date(raw: Any) -> str:
    return format_display(normalize(raw))


def _parse(text: str) -> Optional[date]:
    if "T" in text or "Z" in text:
        parsed = _parse_iso(text)
        if parsed is not None:
            return parsed
        return _parse_generic(text)

    for separator in ("/", "-"):
        parts = text.split(separator)
        if len(parts) == 3:
            first, second, third = parts
            if _FOUR_DIGITS.match(first.strip()):
                return _build(first, second, third)
            return _build(third, second, first)

    return _parse_generic(text)


def _parse_iso(text: str) -> Optional[date]:
    candidate = text
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        return None


def _build(year: str, month: str, day: str) -> Optional[date]:
    try:
        return date(int(year.strip()), int(month.strip()), int(day.strip()))
    except ValueError:
        return None


def _parse_generic(text: str) -> Optional[date]:
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for pattern in _GENERIC_FORMATS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    return None


__all__ = [
    "DateSentinel",
    "NormalizedDate",
    "display_date",
    "format_display",
    "normalize",
]
