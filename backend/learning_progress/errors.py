"""Error taxonomy for progress fetches and aggregation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from .models import AggregateSnapshot, ContentCategory


class ProgressError(RuntimeError):
    """Base class for failures surfaced by the progress engine."""


class NetworkFailure(ProgressError):
    """Raised when a request produced no response (connect error, timeout)."""


class ServerError(ProgressError):
    """Raised when the backend answered with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, server_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class DecodeFailure(ProgressError):
    """Raised when a response body is not valid JSON."""


RetryCallable = Callable[[], Awaitable[Optional["AggregateSnapshot"]]]


class ProgressAggregationError(ProgressError):
    """One user-facing error for a failed category fan-out.

    ``failures`` maps every category whose fetch failed to its error.
    ``retry()`` repeats the same refresh with the same credentials.
    """

    def __init__(
        self,
        failures: Dict["ContentCategory", ProgressError],
        *,
        retry: Optional[RetryCallable] = None,
    ) -> None:
        self.failures = dict(failures)
        self._retry = retry
        super().__init__(self.user_message)

    @property
    def failed_categories(self) -> List["ContentCategory"]:
        return list(self.failures)

    @property
    def user_message(self) -> str:
        for error in self.failures.values():
            if isinstance(error, ServerError) and error.server_message:
                return error.server_message
        return "Failed to fetch progress"

    @property
    def retryable(self) -> bool:
        return self._retry is not None

    async def retry(self) -> Any:
        if self._retry is None:
            raise ProgressError("This failure cannot be retried.")
        return await self._retry()


__all__ = [
    "DecodeFailure",
    "NetworkFailure",
    "ProgressAggregationError",
    "ProgressError",
    "ServerError",
]
