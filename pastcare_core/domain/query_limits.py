"""Query limits, deadlines and cancellation for member searches.

Provides safeguards to prevent runaway queries:
- Timeout limits so a search cannot hold a connection indefinitely
- Page size limits to prevent memory issues
- A cancellation token the caller can set while the search runs
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from pastcare_core.config import Settings, get_settings
from pastcare_core.domain.search.errors import SearchExecutionError


# Default limits
DEFAULT_SEARCH_TIMEOUT = 10000  # 10 seconds
MAX_SEARCH_TIMEOUT = 30000  # 30 seconds
MIN_SEARCH_TIMEOUT = 100  # 100ms minimum
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class SearchDeadline:
    """Deadline and cancellation token for one search.

    Attributes:
        timeout_ms: Time budget in milliseconds
        cancel_event: Set by the caller to abandon the search
        started_at: Monotonic start time in seconds
    """

    timeout_ms: int
    cancel_event: threading.Event = field(default_factory=threading.Event)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    @property
    def remaining_ms(self) -> int:
        return max(0, self.timeout_ms - self.elapsed_ms)

    @property
    def expired(self) -> bool:
        return self.elapsed_ms >= self.timeout_ms

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def check(self, query_type: str = "member_search") -> None:
        """Raise if the search was cancelled or ran out of time.

        Raises:
            SearchCancelledError: The cancel token is set.
            QueryTimeoutError: The deadline has passed.
        """
        if self.cancelled:
            raise SearchCancelledError(query_type)
        if self.expired:
            raise QueryTimeoutError(query_type, self.timeout_ms)


@dataclass
class QueryLimits:
    """Configuration for search limits and timeouts.

    Attributes:
        timeout_ms: Default search timeout in milliseconds
        max_timeout_ms: Maximum allowed timeout (for clamping)
        default_page_size: Page size when the client sends none
        max_page_size: Maximum allowed page size (for clamping)
    """

    timeout_ms: int = DEFAULT_SEARCH_TIMEOUT
    max_timeout_ms: int = MAX_SEARCH_TIMEOUT
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    def __post_init__(self):
        """Validate and normalize limits."""
        self.timeout_ms = self.clamp_timeout(self.timeout_ms)

        if self.max_page_size < 1:
            self.max_page_size = 1
        if self.default_page_size < 1:
            self.default_page_size = 1
        if self.default_page_size > self.max_page_size:
            self.default_page_size = self.max_page_size

    def clamp_timeout(self, timeout_ms: int) -> int:
        """Clamp a timeout into [MIN_SEARCH_TIMEOUT, max_timeout_ms]."""
        if timeout_ms < MIN_SEARCH_TIMEOUT:
            return MIN_SEARCH_TIMEOUT
        if timeout_ms > self.max_timeout_ms:
            return self.max_timeout_ms
        return timeout_ms

    def deadline(
        self,
        cancel_event: Optional[threading.Event] = None,
        timeout_ms: Optional[int] = None,
    ) -> SearchDeadline:
        """Start a deadline for one search."""
        timeout = self.timeout_ms if timeout_ms is None else self.clamp_timeout(timeout_ms)
        return SearchDeadline(
            timeout_ms=timeout,
            cancel_event=cancel_event or threading.Event(),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QueryLimits":
        """Create QueryLimits from application settings."""
        settings = settings or get_settings()
        return cls(
            timeout_ms=settings.search_timeout_ms,
            max_timeout_ms=settings.search_max_timeout_ms,
            default_page_size=settings.search_default_page_size,
            max_page_size=settings.search_max_page_size,
        )


class QueryTimeoutError(SearchExecutionError):
    """Exception raised when a search runs past its deadline.

    Attributes:
        query_type: Type of query that timed out
        timeout_ms: Timeout value in milliseconds
    """

    error_type = "query_timeout"

    def __init__(self, query_type: str, timeout_ms: int, message: Optional[str] = None):
        self.query_type = query_type
        self.timeout_ms = timeout_ms

        if message is None:
            message = f"{query_type} query timed out after {timeout_ms}ms"

        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "error": self.error_type,
            "query_type": self.query_type,
            "timeout_ms": self.timeout_ms,
            "message": str(self),
        }


class SearchCancelledError(SearchExecutionError):
    """Exception raised when the caller abandons a running search."""

    error_type = "search_cancelled"

    def __init__(self, query_type: str):
        self.query_type = query_type
        super().__init__(f"{query_type} query was cancelled")
