"""Offset pagination for member search and saved-search listings."""

import math
from dataclasses import dataclass
from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

T = TypeVar("T")


# Default pagination limits
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    """Parameters for offset-based pagination.

    Attributes:
        page: Current page number (1-indexed)
        page_size: Number of items per page
        max_page_size: Maximum allowed page size
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    def __post_init__(self):
        """Validate and normalize pagination parameters."""
        # Ensure page is at least 1
        if self.page < 1:
            self.page = 1

        # Ensure page_size is at least 1
        if self.page_size < 1:
            self.page_size = 1

        # Clamp page_size to maximum
        if self.page_size > self.max_page_size:
            self.page_size = self.max_page_size

    @property
    def offset(self) -> int:
        """Calculate offset from page and page_size."""
        return (self.page - 1) * self.page_size

    @classmethod
    def from_query_params(
        cls,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> "PaginationParams":
        """Create PaginationParams from query parameters."""
        return cls(
            page=page or 1,
            page_size=page_size or default_page_size,
            max_page_size=max_page_size,
        )


@dataclass
class PaginatedResult(Generic[T]):
    """Result container for offset-based pagination.

    Attributes:
        items: List of items for current page
        total: Total number of items across all pages
        page: Current page number
        page_size: Number of items per page
    """

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Calculate total number of pages."""
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def map(self, transform: Any) -> "PaginatedResult":
        """Return a copy with every item transformed."""
        return PaginatedResult(
            items=[transform(item) for item in self.items],
            total=self.total,
            page=self.page,
            page_size=self.page_size,
        )


def paginate_query(
    session: Session,
    query: Select,
    params: PaginationParams,
    loader_options: Sequence[Any] = (),
) -> PaginatedResult:
    """Apply offset-based pagination to a SQLAlchemy query.

    Args:
        session: Database session
        query: SQLAlchemy select query, already ordered
        params: Pagination parameters
        loader_options: Eager-loading options applied to the page query only

    Returns:
        PaginatedResult with items and metadata
    """
    # Get total count
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = session.execute(count_query).scalar() or 0

    # Apply pagination
    paginated_query = query.offset(params.offset).limit(params.page_size)
    if loader_options:
        paginated_query = paginated_query.options(*loader_options)
    items = list(session.execute(paginated_query).scalars().all())

    return PaginatedResult(
        items=items,
        total=total,
        page=params.page,
        page_size=params.page_size,
    )
