"""Member search service.

Executes advanced searches against the member table:
1. Validates every criterion (all issues reported together)
2. Composes the two-level boolean expression
3. ANDs it with the tenant predicate, which a request cannot override
4. Runs the paginated query under the search deadline
5. Reports execution metadata

Usage:
    service = MemberSearchService(db=session)

    result = service.execute(
        church_id=user.church_id,
        request=parse_request(body),
        pagination=PaginationParams(page=1, page_size=20),
        sort=parse_sort("lastName", "asc"),
    )
    result.page.items        # list[MemberResult]
    result.metadata.query    # "Advanced search with 2 filter(s): ..."
"""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from pastcare_core.domain.models import Member
from pastcare_core.domain.pagination import PaginatedResult, PaginationParams, paginate_query
from pastcare_core.domain.query_limits import (
    QueryLimits,
    QueryTimeoutError,
    SearchCancelledError,
    SearchDeadline,
)
from pastcare_core.domain.search.composer import ExpressionComposer
from pastcare_core.domain.search.errors import (
    SearchExecutionError,
    SearchRequestError,
    TenantScopeViolationError,
)
from pastcare_core.domain.search.model import AdvancedSearchRequest, SearchMetadata
from pastcare_core.domain.search.predicates import PredicateBuilder
from pastcare_core.domain.search.sorting import SortSpec, order_clauses, parse_sort
from pastcare_core.infra.db import statement_deadline
from pastcare_core.observability.logging import RequestContext, get_logger
from pastcare_core.observability.metrics import (
    SEARCH_DURATION_MS,
    SEARCH_REQUESTS_TOTAL,
    MetricsCollector,
    get_collector,
)


logger = get_logger(__name__)

QUERY_TYPE = "member_search"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class MemberResult:
    """Public shape of a member in search results."""

    id: int
    first_name: str
    last_name: str
    phone_number: Optional[str]
    email: Optional[str]
    sex: Optional[str]
    marital_status: Optional[str]
    date_of_birth: Optional[date]
    status: Optional[str]
    member_since: Optional[date]
    is_verified: Optional[bool]
    profile_completeness: Optional[float]

    # Related data
    location: Optional[dict[str, Any]] = None
    tags: list[str] = field(default_factory=list)
    fellowship_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_model(cls, member: Member) -> "MemberResult":
        location = None
        if member.location is not None:
            location = {
                "id": member.location.id,
                "suburb": member.location.suburb,
                "city": member.location.city,
                "region": member.location.region,
                "country": member.location.country,
            }
        return cls(
            id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            phone_number=member.phone_number,
            email=member.email,
            sex=member.sex,
            marital_status=member.marital_status,
            date_of_birth=member.date_of_birth,
            status=member.status,
            member_since=member.member_since,
            is_verified=member.is_verified,
            profile_completeness=member.profile_completeness,
            location=location,
            tags=member.tag_names,
            fellowship_ids=member.fellowship_ids,
        )


@dataclass
class AdvancedSearchResult:
    """A page of matching members plus execution metadata."""

    page: PaginatedResult[MemberResult]
    metadata: SearchMetadata


# =============================================================================
# SERVICE
# =============================================================================


class MemberSearchService:
    """Service executing advanced member searches. Read-only."""

    def __init__(
        self,
        db: Session,
        limits: Optional[QueryLimits] = None,
        today: Optional[date] = None,
        metrics: Optional[MetricsCollector] = None,
        context: Optional[RequestContext] = None,
    ):
        """Initialize the member search service.

        Args:
            db: SQLAlchemy database session.
            limits: Page size and timeout limits (defaults from settings).
            today: Reference date for age criteria (defaults to today).
            metrics: Metrics collector (defaults to the global collector).
            context: Tenant and user attached to every log line.
        """
        self.db = db
        self.limits = limits or QueryLimits.from_settings()
        self.builder = PredicateBuilder(model=Member, today=today)
        self.composer = ExpressionComposer(builder=self.builder)
        self.metrics = metrics or get_collector()
        self.context = context

    def execute(
        self,
        church_id: Optional[int],
        request: AdvancedSearchRequest,
        pagination: Optional[PaginationParams] = None,
        sort: Optional[SortSpec] = None,
        deadline: Optional[SearchDeadline] = None,
    ) -> AdvancedSearchResult:
        """Execute an advanced search for one church.

        Args:
            church_id: Current tenant, resolved by the caller.
            request: The filter expression.
            pagination: Page and size; the size is clamped server-side.
            sort: Sort order (default firstName ascending).
            deadline: Time budget and cancel token for the store call.

        Returns:
            AdvancedSearchResult with the page and metadata.

        Raises:
            TenantScopeViolationError: No tenant, or a tenant-referencing field.
            RequestMalformedError: Unknown fields or operators.
            SearchValidationError: Criteria failed validation.
            QueryTimeoutError: The deadline passed.
            SearchCancelledError: The cancel token was set.
            SearchExecutionError: The store failed.
        """
        started = time.monotonic()
        try:
            result = self._execute(church_id, request, pagination, sort, deadline, started)
        except SearchRequestError:
            self._record("invalid", started)
            raise
        except TenantScopeViolationError as e:
            logger.warning(
                "Rejected search outside tenant scope",
                context=self.context,
                church_id=church_id,
                field_name=e.field_name,
            )
            self._record("forbidden", started)
            raise
        except QueryTimeoutError:
            self._record("timeout", started)
            raise
        except SearchCancelledError:
            self._record("cancelled", started)
            raise
        except SearchExecutionError:
            self._record("error", started)
            raise

        self._record("success", started)
        return result

    def _execute(
        self,
        church_id: Optional[int],
        request: AdvancedSearchRequest,
        pagination: Optional[PaginationParams],
        sort: Optional[SortSpec],
        deadline: Optional[SearchDeadline],
        started: float,
    ) -> AdvancedSearchResult:
        if church_id is None:
            raise TenantScopeViolationError("Search requires a tenant scope")

        validated = self.composer.validator.validate_request(request)
        predicate = self.composer.compose_validated(validated)
        sort = sort or parse_sort()
        pagination = self._clamp(pagination)
        deadline = deadline or self.limits.deadline()

        query = (
            select(Member)
            .where(Member.church_id == church_id)
            .where(predicate)
            .order_by(*order_clauses(sort, self.builder))
        )

        deadline.check(QUERY_TYPE)
        try:
            with statement_deadline(self.db, deadline):
                page = paginate_query(
                    self.db,
                    query,
                    pagination,
                    loader_options=(
                        joinedload(Member.location),
                        selectinload(Member.tags),
                        selectinload(Member.fellowships),
                    ),
                )
        except SQLAlchemyError as e:
            raise self._execution_error(e, church_id, deadline) from e

        execution_time_ms = int((time.monotonic() - started) * 1000)
        total_filters = validated.total_filters
        metadata = SearchMetadata(
            total_filters_applied=total_filters,
            execution_time_ms=execution_time_ms,
            query=(
                f"Advanced search with {total_filters} filter(s): "
                f"{validated.describe() or 'all members'}"
            ),
            warnings=validated.warnings,
        )

        logger.info(
            "Advanced member search completed",
            context=self.context,
            church_id=church_id,
            total_filters=total_filters,
            total=page.total,
            duration_ms=execution_time_ms,
        )

        return AdvancedSearchResult(page=page.map(MemberResult.from_model), metadata=metadata)

    def _clamp(self, pagination: Optional[PaginationParams]) -> PaginationParams:
        if pagination is None:
            return PaginationParams(
                page_size=self.limits.default_page_size,
                max_page_size=self.limits.max_page_size,
            )
        return PaginationParams(
            page=pagination.page,
            page_size=pagination.page_size,
            max_page_size=min(pagination.max_page_size, self.limits.max_page_size),
        )

    def _execution_error(
        self,
        error: SQLAlchemyError,
        church_id: int,
        deadline: SearchDeadline,
    ) -> SearchExecutionError:
        self.db.rollback()

        if deadline.cancelled:
            logger.info(
                "Advanced member search cancelled",
                context=self.context,
                church_id=church_id,
            )
            return SearchCancelledError(QUERY_TYPE)
        if deadline.expired:
            logger.warning(
                "Advanced member search timed out",
                context=self.context,
                church_id=church_id,
                timeout_ms=deadline.timeout_ms,
            )
            return QueryTimeoutError(QUERY_TYPE, deadline.timeout_ms)

        logger.error(
            "Advanced member search failed",
            context=self.context,
            church_id=church_id,
            error=str(error),
            exc_info=True,
        )
        return SearchExecutionError()

    def _record(self, outcome: str, started: float) -> None:
        self.metrics.increment(SEARCH_REQUESTS_TOTAL, labels={"outcome": outcome})
        self.metrics.record_histogram(
            SEARCH_DURATION_MS,
            (time.monotonic() - started) * 1000,
            labels={"outcome": outcome},
        )
