"""Unit tests for the member search service."""

import threading
import time
from datetime import date

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from pastcare_core.domain.pagination import PaginatedResult, PaginationParams
from pastcare_core.domain.query_limits import (
    QueryLimits,
    QueryTimeoutError,
    SearchCancelledError,
    SearchDeadline,
)
from pastcare_core.domain.search.errors import (
    EXECUTION_FAILED_MESSAGE,
    RequestMalformedError,
    SearchExecutionError,
    SearchValidationError,
    TenantScopeViolationError,
)
from pastcare_core.domain.search.model import (
    AdvancedSearchRequest,
    FilterCriteria,
    FilterGroup,
)
from pastcare_core.domain.search.operators import FilterOperator, LogicalOperator
from pastcare_core.domain.search.sorting import parse_sort
from pastcare_core.domain.services import member_search
from pastcare_core.domain.services.member_search import MemberSearchService
from pastcare_core.observability.metrics import (
    SEARCH_DURATION_MS,
    SEARCH_REQUESTS_TOTAL,
    MetricsCollector,
)
from tests.factories import (
    create_church,
    create_fellowship,
    create_location,
    create_member,
)


TODAY = date(2025, 6, 15)

# Never terminates on its own; only the deadline can stop it
ENDLESS_QUERY = (
    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c) "
    "SELECT count(*) FROM c"
)


def _search(*filters, operator=LogicalOperator.AND):
    if not filters:
        return AdvancedSearchRequest()
    return AdvancedSearchRequest(filter_groups=[FilterGroup(list(filters), operator)])


def _endless_paginate(session, query, params, loader_options=()):
    session.execute(text(ENDLESS_QUERY)).scalar()
    return PaginatedResult(items=[], total=0, page=params.page, page_size=params.page_size)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def service(db_session, metrics):
    return MemberSearchService(
        db=db_session,
        limits=QueryLimits(timeout_ms=5000, default_page_size=20, max_page_size=50),
        today=TODAY,
        metrics=metrics,
    )


@pytest.fixture
def churches(db_session):
    grace = create_church(db_session, "Grace Chapel")
    other = create_church(db_session, "Hope Assembly")

    youth = create_fellowship(db_session, grace, "Youth")
    accra = create_location(db_session, city="Accra", suburb="Osu")

    create_member(
        db_session,
        grace,
        "John",
        "Mensah",
        tags=["Choir"],
        fellowships=[youth],
        location=accra,
        date_of_birth=date(2000, 6, 15),
        profile_completeness=80,
        status="member",
    )
    create_member(
        db_session,
        grace,
        "Ama",
        "Owusu",
        date_of_birth=date(1990, 1, 1),
        profile_completeness=40,
        status="leader",
    )
    create_member(db_session, grace, "Kofi", "Boateng", profile_completeness=10)
    create_member(db_session, other, "John", "Mensah", status="member")
    db_session.commit()
    return grace, other


def _first_names(result):
    return [item.first_name for item in result.page.items]


class TestMatching:
    def test_no_filters_returns_all_tenant_members(self, service, churches):
        grace, _ = churches

        result = service.execute(grace.id, AdvancedSearchRequest())

        assert _first_names(result) == ["Ama", "John", "Kofi"]
        assert result.page.total == 3
        assert result.metadata.total_filters_applied == 0
        assert result.metadata.query == "Advanced search with 0 filter(s): all members"

    def test_text_matching_ignores_case(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id, _search(FilterCriteria("firstName", FilterOperator.EQUALS, "JOHN"))
        )

        assert _first_names(result) == ["John"]

    def test_between_is_inclusive(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id,
            _search(FilterCriteria("profileCompleteness", FilterOperator.BETWEEN, 40, 80)),
        )

        assert sorted(_first_names(result)) == ["Ama", "John"]

    def test_or_group(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id,
            _search(
                FilterCriteria("tags", FilterOperator.CONTAINS, "choir"),
                FilterCriteria("status", FilterOperator.EQUALS, "leader"),
                operator=LogicalOperator.OR,
            ),
        )

        assert _first_names(result) == ["Ama", "John"]

    def test_results_carry_related_data(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id, _search(FilterCriteria("location.city", FilterOperator.EQUALS, "accra"))
        )

        (john,) = result.page.items
        assert john.location["city"] == "Accra"
        assert john.location["suburb"] == "Osu"
        assert john.tags == ["choir"]
        assert len(john.fellowship_ids) == 1

    def test_same_request_same_result(self, service, churches):
        grace, _ = churches
        request = _search(FilterCriteria("age", FilterOperator.GREATER_OR_EQUAL, 18))

        first = service.execute(grace.id, request)
        second = service.execute(grace.id, request)

        assert [m.id for m in first.page.items] == [m.id for m in second.page.items]
        assert first.metadata.query == second.metadata.query


class TestTenantScope:
    def test_other_church_members_never_match(self, service, churches):
        grace, other = churches

        result = service.execute(
            other.id, _search(FilterCriteria("lastName", FilterOperator.EQUALS, "mensah"))
        )

        # Grace Chapel has a John Mensah too
        assert result.page.total == 1
        assert _first_names(result) == ["John"]

    def test_or_of_everything_stays_in_tenant(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id,
            _search(
                FilterCriteria("firstName", FilterOperator.IS_NULL),
                FilterCriteria("firstName", FilterOperator.IS_NOT_NULL),
                operator=LogicalOperator.OR,
            ),
        )

        assert result.page.total == 3

    @pytest.mark.parametrize("field_name", ["churchId", "church_id", "church.name", "CHURCH"])
    def test_tenant_fields_are_forbidden(self, service, churches, metrics, field_name):
        grace, _ = churches

        with pytest.raises(TenantScopeViolationError):
            service.execute(
                grace.id, _search(FilterCriteria(field_name, FilterOperator.EQUALS, 2))
            )

        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "forbidden"}) == 1

    def test_missing_tenant_is_forbidden(self, service, churches):
        with pytest.raises(TenantScopeViolationError):
            service.execute(None, AdvancedSearchRequest())


class TestValidation:
    def test_all_issues_reported_together(self, service, churches, metrics):
        grace, _ = churches
        request = AdvancedSearchRequest(
            filter_groups=[
                FilterGroup(
                    [
                        FilterCriteria("isVerified", FilterOperator.CONTAINS, "x"),
                        FilterCriteria("age", FilterOperator.EQUALS, "old"),
                    ]
                ),
                FilterGroup([FilterCriteria("status", FilterOperator.IN, [])]),
            ]
        )

        with pytest.raises(SearchValidationError) as exc_info:
            service.execute(grace.id, request)

        issues = exc_info.value.issues
        assert [(i.group_index, i.filter_index) for i in issues] == [(0, 0), (0, 1), (1, 0)]
        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "invalid"}) == 1

    @pytest.mark.parametrize(
        "criterion",
        [
            FilterCriteria("profileCompleteness", FilterOperator.GREATER_THAN, 10**20),
            FilterCriteria("fellowships", FilterOperator.IN, [10**20]),
        ],
    )
    def test_oversized_number_is_invalid(self, service, churches, metrics, criterion):
        grace, _ = churches

        with pytest.raises(SearchValidationError) as exc_info:
            service.execute(grace.id, _search(criterion))

        assert exc_info.value.issues[0].code == "invalid_value"
        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "invalid"}) == 1

    def test_unknown_field_is_malformed(self, service, churches):
        grace, _ = churches

        with pytest.raises(RequestMalformedError):
            service.execute(
                grace.id, _search(FilterCriteria("shoeSize", FilterOperator.EQUALS, 9))
            )

    def test_ignored_value_is_a_warning(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id, _search(FilterCriteria("email", FilterOperator.IS_NULL, "x"))
        )

        assert result.page.total == 3
        assert len(result.metadata.warnings) == 1

    def test_ten_filters_counted_as_leaves(self, service, churches):
        grace, _ = churches
        filters = [
            FilterCriteria("profileCompleteness", FilterOperator.GREATER_OR_EQUAL, n)
            for n in range(5)
        ]
        request = AdvancedSearchRequest(
            filter_groups=[FilterGroup(filters), FilterGroup(list(filters))],
            group_operator=LogicalOperator.OR,
        )

        result = service.execute(grace.id, request)

        assert result.metadata.total_filters_applied == 10
        assert result.metadata.query.startswith("Advanced search with 10 filter(s): (")


class TestPaginationAndSort:
    def test_page_size_is_clamped(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id, AdvancedSearchRequest(), pagination=PaginationParams(page=1, page_size=500)
        )

        assert result.page.page_size == 50

    def test_pages_follow_sort_order(self, service, churches):
        grace, _ = churches
        sort = parse_sort("lastName", "desc")

        first = service.execute(
            grace.id, AdvancedSearchRequest(), PaginationParams(page=1, page_size=2), sort
        )
        second = service.execute(
            grace.id, AdvancedSearchRequest(), PaginationParams(page=2, page_size=2), sort
        )

        assert _first_names(first) == ["Ama", "John"]
        assert _first_names(second) == ["Kofi"]
        assert first.page.total_pages == 2
        assert first.page.has_next and not second.page.has_next

    def test_sort_by_age_puts_youngest_first(self, service, churches):
        grace, _ = churches

        result = service.execute(
            grace.id,
            _search(FilterCriteria("age", FilterOperator.IS_NOT_NULL)),
            sort=parse_sort("age", "asc"),
        )

        assert _first_names(result) == ["John", "Ama"]


class TestDeadlines:
    def test_cancelled_before_start(self, service, churches, metrics):
        grace, _ = churches
        deadline = SearchDeadline(timeout_ms=5000)
        deadline.cancel()

        with pytest.raises(SearchCancelledError):
            service.execute(grace.id, AdvancedSearchRequest(), deadline=deadline)

        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "cancelled"}) == 1

    def test_expired_before_start(self, service, churches):
        grace, _ = churches
        deadline = SearchDeadline(timeout_ms=100, started_at=time.monotonic() - 1)

        with pytest.raises(QueryTimeoutError) as exc_info:
            service.execute(grace.id, AdvancedSearchRequest(), deadline=deadline)

        assert exc_info.value.timeout_ms == 100

    def test_running_query_times_out(self, service, churches, metrics, monkeypatch):
        grace, _ = churches
        monkeypatch.setattr(member_search, "paginate_query", _endless_paginate)

        with pytest.raises(QueryTimeoutError):
            service.execute(
                grace.id, AdvancedSearchRequest(), deadline=SearchDeadline(timeout_ms=200)
            )

        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "timeout"}) == 1

    def test_running_query_is_cancelled(self, service, churches, monkeypatch):
        grace, _ = churches
        monkeypatch.setattr(member_search, "paginate_query", _endless_paginate)
        deadline = SearchDeadline(timeout_ms=30000)
        timer = threading.Timer(0.2, deadline.cancel)

        timer.start()
        try:
            with pytest.raises(SearchCancelledError):
                service.execute(grace.id, AdvancedSearchRequest(), deadline=deadline)
        finally:
            timer.cancel()

    def test_store_failure_is_generic(self, service, churches, metrics, monkeypatch):
        grace, _ = churches

        def failing_paginate(session, query, params, loader_options=()):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        monkeypatch.setattr(member_search, "paginate_query", failing_paginate)

        with pytest.raises(SearchExecutionError) as exc_info:
            service.execute(grace.id, AdvancedSearchRequest())

        assert type(exc_info.value) is SearchExecutionError
        assert exc_info.value.to_dict()["message"] == EXECUTION_FAILED_MESSAGE
        assert "disk" not in str(exc_info.value)
        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "error"}) == 1


class TestMetrics:
    def test_success_is_recorded(self, service, churches, metrics):
        grace, _ = churches

        service.execute(grace.id, AdvancedSearchRequest())

        assert metrics.get(SEARCH_REQUESTS_TOTAL, labels={"outcome": "success"}) == 1
        stats = metrics.get_histogram_stats(SEARCH_DURATION_MS, labels={"outcome": "success"})
        assert stats["count"] == 1
