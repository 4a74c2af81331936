"""Unit tests for pagination utilities."""

from sqlalchemy import select

from pastcare_core.domain.models import Member
from pastcare_core.domain.pagination import (
    PaginatedResult,
    PaginationParams,
    paginate_query,
)
from tests.factories import create_church, create_member


class TestPaginationParams:
    """Tests for PaginationParams dataclass."""

    def test_create_default_params(self):
        """Test creating pagination params with defaults."""
        params = PaginationParams()

        assert params.page == 1
        assert params.page_size == 20
        assert params.offset == 0

    def test_offset_calculation(self):
        """Test offset calculation from page and page_size."""
        params = PaginationParams(page=5, page_size=25)

        assert params.offset == 100  # (5-1) * 25

    def test_page_size_clamped_to_max(self):
        """Test that page_size is clamped to maximum."""
        params = PaginationParams(page=1, page_size=500, max_page_size=100)

        assert params.page_size == 100

    def test_negative_page_becomes_one(self):
        """Test that negative page becomes 1."""
        params = PaginationParams(page=-5, page_size=20)

        assert params.page == 1

    def test_page_size_minimum(self):
        """Test that page_size has a minimum."""
        params = PaginationParams(page=1, page_size=0)

        assert params.page_size == 1

    def test_from_query_params_defaults(self):
        params = PaginationParams.from_query_params(None, None, default_page_size=15)

        assert params.page == 1
        assert params.page_size == 15

    def test_from_query_params_clamps(self):
        params = PaginationParams.from_query_params(3, 1000, max_page_size=50)

        assert params.page == 3
        assert params.page_size == 50


class TestPaginatedResult:
    """Tests for PaginatedResult dataclass."""

    def test_total_pages_calculation(self):
        """Test calculating total pages."""
        result = PaginatedResult(items=[], total=95, page=1, page_size=20)

        assert result.total_pages == 5  # ceil(95/20)

    def test_has_next_page_false_on_last_page(self):
        """Test has_next is False on last page."""
        result = PaginatedResult(items=[{"id": 1}], total=100, page=5, page_size=20)

        assert result.has_next is False
        assert result.has_previous is True

    def test_empty_result(self):
        """Test empty paginated result."""
        result = PaginatedResult(items=[], total=0, page=1, page_size=20)

        assert result.total_pages == 0
        assert result.has_next is False
        assert result.has_previous is False

    def test_map_keeps_page_metadata(self):
        result = PaginatedResult(items=[1, 2], total=12, page=2, page_size=2)

        mapped = result.map(lambda n: n * 10)

        assert mapped.items == [10, 20]
        assert (mapped.total, mapped.page, mapped.page_size) == (12, 2, 2)


class TestPaginateQuery:
    """Tests for paginate_query against a real session."""

    def test_counts_all_rows_and_slices_page(self, db_session):
        church = create_church(db_session)
        for n in range(7):
            create_member(db_session, church, f"Member{n}", "Test")
        db_session.commit()

        query = select(Member).order_by(Member.first_name)
        result = paginate_query(db_session, query, PaginationParams(page=2, page_size=3))

        assert result.total == 7
        assert [m.first_name for m in result.items] == ["Member3", "Member4", "Member5"]
        assert result.total_pages == 3

    def test_page_past_the_end_is_empty(self, db_session):
        church = create_church(db_session)
        create_member(db_session, church)
        db_session.commit()

        result = paginate_query(
            db_session, select(Member).order_by(Member.id), PaginationParams(page=4, page_size=10)
        )

        assert result.total == 1
        assert result.items == []
