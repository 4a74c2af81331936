"""Saved search service.

This service provides:
1. Saved search CRUD (criteria validated by the search engine)
2. Listing of accessible searches (public + own private)
3. Re-execution with last-run statistics
4. Duplication into a private copy

Usage:
    service = SavedSearchService(db=session)

    saved = service.create(
        church_id=user.church_id,
        user_id=user.id,
        search_name="Young adults",
        criteria=parse_request(body),
    )

    result = service.execute(saved.id, church_id=user.church_id, user_id=user.id)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from pastcare_core.domain.models import SavedSearch, User
from pastcare_core.domain.pagination import PaginatedResult, PaginationParams, paginate_query
from pastcare_core.domain.query_limits import SearchDeadline
from pastcare_core.domain.search.errors import RequestMalformedError
from pastcare_core.domain.search.model import AdvancedSearchRequest
from pastcare_core.domain.search.serialization import deserialize, serialize, to_dict
from pastcare_core.domain.search.sorting import SortSpec
from pastcare_core.domain.search.validator import OperatorValidator
from pastcare_core.domain.services.member_search import (
    AdvancedSearchResult,
    MemberSearchService,
)
from pastcare_core.observability.logging import RequestContext, get_logger


logger = get_logger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class SavedSearchError(Exception):
    """Exception raised for saved search errors."""

    pass


class SavedSearchNotFoundError(SavedSearchError):
    """Exception raised when a saved search is not found in the church."""

    pass


class SavedSearchPermissionError(SavedSearchError):
    """Exception raised when a user may not access or change a search."""

    pass


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class SavedSearchView:
    """A saved search as seen by one user."""

    id: int
    search_name: str
    search_criteria: dict[str, Any]
    is_public: bool
    is_dynamic: bool
    description: Optional[str]
    last_executed: Optional[datetime]
    last_result_count: Optional[int]
    last_executed_ago: str
    created_by: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    can_edit: bool
    can_delete: bool


def time_ago(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human readable age of a timestamp, e.g. "2 days ago"."""
    if moment is None:
        return "Never"

    seconds = int(((now or datetime.utcnow()) - moment).total_seconds())
    if seconds < 60:
        return "Just now"

    for unit, size in (
        ("year", 31536000),
        ("month", 2592000),
        ("day", 86400),
        ("hour", 3600),
        ("minute", 60),
    ):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count > 1 else ''} ago"
    return "Just now"


# =============================================================================
# SERVICE
# =============================================================================


class SavedSearchService:
    """Service for managing saved member searches."""

    def __init__(
        self,
        db: Session,
        search_service: Optional[MemberSearchService] = None,
        context: Optional[RequestContext] = None,
    ):
        """Initialize the saved search service.

        Args:
            db: SQLAlchemy database session.
            search_service: Executor used to run saved searches.
            context: Tenant and user attached to every log line.
        """
        self.db = db
        self.search_service = search_service or MemberSearchService(db=db, context=context)
        self.context = context
        self.validator = OperatorValidator()

    # =========================================================================
    # CREATE / UPDATE / DELETE
    # =========================================================================

    def create(
        self,
        church_id: int,
        user_id: int,
        search_name: str,
        criteria: AdvancedSearchRequest,
        is_public: bool = False,
        is_dynamic: bool = False,
        description: Optional[str] = None,
    ) -> SavedSearch:
        """Create a saved search.

        Raises:
            SavedSearchError: If the name is blank.
            SearchRequestError: If the criteria fail validation.
        """
        search_name = self._clean_name(search_name)
        self.validator.validate_request(criteria)

        saved = SavedSearch(
            church_id=church_id,
            created_by_user_id=user_id,
            search_name=search_name,
            search_criteria=serialize(criteria),
            is_public=is_public,
            is_dynamic=is_dynamic,
            description=description,
        )
        self.db.add(saved)
        self.db.flush()

        logger.info(
            "Saved search created",
            context=self.context,
            church_id=church_id,
            user_id=user_id,
            saved_search_id=saved.id,
        )
        return saved

    def update(
        self,
        search_id: int,
        church_id: int,
        user_id: int,
        search_name: str,
        criteria: AdvancedSearchRequest,
        is_public: bool = False,
        is_dynamic: bool = False,
        description: Optional[str] = None,
    ) -> SavedSearch:
        """Replace a saved search's definition. Creator only.

        Raises:
            SavedSearchNotFoundError: Not in this church.
            SavedSearchPermissionError: Caller is not the creator.
            SearchRequestError: If the criteria fail validation.
        """
        saved = self._get_in_church(search_id, church_id)
        if saved.created_by_user_id != user_id:
            raise SavedSearchPermissionError("Only the creator can update this search")

        search_name = self._clean_name(search_name)
        self.validator.validate_request(criteria)

        saved.search_name = search_name
        saved.search_criteria = serialize(criteria)
        saved.is_public = is_public
        saved.is_dynamic = is_dynamic
        saved.description = description
        saved.updated_at = datetime.utcnow()
        self.db.flush()

        logger.info(
            "Saved search updated",
            context=self.context,
            church_id=church_id,
            user_id=user_id,
            saved_search_id=saved.id,
        )
        return saved

    def delete(self, search_id: int, church_id: int, user_id: int) -> None:
        """Delete a saved search. Creator only.

        Raises:
            SavedSearchNotFoundError: Not in this church.
            SavedSearchPermissionError: Caller is not the creator.
        """
        saved = self._get_in_church(search_id, church_id)
        if saved.created_by_user_id != user_id:
            raise SavedSearchPermissionError("Only the creator can delete this search")

        self.db.delete(saved)
        self.db.flush()

        logger.info(
            "Saved search deleted",
            context=self.context,
            church_id=church_id,
            user_id=user_id,
            saved_search_id=search_id,
        )

    # =========================================================================
    # READ
    # =========================================================================

    def get(self, search_id: int, church_id: int, user_id: int) -> SavedSearch:
        """Get a saved search the user can see.

        Raises:
            SavedSearchNotFoundError: Not in this church.
            SavedSearchPermissionError: Private search of another user.
        """
        saved = self._get_in_church(search_id, church_id)
        self._check_access(saved, user_id, "access")
        return saved

    def list_accessible(
        self,
        church_id: int,
        user_id: int,
        pagination: Optional[PaginationParams] = None,
    ) -> PaginatedResult[SavedSearch]:
        """List public searches plus the user's own, most recently updated first."""
        query = (
            select(SavedSearch)
            .where(SavedSearch.church_id == church_id)
            .where(
                or_(
                    SavedSearch.is_public.is_(True),
                    SavedSearch.created_by_user_id == user_id,
                )
            )
            .order_by(SavedSearch.updated_at.desc(), SavedSearch.id.desc())
        )
        return paginate_query(
            self.db,
            query,
            pagination or PaginationParams(),
            loader_options=(joinedload(SavedSearch.created_by),),
        )

    # =========================================================================
    # EXECUTE / DUPLICATE
    # =========================================================================

    def execute(
        self,
        search_id: int,
        church_id: int,
        user_id: int,
        pagination: Optional[PaginationParams] = None,
        sort: Optional[SortSpec] = None,
        deadline: Optional[SearchDeadline] = None,
    ) -> AdvancedSearchResult:
        """Run a saved search and record when it ran and how many matched.

        Raises:
            SavedSearchNotFoundError: Not in this church.
            SavedSearchPermissionError: Private search of another user.
            SavedSearchError: Stored criteria cannot be read.
            SearchError: Any error from the search itself.
        """
        saved = self._get_in_church(search_id, church_id)
        self._check_access(saved, user_id, "execute")
        request = self._criteria(saved)

        result = self.search_service.execute(
            church_id=church_id,
            request=request,
            pagination=pagination,
            sort=sort,
            deadline=deadline,
        )

        saved.last_executed = datetime.utcnow()
        saved.last_result_count = result.page.total
        self.db.flush()
        return result

    def duplicate(self, search_id: int, church_id: int, user_id: int) -> SavedSearch:
        """Copy a visible search into a new private search owned by the user."""
        original = self._get_in_church(search_id, church_id)
        self._check_access(original, user_id, "duplicate")

        copy = SavedSearch(
            church_id=church_id,
            created_by_user_id=user_id,
            search_name=f"{original.search_name} (Copy)",
            search_criteria=original.search_criteria,
            is_public=False,
            is_dynamic=original.is_dynamic,
            description=original.description,
        )
        self.db.add(copy)
        self.db.flush()

        logger.info(
            "Saved search duplicated",
            context=self.context,
            church_id=church_id,
            user_id=user_id,
            saved_search_id=copy.id,
            source_id=original.id,
        )
        return copy

    # =========================================================================
    # VIEWS
    # =========================================================================

    def to_view(
        self,
        saved: SavedSearch,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> SavedSearchView:
        """Present a saved search to a user, with permissions and creator info."""
        creator: Optional[User] = saved.created_by
        is_owner = saved.created_by_user_id == user_id
        return SavedSearchView(
            id=saved.id,
            search_name=saved.search_name,
            search_criteria=to_dict(self._criteria(saved)),
            is_public=saved.is_public,
            is_dynamic=saved.is_dynamic,
            description=saved.description,
            last_executed=saved.last_executed,
            last_result_count=saved.last_result_count,
            last_executed_ago=time_ago(saved.last_executed, now),
            created_by={
                "id": saved.created_by_user_id,
                "name": creator.name if creator else None,
                "email": creator.email if creator else None,
            },
            created_at=saved.created_at,
            updated_at=saved.updated_at,
            can_edit=is_owner,
            can_delete=is_owner,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_in_church(self, search_id: int, church_id: int) -> SavedSearch:
        saved = self.db.execute(
            select(SavedSearch).where(
                SavedSearch.id == search_id,
                SavedSearch.church_id == church_id,
            )
        ).scalar_one_or_none()
        if saved is None:
            raise SavedSearchNotFoundError(f"Saved search {search_id} not found")
        return saved

    @staticmethod
    def _check_access(saved: SavedSearch, user_id: int, action: str) -> None:
        if not saved.is_public and saved.created_by_user_id != user_id:
            raise SavedSearchPermissionError(
                f"You do not have permission to {action} this search"
            )

    @staticmethod
    def _clean_name(search_name: str) -> str:
        name = (search_name or "").strip()
        if not name:
            raise SavedSearchError("Search name is required")
        if len(name) > 255:
            raise SavedSearchError("Search name must be at most 255 characters")
        return name

    @staticmethod
    def _criteria(saved: SavedSearch) -> AdvancedSearchRequest:
        try:
            return deserialize(saved.search_criteria)
        except RequestMalformedError as e:
            raise SavedSearchError("Invalid search criteria format") from e
