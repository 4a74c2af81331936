"""Domain services for PastCare Core."""

from pastcare_core.domain.services.auth import AuthService
from pastcare_core.domain.services.member_search import (
    AdvancedSearchResult,
    MemberResult,
    MemberSearchService,
)
from pastcare_core.domain.services.saved_search import (
    SavedSearchError,
    SavedSearchNotFoundError,
    SavedSearchPermissionError,
    SavedSearchService,
)

__all__ = [
    "AdvancedSearchResult",
    "AuthService",
    "MemberResult",
    "MemberSearchService",
    "SavedSearchError",
    "SavedSearchNotFoundError",
    "SavedSearchPermissionError",
    "SavedSearchService",
]
