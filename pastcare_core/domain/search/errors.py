"""Error taxonomy for the advanced member search.

Three families of errors are kept apart:
- Request errors (malformed or failing validation) carry a list of
  issues with field/operator attribution so every problem can be
  reported in one round trip.
- Tenant scope violations are security errors and always fail closed.
- Execution errors carry no field attribution and expose only a
  generic message to clients.
"""

from dataclasses import dataclass
from typing import Any, Optional


# Issue codes
UNKNOWN_FIELD = "unknown_field"
UNKNOWN_OPERATOR = "unknown_operator"
MISSING_ELEMENT = "missing_element"
INVALID_STRUCTURE = "invalid_structure"
INVALID_JSON = "invalid_json"
INVALID_SORT = "invalid_sort"
OPERATOR_NOT_SUPPORTED = "operator_not_supported"
MISSING_VALUE = "missing_value"
INVALID_VALUE = "invalid_value"
EXPECTED_LIST = "expected_list"
EXPECTED_SCALAR = "expected_scalar"
EMPTY_LIST = "empty_list"
INVERTED_RANGE = "inverted_range"
EMPTY_GROUP = "empty_group"

# Codes that make a request malformed rather than merely invalid
MALFORMED_CODES = frozenset(
    {
        UNKNOWN_FIELD,
        UNKNOWN_OPERATOR,
        MISSING_ELEMENT,
        INVALID_STRUCTURE,
        INVALID_JSON,
        INVALID_SORT,
    }
)

EXECUTION_FAILED_MESSAGE = "Search failed, retry later"


@dataclass(frozen=True)
class FilterIssue:
    """A single problem found in a search request.

    Attributes:
        reason: Human readable explanation
        code: Machine readable issue code
        field: Field name as sent by the client, if any
        operator: Operator as sent by the client, if any
        group_index: Position of the filter group in the request
        filter_index: Position of the filter inside its group
    """

    reason: str
    code: str
    field: Optional[str] = None
    operator: Optional[str] = None
    group_index: Optional[int] = None
    filter_index: Optional[int] = None

    @property
    def is_malformed(self) -> bool:
        return self.code in MALFORMED_CODES

    def at(self, group_index: Optional[int], filter_index: Optional[int]) -> "FilterIssue":
        """Return a copy of this issue located in the request."""
        return FilterIssue(
            reason=self.reason,
            code=self.code,
            field=self.field,
            operator=self.operator,
            group_index=group_index,
            filter_index=filter_index,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "field": self.field,
            "operator": self.operator,
            "reason": self.reason,
            "code": self.code,
        }
        if self.group_index is not None:
            result["group_index"] = self.group_index
        if self.filter_index is not None:
            result["filter_index"] = self.filter_index
        return result


class SearchError(Exception):
    """Base exception for advanced search errors."""

    pass


class SearchRequestError(SearchError):
    """A search request was rejected before touching the store."""

    error_type = "invalid_request"

    def __init__(self, issues: list[FilterIssue], message: Optional[str] = None):
        self.issues = list(issues)
        if message is None:
            message = "; ".join(issue.reason for issue in self.issues) or self.error_type
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "error": self.error_type,
            "message": str(self),
            "issues": [issue.to_dict() for issue in self.issues],
        }


class RequestMalformedError(SearchRequestError):
    """Unknown field or operator, or a missing structural element."""

    error_type = "request_malformed"


class SearchValidationError(SearchRequestError):
    """Field/operator/value combinations failed validation."""

    error_type = "validation_failed"


class UnknownFieldError(RequestMalformedError):
    """A field name does not resolve to a catalog entry."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(
            [
                FilterIssue(
                    reason=f"Unknown search field: '{field_name}'",
                    code=UNKNOWN_FIELD,
                    field=field_name,
                )
            ]
        )


class TenantScopeViolationError(SearchError):
    """A request tried to reach outside the current tenant."""

    error_type = "tenant_scope_violation"

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        # The offending field is deliberately not echoed back
        return {"error": self.error_type, "message": "Forbidden search criteria"}


class SearchExecutionError(SearchError):
    """The store failed while executing a valid search."""

    error_type = "search_failed"

    def __init__(self, message: str = EXECUTION_FAILED_MESSAGE):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_type, "message": EXECUTION_FAILED_MESSAGE}
