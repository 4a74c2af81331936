"""Advanced member search engine.

Pipeline: field catalog -> operator validator -> predicate builder ->
expression composer. Execution against the store lives in
pastcare_core.domain.services.member_search.
"""

from pastcare_core.domain.search.composer import ExpressionComposer
from pastcare_core.domain.search.errors import (
    FilterIssue,
    RequestMalformedError,
    SearchError,
    SearchExecutionError,
    SearchRequestError,
    SearchValidationError,
    TenantScopeViolationError,
    UnknownFieldError,
)
from pastcare_core.domain.search.fields import FIELD_CATALOG, FieldType, SearchField, resolve
from pastcare_core.domain.search.model import (
    AdvancedSearchRequest,
    FilterCriteria,
    FilterGroup,
    SearchMetadata,
    ValidatedRequest,
)
from pastcare_core.domain.search.operators import FilterOperator, LogicalOperator
from pastcare_core.domain.search.predicates import PredicateBuilder
from pastcare_core.domain.search.serialization import deserialize, parse_request, serialize
from pastcare_core.domain.search.sorting import SortSpec, parse_sort
from pastcare_core.domain.search.validator import OperatorValidator

__all__ = [
    "FIELD_CATALOG",
    "AdvancedSearchRequest",
    "ExpressionComposer",
    "FieldType",
    "FilterCriteria",
    "FilterGroup",
    "FilterIssue",
    "FilterOperator",
    "LogicalOperator",
    "OperatorValidator",
    "PredicateBuilder",
    "RequestMalformedError",
    "SearchError",
    "SearchExecutionError",
    "SearchField",
    "SearchMetadata",
    "SearchRequestError",
    "SearchValidationError",
    "SortSpec",
    "TenantScopeViolationError",
    "UnknownFieldError",
    "ValidatedRequest",
    "deserialize",
    "parse_request",
    "parse_sort",
    "resolve",
    "serialize",
]
