"""Sort parameters for the member search."""

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import ColumnElement

from pastcare_core.domain.search import fields as field_catalog
from pastcare_core.domain.search.errors import (
    INVALID_SORT,
    FilterIssue,
    RequestMalformedError,
)
from pastcare_core.domain.search.fields import SearchField
from pastcare_core.domain.search.predicates import PredicateBuilder


DEFAULT_SORT_FIELD = "firstName"


@dataclass(frozen=True)
class SortSpec:
    field: SearchField
    descending: bool = False


def parse_sort(sort_by: Optional[str] = None, sort_dir: Optional[str] = None) -> SortSpec:
    """Resolve client sort parameters.

    Raises:
        RequestMalformedError: Unknown or collection field, or a bad direction.
        TenantScopeViolationError: The sort field references the tenant.
    """
    name = sort_by or DEFAULT_SORT_FIELD
    direction = (sort_dir or "asc").strip().lower()

    if direction not in ("asc", "desc"):
        raise RequestMalformedError(
            [
                FilterIssue(
                    reason=f"Sort direction must be 'asc' or 'desc', got {sort_dir!r}",
                    code=INVALID_SORT,
                )
            ]
        )

    try:
        search_field = field_catalog.resolve(name)
    except RequestMalformedError:
        search_field = None

    if search_field is None or not search_field.sortable:
        raise RequestMalformedError(
            [
                FilterIssue(
                    reason=f"Cannot sort by field: '{name}'",
                    code=INVALID_SORT,
                    field=name,
                )
            ]
        )

    return SortSpec(field=search_field, descending=direction == "desc")


def order_clauses(sort: SortSpec, builder: PredicateBuilder) -> list[ColumnElement[Any]]:
    """ORDER BY clauses for a sort, always ending with the primary key."""
    expression = builder.expression_for(sort.field)

    # Older members have earlier birth dates
    descending = sort.descending
    if sort.field.derived == "age":
        descending = not descending

    primary = expression.desc() if descending else expression.asc()
    return [primary, builder.model.id.asc()]
