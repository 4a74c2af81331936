"""Value objects for advanced search requests and results.

Requests are transient: they are built per call from the client body
(or rehydrated from a saved search) and never outlive the search.
Filter values stay in their JSON wire form on the request so a
request serializes losslessly; typed values only appear after
validation, as one of the FilterValue variants.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from pastcare_core.domain.search.fields import SearchField
from pastcare_core.domain.search.operators import FilterOperator, LogicalOperator


def _to_wire(value: Any) -> Any:
    """Normalize a client value to its JSON representation."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_wire(item) for item in value]
    return value


# =============================================================================
# REQUEST
# =============================================================================


@dataclass(frozen=True)
class FilterCriteria:
    """A single leaf criterion as sent by the client."""

    field: str
    operator: FilterOperator
    value: Any = None
    max_value: Any = None

    def __post_init__(self):
        object.__setattr__(self, "value", _to_wire(self.value))
        object.__setattr__(self, "max_value", _to_wire(self.max_value))


@dataclass(frozen=True)
class FilterGroup:
    """Criteria combined with one logical operator."""

    filters: list[FilterCriteria] = field(default_factory=list)
    operator: LogicalOperator = LogicalOperator.AND


@dataclass(frozen=True)
class AdvancedSearchRequest:
    """Two-level boolean filter expression.

    Each group combines its own filters with its operator; the groups
    are then combined with group_operator.
    """

    filter_groups: list[FilterGroup] = field(default_factory=list)
    group_operator: LogicalOperator = LogicalOperator.AND


# =============================================================================
# TYPED FILTER VALUES
# =============================================================================


Scalar = Union[str, int, float, bool, date]


@dataclass(frozen=True)
class NoValue:
    """Operators that take no value (IS_NULL, IS_NOT_NULL)."""


@dataclass(frozen=True)
class ScalarValue:
    value: Scalar


@dataclass(frozen=True)
class ListValue:
    values: tuple[Scalar, ...]


@dataclass(frozen=True)
class RangeValue:
    """Inclusive range used by BETWEEN."""

    low: Scalar
    high: Scalar


FilterValue = Union[NoValue, ScalarValue, ListValue, RangeValue]


# =============================================================================
# VALIDATED REQUEST
# =============================================================================


@dataclass(frozen=True)
class ValidatedCriterion:
    """A criterion whose field, operator and value passed validation."""

    field: SearchField
    operator: FilterOperator
    value: FilterValue
    warnings: tuple[str, ...] = ()

    def describe(self) -> str:
        """Render the criterion for diagnostics."""
        value = self.value
        if isinstance(value, ScalarValue):
            return f"{self.field.name} {self.operator.value} {_render(value.value)}"
        if isinstance(value, ListValue):
            items = ", ".join(_render(item) for item in value.values)
            return f"{self.field.name} {self.operator.value} [{items}]"
        if isinstance(value, RangeValue):
            return (
                f"{self.field.name} {self.operator.value} "
                f"{_render(value.low)} AND {_render(value.high)}"
            )
        return f"{self.field.name} {self.operator.value}"


@dataclass(frozen=True)
class ValidatedGroup:
    criteria: tuple[ValidatedCriterion, ...]
    operator: LogicalOperator


@dataclass(frozen=True)
class ValidatedRequest:
    groups: tuple[ValidatedGroup, ...]
    group_operator: LogicalOperator

    @property
    def total_filters(self) -> int:
        """Number of leaf criteria, not groups."""
        return sum(len(group.criteria) for group in self.groups)

    @property
    def warnings(self) -> list[str]:
        return [
            warning
            for group in self.groups
            for criterion in group.criteria
            for warning in criterion.warnings
        ]

    def describe(self) -> str:
        """Render the whole expression, e.g. (a OR b) AND (c)."""
        rendered_groups = []
        for group in self.groups:
            joiner = f" {group.operator.value} "
            rendered_groups.append(
                "(" + joiner.join(c.describe() for c in group.criteria) + ")"
            )
        return f" {self.group_operator.value} ".join(rendered_groups)


def _render(value: Scalar) -> str:
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value).lower() if isinstance(value, bool) else str(value)


# =============================================================================
# RESULT METADATA
# =============================================================================


@dataclass
class SearchMetadata:
    """Diagnostics attached to every search response.

    Attributes:
        total_filters_applied: Number of leaf criteria applied
        execution_time_ms: Wall-clock time of the search
        query: Human readable description of the applied expression
        warnings: Values that were supplied but ignored
    """

    total_filters_applied: int
    execution_time_ms: int
    query: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_filters_applied": self.total_filters_applied,
            "execution_time_ms": self.execution_time_ms,
            "query": self.query,
            "warnings": list(self.warnings),
        }
