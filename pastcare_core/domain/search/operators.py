"""Filter and logical operators with their compatibility tables."""

from enum import Enum
from typing import Any

from pastcare_core.domain.search.fields import FieldType


class FilterOperator(str, Enum):
    """Comparison applied by a single filter criterion."""

    # Text operators
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"

    # Ordered operators
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_OR_EQUAL = "GREATER_OR_EQUAL"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"
    BETWEEN = "BETWEEN"

    # Set operators
    IN = "IN"
    NOT_IN = "NOT_IN"

    # Presence operators
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"


class LogicalOperator(str, Enum):
    """Operator combining criteria inside a group, or groups together."""

    AND = "AND"
    OR = "OR"


class ValueArity(str, Enum):
    """Shape of the value an operator requires."""

    NONE = "NONE"
    SCALAR = "SCALAR"
    LIST = "LIST"
    RANGE = "RANGE"


OPERATOR_ARITY: dict[FilterOperator, ValueArity] = {
    FilterOperator.EQUALS: ValueArity.SCALAR,
    FilterOperator.NOT_EQUALS: ValueArity.SCALAR,
    FilterOperator.CONTAINS: ValueArity.SCALAR,
    FilterOperator.STARTS_WITH: ValueArity.SCALAR,
    FilterOperator.ENDS_WITH: ValueArity.SCALAR,
    FilterOperator.GREATER_THAN: ValueArity.SCALAR,
    FilterOperator.LESS_THAN: ValueArity.SCALAR,
    FilterOperator.GREATER_OR_EQUAL: ValueArity.SCALAR,
    FilterOperator.LESS_OR_EQUAL: ValueArity.SCALAR,
    FilterOperator.BETWEEN: ValueArity.RANGE,
    FilterOperator.IN: ValueArity.LIST,
    FilterOperator.NOT_IN: ValueArity.LIST,
    FilterOperator.IS_NULL: ValueArity.NONE,
    FilterOperator.IS_NOT_NULL: ValueArity.NONE,
}

_PRESENCE = frozenset({FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL})
_SET = frozenset({FilterOperator.IN, FilterOperator.NOT_IN})
_ORDERED = frozenset(
    {
        FilterOperator.EQUALS,
        FilterOperator.NOT_EQUALS,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_OR_EQUAL,
        FilterOperator.LESS_OR_EQUAL,
        FilterOperator.BETWEEN,
    }
)

SUPPORTED_OPERATORS: dict[FieldType, frozenset[FilterOperator]] = {
    FieldType.TEXT: frozenset(
        {
            FilterOperator.EQUALS,
            FilterOperator.NOT_EQUALS,
            FilterOperator.CONTAINS,
            FilterOperator.STARTS_WITH,
            FilterOperator.ENDS_WITH,
        }
    )
    | _SET
    | _PRESENCE,
    FieldType.NUMBER: _ORDERED | _SET | _PRESENCE,
    FieldType.DATE: _ORDERED | _SET | _PRESENCE,
    FieldType.BOOLEAN: frozenset({FilterOperator.EQUALS, FilterOperator.NOT_EQUALS})
    | _PRESENCE,
    FieldType.COLLECTION: frozenset({FilterOperator.CONTAINS}) | _SET | _PRESENCE,
}


def supports(field_type: FieldType, operator: FilterOperator) -> bool:
    """Check whether an operator may be used against a field type."""
    return operator in SUPPORTED_OPERATORS[field_type]


def arity_of(operator: FilterOperator) -> ValueArity:
    return OPERATOR_ARITY[operator]


def parse_filter_operator(raw: Any) -> FilterOperator:
    """Parse a client supplied operator name.

    Raises:
        ValueError: If the name is not a known operator.
    """
    if isinstance(raw, FilterOperator):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"Unknown filter operator: {raw!r}")
    try:
        return FilterOperator(raw.strip().upper())
    except ValueError:
        raise ValueError(f"Unknown filter operator: {raw!r}") from None


def parse_logical_operator(raw: Any) -> LogicalOperator:
    """Parse a logical operator, defaulting to AND when absent.

    Raises:
        ValueError: If the name is not AND or OR.
    """
    if raw is None:
        return LogicalOperator.AND
    if isinstance(raw, LogicalOperator):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"Unknown logical operator: {raw!r}")
    try:
        return LogicalOperator(raw.strip().upper())
    except ValueError:
        raise ValueError(f"Unknown logical operator: {raw!r}") from None
