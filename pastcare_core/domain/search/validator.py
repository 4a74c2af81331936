"""Operator validator for advanced search criteria.

Checks every criterion against its field's type contract before any
query is built:
1. The operator must be supported by the field type
2. The value must have the shape the operator requires
   (none, scalar, list or range)
3. Every value must coerce to the field's value type

Text values are lower-cased here; the predicate builder lower-cases
the stored side, so text matching is case-insensitive on any store.

Usage:
    validator = OperatorValidator()

    # One criterion; returns a ValidatedCriterion or a FilterIssue
    outcome = validator.validate(field, FilterOperator.EQUALS, "John")

    # A whole request; raises with every issue found
    validated = validator.validate_request(request)
"""

import math
import re
from datetime import date, datetime
from typing import Any, Optional, Union

from pastcare_core.domain.search import fields as field_catalog
from pastcare_core.domain.search.errors import (
    EMPTY_GROUP,
    EMPTY_LIST,
    EXPECTED_LIST,
    EXPECTED_SCALAR,
    INVALID_VALUE,
    INVERTED_RANGE,
    MISSING_VALUE,
    OPERATOR_NOT_SUPPORTED,
    FilterIssue,
    RequestMalformedError,
    SearchValidationError,
    UnknownFieldError,
)
from pastcare_core.domain.search.fields import FieldType, SearchField
from pastcare_core.domain.search.model import (
    AdvancedSearchRequest,
    FilterValue,
    ListValue,
    NoValue,
    RangeValue,
    Scalar,
    ScalarValue,
    ValidatedCriterion,
    ValidatedGroup,
    ValidatedRequest,
)
from pastcare_core.domain.search.operators import (
    FilterOperator,
    ValueArity,
    arity_of,
    supports,
)
from pastcare_core.observability.logging import get_logger


logger = get_logger(__name__)

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}

# Plain decimal text only: no underscores, exponents or non-ASCII digits
_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")
_DECIMAL_TEXT = re.compile(r"[+-]?(?:[0-9]+\.[0-9]*|\.[0-9]+)")

# Signed 64-bit range accepted by every supported store
MIN_NUMBER = -(2**63)
MAX_NUMBER = 2**63 - 1


class _CoercionError(Exception):
    """Raised internally when a value cannot be coerced."""

    def __init__(self, reason: str, code: str = INVALID_VALUE):
        self.reason = reason
        self.code = code
        super().__init__(reason)


class OperatorValidator:
    """Validates criteria against the field catalog's type contracts."""

    def validate(
        self,
        search_field: SearchField,
        operator: FilterOperator,
        value: Any = None,
        max_value: Any = None,
    ) -> Union[ValidatedCriterion, FilterIssue]:
        """Validate a single criterion.

        Args:
            search_field: Resolved catalog field.
            operator: Requested operator.
            value: Raw client value.
            max_value: Raw upper bound (BETWEEN only).

        Returns:
            A ValidatedCriterion, or a FilterIssue describing the failure.
        """
        if not supports(search_field.type, operator):
            return self._issue(
                search_field,
                operator,
                f"Operator {operator.value} is not supported for "
                f"{search_field.type.value} field '{search_field.name}'",
                OPERATOR_NOT_SUPPORTED,
            )

        arity = arity_of(operator)
        warnings: list[str] = []

        if max_value is not None and arity != ValueArity.RANGE:
            warnings.append(
                f"maxValue ignored for {search_field.name} {operator.value}"
            )

        try:
            if arity == ValueArity.NONE:
                if value is not None:
                    warnings.append(
                        f"value ignored for {search_field.name} {operator.value}"
                    )
                typed: FilterValue = NoValue()
            elif arity == ValueArity.SCALAR:
                typed = ScalarValue(self._coerce_scalar(search_field, value))
            elif arity == ValueArity.LIST:
                typed = ListValue(self._coerce_list(search_field, value))
            else:
                typed = self._coerce_range(search_field, value, max_value)
        except _CoercionError as e:
            return self._issue(search_field, operator, e.reason, e.code)

        for warning in warnings:
            logger.warning(
                "Ignoring supplied search value",
                field=search_field.name,
                operator=operator.value,
                detail=warning,
            )

        return ValidatedCriterion(
            field=search_field,
            operator=operator,
            value=typed,
            warnings=tuple(warnings),
        )

    def validate_request(self, request: AdvancedSearchRequest) -> ValidatedRequest:
        """Resolve and validate every criterion of a request.

        All issues are collected before raising, so a client can fix
        every problem in one round trip.

        Raises:
            TenantScopeViolationError: A field references the tenant.
            RequestMalformedError: Unknown fields (with any other issues).
            SearchValidationError: Type, arity or value problems.
        """
        issues: list[FilterIssue] = []
        groups: list[ValidatedGroup] = []

        for group_index, group in enumerate(request.filter_groups):
            if not group.filters:
                issues.append(
                    FilterIssue(
                        reason="Filter group has no filters",
                        code=EMPTY_GROUP,
                        group_index=group_index,
                    )
                )
                continue

            criteria: list[ValidatedCriterion] = []
            for filter_index, criterion in enumerate(group.filters):
                try:
                    # TenantScopeViolationError propagates: fail closed
                    search_field = field_catalog.resolve(criterion.field)
                except UnknownFieldError as e:
                    issues.extend(
                        issue.at(group_index, filter_index)
                        for issue in _with_operator(e.issues, criterion.operator)
                    )
                    continue

                outcome = self.validate(
                    search_field,
                    criterion.operator,
                    criterion.value,
                    criterion.max_value,
                )
                if isinstance(outcome, FilterIssue):
                    issues.append(outcome.at(group_index, filter_index))
                else:
                    criteria.append(outcome)

            groups.append(ValidatedGroup(criteria=tuple(criteria), operator=group.operator))

        if issues:
            if any(issue.is_malformed for issue in issues):
                raise RequestMalformedError(issues)
            raise SearchValidationError(issues)

        return ValidatedRequest(groups=tuple(groups), group_operator=request.group_operator)

    # =========================================================================
    # VALUE SHAPES
    # =========================================================================

    def _coerce_scalar(self, search_field: SearchField, value: Any) -> Scalar:
        if value is None:
            raise _CoercionError(
                f"A value is required for field '{search_field.name}'", MISSING_VALUE
            )
        if isinstance(value, (list, tuple, set, dict)):
            raise _CoercionError(
                f"Field '{search_field.name}' expects a single value", EXPECTED_SCALAR
            )
        return coerce_value(search_field, value)

    def _coerce_list(self, search_field: SearchField, value: Any) -> tuple[Scalar, ...]:
        if value is None:
            raise _CoercionError(
                f"A list of values is required for field '{search_field.name}'",
                MISSING_VALUE,
            )
        if not isinstance(value, (list, tuple, set)):
            raise _CoercionError(
                f"Field '{search_field.name}' expects a list of values", EXPECTED_LIST
            )
        if not value:
            raise _CoercionError(
                f"Value list for field '{search_field.name}' must not be empty",
                EMPTY_LIST,
            )

        coerced: list[Scalar] = []
        for item in value:
            if item is None or isinstance(item, (list, tuple, set, dict)):
                raise _CoercionError(
                    f"Value list for field '{search_field.name}' may only contain "
                    f"single values"
                )
            typed = coerce_value(search_field, item)
            if typed not in coerced:
                coerced.append(typed)
        return tuple(coerced)

    def _coerce_range(
        self, search_field: SearchField, value: Any, max_value: Any
    ) -> RangeValue:
        if value is None or max_value is None:
            raise _CoercionError(
                f"BETWEEN on field '{search_field.name}' requires both value and maxValue",
                MISSING_VALUE,
            )
        low = self._coerce_scalar(search_field, value)
        high = self._coerce_scalar(search_field, max_value)
        if low > high:
            raise _CoercionError(
                f"BETWEEN on field '{search_field.name}' has value {low} "
                f"greater than maxValue {high}",
                INVERTED_RANGE,
            )
        return RangeValue(low=low, high=high)

    @staticmethod
    def _issue(
        search_field: SearchField,
        operator: FilterOperator,
        reason: str,
        code: str,
    ) -> FilterIssue:
        return FilterIssue(
            reason=reason,
            code=code,
            field=search_field.name,
            operator=operator.value,
        )


def _with_operator(issues: list[FilterIssue], operator: FilterOperator) -> list[FilterIssue]:
    return [
        FilterIssue(
            reason=issue.reason,
            code=issue.code,
            field=issue.field,
            operator=operator.value,
        )
        for issue in issues
    ]


# =============================================================================
# SCALAR COERCION
# =============================================================================


def coerce_value(search_field: SearchField, value: Any) -> Scalar:
    """Coerce one raw value to the field's value type."""
    value_type = search_field.value_type

    if value_type == FieldType.TEXT:
        return _coerce_text(search_field, value)
    if value_type == FieldType.NUMBER:
        return _coerce_number(search_field, value)
    if value_type == FieldType.DATE:
        return _coerce_date(search_field, value)
    return _coerce_boolean(search_field, value)


def _coerce_text(search_field: SearchField, value: Any) -> str:
    if isinstance(value, bool):
        raise _CoercionError(f"Field '{search_field.name}' expects text, got a boolean")
    if isinstance(value, (int, float)):
        return str(value).lower()
    if isinstance(value, str):
        return value.lower()
    raise _CoercionError(f"Field '{search_field.name}' expects text")


def _coerce_number(search_field: SearchField, value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        raise _CoercionError(f"Field '{search_field.name}' expects a number, got a boolean")

    number: Optional[Union[int, float]] = None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if _INTEGER_TEXT.fullmatch(text):
            number = int(text)
        elif _DECIMAL_TEXT.fullmatch(text):
            number = float(text)

    if number is None or (isinstance(number, float) and not math.isfinite(number)):
        raise _CoercionError(f"Field '{search_field.name}' expects a number, got {value!r}")

    if not MIN_NUMBER <= number <= MAX_NUMBER:
        raise _CoercionError(f"Field '{search_field.name}' is out of range, got {value!r}")

    if search_field.whole_numbers:
        if isinstance(number, float):
            if not number.is_integer():
                raise _CoercionError(
                    f"Field '{search_field.name}' expects a whole number, got {value!r}"
                )
            number = int(number)

    if search_field.minimum is not None and number < search_field.minimum:
        raise _CoercionError(
            f"Field '{search_field.name}' must be at least {search_field.minimum:g}"
        )
    return number


def _coerce_date(search_field: SearchField, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) > 10:
                return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
            return date.fromisoformat(text)
        except ValueError:
            pass
    raise _CoercionError(
        f"Field '{search_field.name}' expects an ISO-8601 date (YYYY-MM-DD), got {value!r}"
    )


def _coerce_boolean(search_field: SearchField, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise _CoercionError(f"Field '{search_field.name}' expects true or false, got {value!r}")
