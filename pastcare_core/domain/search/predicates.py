"""Predicate builder for advanced search criteria.

Turns one ValidatedCriterion into a SQLAlchemy boolean clause over the
Member model. The builder is pure: it never touches a session and the
same criterion always yields an equivalent clause.

Storage paths are resolved against the model:
- A plain column ("first_name") is used directly.
- A many-to-one path ("location.city") becomes a correlated scalar
  subquery, so a missing related row reads as NULL.
- A collection path ("tags.tag") becomes an EXISTS over the
  relationship (relationship.any()).
"""

import operator as op
from datetime import date
from typing import Any, Callable, Optional

from sqlalchemy import ColumnElement, and_, func, inspect, not_, or_, select

from pastcare_core.domain.models import Member
from pastcare_core.domain.search.errors import TenantScopeViolationError
from pastcare_core.domain.search.fields import FieldType, SearchField, references_tenant
from pastcare_core.domain.search.model import (
    ListValue,
    RangeValue,
    ScalarValue,
    ValidatedCriterion,
)
from pastcare_core.domain.search.operators import FilterOperator


_COMPARISONS: dict[FilterOperator, Callable[[Any, Any], Any]] = {
    FilterOperator.EQUALS: op.eq,
    FilterOperator.NOT_EQUALS: op.ne,
    FilterOperator.GREATER_THAN: op.gt,
    FilterOperator.LESS_THAN: op.lt,
    FilterOperator.GREATER_OR_EQUAL: op.ge,
    FilterOperator.LESS_OR_EQUAL: op.le,
}

_TEXT_PATTERNS: dict[FilterOperator, str] = {
    FilterOperator.CONTAINS: "contains",
    FilterOperator.STARTS_WITH: "startswith",
    FilterOperator.ENDS_WITH: "endswith",
}


class PredicateBuilder:
    """Builds SQL predicates for validated criteria.

    Args:
        model: Mapped class the storage paths are relative to.
        today: Reference date for derived age; defaults to date.today()
            at build time.
    """

    def __init__(self, model: type = Member, today: Optional[date] = None):
        self.model = model
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def build(self, criterion: ValidatedCriterion) -> ColumnElement[bool]:
        """Translate a validated criterion into a boolean clause."""
        search_field = criterion.field
        self._guard(search_field)

        if search_field.type == FieldType.COLLECTION:
            return self._collection(criterion)
        if search_field.derived == "age":
            return self._age(criterion)

        column = self.expression_for(search_field)
        if search_field.type == FieldType.TEXT:
            return self._text(column, criterion)
        return self._ordered(column, criterion)

    def expression_for(self, search_field: SearchField) -> ColumnElement[Any]:
        """Scalar SQL expression holding a non-collection field's value."""
        self._guard(search_field)
        if search_field.type == FieldType.COLLECTION:
            raise ValueError(f"Field {search_field.name} is a collection")

        parts = search_field.storage_path.split(".")
        if len(parts) == 1:
            return getattr(self.model, parts[0])
        if len(parts) != 2:
            raise ValueError(f"Unsupported storage path: {search_field.storage_path}")

        relationship_name, column_name = parts
        prop = inspect(self.model).relationships[relationship_name]
        target = prop.mapper.class_
        pairs = [remote == local for local, remote in prop.local_remote_pairs]
        return (
            select(getattr(target, column_name))
            .where(and_(*pairs))
            .correlate(self.model)
            .scalar_subquery()
        )

    @staticmethod
    def _guard(search_field: SearchField) -> None:
        if references_tenant(search_field.storage_path):
            raise TenantScopeViolationError(
                "Search criteria may not reference the tenant scope",
                field_name=search_field.name,
            )

    # =========================================================================
    # TEXT
    # =========================================================================

    def _text(
        self, column: ColumnElement[Any], criterion: ValidatedCriterion
    ) -> ColumnElement[bool]:
        operator = criterion.operator
        lowered = func.lower(column)

        if operator == FilterOperator.IS_NULL:
            return or_(column.is_(None), func.trim(column) == "")
        if operator == FilterOperator.IS_NOT_NULL:
            return and_(column.is_not(None), func.trim(column) != "")

        if operator in _TEXT_PATTERNS:
            method = getattr(lowered, _TEXT_PATTERNS[operator])
            return method(_scalar(criterion), autoescape=True)

        if operator == FilterOperator.EQUALS:
            return lowered == _scalar(criterion)
        if operator == FilterOperator.NOT_EQUALS:
            return or_(column.is_(None), lowered != _scalar(criterion))
        if operator == FilterOperator.IN:
            return lowered.in_(_values(criterion))
        if operator == FilterOperator.NOT_IN:
            return or_(column.is_(None), lowered.not_in(_values(criterion)))

        raise ValueError(f"Operator {operator.value} not handled for text")

    # =========================================================================
    # NUMBER / DATE / BOOLEAN
    # =========================================================================

    def _ordered(
        self, column: ColumnElement[Any], criterion: ValidatedCriterion
    ) -> ColumnElement[bool]:
        operator = criterion.operator

        if operator == FilterOperator.IS_NULL:
            return column.is_(None)
        if operator == FilterOperator.IS_NOT_NULL:
            return column.is_not(None)
        if operator == FilterOperator.NOT_EQUALS:
            return or_(column.is_(None), column != _scalar(criterion))
        if operator in _COMPARISONS:
            return _COMPARISONS[operator](column, _scalar(criterion))
        if operator == FilterOperator.BETWEEN:
            bounds = _range(criterion)
            return column.between(bounds.low, bounds.high)
        if operator == FilterOperator.IN:
            return column.in_(_values(criterion))
        if operator == FilterOperator.NOT_IN:
            return or_(column.is_(None), column.not_in(_values(criterion)))

        raise ValueError(f"Operator {operator.value} not handled")

    # =========================================================================
    # DERIVED AGE
    # =========================================================================

    def _age(self, criterion: ValidatedCriterion) -> ColumnElement[bool]:
        """Age in whole years, expressed as date_of_birth bounds.

        age >= n  <=>  date_of_birth <= today minus n years
        """
        dob = self.expression_for(criterion.field)
        operator = criterion.operator

        def at_least(years: int) -> ColumnElement[bool]:
            return dob <= _years_before(self.today, years)

        def below(years: int) -> ColumnElement[bool]:
            return dob > _years_before(self.today, years)

        def exactly(years: int) -> ColumnElement[bool]:
            return and_(at_least(years), below(years + 1))

        if operator == FilterOperator.IS_NULL:
            return dob.is_(None)
        if operator == FilterOperator.IS_NOT_NULL:
            return dob.is_not(None)
        if operator == FilterOperator.BETWEEN:
            bounds = _range(criterion)
            return and_(at_least(int(bounds.low)), below(int(bounds.high) + 1))
        if operator == FilterOperator.IN:
            return or_(*(exactly(int(years)) for years in _values(criterion)))
        if operator == FilterOperator.NOT_IN:
            matches = or_(*(exactly(int(years)) for years in _values(criterion)))
            return or_(dob.is_(None), not_(matches))

        years = int(_scalar(criterion))
        if operator == FilterOperator.EQUALS:
            return exactly(years)
        if operator == FilterOperator.NOT_EQUALS:
            return or_(dob.is_(None), not_(exactly(years)))
        if operator == FilterOperator.GREATER_OR_EQUAL:
            return at_least(years)
        if operator == FilterOperator.GREATER_THAN:
            return at_least(years + 1)
        if operator == FilterOperator.LESS_THAN:
            return below(years)
        if operator == FilterOperator.LESS_OR_EQUAL:
            return below(years + 1)

        raise ValueError(f"Operator {operator.value} not handled for age")

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def _collection(self, criterion: ValidatedCriterion) -> ColumnElement[bool]:
        relationship_name, column_name = criterion.field.storage_path.split(".")
        relationship = getattr(self.model, relationship_name)
        target = inspect(self.model).relationships[relationship_name].mapper.class_
        element = getattr(target, column_name)
        if criterion.field.value_type == FieldType.TEXT:
            element = func.lower(element)

        operator = criterion.operator
        if operator == FilterOperator.IS_NULL:
            return not_(relationship.any())
        if operator == FilterOperator.IS_NOT_NULL:
            return relationship.any()
        if operator == FilterOperator.CONTAINS:
            return relationship.any(element == _scalar(criterion))
        if operator == FilterOperator.IN:
            return relationship.any(element.in_(_values(criterion)))
        if operator == FilterOperator.NOT_IN:
            return not_(relationship.any(element.in_(_values(criterion))))

        raise ValueError(f"Operator {operator.value} not handled for collections")


def _scalar(criterion: ValidatedCriterion) -> Any:
    if not isinstance(criterion.value, ScalarValue):
        raise ValueError(f"{criterion.operator.value} requires a single value")
    return criterion.value.value


def _values(criterion: ValidatedCriterion) -> list[Any]:
    if not isinstance(criterion.value, ListValue):
        raise ValueError(f"{criterion.operator.value} requires a list of values")
    return list(criterion.value.values)


def _range(criterion: ValidatedCriterion) -> RangeValue:
    if not isinstance(criterion.value, RangeValue):
        raise ValueError(f"{criterion.operator.value} requires a range")
    return criterion.value


def _years_before(today: date, years: int) -> date:
    """The date exactly `years` years before today (Feb 29 falls back to the 28th)."""
    year = today.year - years
    if year < date.min.year:
        return date.min
    try:
        return today.replace(year=year)
    except ValueError:
        return today.replace(year=year, day=28)
