"""Expression composer: folds validated criteria into one predicate."""

from functools import reduce
from typing import Optional

from sqlalchemy import ColumnElement, and_, or_, true

from pastcare_core.domain.search.model import AdvancedSearchRequest, ValidatedRequest
from pastcare_core.domain.search.operators import LogicalOperator
from pastcare_core.domain.search.predicates import PredicateBuilder
from pastcare_core.domain.search.validator import OperatorValidator


_COMBINE = {
    LogicalOperator.AND: and_,
    LogicalOperator.OR: or_,
}


def _fold(
    clauses: list[ColumnElement[bool]], operator: LogicalOperator
) -> ColumnElement[bool]:
    if len(clauses) == 1:
        return clauses[0]
    return reduce(_COMBINE[operator], clauses)


class ExpressionComposer:
    """Composes (f1 OP f2 ...) GROUP_OP (f3 OP f4 ...) expressions.

    Groups and filters are folded strictly in request order, so the
    same request always yields the same SQL.
    """

    def __init__(
        self,
        validator: Optional[OperatorValidator] = None,
        builder: Optional[PredicateBuilder] = None,
    ):
        self.validator = validator or OperatorValidator()
        self.builder = builder or PredicateBuilder()

    def compose(self, request: AdvancedSearchRequest) -> ColumnElement[bool]:
        """Validate and compose a raw request."""
        return self.compose_validated(self.validator.validate_request(request))

    def compose_validated(self, validated: ValidatedRequest) -> ColumnElement[bool]:
        """Compose an already validated request.

        A request with no groups matches every row.
        """
        if not validated.groups:
            return true()

        group_clauses = [
            _fold([self.builder.build(c) for c in group.criteria], group.operator)
            for group in validated.groups
        ]
        return _fold(group_clauses, validated.group_operator)
