"""Serialization of advanced search requests.

Saved searches store their criteria as JSON text. The wire format uses
the same camelCase keys the HTTP API accepts:

    {
        "filterGroups": [
            {
                "filters": [
                    {"field": "firstName", "operator": "EQUALS", "value": "john"}
                ],
                "operator": "AND"
            }
        ],
        "groupOperator": "AND"
    }

parse_request also accepts snake_case keys. deserialize(serialize(r))
is equal to r for every request.
"""

import json
from typing import Any, Optional

from pastcare_core.domain.search.errors import (
    INVALID_JSON,
    INVALID_STRUCTURE,
    MISSING_ELEMENT,
    UNKNOWN_OPERATOR,
    FilterIssue,
    RequestMalformedError,
)
from pastcare_core.domain.search.model import (
    AdvancedSearchRequest,
    FilterCriteria,
    FilterGroup,
)
from pastcare_core.domain.search.operators import (
    parse_filter_operator,
    parse_logical_operator,
)


_MISSING = object()


def _get(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return _MISSING


def to_dict(request: AdvancedSearchRequest) -> dict[str, Any]:
    """Convert a request to its JSON-ready wire form."""
    groups = []
    for group in request.filter_groups:
        filters = []
        for criterion in group.filters:
            item: dict[str, Any] = {
                "field": criterion.field,
                "operator": criterion.operator.value,
            }
            if criterion.value is not None:
                item["value"] = criterion.value
            if criterion.max_value is not None:
                item["maxValue"] = criterion.max_value
            filters.append(item)
        groups.append({"filters": filters, "operator": group.operator.value})
    return {"filterGroups": groups, "groupOperator": request.group_operator.value}


def parse_request(data: Any) -> AdvancedSearchRequest:
    """Build a request from untyped JSON data.

    Every structural problem in the payload is collected before raising.

    Raises:
        RequestMalformedError: Missing elements, wrong shapes or unknown
            operators.
    """
    issues: list[FilterIssue] = []

    if not isinstance(data, dict):
        raise RequestMalformedError(
            [FilterIssue(reason="Search request must be a JSON object", code=INVALID_STRUCTURE)]
        )

    raw_groups = _get(data, "filterGroups", "filter_groups")
    if raw_groups is _MISSING or raw_groups is None:
        raw_groups = []
    if not isinstance(raw_groups, list):
        raise RequestMalformedError(
            [FilterIssue(reason="filterGroups must be a list", code=INVALID_STRUCTURE)]
        )

    group_operator = _parse_logical(
        _get(data, "groupOperator", "group_operator"), "groupOperator", issues
    )

    groups: list[FilterGroup] = []
    for group_index, raw_group in enumerate(raw_groups):
        group = _parse_group(raw_group, group_index, issues)
        if group is not None:
            groups.append(group)

    if issues:
        raise RequestMalformedError(issues)

    return AdvancedSearchRequest(filter_groups=groups, group_operator=group_operator)


def _parse_group(
    raw_group: Any, group_index: int, issues: list[FilterIssue]
) -> Optional[FilterGroup]:
    if not isinstance(raw_group, dict):
        issues.append(
            FilterIssue(
                reason="Filter group must be an object",
                code=INVALID_STRUCTURE,
                group_index=group_index,
            )
        )
        return None

    raw_filters = raw_group.get("filters", _MISSING)
    if raw_filters is _MISSING or raw_filters is None:
        issues.append(
            FilterIssue(
                reason="Filter group is missing 'filters'",
                code=MISSING_ELEMENT,
                group_index=group_index,
            )
        )
        return None
    if not isinstance(raw_filters, list):
        issues.append(
            FilterIssue(
                reason="'filters' must be a list",
                code=INVALID_STRUCTURE,
                group_index=group_index,
            )
        )
        return None

    operator = _parse_logical(raw_group.get("operator"), "operator", issues, group_index)

    filters: list[FilterCriteria] = []
    for filter_index, raw_filter in enumerate(raw_filters):
        criterion = _parse_filter(raw_filter, group_index, filter_index, issues)
        if criterion is not None:
            filters.append(criterion)

    return FilterGroup(filters=filters, operator=operator)


def _parse_filter(
    raw_filter: Any, group_index: int, filter_index: int, issues: list[FilterIssue]
) -> Optional[FilterCriteria]:
    if not isinstance(raw_filter, dict):
        issues.append(
            FilterIssue(
                reason="Filter must be an object",
                code=INVALID_STRUCTURE,
                group_index=group_index,
                filter_index=filter_index,
            )
        )
        return None

    field_name = raw_filter.get("field")
    raw_operator = raw_filter.get("operator")
    found = len(issues)

    if not isinstance(field_name, str) or not field_name.strip():
        issues.append(
            FilterIssue(
                reason="Filter is missing 'field'",
                code=MISSING_ELEMENT,
                operator=raw_operator if isinstance(raw_operator, str) else None,
                group_index=group_index,
                filter_index=filter_index,
            )
        )

    operator = None
    if raw_operator is None:
        issues.append(
            FilterIssue(
                reason="Filter is missing 'operator'",
                code=MISSING_ELEMENT,
                field=field_name if isinstance(field_name, str) else None,
                group_index=group_index,
                filter_index=filter_index,
            )
        )
    else:
        try:
            operator = parse_filter_operator(raw_operator)
        except ValueError as e:
            issues.append(
                FilterIssue(
                    reason=str(e),
                    code=UNKNOWN_OPERATOR,
                    field=field_name if isinstance(field_name, str) else None,
                    operator=str(raw_operator),
                    group_index=group_index,
                    filter_index=filter_index,
                )
            )

    if len(issues) > found:
        return None

    max_value = _get(raw_filter, "maxValue", "max_value")
    return FilterCriteria(
        field=field_name,
        operator=operator,
        value=raw_filter.get("value"),
        max_value=None if max_value is _MISSING else max_value,
    )


def _parse_logical(
    raw: Any,
    name: str,
    issues: list[FilterIssue],
    group_index: Optional[int] = None,
):
    try:
        return parse_logical_operator(raw)
    except ValueError as e:
        issues.append(
            FilterIssue(
                reason=f"{name}: {e}",
                code=UNKNOWN_OPERATOR,
                operator=str(raw),
                group_index=group_index,
            )
        )
        return None


def serialize(request: AdvancedSearchRequest) -> str:
    """Serialize a request to JSON text."""
    return json.dumps(to_dict(request))


def deserialize(text: str) -> AdvancedSearchRequest:
    """Rebuild a request from JSON text.

    Raises:
        RequestMalformedError: Invalid JSON or structure.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise RequestMalformedError(
            [FilterIssue(reason=f"Invalid search criteria JSON: {e}", code=INVALID_JSON)]
        ) from e
    return parse_request(data)
