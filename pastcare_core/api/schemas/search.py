"""Advanced member search API schemas.

Request bodies only fix the JSON shape. Operators, missing elements and
values are checked by the search engine, which reports every problem
with its field and operator.
"""

from dataclasses import asdict
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from pastcare_core.domain.services.member_search import AdvancedSearchResult


class FilterCriteriaBody(BaseModel):
    """A single filter criterion."""

    model_config = ConfigDict(populate_by_name=True)

    field: Optional[str] = Field(None, description="Field name, e.g. 'firstName'")
    operator: Optional[str] = Field(None, description="Filter operator, e.g. 'EQUALS'")
    value: Any = Field(None, description="Value, list of values or range start")
    max_value: Any = Field(None, alias="maxValue", description="Range end (BETWEEN)")


class FilterGroupBody(BaseModel):
    """Filters combined with one logical operator."""

    filters: Optional[list[FilterCriteriaBody]] = None
    operator: Optional[str] = Field(None, description="AND (default) or OR")


class AdvancedSearchBody(BaseModel):
    """Request schema for the advanced member search."""

    model_config = ConfigDict(populate_by_name=True)

    filter_groups: list[FilterGroupBody] = Field(default_factory=list, alias="filterGroups")
    group_operator: Optional[str] = Field(
        None, alias="groupOperator", description="AND (default) or OR"
    )

    def to_wire(self) -> dict[str, Any]:
        """Untyped form consumed by the request parser."""
        return self.model_dump(by_alias=True)


class LocationResponse(BaseModel):
    id: int
    suburb: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


class MemberResponse(BaseModel):
    """A member in search results."""

    id: int
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    sex: Optional[str] = None
    marital_status: Optional[str] = None
    date_of_birth: Optional[date] = None
    status: Optional[str] = None
    member_since: Optional[date] = None
    is_verified: Optional[bool] = None
    profile_completeness: Optional[float] = None
    location: Optional[LocationResponse] = None
    tags: list[str] = Field(default_factory=list)
    fellowship_ids: list[int] = Field(default_factory=list)


class MemberPage(BaseModel):
    """A page of members."""

    items: list[MemberResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class SearchMetadataResponse(BaseModel):
    """Diagnostics for an executed search."""

    total_filters_applied: int
    execution_time_ms: int
    query: str
    warnings: list[str] = Field(default_factory=list)


class AdvancedSearchResponse(BaseModel):
    """Response schema for the advanced member search."""

    members: MemberPage
    metadata: SearchMetadataResponse

    @classmethod
    def from_result(cls, result: AdvancedSearchResult) -> "AdvancedSearchResponse":
        page = result.page
        return cls(
            members=MemberPage(
                items=[MemberResponse.model_validate(asdict(item)) for item in page.items],
                total=page.total,
                page=page.page,
                page_size=page.page_size,
                total_pages=page.total_pages,
                has_next=page.has_next,
                has_previous=page.has_previous,
            ),
            metadata=SearchMetadataResponse(**result.metadata.to_dict()),
        )
