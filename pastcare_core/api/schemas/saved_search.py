"""Pydantic schemas for the Saved Search API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class SavedSearchWrite(BaseModel):
    """Request schema for creating or replacing a saved search."""

    model_config = ConfigDict(populate_by_name=True)

    search_name: str = Field(..., alias="searchName", max_length=255)
    search_criteria: dict[str, Any] = Field(
        ..., alias="searchCriteria", description="Advanced search request"
    )
    is_public: bool = Field(False, alias="isPublic")
    is_dynamic: bool = Field(False, alias="isDynamic")
    description: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class CreatorInfo(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class SavedSearchResponse(BaseModel):
    """Response schema for a saved search."""

    id: int
    search_name: str
    search_criteria: dict[str, Any]
    is_public: bool
    is_dynamic: bool
    description: Optional[str]
    last_executed: Optional[datetime]
    last_result_count: Optional[int]
    last_executed_ago: str
    created_by: CreatorInfo
    created_at: datetime
    updated_at: datetime
    can_edit: bool
    can_delete: bool

    model_config = ConfigDict(from_attributes=True)


class SavedSearchListResponse(BaseModel):
    """Response schema for a page of saved searches."""

    items: list[SavedSearchResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
