"""Saved Searches API routes.

Provides endpoints for:
- GET /saved-searches - List searches visible to the user
- POST /saved-searches - Create a saved search
- GET /saved-searches/{id} - Get a saved search
- PUT /saved-searches/{id} - Replace a saved search (creator only)
- DELETE /saved-searches/{id} - Delete a saved search (creator only)
- POST /saved-searches/{id}/execute - Run a saved search
- POST /saved-searches/{id}/duplicate - Copy a search into a private one
"""

import asyncio
import threading
from dataclasses import asdict
from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from pastcare_core.api.deps import CurrentUser, DBSession, LogContext
from pastcare_core.api.routes.search import cancel_on_disconnect, search_http_error
from pastcare_core.api.schemas.saved_search import (
    SavedSearchListResponse,
    SavedSearchResponse,
    SavedSearchWrite,
)
from pastcare_core.api.schemas.search import AdvancedSearchResponse
from pastcare_core.domain.models import SavedSearch, User
from pastcare_core.domain.pagination import PaginationParams
from pastcare_core.domain.query_limits import QueryLimits
from pastcare_core.domain.search.errors import SearchError
from pastcare_core.domain.search.serialization import parse_request
from pastcare_core.domain.search.sorting import parse_sort
from pastcare_core.domain.services.member_search import MemberSearchService
from pastcare_core.domain.services.saved_search import (
    SavedSearchError,
    SavedSearchNotFoundError,
    SavedSearchPermissionError,
    SavedSearchService,
)


router = APIRouter(prefix="/saved-searches", tags=["saved-searches"])


def _http_error(error: SavedSearchError) -> HTTPException:
    if isinstance(error, SavedSearchNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, SavedSearchPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def _response(
    service: SavedSearchService, saved: SavedSearch, user: User
) -> SavedSearchResponse:
    return SavedSearchResponse.model_validate(asdict(service.to_view(saved, user.id)))


# =============================================================================
# LIST / CREATE
# =============================================================================


@router.get("", response_model=SavedSearchListResponse)
async def list_saved_searches(
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> SavedSearchListResponse:
    """List public searches of the church plus the user's private ones."""
    service = SavedSearchService(db)
    result = service.list_accessible(
        church_id=current_user.church_id,
        user_id=current_user.id,
        pagination=PaginationParams(page=page, page_size=page_size),
    )

    try:
        items = [_response(service, saved, current_user) for saved in result.items]
    except SavedSearchError as e:
        raise _http_error(e)

    return SavedSearchListResponse(
        items=items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_previous=result.has_previous,
    )


@router.post("", response_model=SavedSearchResponse, status_code=status.HTTP_201_CREATED)
async def create_saved_search(
    request: SavedSearchWrite,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
) -> SavedSearchResponse:
    """Create a saved search. The criteria are validated before saving."""
    service = SavedSearchService(db, context=context)

    try:
        saved = service.create(
            church_id=current_user.church_id,
            user_id=current_user.id,
            search_name=request.search_name,
            criteria=parse_request(request.search_criteria),
            is_public=request.is_public,
            is_dynamic=request.is_dynamic,
            description=request.description,
        )
        db.commit()
        return _response(service, saved, current_user)
    except SearchError as e:
        raise search_http_error(e)
    except SavedSearchError as e:
        raise _http_error(e)


# =============================================================================
# GET / UPDATE / DELETE
# =============================================================================


@router.get("/{search_id}", response_model=SavedSearchResponse)
async def get_saved_search(
    search_id: int,
    current_user: CurrentUser,
    db: DBSession,
) -> SavedSearchResponse:
    """Get a saved search visible to the user."""
    service = SavedSearchService(db)

    try:
        saved = service.get(search_id, current_user.church_id, current_user.id)
        return _response(service, saved, current_user)
    except SavedSearchError as e:
        raise _http_error(e)


@router.put("/{search_id}", response_model=SavedSearchResponse)
async def update_saved_search(
    search_id: int,
    request: SavedSearchWrite,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
) -> SavedSearchResponse:
    """Replace a saved search. Only its creator may do this."""
    service = SavedSearchService(db, context=context)

    try:
        saved = service.update(
            search_id=search_id,
            church_id=current_user.church_id,
            user_id=current_user.id,
            search_name=request.search_name,
            criteria=parse_request(request.search_criteria),
            is_public=request.is_public,
            is_dynamic=request.is_dynamic,
            description=request.description,
        )
        db.commit()
        return _response(service, saved, current_user)
    except SearchError as e:
        raise search_http_error(e)
    except SavedSearchError as e:
        raise _http_error(e)


@router.delete("/{search_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_search(
    search_id: int,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
) -> None:
    """Delete a saved search. Only its creator may do this."""
    service = SavedSearchService(db, context=context)

    try:
        service.delete(search_id, current_user.church_id, current_user.id)
        db.commit()
    except SavedSearchError as e:
        raise _http_error(e)


# =============================================================================
# EXECUTE / DUPLICATE
# =============================================================================


@router.post("/{search_id}/execute", response_model=AdvancedSearchResponse)
async def execute_saved_search(
    search_id: int,
    request: Request,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    sort_by: str = Query("firstName"),
    sort_dir: str = Query("asc"),
    x_search_timeout_ms: Annotated[Optional[int], Header()] = None,
) -> AdvancedSearchResponse:
    """Run a saved search and record its result count.

    Runs in the thread pool like /members/search; a client disconnect
    interrupts the running statement.
    """
    limits = QueryLimits.from_settings()
    service = SavedSearchService(
        db,
        search_service=MemberSearchService(db, limits=limits, context=context),
        context=context,
    )

    try:
        sort = parse_sort(sort_by, sort_dir)
    except SearchError as e:
        raise search_http_error(e)

    pagination = PaginationParams.from_query_params(
        page=page,
        page_size=page_size,
        default_page_size=limits.default_page_size,
        max_page_size=limits.max_page_size,
    )
    cancel_event = threading.Event()
    deadline = limits.deadline(cancel_event=cancel_event, timeout_ms=x_search_timeout_ms)

    watcher = asyncio.create_task(cancel_on_disconnect(request, cancel_event))
    try:
        result = await run_in_threadpool(
            service.execute,
            search_id,
            current_user.church_id,
            current_user.id,
            pagination,
            sort,
            deadline,
        )
        db.commit()
    except SearchError as e:
        raise search_http_error(e)
    except SavedSearchError as e:
        raise _http_error(e)
    finally:
        watcher.cancel()

    return AdvancedSearchResponse.from_result(result)


@router.post(
    "/{search_id}/duplicate",
    response_model=SavedSearchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_saved_search(
    search_id: int,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
) -> SavedSearchResponse:
    """Copy a visible search into a new private search owned by the user."""
    service = SavedSearchService(db, context=context)

    try:
        saved = service.duplicate(search_id, current_user.church_id, current_user.id)
        db.commit()
        return _response(service, saved, current_user)
    except SavedSearchError as e:
        raise _http_error(e)
