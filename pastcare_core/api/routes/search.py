"""Advanced member search API routes.

Provides endpoints for:
- POST /members/search - Filter members with a two-level boolean expression
"""

import asyncio
import threading
from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from pastcare_core.api.deps import CurrentUser, DBSession, LogContext
from pastcare_core.api.schemas.search import AdvancedSearchBody, AdvancedSearchResponse
from pastcare_core.domain.pagination import PaginationParams
from pastcare_core.domain.query_limits import QueryLimits, QueryTimeoutError
from pastcare_core.domain.search.errors import (
    RequestMalformedError,
    SearchError,
    SearchExecutionError,
    SearchValidationError,
    TenantScopeViolationError,
)
from pastcare_core.domain.search.serialization import parse_request
from pastcare_core.domain.search.sorting import parse_sort
from pastcare_core.domain.services.member_search import MemberSearchService


router = APIRouter(prefix="/members", tags=["members"])

# Seconds between checks for a dropped client connection
DISCONNECT_POLL_SECONDS = 0.1


def search_http_error(error: SearchError) -> HTTPException:
    """Map a search error to its HTTP response."""
    if isinstance(error, RequestMalformedError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, SearchValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, TenantScopeViolationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, QueryTimeoutError):
        code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(error, SearchExecutionError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=error.to_dict())


async def cancel_on_disconnect(request: Request, cancel_event: threading.Event) -> None:
    """Set the cancel token once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post(
    "/search",
    response_model=AdvancedSearchResponse,
    summary="Advanced member search",
    description="Filter members of the current church with groups of criteria. "
                "Criteria inside a group are combined with the group's operator; "
                "groups are combined with groupOperator.",
)
async def advanced_search(
    body: AdvancedSearchBody,
    request: Request,
    current_user: CurrentUser,
    context: LogContext,
    db: DBSession,
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: Optional[int] = Query(None, ge=1, description="Items per page (clamped)"),
    sort_by: str = Query("firstName", description="Field to sort by"),
    sort_dir: str = Query("asc", description="asc or desc"),
    x_search_timeout_ms: Annotated[Optional[int], Header()] = None,
) -> AdvancedSearchResponse:
    """Run an advanced search scoped to the caller's church.

    The search runs in the thread pool; if the client disconnects the
    running statement is interrupted.
    """
    limits = QueryLimits.from_settings()

    try:
        search_request = parse_request(body.to_wire())
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
    service = MemberSearchService(db, limits=limits, context=context)

    watcher = asyncio.create_task(cancel_on_disconnect(request, cancel_event))
    try:
        result = await run_in_threadpool(
            service.execute,
            current_user.church_id,
            search_request,
            pagination,
            sort,
            deadline,
        )
    except SearchError as e:
        raise search_http_error(e)
    finally:
        watcher.cancel()

    return AdvancedSearchResponse.from_result(result)
