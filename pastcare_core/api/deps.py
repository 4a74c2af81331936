"""API dependencies for dependency injection."""

import uuid
from typing import Annotated, Generator, Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from pastcare_core.domain.models import User
from pastcare_core.domain.services.auth import AuthService
from pastcare_core.infra.db import get_db_session
from pastcare_core.observability.logging import RequestContext


def get_db() -> Generator[Session, None, None]:
    """Get a database session."""
    yield from get_db_session()


def get_auth_service(db: Annotated[Session, Depends(get_db)]) -> AuthService:
    """Get the authentication service."""
    return AuthService(db)


def get_session_id(session: Annotated[Optional[str], Cookie()] = None) -> Optional[str]:
    """Get the session ID from cookie."""
    return session


def get_current_user(
    session_id: Annotated[Optional[str], Depends(get_session_id)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    """Get the current authenticated user.

    Raises:
        HTTPException: If user is not authenticated.
    """
    user = auth_service.validate_session(session_id) if session_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Cookie"},
        )
    return user


def get_request_context(
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
) -> RequestContext:
    """Build the log context for an authenticated request.

    The request ID comes from the X-Request-ID header when the caller
    sends one.
    """
    return RequestContext(
        request_id=request.headers.get("x-request-id") or uuid.uuid4().hex,
        church_id=user.church_id,
        user_id=user.id,
        path=request.url.path,
        method=request.method,
    )


# Type aliases for cleaner route signatures
DBSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
LogContext = Annotated[RequestContext, Depends(get_request_context)]
