"""Session service for PastCare Core.

Users sign in through the main PastCare application, which writes the
server-side session rows. This service only resolves a session cookie
to its user.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from pastcare_core.domain.models import User, UserSession


class AuthService:
    """Service for session operations."""

    def __init__(self, db: DBSession):
        """Initialize the auth service.

        Args:
            db: SQLAlchemy database session.
        """
        self.db = db

    def validate_session(self, session_id: Optional[str]) -> Optional[User]:
        """Validate a session and return the associated user.

        Returns:
            The User if the session is valid, None otherwise.
        """
        if not session_id:
            return None

        session = self.db.query(UserSession).filter_by(id=session_id).first()
        if session is None:
            return None

        # Check if expired
        now = datetime.now(timezone.utc)
        expires_at = session.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if expires_at < now:
            return None

        return self.db.query(User).filter_by(id=session.user_id).first()
