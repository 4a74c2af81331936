"""Unit tests for session handling."""

from datetime import timedelta

from pastcare_core.domain.services.auth import AuthService
from tests.factories import create_church, create_user, create_user_session


class TestSessions:
    """Tests for AuthService session validation."""

    def test_valid_session_resolves_user(self, db_session):
        """Test that a fresh session resolves to its user."""
        user = create_user(db_session, create_church(db_session))
        user_session = create_user_session(db_session, user)

        assert AuthService(db_session).validate_session(user_session.id).id == user.id

    def test_unknown_session_is_invalid(self, db_session):
        assert AuthService(db_session).validate_session("missing") is None

    def test_empty_session_is_invalid(self, db_session):
        assert AuthService(db_session).validate_session(None) is None

    def test_expired_session_is_invalid(self, db_session):
        """Test that an expired session is rejected."""
        user = create_user(db_session, create_church(db_session))
        user_session = create_user_session(db_session, user, expires_in=timedelta(hours=-1))

        assert AuthService(db_session).validate_session(user_session.id) is None
