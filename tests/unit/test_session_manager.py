# =============================================================================
# tests/unit/test_session_manager.py
# Unit Tests for SessionManager
# =============================================================================

from unittest.mock import MagicMock

import pytest

from rental_core.auth import SessionManager, UserIdentity
from rental_core.errors import AuthError

from tests.conftest import USER_EMAIL, USER_ID


class TestLocalOnlyMode:
    """Without a Supabase client"""

    def test_no_active_session(self):
        assert SessionManager(None).get_active_session() is None

    def test_sign_in_not_configured(self):
        with pytest.raises(AuthError) as exc_info:
            SessionManager(None).sign_in(USER_EMAIL, "secret-pass")

        assert exc_info.value.message == SessionManager.NOT_CONFIGURED

    def test_sign_out_is_harmless(self):
        SessionManager(None).sign_out()


class TestSessions:
    """Against the fake Supabase auth"""

    def test_active_session_identity(self, signed_in_supabase):
        sessions = SessionManager(signed_in_supabase)

        assert sessions.get_active_session() == UserIdentity(id=USER_ID, email=USER_EMAIL)

    def test_sign_in_notifies_handlers(self, fake_supabase):
        sessions = SessionManager(fake_supabase)
        handler = MagicMock()
        sessions.on_session_change(handler)

        identity = sessions.sign_in(USER_EMAIL, "secret-pass")

        assert identity.id == USER_ID
        handler.assert_called_with(identity)
        assert sessions.current_identity == identity

    def test_invalid_credentials(self, fake_supabase):
        sessions = SessionManager(fake_supabase)

        with pytest.raises(AuthError) as exc_info:
            sessions.sign_in(USER_EMAIL, "wrong")

        assert exc_info.value.message == "Invalid login credentials"
        assert exc_info.value.details["operation"] == "sign_in"

    def test_unsubscribe(self, fake_supabase):
        sessions = SessionManager(fake_supabase)
        handler = MagicMock()
        unsubscribe = sessions.on_session_change(handler)

        unsubscribe()
        sessions.sign_in(USER_EMAIL, "secret-pass")

        handler.assert_not_called()

    def test_sign_out_notifies_none(self, signed_in_supabase):
        sessions = SessionManager(signed_in_supabase)
        handler = MagicMock()
        sessions.on_session_change(handler)

        sessions.sign_out()

        handler.assert_called_with(None)
        assert sessions.get_active_session() is None

    def test_sign_out_transport_failure(self, signed_in_supabase):
        signed_in_supabase.auth.fail_sign_out = True
        sessions = SessionManager(signed_in_supabase)

        with pytest.raises(AuthError):
            sessions.sign_out()

    def test_teardown_drops_auth_subscription(self, fake_supabase):
        sessions = SessionManager(fake_supabase)
        assert len(fake_supabase.auth.listeners) == 1

        sessions.teardown()

        assert fake_supabase.auth.listeners == []


class TestSignUp:
    """Test account creation outcomes"""

    def test_sign_up_opens_session(self, fake_supabase):
        sessions = SessionManager(fake_supabase)

        result = sessions.sign_up("new@example.com", "long-enough")

        assert result.needs_confirmation is False
        assert result.identity.email == "new@example.com"

    def test_sign_up_needs_confirmation(self, fake_supabase):
        fake_supabase.auth.confirm_email = True
        sessions = SessionManager(fake_supabase, email_redirect_to="https://rentals.example.com")

        result = sessions.sign_up("new@example.com", "long-enough")

        assert result.needs_confirmation is True
        assert fake_supabase.auth.sign_up_calls[0]["options"] == {
            "email_redirect_to": "https://rentals.example.com"
        }

    def test_duplicate_account(self, fake_supabase):
        with pytest.raises(AuthError) as exc_info:
            SessionManager(fake_supabase).sign_up(USER_EMAIL, "secret-pass")

        assert "already registered" in exc_info.value.message

    def test_weak_password(self, fake_supabase):
        with pytest.raises(AuthError) as exc_info:
            SessionManager(fake_supabase).sign_up("new@example.com", "123")

        assert "at least 6 characters" in exc_info.value.message
