# =============================================================================
# rental_core/auth/session_manager.py
# Session Management over Supabase Auth
# =============================================================================
"""
SessionManager - establishes and tracks the caller's authentication state.

Features:
- Sign up / sign in / sign out against Supabase Auth
- Active session lookup
- Observer callbacks for session transitions (sign in, sign out, refresh)
- Local-only mode when Supabase is not configured
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from rental_core.errors import AuthError
from rental_core.logging import get_logger, mask_email

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated user owning all records."""
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class SignUpResult:
    """Outcome of a sign up. needs_confirmation means "check your email"."""
    identity: Optional[UserIdentity]
    needs_confirmation: bool


SessionHandler = Callable[[Optional[UserIdentity]], None]


def _identity_from_user(user: Any) -> Optional[UserIdentity]:
    if user is None:
        return None
    return UserIdentity(id=str(user.id), email=getattr(user, "email", None))


def _identity_from_session(session: Any) -> Optional[UserIdentity]:
    if session is None:
        return None
    return _identity_from_user(getattr(session, "user", None))


class SessionManager:
    """
    Thin bridge between Supabase Auth and the data layer.

    Usage:
        sessions = SessionManager(client, email_redirect_to="https://...")
        unsubscribe = sessions.on_session_change(handle_identity)
        identity = sessions.sign_in(email, password)
        ...
        unsubscribe()
    """

    NOT_CONFIGURED = "Authentication is not configured"

    def __init__(self, client=None, email_redirect_to: Optional[str] = None):
        """
        Args:
            client: Supabase client, or None for local-only mode
            email_redirect_to: Where the confirmation email sends the user
        """
        self.client = client
        self.email_redirect_to = email_redirect_to
        self._handlers: List[SessionHandler] = []
        self._lock = threading.Lock()
        self._subscription = None
        self._current: Optional[UserIdentity] = None

        if self.client is not None:
            self._subscription = self._subscribe_remote()

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    @property
    def current_identity(self) -> Optional[UserIdentity]:
        """Identity as of the last observed session transition."""
        return self._current

    def _subscribe_remote(self):
        try:
            result = self.client.auth.on_auth_state_change(self._on_auth_event)
        except Exception as e:
            logger.warning(f"Could not subscribe to auth state changes: {e}")
            return None
        # supabase-py returns the subscription directly; older clients wrap it
        return getattr(result, "subscription", result)

    def _on_auth_event(self, event: Any, session: Any) -> None:
        identity = _identity_from_session(session)
        logger.info(f"Auth event: {getattr(event, 'value', event)}")
        self._set_identity(identity)

    def _set_identity(self, identity: Optional[UserIdentity]) -> None:
        self._current = identity
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(identity)
            except Exception as e:
                logger.error(f"Error in session handler: {e}")

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def on_session_change(self, handler: SessionHandler) -> Callable[[], None]:
        """
        Register a handler for authentication state transitions.

        Returns:
            Callable that unregisters the handler
        """
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def teardown(self) -> None:
        """Drop all handlers and the Supabase auth subscription."""
        with self._lock:
            self._handlers.clear()
        if self._subscription is not None:
            try:
                self._subscription.unsubscribe()
            except Exception as e:
                logger.debug(f"Auth unsubscribe failed: {e}")
            self._subscription = None

    # =========================================================================
    # SESSION OPERATIONS
    # =========================================================================

    def get_active_session(self) -> Optional[UserIdentity]:
        """Return the current user identity, or None when signed out."""
        if not self.is_configured:
            return None

        try:
            session = self.client.auth.get_session()
        except Exception as e:
            logger.warning(f"Session lookup failed: {e}")
            return None

        self._current = _identity_from_session(session)
        return self._current

    def sign_up(self, email: str, password: str) -> SignUpResult:
        """
        Create an account.

        Returns:
            SignUpResult; needs_confirmation is True when Supabase did not
            open a session (email confirmation pending)

        Raises:
            AuthError: duplicate account, weak password, malformed email,
                transport failure
        """
        self._require_configured("sign_up")

        credentials = {"email": email, "password": password}
        if self.email_redirect_to:
            credentials["options"] = {"email_redirect_to": self.email_redirect_to}

        try:
            response = self.client.auth.sign_up(credentials)
        except Exception as e:
            raise AuthError(_auth_message(e), operation="sign_up") from e

        identity = _identity_from_user(getattr(response, "user", None))
        session = getattr(response, "session", None)

        if session is not None:
            self._set_identity(identity)

        return SignUpResult(identity=identity, needs_confirmation=session is None)

    def sign_in(self, email: str, password: str) -> UserIdentity:
        """
        Sign in with email and password.

        Raises:
            AuthError: invalid credentials or transport failure
        """
        self._require_configured("sign_in")

        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthError(_auth_message(e), operation="sign_in") from e

        identity = _identity_from_session(getattr(response, "session", None))
        if identity is None:
            raise AuthError("Sign in did not return a session", operation="sign_in")

        self._set_identity(identity)
        logger.info(f"Signed in as {mask_email(identity.email)}")
        return identity

    def sign_out(self) -> None:
        """
        Invalidate the session.

        Raises:
            AuthError: transport failure
        """
        if not self.is_configured:
            self._set_identity(None)
            return

        try:
            self.client.auth.sign_out()
        except Exception as e:
            raise AuthError(_auth_message(e), operation="sign_out") from e

        self._set_identity(None)

    def _require_configured(self, operation: str) -> None:
        if not self.is_configured:
            raise AuthError(self.NOT_CONFIGURED, operation=operation)


def _auth_message(error: Exception) -> str:
    """Human-readable message from a Supabase auth exception."""
    return getattr(error, "message", None) or str(error) or error.__class__.__name__
