# =============================================================================
# rental_core/state/session.py
# Streamlit Session-State Binding for the Data Service
# =============================================================================

from __future__ import annotations
from typing import Callable, Optional

import streamlit as st

from rental_core.config import AppSettings, load_settings
from rental_core.errors import ConfigurationError, ErrorContext, error_boundary, handle_error
from rental_core.logging import get_logger, setup_logging
from rental_core.offline.unified_data_service import RentalDataService

logger = get_logger(__name__)

DATA_SERVICE_KEY = "data_service"

# Central registry for session-state keys used across the app.
SESSION_DEFAULTS = {
    DATA_SERVICE_KEY: None,
    "selected_currency": "USD",
    "selected_month": None,
    "checklist_search": "",
    "checklist_property_filter": None,
    "calendar_property": None,
    "calendar_location": None,
    "user_email": None,
    "debug_mode": False,
}


def init_state():
    """Initialize session state with defaults."""
    for k, v in SESSION_DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v


def _build_service(settings: AppSettings) -> RentalDataService:
    try:
        return RentalDataService(settings)
    except ConfigurationError as e:
        # Bad Supabase settings must not lock the user out of local data
        handle_error(e, user_message="Supabase is misconfigured; working locally")
        return RentalDataService(settings, client=None)


def get_session_data_service(
    settings_loader: Callable[[], AppSettings] = load_settings,
) -> RentalDataService:
    """
    One started RentalDataService per browser session.

    The Supabase client inside holds this visitor's auth session, so the
    service lives in st.session_state rather than in a process-wide cache.
    """
    init_state()
    service = st.session_state.get(DATA_SERVICE_KEY)
    if service is None:
        settings = settings_loader()
        setup_logging(settings.log_level, settings.log_dir)
        service = _build_service(settings)
        service.start()
        st.session_state[DATA_SERVICE_KEY] = service
        logger.info("Created data service for new browser session")
    return service


@error_boundary(default_return=None, error_message="Could not restore your session")
def restore_session() -> Optional[str]:
    """Email of the signed-in user (None when signed out)."""
    service = get_session_data_service()
    identity = service.identity
    return identity.email if identity else None


def sign_in_user(email: str, password: str) -> bool:
    """
    Sign in from the login form.

    Auth failures ("Invalid login credentials") are shown in the page.

    Returns:
        True when a session was established
    """
    service = get_session_data_service()
    with ErrorContext("Signing in") as ctx:
        identity = service.sign_in(email.strip(), password)
        st.session_state["user_email"] = identity.email
    return not ctx.failed


def sign_up_user(email: str, password: str) -> bool:
    """
    Create an account from the sign-up form.

    Returns:
        True when the account was created (signed in, or awaiting email
        confirmation)
    """
    service = get_session_data_service()
    with ErrorContext("Signing up") as ctx:
        result = service.sign_up(email.strip(), password)
        if result.needs_confirmation:
            st.info("Check your email to confirm your account, then sign in.")
        elif result.identity is not None:
            st.session_state["user_email"] = result.identity.email
    return not ctx.failed


def sign_out_and_reset(forget_device_data: bool = False) -> None:
    """Sign out, then drop the data service and page selections."""
    service = st.session_state.get(DATA_SERVICE_KEY)
    if service is not None:
        with ErrorContext("Signing out"):
            service.sign_out(forget_device_data=forget_device_data)
        service.teardown()

    for key in list(st.session_state.keys()):
        if key in SESSION_DEFAULTS:
            del st.session_state[key]
    init_state()
