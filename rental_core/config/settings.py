# =============================================================================
# rental_core/config/settings.py
# Application Settings for Rental Manager
# =============================================================================
"""
Settings are read from Streamlit secrets first, then from environment
variables, then defaults.

Expected secrets.toml format:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
    email_redirect_to = "https://rentals.example.com"
    timeout = 10

    [local]
    db_path = "local_data/rental_manager.db"

    [logging]
    level = "INFO"
    dir = "logs"
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import streamlit as st

from rental_core.errors import ConfigurationError
from rental_core.logging import get_logger

logger = get_logger(__name__)


DEFAULT_LOCAL_DB = Path("local_data") / "rental_manager.db"
DEFAULT_REMOTE_TIMEOUT = 10.0
DEFAULT_LOG_DIR = Path("logs")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class AppSettings:
    """Resolved configuration for the data layer."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    email_redirect_to: Optional[str] = None
    remote_timeout_seconds: float = DEFAULT_REMOTE_TIMEOUT
    local_db_path: Path = DEFAULT_LOCAL_DB
    log_level: str = "INFO"
    log_dir: Optional[Path] = None   # None: stdout only

    @property
    def is_remote_configured(self) -> bool:
        """True when both Supabase URL and key are present."""
        return bool(self.supabase_url and self.supabase_key)


def _read_secrets_section(section: str) -> Dict[str, Any]:
    """Return a secrets.toml section as a dict, or {} when unavailable."""
    try:
        if section in st.secrets:
            return dict(st.secrets[section])
    except Exception as e:
        # No secrets.toml outside `streamlit run`
        logger.debug(f"Streamlit secrets unavailable: {e}")
    return {}


def _parse_timeout(raw: Any) -> float:
    try:
        timeout = float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Remote timeout must be a number, got {raw!r}",
            config_key="timeout",
            expected_type="float",
        )
    if timeout <= 0:
        raise ConfigurationError(
            "Remote timeout must be positive",
            config_key="timeout",
            expected_type="float > 0",
        )
    return timeout


def _parse_log_level(raw: Any) -> str:
    level = str(raw).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level {raw!r}",
            config_key="log_level",
            expected_type=" | ".join(LOG_LEVELS),
        )
    return level


def load_settings() -> AppSettings:
    """
    Build AppSettings from Streamlit secrets and environment variables.

    Returns:
        AppSettings instance

    Raises:
        ConfigurationError: If a configured value cannot be parsed
    """
    supabase = _read_secrets_section("supabase")
    local = _read_secrets_section("local")
    log = _read_secrets_section("logging")

    settings = AppSettings(
        supabase_url=supabase.get("url") or os.getenv("SUPABASE_URL"),
        supabase_key=supabase.get("key") or os.getenv("SUPABASE_KEY"),
        email_redirect_to=(
            supabase.get("email_redirect_to") or os.getenv("RENTAL_EMAIL_REDIRECT")
        ),
        remote_timeout_seconds=_parse_timeout(
            supabase.get("timeout") or os.getenv("RENTAL_REMOTE_TIMEOUT") or DEFAULT_REMOTE_TIMEOUT
        ),
        local_db_path=Path(
            local.get("db_path") or os.getenv("RENTAL_LOCAL_DB") or DEFAULT_LOCAL_DB
        ),
        log_level=_parse_log_level(
            log.get("level") or os.getenv("RENTAL_LOG_LEVEL") or "INFO"
        ),
        log_dir=Path(log.get("dir") or os.getenv("RENTAL_LOG_DIR") or DEFAULT_LOG_DIR),
    )

    if not settings.is_remote_configured:
        logger.info("Supabase not configured - running in local-only mode")

    return settings
