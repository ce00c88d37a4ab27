# =============================================================================
# tests/unit/test_logging.py
# Unit Tests for Logging Helpers
# =============================================================================

import logging
from unittest.mock import MagicMock, patch

import pytest

from rental_core.logging import LogContext, mask_email, setup_logging
from rental_core.logging.config import LOG_FILENAME


class TestMaskEmail:
    """Account emails are shortened before they reach the log"""

    @pytest.mark.parametrize("email, expected", [
        ("owner@example.com", "o***@example.com"),
        ("a@b.io", "a***@b.io"),
        (None, "<anonymous>"),
        ("", "<anonymous>"),
        ("not-an-email", "<anonymous>"),
    ])
    def test_mask_email(self, email, expected):
        assert mask_email(email) == expected


class TestLogContext:
    """Test operation timing"""

    def test_completed(self):
        logger = MagicMock()

        with LogContext(logger, "Fetching collections"):
            pass

        assert logger.info.call_args[0][0].startswith("Fetching collections... completed")

    def test_slow_operation_is_a_warning(self):
        logger = MagicMock()

        with patch("rental_core.logging.config.time") as clock:
            clock.perf_counter.side_effect = [0.0, 7.5]
            with LogContext(logger, "Fetching collections", slow_after=5.0):
                pass

        logger.warning.assert_called_once_with("Fetching collections... slow (7.50s)")
        logger.info.assert_not_called()

    def test_failure_is_logged_and_raised(self):
        logger = MagicMock()

        with pytest.raises(RuntimeError):
            with LogContext(logger, "Syncing"):
                raise RuntimeError("offline")

        assert "failed" in logger.error.call_args[0][0]


class TestSetupLogging:
    """Test handler configuration"""

    def test_writes_rotating_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("debug", tmp_path / "logs")

            logging.getLogger("rental_core.test").debug("hello")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
            assert "hello" in (tmp_path / "logs" / LOG_FILENAME).read_text(encoding="utf-8")
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
