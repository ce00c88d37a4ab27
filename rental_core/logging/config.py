# =============================================================================
# rental_core/logging/config.py
# Logging Configuration for Rental Manager
# =============================================================================

import logging
import sys
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILENAME = "rental_manager.log"
LOG_BACKUP_DAYS = 14

# Supabase client stack; chatty at INFO (one line per HTTP request)
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "hpack", "supabase", "postgrest", "gotrue")


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level, as a number or a name ("DEBUG", "INFO", ...)
        log_dir: Directory for a daily-rotated rental_manager.log;
            None logs to stdout only
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(TimedRotatingFileHandler(
            log_dir / LOG_FILENAME,
            when="midnight",
            backupCount=LOG_BACKUP_DAYS,
            encoding="utf-8",
        ))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("rental_core").info(
        f"Logging initialized at {logging.getLevelName(level)}"
        + (f", writing to {log_dir / LOG_FILENAME}" if log_dir is not None else "")
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        from rental_core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def mask_email(email: Optional[str]) -> str:
    """Shorten an account email for log lines: owner@example.com -> o***@example.com"""
    if not email or "@" not in email:
        return "<anonymous>"
    name, domain = email.split("@", 1)
    return f"{name[:1]}***@{domain}"


class LogContext:
    """
    Context manager for logging operation timing and status.

    Operations slower than slow_after seconds are logged as warnings, so
    a sluggish Supabase shows up in the log before it starts timing out.

    Usage:
        with LogContext(logger, "Loading collections", slow_after=5.0):
            service.load()
        # Logs: "Loading collections... completed (0.42s)"
    """

    def __init__(self, logger: logging.Logger, operation: str, slow_after: Optional[float] = None):
        self.logger = logger
        self.operation = operation
        self.slow_after = slow_after
        self.start_time = None

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.start_time

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = self.elapsed

        if exc_type is not None:
            self.logger.error(f"{self.operation}... failed ({elapsed:.2f}s): {exc_val}")
        elif self.slow_after is not None and elapsed > self.slow_after:
            self.logger.warning(f"{self.operation}... slow ({elapsed:.2f}s)")
        else:
            self.logger.info(f"{self.operation}... completed ({elapsed:.2f}s)")

        return False
