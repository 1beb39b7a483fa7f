#!/usr/bin/env python3
"""
Logging Module with Rotation and Redaction
==========================================
Every event goes to two places:
- Rich console output (message only)
- An append-only log file, one "<ISO-8601 timestamp> - <message>" line per event

The log file rotates by size (set max_bytes=0 for a single unbounded file).
Configured secrets are masked before any handler sees the record.
"""

import logging
import logging.handlers
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "autosender"

# Global console for Rich output
console = Console()


class ISOFormatter(logging.Formatter):
    """Formats records as '<UTC ISO-8601 timestamp> - <message>'."""

    def __init__(self):
        super().__init__("%(asctime)s - %(message)s")

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SecretRedactingFilter(logging.Filter):
    """
    Masks known secret values (the signing key) in log messages.

    Applied at handler level so records from any logger are covered.
    """

    REPLACEMENT = "[PRIVATE_KEY_REDACTED]"

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self._secrets = set()
        for secret in secrets:
            if not secret:
                continue
            self._secrets.add(secret)
            # Keys are accepted with and without the 0x prefix
            if secret.startswith("0x"):
                self._secrets.add(secret[2:])
            else:
                self._secrets.add("0x" + secret)

    def _sanitize(self, msg: str) -> str:
        # Longest first so the 0x form is not left half-masked
        for secret in sorted(self._secrets, key=len, reverse=True):
            msg = msg.replace(secret, self.REPLACEMENT)
        return msg

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            message = record.getMessage()
            sanitized = self._sanitize(message)
            if sanitized != message:
                record.msg = sanitized
                record.args = None
        return True


def setup_logging(
    log_file: Optional[str],
    log_level: str = "INFO",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    secrets: Iterable[str] = (),
    use_rich_console: bool = True,
) -> logging.Logger:
    """
    Configure the shared auto sender logger.

    Args:
        log_file: Path of the persistent log file (None for console only)
        log_level: Minimum level written to either handler
        max_bytes: Rotate the file at this size; 0 never rotates
        backup_count: Rotated files to keep
        secrets: Values to mask in every message
        use_rich_console: Rich handler on stdout, else a plain StreamHandler

    Returns:
        The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    redactor = SecretRedactingFilter(secrets)

    if use_rich_console:
        console_handler = RichHandler(
            console=console,
            show_time=False,
            show_level=False,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.addFilter(redactor)
    logger.addHandler(console_handler)

    # File handler for persistent logging
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(ISOFormatter())
        file_handler.addFilter(redactor)
        logger.addHandler(file_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the shared auto sender logger."""
    return logging.getLogger(LOGGER_NAME)


def install_exception_hooks(logger: Optional[logging.Logger] = None):
    """
    Route uncaught exceptions (main thread and worker threads) to the log.

    KeyboardInterrupt keeps the interpreter's default handling.
    """
    logger = logger or get_logger()
    default_excepthook = sys.excepthook

    def _excepthook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            default_excepthook(exc_type, exc_value, exc_tb)
            return
        logger.error(f"Uncaught Exception: {exc_value}")

    def _thread_excepthook(args):
        if args.exc_type is SystemExit:
            return
        logger.error(f"Uncaught Exception: {args.exc_value}")

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook
