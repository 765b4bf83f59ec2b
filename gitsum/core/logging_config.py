"""
Logging configuration.

Root logger gets a console and a rotating file handler. Both carry a filter
that masks anything shaped like an issued API key, so a credential that ends
up in a message (a pasted header, an exception string) never reaches disk.
"""
import logging
import re
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from gitsum.core.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
QUIET_LOGGERS = ("urllib3", "httpx", "openai")


class CredentialRedactionFilter(logging.Filter):
    """Replace credential suffixes with asterisks, keeping the prefix."""

    def __init__(self, app_prefix: str):
        super().__init__()
        self.pattern = re.compile(rf"\b({re.escape(app_prefix)}-(?:dev|prod)-)[A-Za-z0-9]{{4,}}")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.pattern.sub(r"\1****", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _build_handler(handler: logging.Handler, fmt: str, level: int, redaction: logging.Filter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(redaction)
    return handler


def setup_logging(log_dir: Path = Path("logs")):
    """Configure application logging once per process."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    # Importing the app more than once (tests, reloaders) must not stack handlers
    if any(isinstance(f, CredentialRedactionFilter) for h in root.handlers for f in h.filters):
        return

    log_dir.mkdir(exist_ok=True)
    redaction = CredentialRedactionFilter(settings.API_KEY_PREFIX)

    root.addHandler(_build_handler(logging.StreamHandler(sys.stdout), CONSOLE_FORMAT, log_level, redaction))
    root.addHandler(_build_handler(
        RotatingFileHandler(log_dir / f"{settings.API_KEY_PREFIX}.log", maxBytes=10 * 1024 * 1024, backupCount=5),
        FILE_FORMAT,
        log_level,
        redaction,
    ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
