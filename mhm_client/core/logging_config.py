"""
Logging configuration for the My Horse Manager client.

Session tokens, billing keys and store receipts never reach a handler: dict
payloads go through sanitize_log_data() and every record passes through
SecretRedactionFilter before it is formatted.
"""
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

from mhm_client.core.config import LOG_DIR, LOG_LEVEL

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = (
    "password", "token", "secret", "key", "authorization",
    "security_answer", "fetch_token",
)

# "Bearer <jwt>", RevenueCat public keys, fetch_token=<receipt>
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s,'\"}]+"),
    re.compile(r"\b(appl_|goog_|amzn_)[A-Za-z0-9]+"),
    re.compile(r"((?:fetch_token|security_answer|password)['\"]?\s*[:=]\s*['\"]?)[^\s,'\"}]+"),
)

# Chatty HTTP libraries that would otherwise log every request
QUIET_LOGGERS = ("httpx", "httpcore")


def redact_secrets(text: str) -> str:
    """Mask bearer tokens, billing keys and receipts inside free text."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + REDACTED, text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Rewrites each record's rendered message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    log_level: str = LOG_LEVEL,
    log_dir: Optional[str] = LOG_DIR,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> logging.Logger:
    """
    Configure client logging.

    Args:
        log_level: Level name; unknown names fall back to INFO
        log_dir: Directory for mhm_client.log, None for console only
        quiet_loggers: Third-party loggers raised to WARNING

    Returns:
        The configured root logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    redaction = SecretRedactionFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.addFilter(redaction)
    console.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / "mhm_client.log",
            maxBytes=2 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.addFilter(redaction)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(file_handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def sanitize_log_data(data: dict) -> dict:
    """Copy of a headers/payload dict with sensitive values replaced."""
    return {
        key: REDACTED if any(s in str(key).lower() for s in SENSITIVE_KEYS) else value
        for key, value in data.items()
    }
