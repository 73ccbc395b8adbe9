"""Logging setup for the web process and the stand-alone worker.

Recipient addresses must never reach the log output, including the text of
tracebacks: ``smtplib.SMTPRecipientsRefused`` embeds the refused addresses
in its message.
"""
import logging
import logging.config
import re

EMAIL_ADDRESS = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
CREDENTIAL_ASSIGNMENT = re.compile(r"(?i)((?:token|password|authorization)\s*[=:]\s*)([^,\s]+)")

# (pattern, replacement) pairs applied in order
REDACTIONS = [
    (EMAIL_ADDRESS, "[REDACTED]"),
    (CREDENTIAL_ASSIGNMENT, r"\1[REDACTED]"),
]

# Chatty third-party loggers kept at WARNING whatever LOG_LEVEL says.
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def redact(value: object) -> object:
    if not isinstance(value, str):
        return value
    for pattern, replacement in REDACTIONS:
        value = pattern.sub(replacement, value)
    return value


class RecipientRedactionFilter(logging.Filter):
    """Scrub addresses and credentials from the message, its args and any traceback."""

    _traceback_formatter = logging.Formatter()

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(redact(item) for item in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: redact(value) for key, value in record.args.items()}

        if record.exc_info and not record.exc_text:
            record.exc_text = self._traceback_formatter.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text)

        return True


def build_logging_config(level: str) -> dict:
    quiet = {
        name: {"handlers": ["console"], "level": "WARNING", "propagate": False}
        for name in QUIET_LOGGERS
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "redact_recipients": {
                "()": "mailroom.core.logging.RecipientRedactionFilter",
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["redact_recipients"],
            }
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level.upper()},
            **quiet,
        },
    }


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger; *level* defaults to ``LOG_LEVEL``."""
    if level is None:
        from mailroom.core.settings import get_settings

        level = get_settings().log_level
    logging.config.dictConfig(build_logging_config(level))
