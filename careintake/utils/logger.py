"""Logging configuration for the application.

Every module logs through ``get_logger(__name__)``. Structured fields passed
via ``extra=`` are appended to the line as ``key=value`` pairs, so the
PHI-safe fields from ``careintake.utils.structured_logging`` show up in plain
text output without a JSON log shipper.
"""
import logging
import sys
from pathlib import Path
from careintake.config.settings import get_settings

settings = get_settings()

log_dir = Path("logs")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` fields in sorted key order."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return line
        pairs = " ".join(f"{key}={fields[key]!r}" for key in sorted(fields))
        return f"{line} | {pairs}"


def get_logger(name: str) -> logging.Logger:
    """Get configured logger instance."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        level = getattr(logging, settings.log_level)
        logger.setLevel(level)
        formatter = ExtraFieldsFormatter(LOG_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        # Audit file only on developer machines; containers log to stdout
        if settings.app_env == "development":
            log_dir.mkdir(exist_ok=True)
            file_handler = logging.FileHandler(log_dir / "care_intake.log")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
