"""Structured Logging — JSON formatter, rotating log files and setup.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (path, status, error_code, duration_ms) surfaced when present
    - JSON format in production, human-readable in development
    - application.log keeps 14 days of INFO+, error.log keeps 30 days of ERROR

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - Daily rotation via TimedRotatingFileHandler (midnight, backupCount = retention days)
    - setup_logging called once on startup via lifespan; repeated calls replace
      the handlers installed by the previous call
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

_EXTRA_FIELDS = (
    "error_code", "path", "method", "status", "client",
    "duration_ms", "rows", "statement",
)
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_installed_handlers: list[logging.Handler] = []


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": "user-api",
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def _make_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter(_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)


def _rotating_file(
    path: Path, level: int, backup_days: int, formatter: logging.Formatter,
) -> logging.Handler:
    handler = TimedRotatingFileHandler(
        path, when="midnight", backupCount=backup_days, encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO", fmt: str = "text", log_dir: str | None = None,
) -> None:
    """Configure root logging: console plus optional rotating files."""
    root = logging.root
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    formatter = _make_formatter(fmt)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _installed_handlers.append(console)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        _installed_handlers.append(_rotating_file(
            directory / "application.log", logging.INFO, 14, formatter,
        ))
        _installed_handlers.append(_rotating_file(
            directory / "error.log", logging.ERROR, 30, formatter,
        ))

    for handler in _installed_handlers:
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
