"""
FeedHealth Logging Configuration
================================

Console output for interactive runs and rotating JSON files for the cron
job. Every component logs through an adapter carrying its name, so a run's
log file can be filtered by component, magazine or owner.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else arrived through extra=
_RECORD_ATTRIBUTES = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

# Context promoted to top-level JSON keys
_CONTEXT_FIELDS = ("component", "run_id", "magazine", "owner", "error_code")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES}
        for key in _CONTEXT_FIELDS:
            if extra.get(key) is not None:
                entry[key] = extra.pop(key)

        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Short lines of time, level, component and optional magazine.

    Colors are only used when the stream is a terminal; cron output stays plain.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if self.use_color else ""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")

        tag = getattr(record, "component", record.name)
        magazine = getattr(record, "magazine", None)
        if magazine:
            tag = f"{tag}/{magazine}"

        line = f"{color}{timestamp} {record.levelname:<8}{reset} [{tag}] {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logger(
    name: str = "feedhealth",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and file handlers to the package logger.

    Args:
        name: Logger name
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Rotating JSON log file, None or empty for none
        console: Log to stderr
        structured: JSON instead of colored lines on the console
        max_file_size: Rotation size in bytes
        backup_count: Rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if console:
        # stderr keeps stdout free for the CLI tables
        handler = logging.StreamHandler(sys.stderr)
        if structured:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(ColoredConsoleFormatter(use_color=sys.stderr.isatty()))
        logger.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adds the component context to every record; call-site extra wins."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    magazine: Optional[str] = None,
    owner: Optional[str] = None,
) -> LoggerAdapter:
    """Logger for one FeedHealth component, e.g. 'count_fetcher' or 'grouper'."""
    context: Dict[str, Any] = {"component": component_name}
    if magazine:
        context["magazine"] = magazine
    if owner:
        context["owner"] = owner

    return LoggerAdapter(logging.getLogger(f"feedhealth.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedhealth.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure logging once at startup from the logging settings."""
    setup_logger(
        name="feedhealth",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    for noisy in ("urllib3", "requests", "aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class PerformanceLogger:
    """Times a block and logs its duration; the duration stays readable afterwards."""

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[datetime] = None
        self.duration = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = datetime.now(timezone.utc)
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        context = {**self.context, "duration_seconds": self.duration, "success": exc_type is None}

        if exc_type:
            self.logger.error(f"{self.operation} failed after {self.duration:.3f}s", extra=context)
        else:
            self.logger.info(f"{self.operation} completed in {self.duration:.3f}s", extra=context)
