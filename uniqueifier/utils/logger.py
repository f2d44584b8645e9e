"""Logging utilities for the uniqueifier service.

Provides context-aware logging helpers that serialize keyword context to JSON
and a helper that reports pipeline file events at the right level.
"""
import json
import logging
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from uniqueifier.pipeline.events import FileEvent

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=DEFAULT_LOG_FORMAT,
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger('xml-time-uniqueifier')


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Apply the configured level and format to the service logger.

    Args:
        level: Standard logging level name
        fmt: Optional format string; the default format is kept when empty
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if fmt:
        formatter = logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')
        for handler in logging.getLogger().handlers:
            handler.setFormatter(formatter)


def safe_json(obj: Any, max_length: int = 1000) -> str:
    """Safely serialize object to JSON.

    Args:
        obj: Object to serialize
        max_length: Maximum length of output string

    Returns:
        JSON string, truncated when longer than max_length
    """
    try:
        json_str = json.dumps(obj, ensure_ascii=False, default=str)

        if len(json_str) > max_length:
            json_str = json_str[:max_length] + "... [truncated]"

        return json_str
    except Exception:
        return "<unable to serialize>"


def log_info(message: str, **kwargs) -> None:
    """Log info message with optional context."""
    if kwargs:
        logger.info(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.info(message)


def log_warning(message: str, **kwargs) -> None:
    """Log warning message with optional context."""
    if kwargs:
        logger.warning(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.warning(message)


def log_error(message: str, **kwargs) -> None:
    """Log error message with optional context."""
    if kwargs:
        logger.error(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.error(message)


def log_debug(message: str, **kwargs) -> None:
    """Log debug message with optional context."""
    if kwargs:
        logger.debug(f"{message} | Context: {safe_json(kwargs)}")
    else:
        logger.debug(message)


def log_file_event(event: "FileEvent") -> None:
    """Log a pipeline file event at a level matching its outcome.

    Quarantines are errors, unmodified pass-throughs of XML files are debug
    and everything else is info.
    """
    from uniqueifier.pipeline.events import FileAction

    context = event.to_dict()
    if event.action in (FileAction.QUARANTINED, FileAction.QUARANTINE_FAILED):
        log_error(f"File {event.action.value}", **context)
    elif event.action in (FileAction.PASSED_THROUGH, FileAction.SKIPPED):
        log_debug(f"File {event.action.value}", **context)
    else:
        log_info(f"File {event.action.value}", **context)
