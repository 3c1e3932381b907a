"""Structured logging setup for AIVA form assist."""

import logging
from typing import Optional, Dict, Any
from pathlib import Path


class ContextFilter(logging.Filter):
    """Stamp log records with conversation context (session id, mode, ...)."""

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.defaults: Dict[str, Any] = defaults or {"session_id": "-"}
        self.context: Dict[str, Any] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in {**self.defaults, **self.context}.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True

    def set_context(self, **kwargs):
        self.context.update(kwargs)

    def clear_context(self):
        self.context.clear()


# Global context filter instance
_context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging with session context and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for log messages; may reference %(session_id)s
        log_file: Optional path to log file

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    # botocore is chatty at INFO
    logging.getLogger("botocore").setLevel(max(numeric_level, logging.WARNING))

    return root_logger


def set_context(**kwargs):
    """
    Set context fields for all subsequent log messages.

    Example:
        set_context(session_id="a1b2c3", mode="guided")
        logger.info("Processing turn")  # record carries session_id and mode
    """
    _context_filter.set_context(**kwargs)


def clear_context():
    _context_filter.clear_context()

