"""Centralized logging configuration using loguru."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Remove default handler
logger.remove()

# Add console handler with INFO level
_console_handler_id = logger.add(
    sys.stderr,
    level="INFO",
    format=_CONSOLE_FORMAT,
    colorize=True,
)

_file_handler_ids: list[int] = []


def configure_file_logging(logs_dir: Union[str, Path] = "logs") -> Path:
    """Attach rotating file handlers (all messages + errors only).

    Calling it again replaces the previous file handlers.

    Args:
        logs_dir: Directory that receives the log files

    Returns:
        The resolved log directory
    """
    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)

    for handler_id in _file_handler_ids:
        logger.remove(handler_id)
    _file_handler_ids.clear()

    _file_handler_ids.append(
        logger.add(
            logs_path / "panography_{time}.log",
            rotation="50 MB",
            retention="10 days",
            level="DEBUG",
            format=_FILE_FORMAT,
            enqueue=True,  # Thread-safe logging
        )
    )
    _file_handler_ids.append(
        logger.add(
            logs_path / "errors_{time}.log",
            rotation="10 MB",
            retention="30 days",
            level="ERROR",
            format=_FILE_FORMAT,
            enqueue=True,
        )
    )
    return logs_path


def set_console_level(level: str) -> None:
    """Replace the console handler with one at the given level."""
    global _console_handler_id
    logger.remove(_console_handler_id)
    _console_handler_id = logger.add(
        sys.stderr,
        level=level.upper(),
        format=_CONSOLE_FORMAT,
        colorize=True,
    )


def get_logger(name: Optional[str] = None):
    """Get a logger instance with the given name.

    Args:
        name: Module name for the logger (usually __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


# Performance logging helper
def log_performance(operation: str, duration_ms: float, threshold_ms: float = 100.0) -> None:
    """Log performance metrics with warnings for slow operations.

    Args:
        operation: Description of the operation
        duration_ms: Duration in milliseconds
        threshold_ms: Threshold for warning (default: 100ms)
    """
    if duration_ms > threshold_ms:
        logger.warning(f"Slow operation: {operation} took {duration_ms:.2f}ms (threshold: {threshold_ms}ms)")
    else:
        logger.debug(f"Performance: {operation} took {duration_ms:.2f}ms")


# Export configured logger
__all__ = ["logger", "get_logger", "log_performance", "configure_file_logging", "set_console_level"]
