"""Logging configuration for the server."""

import logging
import sys
from typing import Any

from qbo_mcp.core.config import settings


def setup_logging() -> None:
    """Configure application logging.

    Logs go to stderr only: in stdio mode stdout carries the MCP protocol
    stream and any stray write corrupts it.
    """
    if settings.debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(
        logging.DEBUG if settings.debug else logging.WARNING
    )

    logging.getLogger("qbo_mcp").setLevel(log_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    Args:
        name: The name of the module (typically __name__)

    Returns:
        A configured logger instance
    """
    if name.startswith("qbo_mcp"):
        return logging.getLogger(name)
    return logging.getLogger(f"qbo_mcp.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to log messages.

    Usage:
        logger = LoggerAdapter(get_logger(__name__), {"tool": "qbo_invoices_list"})
        logger.info("Dispatching")  # Logs: "Dispatching - tool=qbo_invoices_list"
    """

    def process(self, msg: str, kwargs: Any) -> tuple[str, Any]:
        """Process the log message to include extra context."""
        extra = " - ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"{msg} - {extra}" if extra else msg, kwargs
