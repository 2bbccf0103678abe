"""Core application modules."""

from qbo_mcp.core.config import settings
from qbo_mcp.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]
