"""API endpoints package."""

from qbo_mcp.api.endpoints import health

__all__ = ["health"]
