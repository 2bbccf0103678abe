"""Health check endpoint.

Reports process liveness and how the server is configured. It does not
call QuickBooks Online: in gateway mode there is no credential to call with.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from qbo_mcp import __version__
from qbo_mcp.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str  # always "ok" while the process is serving
    transport: str
    auth_mode: str
    version: str
    timestamp: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe for load balancers and gateways."""
    return HealthResponse(
        status="ok",
        transport=settings.mcp_transport,
        auth_mode=settings.auth_mode,
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
