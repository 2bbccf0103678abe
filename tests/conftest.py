"""Pytest configuration and fixtures for tests.

Provides credentials, a recording httpx transport and QBOClient factories so
tests never reach the real QuickBooks Online API.
"""

import os

# Set test environment variables BEFORE any qbo_mcp imports
# This must happen at the top of conftest.py before any other imports
os.environ["MCP_TRANSPORT"] = "stdio"
os.environ["AUTH_MODE"] = "env"
os.environ["QBO_ACCESS_TOKEN"] = "test-access-token"
os.environ["QBO_REALM_ID"] = "9130350000000000"
os.environ["QBO_API_BASE"] = "https://qbo.test/v3/company"

import re
from typing import Any, Callable, List, Optional

import httpx
import pytest

from qbo_mcp.services.credentials import TenantCredential
from qbo_mcp.services.qbo_client import QBOClient


TEST_API_BASE = "https://qbo.test/v3/company"
TEST_REALM_ID = "9130350000000000"

PAGINATION_RE = re.compile(r"STARTPOSITION (\d+) MAXRESULTS (\d+)$")


# =============================================================================
# Helper Functions
# =============================================================================


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build a JSON response for a mock transport."""
    return httpx.Response(status_code, json=data)


def query_response(entity: str, records: List[Any]) -> httpx.Response:
    """Build a QBO query response holding one entity array."""
    return json_response(
        {
            "QueryResponse": {
                entity: records,
                "startPosition": 1,
                "maxResults": len(records),
            },
            "time": "2026-10-18T10:00:00.000-07:00",
        }
    )


def parse_pagination(sql: str) -> Optional[tuple[int, int]]:
    """Return (start_position, max_results) from a query statement."""
    match = PAGINATION_RE.search(sql)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


class RecordingHandler:
    """Mock transport handler that records every request it serves."""

    def __init__(self, responder: Callable[[httpx.Request], Any]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responder(request)
        if hasattr(response, "__await__"):
            response = await response
        return response

    @property
    def queries(self) -> List[str]:
        return [r.content.decode() for r in self.requests if r.url.path.endswith("/query")]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def credential() -> TenantCredential:
    """Create a test tenant credential."""
    return TenantCredential(access_token="test-access-token", realm_id=TEST_REALM_ID)


@pytest.fixture
def make_client(credential):
    """Factory building a QBOClient backed by a recording mock transport."""

    def factory(responder, tenant: Optional[TenantCredential] = None):
        handler = responder if isinstance(responder, RecordingHandler) else RecordingHandler(responder)
        client = QBOClient(
            tenant or credential,
            api_base=TEST_API_BASE,
            minor_version="73",
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )
        return client, handler

    return factory
