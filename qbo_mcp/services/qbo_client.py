"""QuickBooks Online API client.

This module provides the QBOClient class for interacting with the QuickBooks
Online v3 accounting API. It includes:
- HTTP client with Bearer token authentication
- Minor-version pinning on every request
- SQL-like query execution and a pagination helper for fetching all records
- Uniform error mapping (UpstreamError, TransportError)

A client is bound to exactly one TenantCredential. Build one per call and
close it when the call finishes; never hand a client to another tenant.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from qbo_mcp.core.config import settings
from qbo_mcp.core.errors import (
    AmbiguousQueryResponseError,
    TransportError,
    UpstreamError,
)
from qbo_mcp.services.credentials import TenantCredential

logger = logging.getLogger(__name__)


def pagination_clause(start_position: int, max_results: int) -> str:
    """Render the QBO query pagination suffix."""
    return f"STARTPOSITION {start_position} MAXRESULTS {max_results}"


def extract_entities(data: Any) -> Optional[List[Any]]:
    """Return the entity array of a query response.

    QBO names the array after the queried entity ("Customer", "Invoice", ...),
    so the array is located by type rather than by key. A response is expected
    to hold at most one array-valued field.

    Args:
        data: Parsed JSON body of a query response

    Returns:
        The entity list, or None when the response carries no array

    Raises:
        AmbiguousQueryResponseError: If more than one field holds an array
    """
    if not isinstance(data, dict):
        return None

    query_response = data.get("QueryResponse")
    if not isinstance(query_response, dict):
        return None

    array_fields = [
        key for key, value in query_response.items() if isinstance(value, list)
    ]
    if len(array_fields) > 1:
        raise AmbiguousQueryResponseError(array_fields)
    if not array_fields:
        return None
    return query_response[array_fields[0]]


class QBOClient:
    """Client for interacting with the QuickBooks Online API.

    Provides methods for:
    - Reading entities and reports (get)
    - Creating entities and triggering actions (post)
    - Running SQL-like queries (query)
    - Fetching every page of a query (get_paginated)

    Features:
    - Bearer token authentication from a TenantCredential
    - minorversion query parameter on every request
    - No retries: failures surface immediately as UpstreamError/TransportError

    Example:
        ```python
        credential = TenantCredential(access_token="...", realm_id="123")
        async with QBOClient(credential) as client:
            customers = await client.get_paginated("SELECT * FROM Customer")
        ```
    """

    # Default configuration
    DEFAULT_PAGE_SIZE = 100
    MAX_PAGE_SIZE = 1000
    QUERY_PATH = "query"

    def __init__(
        self,
        credential: TenantCredential,
        api_base: Optional[str] = None,
        minor_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize QBOClient.

        Args:
            credential: Tenant credential this client is bound to
            api_base: API base URL without the realm segment. Defaults to settings.
            minor_version: Pinned API minor version. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            transport: Optional httpx transport (used by tests)
        """
        self.credential = credential
        self.api_base = (api_base or settings.qbo_api_base).rstrip("/")
        self.minor_version = minor_version or settings.qbo_minor_version
        self.timeout = timeout if timeout is not None else settings.qbo_request_timeout
        self._transport = transport

        # HTTP client will be created lazily
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        """Company-scoped base URL for this client's tenant."""
        return f"{self.api_base}/{quote(self.credential.realm_id, safe='')}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Returns:
            Configured httpx.AsyncClient instance
        """
        if self._client is None or self._client.is_closed:
            token = self.credential.access_token.get_secret_value()
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "QBOClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # =========================================================================
    # HTTP Request Methods
    # =========================================================================

    def _handle_response_error(
        self,
        response: httpx.Response,
        method: str,
        path: str,
    ) -> None:
        """Raise UpstreamError for any non-2xx response.

        Args:
            response: HTTP response to check
            method: HTTP method of the request
            path: Company-relative path of the request

        Raises:
            UpstreamError: For every non-success status
        """
        if response.is_success:
            return

        logger.warning(f"QBO API error {method} /{path}: HTTP {response.status_code}")
        raise UpstreamError(
            method=method,
            path=path,
            status=response.status_code,
            body=response.text,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_data: Any = None,
        content: Optional[str] = None,
        content_type: str = "application/json",
    ) -> Any:
        """Make one authenticated request.

        Args:
            method: HTTP method (GET, POST)
            path: Path relative to the company base URL
            params: Optional query parameters (minorversion is always added)
            json_data: Optional JSON body
            content: Optional raw text body (used by queries)
            content_type: Content-Type sent with a body

        Returns:
            Parsed JSON body, or None for 204/empty responses

        Raises:
            UpstreamError: For non-2xx responses
            TransportError: When the service cannot be reached or times out
        """
        path = path.lstrip("/")
        url = f"{self.base_url}/{path}"
        query_params = {"minorversion": self.minor_version, **(params or {})}

        headers = {}
        if json_data is not None or content is not None:
            headers["Content-Type"] = content_type

        client = await self._get_client()
        try:
            response = await client.request(
                method=method,
                url=url,
                params=query_params,
                json=json_data,
                content=content,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request to QuickBooks Online timed out: {method} /{path}: {e}"
            ) from e
        except httpx.TransportError as e:
            raise TransportError(
                f"Cannot connect to QuickBooks Online at {self.api_base}: {e}"
            ) from e

        self._handle_response_error(response, method, path)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        """Make a GET request.

        Args:
            path: Path relative to the company base URL
            params: Optional query parameters

        Returns:
            Response JSON data
        """
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        body: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Make a POST request.

        Args:
            path: Path relative to the company base URL
            body: Optional JSON body
            params: Optional query parameters

        Returns:
            Response JSON data
        """
        return await self._request("POST", path, params=params, json_data=body)

    async def query(self, sql: str) -> Any:
        """Execute a SQL-like query.

        The statement is POSTed as the raw request body to the query endpoint.

        Args:
            sql: Query statement, including any pagination clause

        Returns:
            Response JSON data (a QueryResponse envelope)
        """
        logger.debug(f"QBO query: {sql}")
        return await self._request(
            "POST",
            self.QUERY_PATH,
            content=sql,
            content_type="application/text",
        )

    # =========================================================================
    # Pagination Helper
    # =========================================================================

    async def get_paginated(
        self,
        base_sql: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[Any]:
        """Fetch every record matched by a query.

        Appends STARTPOSITION/MAXRESULTS to the statement, starting at 1 and
        advancing by the page size, until a page comes back short, empty or
        without an entity array.

        Args:
            base_sql: Query statement without a pagination clause
            page_size: Records per page; capped at MAX_PAGE_SIZE

        Returns:
            All records in fetch order

        Raises:
            ValueError: If page_size is less than 1
            AmbiguousQueryResponseError: If a page holds several entity arrays
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        page_size = min(page_size, self.MAX_PAGE_SIZE)

        all_records: List[Any] = []
        start_position = 1
        pages = 0

        while True:
            sql = f"{base_sql} {pagination_clause(start_position, page_size)}"
            data = await self.query(sql)
            pages += 1

            records = extract_entities(data)
            if not records:
                break

            all_records.extend(records)

            if len(records) < page_size:
                break

            start_position += page_size

        logger.debug(f"Fetched {len(all_records)} records in {pages} page(s)")
        return all_records
