"""Tests for ToolRouter dispatch.

Tests cover:
- Navigation calls and their messages
- Routing by exact name and domain prefix, unknown operations
- Error conversion to failed results (never raised)
- End-to-end domain calls over a mock transport
- Per-call credential isolation under concurrency
- Property: domain prefixes are disjoint
"""

import asyncio
import json
import random
from unittest.mock import MagicMock

import httpx
import pytest
from hypothesis import given, settings as hyp_settings, strategies as st

from conftest import TEST_API_BASE, RecordingHandler, json_response, query_response
from qbo_mcp.core.config import Settings
from qbo_mcp.services.credentials import (
    ACCESS_TOKEN_HEADER,
    REALM_ID_HEADER,
    FixedCredentialResolver,
    HeaderCredentialResolver,
)
from qbo_mcp.services.domains import get_domain_handlers
from qbo_mcp.services.domains.base import DomainHandler
from qbo_mcp.services.navigation import Domain, NavigationState
from qbo_mcp.services.qbo_client import QBOClient
from qbo_mcp.services.tool_router import BACK_MESSAGE, ToolRouter


ALL_OPERATION_NAMES = [
    name for handler in get_domain_handlers() for name in handler.operation_names
]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def env_resolver():
    """Fixed resolver with valid credentials."""
    return FixedCredentialResolver(Settings(qbo_access_token="env-token", qbo_realm_id="555"))


def build_router(resolver, responder) -> tuple[ToolRouter, RecordingHandler]:
    """Create a router whose clients talk to a recording mock transport."""
    handler = responder if isinstance(responder, RecordingHandler) else RecordingHandler(responder)

    def client_factory(credential):
        return QBOClient(
            credential,
            api_base=TEST_API_BASE,
            transport=httpx.MockTransport(handler),
        )

    return ToolRouter(get_domain_handlers(), resolver, client_factory=client_factory), handler


def result_text(result) -> str:
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    return result.content[0].text


# =============================================================================
# Navigation Tests
# =============================================================================


class TestNavigationDispatch:
    """Tests for qbo_navigate and qbo_back."""

    @pytest.mark.asyncio
    async def test_navigate(self, env_resolver):
        router, handler = build_router(env_resolver, lambda request: json_response({}))
        state = NavigationState()

        result = await router.dispatch("qbo_navigate", {"domain": "payments"}, state)

        assert not result.isError
        assert result_text(result) == (
            "Navigated to payments domain. Available tools: "
            "qbo_payments_list, qbo_payments_get, qbo_payments_create"
        )
        assert state.selected_domain == Domain.PAYMENTS
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_back(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: json_response({}))
        state = NavigationState()
        state.select(Domain.REPORTS)

        result = await router.dispatch("qbo_back", {}, state)

        assert not result.isError
        assert result_text(result) == (
            "Returned to domain selection. Use qbo_navigate to select a domain: "
            "customers, invoices, expenses, payments, reports"
        )
        assert result_text(result) == BACK_MESSAGE
        assert state.is_root

    @pytest.mark.asyncio
    async def test_navigate_invalid_domain(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: json_response({}))
        state = NavigationState()

        result = await router.dispatch("qbo_navigate", {"domain": "vendors"}, state)

        assert result.isError
        assert result_text(result).startswith("Error: Invalid domain: vendors")
        assert state.is_root

    @pytest.mark.asyncio
    async def test_navigate_without_arguments(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: json_response({}))

        result = await router.dispatch("qbo_navigate", None, NavigationState())

        assert result.isError
        assert result_text(result) == "Error: Missing required argument: domain"

    def test_list_operations(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: json_response({}))
        state = NavigationState()

        assert [d.name for d in router.list_operations(state)] == ["qbo_navigate"]

        state.select(Domain.EXPENSES)
        assert [d.name for d in router.list_operations(state)][:2] == [
            "qbo_back",
            "qbo_expenses_list_purchases",
        ]


# =============================================================================
# Routing Tests
# =============================================================================


class TestRouting:
    """Tests for name resolution."""

    @pytest.mark.asyncio
    async def test_unknown_operation(self, env_resolver):
        router, handler = build_router(env_resolver, lambda request: json_response({}))

        result = await router.dispatch("qbo_vendors_list", {}, NavigationState())

        assert result.isError
        assert result_text(result) == (
            "Error: Unknown tool: qbo_vendors_list. Use qbo_navigate to select a domain first."
        )
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_unknown_operation_with_domain_prefix(self, env_resolver):
        router, handler = build_router(env_resolver, lambda request: json_response({}))

        result = await router.dispatch("qbo_invoices_delete", {}, NavigationState())

        assert result.isError
        assert "Unknown invoices tool: qbo_invoices_delete" in result_text(result)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_domain_call_without_navigation(self, env_resolver):
        """Test that navigation controls listing, not callability."""
        router, handler = build_router(
            env_resolver, lambda request: json_response({"Customer": {"Id": "58"}})
        )
        state = NavigationState()

        result = await router.dispatch("qbo_customers_get", {"customerId": "58"}, state)

        assert not result.isError
        assert json.loads(result_text(result)) == {"Customer": {"Id": "58"}}
        assert state.is_root
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_call_in_other_domain_keeps_state(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: json_response({"Bill": {}}))
        state = NavigationState()
        state.select(Domain.CUSTOMERS)

        result = await router.dispatch("qbo_expenses_get_bill", {"billId": "3"}, state)

        assert not result.isError
        assert state.selected_domain == Domain.CUSTOMERS

    def test_overlapping_prefixes_rejected(self, env_resolver):
        handlers = [
            DomainHandler(Domain.CUSTOMERS, [], prefix="qbo_c"),
            DomainHandler(Domain.INVOICES, [], prefix="qbo_cu"),
        ]

        with pytest.raises(ValueError):
            ToolRouter(handlers, env_resolver)

    def test_duplicate_domain_rejected(self, env_resolver):
        handlers = [DomainHandler(Domain.CUSTOMERS, []), DomainHandler(Domain.CUSTOMERS, [])]

        with pytest.raises(ValueError):
            ToolRouter(handlers, env_resolver)


# =============================================================================
# End-to-End Domain Calls
# =============================================================================


class TestDomainDispatch:
    """Tests for domain calls through the router."""

    @pytest.mark.asyncio
    async def test_overdue_invoices_query(self, env_resolver, monkeypatch):
        """Test the query sent for overdue invoices and the JSON result text."""
        monkeypatch.setattr("qbo_mcp.services.domains.base.today", lambda: "2026-10-18")
        invoices = [{"Id": "130", "Balance": 50, "DueDate": "2026-09-01"}]
        router, handler = build_router(
            env_resolver, lambda request: query_response("Invoice", invoices)
        )

        result = await router.dispatch(
            "qbo_invoices_list",
            {"status": "Overdue", "maxResults": 10},
            NavigationState(),
        )

        assert not result.isError
        assert handler.queries == [
            "SELECT * FROM Invoice WHERE Balance > '0' AND DueDate < '2026-10-18' "
            "STARTPOSITION 1 MAXRESULTS 10"
        ]
        request = handler.requests[0]
        assert request.url.path == "/v3/company/555/query"
        assert request.headers["Authorization"] == "Bearer env-token"

        body = json.loads(result_text(result))
        assert body["QueryResponse"]["Invoice"] == invoices
        assert result_text(result) == json.dumps(body, indent=2)

    @pytest.mark.asyncio
    async def test_fetch_all_returns_list(self, env_resolver):
        router, _ = build_router(
            env_resolver, lambda request: query_response("Customer", [{"Id": "1"}])
        )

        result = await router.dispatch("qbo_customers_list", {"fetchAll": True}, NavigationState())

        assert json.loads(result_text(result)) == [{"Id": "1"}]

    @pytest.mark.asyncio
    async def test_null_result_serializes(self, env_resolver):
        router, _ = build_router(env_resolver, lambda request: httpx.Response(204))

        result = await router.dispatch("qbo_invoices_send", {"invoiceId": "1"}, NavigationState())

        assert not result.isError
        assert result_text(result) == "null"


# =============================================================================
# Error Conversion Tests
# =============================================================================


class TestErrorConversion:
    """Tests that every failure becomes an isError result."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        resolver = FixedCredentialResolver(Settings(qbo_access_token=None, qbo_realm_id=None))
        client_factory = MagicMock()
        router = ToolRouter(get_domain_handlers(), resolver, client_factory=client_factory)

        result = await router.dispatch("qbo_customers_list", {}, NavigationState())

        assert result.isError
        assert result_text(result) == (
            "Error: Missing credentials: QBO_ACCESS_TOKEN and QBO_REALM_ID are required "
            "(environment)"
        )
        client_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_arguments_make_no_request(self, env_resolver):
        router, handler = build_router(env_resolver, lambda request: json_response({}))

        result = await router.dispatch("qbo_invoices_get", {}, NavigationState())

        assert result.isError
        assert result_text(result) == "Error: Missing required argument: invoiceId"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_upstream_error(self, env_resolver):
        router, _ = build_router(
            env_resolver, lambda request: httpx.Response(401, text="AuthenticationFailed")
        )

        result = await router.dispatch("qbo_payments_get", {"paymentId": "1"}, NavigationState())

        assert result.isError
        assert result_text(result) == (
            "Error: QBO API error GET /payment/1 (401): AuthenticationFailed"
        )

    @pytest.mark.asyncio
    async def test_transport_error(self, env_resolver):
        def responder(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        router, _ = build_router(env_resolver, responder)

        result = await router.dispatch("qbo_payments_list", {}, NavigationState())

        assert result.isError
        assert result_text(result).startswith("Error: Cannot connect to QuickBooks Online")

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, env_resolver):
        def client_factory(credential):
            raise RuntimeError("kaput")

        router = ToolRouter(get_domain_handlers(), env_resolver, client_factory=client_factory)

        result = await router.dispatch("qbo_customers_list", {}, NavigationState())

        assert result.isError
        assert result_text(result) == "Error: kaput"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, env_resolver):
        def responder(request):
            raise asyncio.CancelledError()

        router, _ = build_router(env_resolver, responder)

        with pytest.raises(asyncio.CancelledError):
            await router.dispatch("qbo_customers_list", {}, NavigationState())


# =============================================================================
# Credential Isolation Tests
# =============================================================================


class TestCredentialIsolation:
    """Concurrent calls from different tenants never share credentials."""

    @pytest.mark.asyncio
    async def test_concurrent_gateway_calls(self):
        async def responder(request: httpx.Request) -> httpx.Response:
            # Interleave requests from different tenants
            await asyncio.sleep(random.uniform(0, 0.02))
            realm = request.url.path.split("/")[3]
            token = request.headers["Authorization"].removeprefix("Bearer ")
            return json_response({"realm": realm, "token": token})

        router, handler = build_router(HeaderCredentialResolver(), responder)
        tenants = [(f"token-{i}", str(1000 + i)) for i in range(25)]

        results = await asyncio.gather(
            *(
                router.dispatch(
                    "qbo_customers_get",
                    {"customerId": "1"},
                    NavigationState(),
                    headers={ACCESS_TOKEN_HEADER: token, REALM_ID_HEADER: realm},
                )
                for token, realm in tenants
            )
        )

        for (token, realm), result in zip(tenants, results):
            assert not result.isError
            assert json.loads(result_text(result)) == {"realm": realm, "token": token}
        assert len(handler.requests) == len(tenants)

    @pytest.mark.asyncio
    async def test_missing_header_fails_only_that_call(self):
        router, handler = build_router(
            HeaderCredentialResolver(), lambda request: json_response({"ok": True})
        )

        good, bad = await asyncio.gather(
            router.dispatch(
                "qbo_customers_get",
                {"customerId": "1"},
                NavigationState(),
                headers={ACCESS_TOKEN_HEADER: "t", REALM_ID_HEADER: "1"},
            ),
            router.dispatch(
                "qbo_customers_get",
                {"customerId": "1"},
                NavigationState(),
                headers={ACCESS_TOKEN_HEADER: "t"},
            ),
        )

        assert not good.isError
        assert bad.isError
        assert result_text(bad) == (
            "Error: Missing credentials: X-Qbo-Realm-Id is required (request headers)"
        )
        assert len(handler.requests) == 1


# =============================================================================
# Property: Disjoint Prefixes
# =============================================================================


class TestPrefixProperty:
    """Every operation name is owned by exactly one domain handler, and no
    name is owned by more than one.
    """

    @given(name=st.sampled_from(ALL_OPERATION_NAMES))
    def test_each_operation_has_one_owner(self, name):
        owners = [handler for handler in get_domain_handlers() if handler.owns(name)]

        assert len(owners) == 1
        assert name in owners[0].operation_names

    @given(
        name=st.one_of(
            st.text(max_size=40),
            st.sampled_from(ALL_OPERATION_NAMES).map(lambda n: n + "_extra"),
        )
    )
    @hyp_settings(max_examples=200)
    def test_no_name_has_two_owners(self, name):
        owners = [handler for handler in get_domain_handlers() if handler.owns(name)]

        assert len(owners) <= 1
