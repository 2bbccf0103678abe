"""MCP protocol binding for the tool router.

Builds a low-level mcp Server whose list_tools/call_tool handlers delegate
to a ToolRouter. Each MCP session gets its own NavigationState, so clients
sharing one HTTP server navigate independently.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional
from weakref import WeakKeyDictionary

from mcp import types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from qbo_mcp import __version__
from qbo_mcp.core.config import settings
from qbo_mcp.services.credentials import create_credential_resolver
from qbo_mcp.services.domains import get_domain_handlers
from qbo_mcp.services.navigation import NAVIGATION_OPERATIONS, NavigationState
from qbo_mcp.services.tool_router import ToolRouter

logger = logging.getLogger(__name__)

SERVER_NAME = "qbo-mcp-server"


class SessionNavigation:
    """NavigationState per MCP session.

    Entries disappear with their session object.
    """

    def __init__(self) -> None:
        self._states: "WeakKeyDictionary[Any, NavigationState]" = WeakKeyDictionary()

    def get(self, session: Any) -> NavigationState:
        state = self._states.get(session)
        if state is None:
            state = NavigationState()
            self._states[session] = state
        return state

    def __len__(self) -> int:
        return len(self._states)


def request_headers(request_context: Any) -> Optional[Dict[str, str]]:
    """HTTP headers of the request behind a tool call.

    Returns None over stdio, where there is no HTTP request.
    """
    request = getattr(request_context, "request", None)
    headers: Optional[Mapping[str, str]] = getattr(request, "headers", None)
    if headers is None:
        return None
    return dict(headers.items())


class QBOServer(Server):
    """Server that always advertises tools/list_changed.

    Both transports build their initialization options through
    create_initialization_options, the HTTP session manager included.
    """

    def create_initialization_options(
        self,
        notification_options: Optional[NotificationOptions] = None,
        experimental_capabilities: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> InitializationOptions:
        return super().create_initialization_options(
            notification_options=notification_options or NotificationOptions(tools_changed=True),
            experimental_capabilities=experimental_capabilities or {},
        )


def create_router() -> ToolRouter:
    """Build the router from the configured credential policy."""
    resolver = create_credential_resolver()
    logger.info(f"Credential policy: {resolver.policy}")
    return ToolRouter(get_domain_handlers(), resolver)


def create_mcp_server(
    router: Optional[ToolRouter] = None,
    navigation: Optional[SessionNavigation] = None,
) -> Server:
    """Create the MCP server.

    Args:
        router: Tool router to delegate to. Built from settings if omitted.
        navigation: Session registry. A fresh one is created if omitted.

    Returns:
        Configured low-level mcp Server
    """
    router = router or create_router()
    navigation = navigation or SessionNavigation()
    server = QBOServer(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        state = navigation.get(server.request_context.session)
        return [descriptor.to_tool() for descriptor in router.list_operations(state)]

    # Arguments are validated by the domain handlers, which report failures
    # as tool results rather than protocol errors.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> types.CallToolResult:
        ctx = server.request_context
        state = navigation.get(ctx.session)

        result = await router.dispatch(
            name,
            arguments,
            state,
            headers=request_headers(ctx),
        )

        if name in NAVIGATION_OPERATIONS and not result.isError:
            await ctx.session.send_tool_list_changed()
        return result

    return server


def create_session_manager(server: Server) -> StreamableHTTPSessionManager:
    """Streamable HTTP session manager for the server.

    Sessions are stateful so each client keeps its navigation state across
    requests.
    """
    return StreamableHTTPSessionManager(
        app=server,
        json_response=False,
        stateless=False,
    )


async def run_stdio(server: Optional[Server] = None) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    server = server or create_mcp_server()
    logger.info(f"Starting {settings.app_name} on stdio")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
