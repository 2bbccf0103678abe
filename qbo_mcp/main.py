"""Server entry point.

Serves MCP over stdio (default) or streamable HTTP, selected by
MCP_TRANSPORT. The HTTP transport is a FastAPI app that mounts the MCP
session manager at /mcp next to the health endpoints.
"""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.types import Receive, Scope, Send

from qbo_mcp import __version__
from qbo_mcp.api.mcp_server import create_mcp_server, create_session_manager, run_stdio
from qbo_mcp.api.router import api_router
from qbo_mcp.core.config import settings
from qbo_mcp.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


# =============================================================================
# Fatal Error Handling
# =============================================================================


def _exit_fatally(message: str, exc_info: Any = None) -> None:
    logger.critical(message, exc_info=exc_info)
    logging.shutdown()
    os._exit(1)


def _excepthook(exc_type, exc_value, exc_tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    _exit_fatally("Uncaught exception, exiting", (exc_type, exc_value, exc_tb))


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    exception = context.get("exception")
    if exception is None:
        logger.error(f"Event loop error: {context.get('message')}")
        return
    _exit_fatally(
        f"Unhandled exception in event loop: {context.get('message')}",
        (type(exception), exception, exception.__traceback__),
    )


def install_fatal_handlers(loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """Exit with status 1 on faults that escape every other handler.

    Args:
        loop: Event loop to guard as well; only the process hook if omitted
    """
    sys.excepthook = _excepthook
    if loop is not None:
        loop.set_exception_handler(_loop_exception_handler)


# =============================================================================
# HTTP Application
# =============================================================================


class MCPEndpoint:
    """ASGI endpoint forwarding to the streamable HTTP session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


def create_app(session_manager: Optional[StreamableHTTPSessionManager] = None) -> FastAPI:
    """Create the HTTP application.

    Args:
        session_manager: MCP session manager to mount. Built from settings if omitted.

    Returns:
        FastAPI app serving /mcp, /health and /
    """
    session_manager = session_manager or create_session_manager(create_mcp_server())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager for startup and shutdown events."""
        # Startup
        logger.info(f"Starting {settings.app_name} v{__version__} on HTTP")
        logger.info(f"Credential policy: {settings.auth_mode}")

        async with session_manager.run():
            yield

        # Shutdown
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        description="MCP server for QuickBooks Online accounting",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager

    # Served at /mcp exactly, without a trailing-slash redirect
    app.add_route(
        "/mcp",
        MCPEndpoint(session_manager),
        methods=["GET", "POST", "DELETE"],
        include_in_schema=False,
    )

    # Include API router
    app.include_router(api_router)

    return app


# =============================================================================
# Runners
# =============================================================================


async def run_http() -> None:
    """Serve the HTTP application with uvicorn until SIGINT/SIGTERM."""
    app = create_app()
    config = uvicorn.Config(
        app,
        host=settings.mcp_http_host,
        port=settings.mcp_http_port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )
    logger.info(f"Listening on {settings.mcp_http_host}:{settings.mcp_http_port}")
    await uvicorn.Server(config).serve()


async def _serve(runner: Callable[[], Awaitable[None]]) -> None:
    install_fatal_handlers(asyncio.get_running_loop())
    await runner()


def main() -> None:
    """Console entry point."""
    setup_logging()
    install_fatal_handlers()

    if settings.mcp_transport == "stdio" and settings.auth_mode == "gateway":
        logger.warning(
            "AUTH_MODE=gateway reads credentials from HTTP headers; "
            "over stdio every domain call will fail with missing credentials"
        )

    runner = run_http if settings.mcp_transport == "http" else run_stdio
    try:
        asyncio.run(_serve(runner))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
