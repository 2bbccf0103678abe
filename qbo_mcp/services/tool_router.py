"""Routes tool calls to navigation or to the owning domain handler.

Resolution order for an operation name:
1. exact match on qbo_navigate / qbo_back
2. prefix match on a domain's qbo_<domain>_ namespace
3. otherwise UnknownOperationError

Every error is converted to a failed CallToolResult here. Nothing raised
while serving a call reaches the protocol layer, except cancellation.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from mcp import types

from qbo_mcp.core.errors import ToolError, UnknownOperationError
from qbo_mcp.core.logging import LoggerAdapter
from qbo_mcp.services.credentials import CredentialResolver, TenantCredential
from qbo_mcp.services.domains.base import DomainHandler
from qbo_mcp.services.navigation import (
    BACK_OPERATION,
    NAVIGATE_OPERATION,
    Domain,
    NavigationState,
    OperationDescriptor,
    parse_domain,
    visible_operations,
)
from qbo_mcp.services.qbo_client import QBOClient

logger = logging.getLogger(__name__)


BACK_MESSAGE = (
    "Returned to domain selection. Use qbo_navigate to select a domain: "
    + ", ".join(d.value for d in Domain)
)


def text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    """Wrap text as a single-item tool result."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def error_result(message: str) -> types.CallToolResult:
    return text_result(f"Error: {message}", is_error=True)


class ToolRouter:
    """Dispatches tool calls for one server process.

    The router holds no per-tenant state. Navigation state is passed in by
    the caller, and each domain call builds and closes its own QBOClient
    from the credential resolved for that call.

    Example:
        ```python
        router = ToolRouter(get_domain_handlers(), create_credential_resolver())
        state = NavigationState()
        result = await router.dispatch("qbo_navigate", {"domain": "invoices"}, state)
        ```
    """

    def __init__(
        self,
        domains: Sequence[DomainHandler],
        resolver: CredentialResolver,
        client_factory: Callable[[TenantCredential], QBOClient] = QBOClient,
    ):
        """Initialize the router.

        Args:
            domains: One handler per domain
            resolver: Credential policy applied to every domain call
            client_factory: Builds the per-call client (tests inject fakes)

        Raises:
            ValueError: If a domain appears twice or prefixes overlap
        """
        self.resolver = resolver
        self.client_factory = client_factory
        self._domains: List[DomainHandler] = list(domains)

        seen = set()
        for handler in self._domains:
            if handler.domain in seen:
                raise ValueError(f"Duplicate domain handler: {handler.domain.value}")
            seen.add(handler.domain)

        for i, first in enumerate(self._domains):
            for second in self._domains[i + 1:]:
                if first.prefix.startswith(second.prefix) or second.prefix.startswith(
                    first.prefix
                ):
                    raise ValueError(
                        f"Overlapping operation prefixes: {first.prefix} and {second.prefix}"
                    )

        self.catalog: Dict[Domain, List[OperationDescriptor]] = {
            handler.domain: list(handler.descriptors) for handler in self._domains
        }

    @property
    def domains(self) -> List[DomainHandler]:
        return list(self._domains)

    def list_operations(self, state: NavigationState) -> List[OperationDescriptor]:
        """Descriptors advertised for the given navigation state."""
        return visible_operations(state, self.catalog)

    def find_handler(self, name: str) -> Optional[DomainHandler]:
        for handler in self._domains:
            if handler.owns(name):
                return handler
        return None

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]],
        state: NavigationState,
        headers: Optional[Mapping[str, str]] = None,
    ) -> types.CallToolResult:
        """Serve one tool call.

        Navigation does not gate domain calls: any operation can be called
        whether or not its domain is selected.

        Args:
            name: Operation name
            arguments: Raw call arguments (None is treated as empty)
            state: Navigation state of the calling session
            headers: Inbound HTTP headers, used by the gateway credential policy

        Returns:
            CallToolResult with one text item; isError is set on failure
        """
        log = LoggerAdapter(logger, {"tool": name})
        log.debug("Dispatching tool call")

        try:
            text = await self._route(name, dict(arguments or {}), state, headers)
        except ToolError as e:
            log.warning(f"Tool call failed with {e.error_code.value}: {e.message}")
            return error_result(e.message)
        except Exception as e:
            log.exception(f"Unexpected error during tool call: {e}")
            return error_result(str(e) or e.__class__.__name__)

        return text_result(text)

    async def _route(
        self,
        name: str,
        arguments: Dict[str, Any],
        state: NavigationState,
        headers: Optional[Mapping[str, str]],
    ) -> str:
        if name == NAVIGATE_OPERATION:
            return self._navigate(arguments, state)
        if name == BACK_OPERATION:
            state.back()
            return BACK_MESSAGE

        handler = self.find_handler(name)
        if handler is None:
            raise UnknownOperationError(name)
        # Unknown names fail before any credential lookup
        handler.get_operation(name)

        credential = self.resolver.resolve(headers)
        async with self.client_factory(credential) as client:
            result = await handler.handle(name, arguments, client)

        logger.info(f"Tool call succeeded: {name}")
        return json.dumps(result, indent=2)

    def _navigate(self, arguments: Mapping[str, Any], state: NavigationState) -> str:
        domain = parse_domain(arguments.get("domain"))
        state.select(domain)
        names = ", ".join(descriptor.name for descriptor in self.catalog.get(domain, []))
        return f"Navigated to {domain.value} domain. Available tools: {names}"
