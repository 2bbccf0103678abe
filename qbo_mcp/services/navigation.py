"""Decision-tree navigation over the QuickBooks Online domains.

The server starts at the root, where only qbo_navigate is advertised. Selecting
a domain swaps the advertised surface for qbo_back plus that domain's tools.
Navigation decides what is listed, never what is callable.
"""

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from mcp import types

from qbo_mcp.core.errors import InvalidArgumentsError

logger = logging.getLogger(__name__)


class Domain(str, Enum):
    """Selectable areas of QuickBooks Online."""

    CUSTOMERS = "customers"
    INVOICES = "invoices"
    EXPENSES = "expenses"
    PAYMENTS = "payments"
    REPORTS = "reports"


DOMAIN_DESCRIPTIONS: Dict[Domain, str] = {
    Domain.CUSTOMERS: "Customer management - list, get, create, and search customers",
    Domain.INVOICES: "Invoice management - list, get, create invoices and send them by email",
    Domain.EXPENSES: "Expense tracking - list and view purchases and bills",
    Domain.PAYMENTS: "Payment management - list, get, and create payments linked to invoices",
    Domain.REPORTS: (
        "Financial reports - profit & loss, balance sheet, "
        "aged receivables/payables, customer sales"
    ),
}


class OperationDescriptor(BaseModel):
    """Static name, summary and parameter schema advertised for one tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    summary: str
    parameter_schema: Dict = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_tool(self) -> types.Tool:
        """Convert to the MCP tool listing shape."""
        return types.Tool(
            name=self.name,
            description=self.summary,
            inputSchema=self.parameter_schema,
        )


NAVIGATE_OPERATION = "qbo_navigate"
BACK_OPERATION = "qbo_back"

NAVIGATE_DESCRIPTOR = OperationDescriptor(
    name=NAVIGATE_OPERATION,
    summary=(
        "Navigate to a specific domain in QuickBooks Online. Call this first to "
        "select which area you want to work with. After navigation, "
        "domain-specific tools will be available."
    ),
    parameter_schema={
        "type": "object",
        "properties": {
            "domain": {
                "type": "string",
                "enum": [d.value for d in Domain],
                "description": "The domain to navigate to:\n"
                + "\n".join(f"- {d.value}: {DOMAIN_DESCRIPTIONS[d]}" for d in Domain),
            },
        },
        "required": ["domain"],
    },
)

BACK_DESCRIPTOR = OperationDescriptor(
    name=BACK_OPERATION,
    summary=(
        "Return to domain selection. Use this to switch to a different area "
        "of QuickBooks Online."
    ),
    parameter_schema={"type": "object", "properties": {}},
)

NAVIGATION_OPERATIONS = frozenset({NAVIGATE_OPERATION, BACK_OPERATION})


def parse_domain(value: object) -> Domain:
    """Coerce a raw argument to a Domain.

    Raises:
        InvalidArgumentsError: If the value is absent or not a known domain
    """
    if value is None or value == "":
        raise InvalidArgumentsError("domain")
    try:
        return Domain(value)
    except ValueError:
        valid = ", ".join(d.value for d in Domain)
        raise InvalidArgumentsError(
            "domain",
            f"Invalid domain: {value}. Expected one of: {valid}",
        )


class NavigationState:
    """Which domain, if any, a session has selected.

    Root is represented by selected_domain being None.
    """

    def __init__(self) -> None:
        self.selected_domain: Optional[Domain] = None

    @property
    def is_root(self) -> bool:
        return self.selected_domain is None

    def select(self, domain: Domain) -> Domain:
        """Move to a domain from any state."""
        self.selected_domain = domain
        logger.debug(f"Navigated to {domain.value}")
        return domain

    def back(self) -> None:
        """Return to the root. A no-op at the root."""
        self.selected_domain = None


def visible_operations(
    state: NavigationState,
    catalog: Mapping[Domain, Sequence[OperationDescriptor]],
) -> List[OperationDescriptor]:
    """Return the descriptors advertised in the given state.

    Args:
        state: Current navigation state (not modified)
        catalog: Descriptors owned by each domain

    Returns:
        [qbo_navigate] at the root, else [qbo_back] + the domain's descriptors
    """
    if state.selected_domain is None:
        return [NAVIGATE_DESCRIPTOR]
    return [BACK_DESCRIPTOR, *catalog.get(state.selected_domain, ())]
