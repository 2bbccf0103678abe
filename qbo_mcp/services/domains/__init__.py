"""Domain handlers for QuickBooks Online.

Each domain module declares its operation table; this package assembles
them into handlers for the tool router.
"""

from typing import List

from qbo_mcp.services.domains import customers, expenses, invoices, payments, reports
from qbo_mcp.services.domains.base import DomainHandler


def get_domain_handlers() -> List[DomainHandler]:
    """Build one handler per domain, in navigation order."""
    return [
        customers.create_handler(),
        invoices.create_handler(),
        expenses.create_handler(),
        payments.create_handler(),
        reports.create_handler(),
    ]


__all__ = ["DomainHandler", "get_domain_handlers"]
