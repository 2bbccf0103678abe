"""Invoices domain: list, get, create and email invoices.

Listing can filter on balance status. Overdue is computed against the
current UTC date at call time.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping
from urllib.parse import quote

from qbo_mcp.services.domains import base
from qbo_mcp.services.domains.base import (
    CreateOperation,
    DomainHandler,
    DomainOperation,
    GetOperation,
    QueryOperation,
    date_property,
    is_missing,
    render_condition,
)
from qbo_mcp.services.navigation import Domain
from qbo_mcp.services.qbo_client import QBOClient


def paid_conditions() -> List[str]:
    return [render_condition("Balance", "=", "0")]


def unpaid_conditions() -> List[str]:
    return [render_condition("Balance", ">", "0")]


def overdue_conditions() -> List[str]:
    return [
        render_condition("Balance", ">", "0"),
        render_condition("DueDate", "<", base.today()),
    ]


INVOICE_STATUS_CONDITIONS = {
    "Paid": paid_conditions,
    "Unpaid": unpaid_conditions,
    "Overdue": overdue_conditions,
}


@dataclass(frozen=True, kw_only=True)
class SendInvoiceOperation(DomainOperation):
    """Email an existing invoice, optionally to an override address."""

    async def run(self, client: QBOClient, arguments: Mapping[str, Any]) -> Any:
        invoice_id = quote(str(arguments["invoiceId"]), safe="")
        email = arguments.get("email")
        params = {"sendTo": email} if not is_missing(email) else None
        return await client.post(f"invoice/{invoice_id}/send", params=params)


INVOICE_OPERATIONS = [
    QueryOperation(
        name="qbo_invoices_list",
        summary=(
            "List invoices in QuickBooks Online with optional filters. Returns "
            "invoice details including customer, amount, balance, and due date."
        ),
        entity="Invoice",
        date_field="TxnDate",
        status_conditions=INVOICE_STATUS_CONDITIONS,
    ),
    GetOperation(
        name="qbo_invoices_get",
        summary=(
            "Get detailed information about a specific invoice by its ID. Returns "
            "full invoice details including line items, customer info, and payment status."
        ),
        resource="invoice",
        id_field="invoiceId",
    ),
    CreateOperation(
        name="qbo_invoices_create",
        summary=(
            "Create a new invoice in QuickBooks Online. Requires a customer "
            "reference and at least one line item."
        ),
        resource="invoice",
        properties={
            "CustomerRef": {
                "type": "object",
                "description": (
                    'Customer reference object, e.g. {"value": "123"} where value '
                    "is the customer ID"
                ),
            },
            "Line": {
                "type": "array",
                "items": {"type": "object"},
                "description": (
                    'Array of line items. Each line should have Amount, DetailType '
                    '("SalesItemLineDetail"), and SalesItemLineDetail with ItemRef.'
                ),
            },
            "DueDate": date_property("Due date for the invoice (YYYY-MM-DD format)"),
            "TxnDate": date_property("Transaction date (YYYY-MM-DD format)"),
            "BillEmail": {
                "type": "object",
                "description": (
                    'Email address to send the invoice to, e.g. '
                    '{"Address": "customer@example.com"}'
                ),
            },
            "PrivateNote": {
                "type": "string",
                "description": "Private note (not visible to customer)",
            },
            "CustomerMemo": {
                "type": "object",
                "description": (
                    'Memo visible to customer, e.g. {"value": "Thank you for your business"}'
                ),
            },
        },
        required=("CustomerRef", "Line"),
    ),
    SendInvoiceOperation(
        name="qbo_invoices_send",
        summary=(
            "Send an invoice by email. The invoice must already exist in "
            "QuickBooks Online."
        ),
        properties={
            "invoiceId": {"type": "string", "description": "The unique invoice ID to send"},
            "email": {
                "type": "string",
                "description": (
                    "Override email address to send to (optional, uses invoice "
                    "BillEmail if not specified)"
                ),
            },
        },
        required=("invoiceId",),
    ),
]


def create_handler() -> DomainHandler:
    return DomainHandler(Domain.INVOICES, INVOICE_OPERATIONS)
