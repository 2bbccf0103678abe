"""Expenses domain: purchases (checks, card charges, cash) and bills."""

from qbo_mcp.services.domains.base import DomainHandler, GetOperation, QueryOperation
from qbo_mcp.services.navigation import Domain

EXPENSE_OPERATIONS = [
    QueryOperation(
        name="qbo_expenses_list_purchases",
        summary=(
            "List purchases (expenses/checks/credit card charges) in QuickBooks "
            "Online with pagination."
        ),
        entity="Purchase",
        date_field="TxnDate",
    ),
    QueryOperation(
        name="qbo_expenses_list_bills",
        summary="List bills (accounts payable) in QuickBooks Online with pagination.",
        entity="Bill",
        date_field="TxnDate",
    ),
    GetOperation(
        name="qbo_expenses_get_purchase",
        summary=(
            "Get detailed information about a specific purchase by its ID. Returns "
            "full purchase details including line items and vendor info."
        ),
        resource="purchase",
        id_field="purchaseId",
    ),
    GetOperation(
        name="qbo_expenses_get_bill",
        summary=(
            "Get detailed information about a specific bill by its ID. Returns full "
            "bill details including line items and vendor info."
        ),
        resource="bill",
        id_field="billId",
    ),
]


def create_handler() -> DomainHandler:
    return DomainHandler(Domain.EXPENSES, EXPENSE_OPERATIONS)
