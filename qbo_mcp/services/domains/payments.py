"""Payments domain: list, get and record customer payments."""

from qbo_mcp.services.domains.base import (
    CreateOperation,
    DomainHandler,
    GetOperation,
    QueryOperation,
    date_property,
)
from qbo_mcp.services.navigation import Domain

PAYMENT_OPERATIONS = [
    QueryOperation(
        name="qbo_payments_list",
        summary=(
            "List payments in QuickBooks Online with pagination. Returns payment "
            "details including customer, amount, and linked transactions."
        ),
        entity="Payment",
        date_field="TxnDate",
    ),
    GetOperation(
        name="qbo_payments_get",
        summary=(
            "Get detailed information about a specific payment by its ID. Returns "
            "full payment details including linked invoices."
        ),
        resource="payment",
        id_field="paymentId",
    ),
    CreateOperation(
        name="qbo_payments_create",
        summary=(
            "Create a new payment in QuickBooks Online. Requires a customer "
            "reference and total amount. Optionally link to invoices."
        ),
        resource="payment",
        properties={
            "CustomerRef": {
                "type": "object",
                "description": (
                    'Customer reference object, e.g. {"value": "123"} where value '
                    "is the customer ID"
                ),
            },
            "TotalAmt": {"type": "number", "description": "Total payment amount"},
            "Line": {
                "type": "array",
                "items": {"type": "object"},
                "description": (
                    "Array of line items linking payment to invoices. Each line "
                    "should have Amount and LinkedTxn array with TxnId and TxnType "
                    '("Invoice").'
                ),
            },
            "TxnDate": date_property("Payment date (YYYY-MM-DD format)"),
            "PaymentMethodRef": {
                "type": "object",
                "description": (
                    'Payment method reference, e.g. {"value": "1"} for check, '
                    '{"value": "2"} for cash'
                ),
            },
            "DepositToAccountRef": {
                "type": "object",
                "description": (
                    'Account to deposit payment to, e.g. {"value": "35"} for '
                    "Undeposited Funds"
                ),
            },
            "PrivateNote": {"type": "string", "description": "Private memo for the payment"},
        },
        required=("CustomerRef", "TotalAmt"),
    ),
]


def create_handler() -> DomainHandler:
    return DomainHandler(Domain.PAYMENTS, PAYMENT_OPERATIONS)
