"""Customers domain: list, get, create and search customers."""

from qbo_mcp.services.domains.base import (
    CreateOperation,
    DomainHandler,
    GetOperation,
    QueryOperation,
)
from qbo_mcp.services.navigation import Domain

CUSTOMER_OPERATIONS = [
    QueryOperation(
        name="qbo_customers_list",
        summary=(
            "List customers in QuickBooks Online with pagination. Returns customer "
            "details including name, email, and balance."
        ),
        entity="Customer",
    ),
    GetOperation(
        name="qbo_customers_get",
        summary=(
            "Get detailed information about a specific customer by their ID. Returns "
            "full customer profile including contact info, billing address, and balance."
        ),
        resource="customer",
        id_field="customerId",
    ),
    CreateOperation(
        name="qbo_customers_create",
        summary="Create a new customer in QuickBooks Online. DisplayName is required.",
        resource="customer",
        properties={
            "DisplayName": {
                "type": "string",
                "description": "Display name for the customer (required, must be unique)",
            },
            "GivenName": {"type": "string", "description": "First name of the customer"},
            "FamilyName": {"type": "string", "description": "Last name of the customer"},
            "CompanyName": {"type": "string", "description": "Company name"},
            "PrimaryEmailAddr": {
                "type": "object",
                "description": 'Primary email address object, e.g. {"Address": "user@example.com"}',
            },
            "PrimaryPhone": {
                "type": "object",
                "description": 'Primary phone object, e.g. {"FreeFormNumber": "555-1234"}',
            },
            "BillAddr": {
                "type": "object",
                "description": (
                    "Billing address object with Line1, City, "
                    "CountrySubDivisionCode, PostalCode"
                ),
            },
        },
        required=("DisplayName",),
    ),
    QueryOperation(
        name="qbo_customers_search",
        summary=(
            "Search for customers by display name. Uses a LIKE query to find "
            "partial matches."
        ),
        entity="Customer",
        search_field="DisplayName",
    ),
]


def create_handler() -> DomainHandler:
    return DomainHandler(Domain.CUSTOMERS, CUSTOMER_OPERATIONS)
