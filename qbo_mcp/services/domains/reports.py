"""Reports domain: financial statements and aging summaries.

Report arguments are sent unchanged as query parameters of
GET reports/<ReportName>.
"""

from typing import Any, Dict

from qbo_mcp.services.domains.base import DomainHandler, ReportOperation, date_property
from qbo_mcp.services.navigation import Domain

ACCOUNTING_METHODS = ["Cash", "Accrual"]


def period_properties(with_accounting_method: bool = False) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "start_date": date_property("Start date for the report period (YYYY-MM-DD format)"),
        "end_date": date_property("End date for the report period (YYYY-MM-DD format)"),
    }
    if with_accounting_method:
        properties["accounting_method"] = {
            "type": "string",
            "enum": ACCOUNTING_METHODS,
            "description": "Accounting method (default: Accrual)",
        }
    return properties


def as_of_properties() -> Dict[str, Any]:
    return {
        "report_date": date_property("Report as-of date (YYYY-MM-DD format, default: today)"),
    }


REPORT_OPERATIONS = [
    ReportOperation(
        name="qbo_reports_profit_and_loss",
        summary=(
            "Get a Profit and Loss (Income Statement) report for a given date range. "
            "Shows revenue, expenses, and net income."
        ),
        report="ProfitAndLoss",
        properties=period_properties(with_accounting_method=True),
        required=("start_date", "end_date"),
    ),
    ReportOperation(
        name="qbo_reports_balance_sheet",
        summary=(
            "Get a Balance Sheet report as of a given date range. Shows assets, "
            "liabilities, and equity."
        ),
        report="BalanceSheet",
        properties=period_properties(with_accounting_method=True),
        required=("start_date", "end_date"),
    ),
    ReportOperation(
        name="qbo_reports_aged_receivables",
        summary=(
            "Get an Aged Receivables (A/R Aging Summary) report. Shows outstanding "
            "customer balances grouped by age."
        ),
        report="AgedReceivables",
        properties=as_of_properties(),
    ),
    ReportOperation(
        name="qbo_reports_aged_payables",
        summary=(
            "Get an Aged Payables (A/P Aging Summary) report. Shows outstanding "
            "vendor balances grouped by age."
        ),
        report="AgedPayables",
        properties=as_of_properties(),
    ),
    ReportOperation(
        name="qbo_reports_customer_sales",
        summary=(
            "Get a Customer Sales report for a given date range. Shows sales totals "
            "broken down by customer."
        ),
        report="CustomerSales",
        properties=period_properties(),
        required=("start_date", "end_date"),
    ),
]


def create_handler() -> DomainHandler:
    return DomainHandler(Domain.REPORTS, REPORT_OPERATIONS)
