#!/usr/bin/env python3
"""Smoke test against a real QuickBooks Online company.

Runs read-only tool calls through the same router the MCP server uses, so a
successful run means credentials, base URL and minor version all work.

Usage:
    python scripts/smoke_qbo_api.py
    python scripts/smoke_qbo_api.py -v  # verbose mode with sample data
    python scripts/smoke_qbo_api.py --token <TOKEN> --realm <REALM_ID> --sandbox
"""

import argparse
import asyncio
import json
import os
import sys

SANDBOX_API_BASE = "https://sandbox-quickbooks.api.intuit.com/v3/company"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="QuickBooks Online API smoke test")
    parser.add_argument("--token", help="Access token (default: QBO_ACCESS_TOKEN)")
    parser.add_argument("--realm", help="Realm ID (default: QBO_REALM_ID)")
    parser.add_argument("--sandbox", action="store_true", help="Use the sandbox API base")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print sample data")
    return parser.parse_args()


args = parse_args()

# Settings are read at import time, so overrides must be in place first
if args.token:
    os.environ["QBO_ACCESS_TOKEN"] = args.token
if args.realm:
    os.environ["QBO_REALM_ID"] = args.realm
if args.sandbox:
    os.environ["QBO_API_BASE"] = SANDBOX_API_BASE
os.environ["AUTH_MODE"] = "env"

from qbo_mcp.core.logging import setup_logging
from qbo_mcp.services.credentials import create_credential_resolver
from qbo_mcp.services.domains import get_domain_handlers
from qbo_mcp.services.navigation import NavigationState
from qbo_mcp.services.tool_router import ToolRouter

CHECKS = [
    ("Customers", "qbo_customers_list", {"maxResults": 5}),
    ("Invoices", "qbo_invoices_list", {"maxResults": 5}),
    ("Unpaid invoices", "qbo_invoices_list", {"status": "Unpaid", "maxResults": 5}),
    ("Purchases", "qbo_expenses_list_purchases", {"maxResults": 5}),
    ("Bills", "qbo_expenses_list_bills", {"maxResults": 5}),
    ("Payments", "qbo_payments_list", {"maxResults": 5}),
    ("Aged receivables", "qbo_reports_aged_receivables", {}),
]


async def run_checks(verbose: bool) -> int:
    router = ToolRouter(get_domain_handlers(), create_credential_resolver())
    state = NavigationState()
    failures = 0

    print("\n" + "=" * 60)
    print("Testing QuickBooks Online API...")
    print("=" * 60)

    for label, name, arguments in CHECKS:
        result = await router.dispatch(name, arguments, state)
        text = result.content[0].text

        if result.isError:
            failures += 1
            print(f"❌ {label}: {text}")
            continue

        print(f"✅ {label}")
        if verbose:
            sample = json.dumps(json.loads(text), indent=2)
            print("   " + "\n   ".join(sample.splitlines()[:20]))

    print("\n" + "=" * 60)
    print(f"{len(CHECKS) - failures}/{len(CHECKS)} checks passed")
    return 1 if failures else 0


def main() -> None:
    setup_logging()
    sys.exit(asyncio.run(run_checks(args.verbose)))


if __name__ == "__main__":
    main()
