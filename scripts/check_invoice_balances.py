#!/usr/bin/env python3
"""
Report invoices whose stored status disagrees with their payments.

Read-only. Usage:
  python -m scripts.check_invoice_balances
  python -m scripts.check_invoice_balances --organization-id <uuid>
"""

import argparse
import asyncio
from typing import Optional

from garage.database import close_db, session_scope
from garage.logging_config import setup_logging
from garage.services.breakdown_service import find_status_mismatches
from garage.services.item_store import list_invoices


async def run(organization_id: Optional[str] = None) -> int:
    try:
        async with session_scope() as db:
            invoices = await list_invoices(db, organization_id)
    finally:
        await close_db()

    mismatches = find_status_mismatches(invoices)

    print("Invoice balance report")
    print(f"  Invoices scanned: {len(invoices)}")
    print(f"  Status mismatches: {len(mismatches)}")

    for row in mismatches:
        print(
            f"  - {row['invoice_id']} status={row['status']} "
            f"expected={row['expected_status']} total={row['total']:.2f} "
            f"paid={row['paid_amount']:.2f} balance={row['balance_due']:.2f}"
        )

    return 1 if mismatches else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check invoice statuses against payments")
    parser.add_argument("--organization-id", default=None, help="Optional organization UUID filter")
    args = parser.parse_args()

    setup_logging()
    raise SystemExit(asyncio.run(run(organization_id=args.organization_id)))
