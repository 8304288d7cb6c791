#!/usr/bin/env python3
"""
Seed the database with a small, realistic set of invoices and payments.

Creates five invoices covering each settlement outcome (fully paid, two
partial payments, unpaid, overpaid, partially paid with many items),
records the payments through ReceivablesService so every payment gets
its receipt, and prints a summary.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --database-url sqlite:///demo.db --reset
"""

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

TAX_RATE = Decimal("0.07")

# (customer_name, customer_email, notes, items, payments)
# items: (description, quantity, unit_price)
# payments: (amount or None for "the invoice total", method, notes)
SEED_INVOICES = [
    (
        "John Doe",
        "john.doe@example.com",
        "Monthly billing - January 2025",
        [
            ("Monthly Subscription Fee", "1", "500.00"),
            ("Setup Fee", "1", "100.00"),
        ],
        [(None, "bank_transfer", "Full payment via bank transfer")],
    ),
    (
        "Jane Smith",
        "jane.smith@example.com",
        "Professional services - Q1 2025",
        [
            ("Professional Service Fee", "10", "150.00"),
            ("Consultation Fee", "2", "200.00"),
        ],
        [
            ("1000.00", "cash", "Partial payment - first installment"),
            ("500.00", "credit_card", "Partial payment - second installment"),
        ],
    ),
    (
        "Acme Corporation",
        "billing@acme.com",
        "Annual billing - 2025",
        [
            ("Annual License Fee", "5", "1200.00"),
            ("Support Package", "1", "500.00"),
        ],
        [],
    ),
    (
        "Tech Startup Inc",
        "accounts@techstartup.io",
        "Website development project",
        [("Web Development Service", "1", "750.00")],
        [("1000.00", "bank_transfer", "Payment with tip/extra amount")],
    ),
    (
        "Small Business LLC",
        "owner@smallbiz.com",
        "Website setup package",
        [
            ("Domain Registration", "1", "15.00"),
            ("Web Hosting - 1 Year", "1", "120.00"),
            ("SSL Certificate", "1", "50.00"),
            ("Email Hosting", "5", "5.00"),
        ],
        [("100.00", "e_wallet", "Partial payment via e-wallet")],
    ),
]


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the billing database.")
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL; overrides the configured database.url",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration YAML (defaults to billing_config/sets/default.yaml)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables before seeding",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from billing_config import get_active_config
    from billing_engines.invoice_totals import LineItemInput
    from billing_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_session,
        init_engine_from_url,
    )
    from billing_kernel.exceptions import BillingError
    from billing_kernel.logging_config import configure_logging
    from billing_modules.receivables.config import ReceivablesConfig
    from billing_modules.receivables.service import ReceivablesService

    settings = get_active_config(args.config)
    configure_logging(level=getattr(logging, settings.log_level))
    database_url = args.database_url or settings.database_url

    # -----------------------------------------------------------------
    # 1. Connect + schema
    # -----------------------------------------------------------------
    print()
    print(f"  [1/3] Connecting to {database_url}...")
    try:
        init_engine_from_url(database_url, echo=settings.database_echo)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.reset:
        print("        Dropping old tables...")
        drop_tables()
    create_tables()

    session = get_session()
    service = ReceivablesService(session, ReceivablesConfig.from_settings(settings))

    # -----------------------------------------------------------------
    # 2. Invoices + payments
    # -----------------------------------------------------------------
    print(f"  [2/3] Creating {len(SEED_INVOICES)} invoices...")
    try:
        for name, email, notes, items, payments in SEED_INVOICES:
            invoice = service.create_invoice(
                [
                    LineItemInput(description, Decimal(qty), Decimal(price), TAX_RATE)
                    for description, qty, price in items
                ],
                customer_name=name,
                customer_email=email,
                notes=notes,
            )
            print(f"        {invoice.invoice_number}  {name:<20} total {invoice.total_amount:>10}")

            for amount, method, payment_notes in payments:
                result = service.record_payment(
                    invoice.id,
                    Decimal(amount) if amount else invoice.total_amount,
                    method,
                    notes=payment_notes,
                )
                if not result.payment_committed:
                    print(f"  ERROR: payment rejected: {result.message}", file=sys.stderr)
                    return 1
                line = (
                    f"          {result.payment.reference_number}  "
                    f"{result.payment.amount:>10} {method:<14} -> {result.invoice.status.value}"
                )
                if result.is_overpayment:
                    line += f" (overpaid {result.overpayment_amount})"
                if result.receipt is None:
                    line += " (receipt pending)"
                print(line)
    except BillingError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()

    # -----------------------------------------------------------------
    # 3. Summary
    # -----------------------------------------------------------------
    session = get_session()
    try:
        stats = ReceivablesService(session).invoice_statistics()
    finally:
        session.close()

    print("  [3/3] Summary")
    print(f"        Invoices:        {stats.total_invoices}")
    print(f"        Pending:         {stats.pending}")
    print(f"        Partially paid:  {stats.partially_paid}")
    print(f"        Paid:            {stats.paid}")
    print(f"        Total amount:    {stats.total_amount}")
    print(f"        Outstanding:     {stats.total_outstanding}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
