"""
Receivables Module.

Handles customer invoices, the payments applied to them, and the receipts
issued for each payment.

Totals, payment application and receipt allocation come from shared
engines; this package adds persistence, queries and the service.
"""

from billing_modules.receivables.config import ReceivablesConfig
from billing_modules.receivables.models import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatistics,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatistics,
    PaymentStatus,
    Receipt,
    ReceiptLineItem,
)
from billing_modules.receivables.service import (
    PaymentRecordingResult,
    PaymentRecordingStatus,
    ReceivablesService,
)
from billing_modules.receivables.workflows import INVOICE_WORKFLOW

__all__ = [
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatistics",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatistics",
    "PaymentStatus",
    "Receipt",
    "ReceiptLineItem",
    "INVOICE_WORKFLOW",
    "ReceivablesConfig",
    "ReceivablesService",
    "PaymentRecordingResult",
    "PaymentRecordingStatus",
]
