"""
Receivables Domain Models (``billing_modules.receivables.models``).

Responsibility
--------------
Frozen dataclass value objects for the receivables module.  The billing
documents themselves (Invoice, Payment, Receipt and their lines) live in
the kernel domain so the engines can build them; they are re-exported here
alongside the module's own reporting records.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ReceivablesService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.documents import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Receipt,
    ReceiptLineItem,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.receivables.models")

__all__ = [
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Receipt",
    "ReceiptLineItem",
    "InvoiceStatistics",
    "PaymentStatistics",
]


@dataclass(frozen=True)
class InvoiceStatistics:
    """Invoice counts per status and aggregate balances."""
    total_invoices: int
    draft: int
    pending: int
    partially_paid: int
    paid: int
    cancelled: int
    overdue: int
    total_amount: Decimal
    total_outstanding: Decimal

    @property
    def total_collected(self) -> Decimal:
        return self.total_amount - self.total_outstanding


@dataclass(frozen=True)
class PaymentStatistics:
    """Payment counts per status; ``total_amount`` sums completed payments."""
    total_payments: int
    completed: int
    pending: int
    failed: int
    cancelled: int
    refunded: int
    total_amount: Decimal
