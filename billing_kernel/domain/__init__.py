"""
Pure domain layer.

Contains value helpers, immutable document records, the injectable clock,
and reference-number generation with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
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
from billing_kernel.domain.references import (
    INVOICE_PREFIX,
    PAYMENT_PREFIX,
    RECEIPT_PREFIX,
    FixedReferenceGenerator,
    RandomReferenceGenerator,
    ReferenceGenerator,
    SequentialReferenceGenerator,
)
from billing_kernel.domain.values import (
    CENT,
    DEFAULT_TAX_RATE,
    MAX_PAYMENT_AMOUNT,
    ZERO,
    has_money_precision,
    require_money_precision,
    round_money,
    round_rate,
    to_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Receipt",
    "ReceiptLineItem",
    "ReferenceGenerator",
    "RandomReferenceGenerator",
    "SequentialReferenceGenerator",
    "FixedReferenceGenerator",
    "INVOICE_PREFIX",
    "PAYMENT_PREFIX",
    "RECEIPT_PREFIX",
    "CENT",
    "ZERO",
    "DEFAULT_TAX_RATE",
    "MAX_PAYMENT_AMOUNT",
    "to_decimal",
    "round_money",
    "round_rate",
    "has_money_precision",
    "require_money_precision",
]
