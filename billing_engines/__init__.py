"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    calculation engine sub-modules.  This is the canonical import surface
    for higher layers (billing_modules).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (domain, exceptions, logging).
    MUST NOT import billing_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``; time comes from an
      injected Clock and reference numbers from an injected
      ReferenceGenerator.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``.
    - Determinism: identical inputs (and generator state) always produce
      identical outputs, apart from record UUIDs.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``billing_engines.tracer``), emitting BILLING_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from billing_engines.invoice_totals import compute_totals, LineItemInput
    from billing_engines.payment_application import apply_payment
    from billing_engines.receipt_allocation import allocate
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.invoice_totals import (
    InvoiceTotals,
    LineItemFigures,
    LineItemInput,
    compute_line_figures,
    compute_totals,
    generate_invoice_number,
)
from billing_engines.payment_application import (
    PaymentApplicationResult,
    apply_payment,
    coerce_payment_method,
    is_overdue,
    validate_payment_amount,
)
from billing_engines.receipt_allocation import ReceiptAllocation, allocate
from billing_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Invoice totals
    "LineItemInput",
    "LineItemFigures",
    "InvoiceTotals",
    "compute_totals",
    "compute_line_figures",
    "generate_invoice_number",
    # Payment application
    "PaymentApplicationResult",
    "apply_payment",
    "validate_payment_amount",
    "coerce_payment_method",
    "is_overdue",
    # Receipt allocation
    "ReceiptAllocation",
    "allocate",
    # Tracing
    "traced_engine",
    "compute_input_fingerprint",
]

logger.debug("engines_package_loaded", extra={"engine_count": 3})
