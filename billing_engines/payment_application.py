"""
Module: billing_engines.payment_application
Responsibility:
    Apply a settled payment amount to an invoice snapshot: compute the new
    outstanding balance, the resulting invoice status, the payment outcome
    flags, and build the (unsaved) Payment record.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Time and reference numbers come from the injected Clock and
    ReferenceGenerator; the engine never reads the system clock.

Invariants enforced:
    - Nothing is partially applied: every precondition is checked before
      any value is computed.
    - ``0 <= updated_invoice.outstanding_amount <= total_amount``; the
      overpayment excess is reported through ``overpayment_amount`` and
      ``signed_remainder`` only, never stored as a negative balance.
    - Status follows balance: PAID when the remainder is <= 0,
      PARTIALLY_PAID when it dropped below the invoice total, otherwise
      unchanged.
    - The Payment record is always COMPLETED.

Failure modes:
    - NonPositiveAmountError       amount <= 0
    - AmountExceedsMaximumError    amount > 999,999,999.99
    - InvalidMoneyPrecisionError   float, or more than 2 fractional digits
    - InvalidPaymentMethodError    method is not a PaymentMethod
    - InvoiceAlreadyPaidError      invoice outstanding already <= 0
    - InvoiceCancelledError        invoice is cancelled

Usage:
    result = apply_payment(
        invoice,
        Decimal("300.00"),
        PaymentMethod.BANK_TRANSFER,
        clock=clock,
        reference_generator=generator,
    )
    result.updated_invoice.status  # InvoiceStatus.PARTIALLY_PAID
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from billing_engines.tracer import traced_engine
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.documents import (
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from billing_kernel.domain.references import PAYMENT_PREFIX, ReferenceGenerator
from billing_kernel.domain.values import (
    MAX_PAYMENT_AMOUNT,
    ZERO,
    require_money_precision,
    round_money,
    to_decimal,
)
from billing_kernel.exceptions import (
    AmountExceedsMaximumError,
    InvalidPaymentMethodError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
    NonPositiveAmountError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.payment_application")

# Statuses that become overdue once the due date passes.
OVERDUE_ELIGIBLE_STATUSES = frozenset({
    InvoiceStatus.PENDING,
    InvoiceStatus.PARTIALLY_PAID,
})


@dataclass(frozen=True)
class PaymentApplicationResult:
    """
    Outcome of applying one payment.

    Contract:
        ``payment`` and ``updated_invoice`` are unsaved snapshots; the
        caller persists both in one transaction.
    Guarantees:
        - ``is_overpayment`` implies ``is_fully_paid``.
        - ``overpayment_amount == abs(signed_remainder)`` when overpaid,
          else 0.00.
    """

    payment: Payment
    updated_invoice: Invoice
    is_fully_paid: bool
    is_overpayment: bool
    overpayment_amount: Decimal
    signed_remainder: Decimal

    @property
    def is_partial(self) -> bool:
        return not self.is_fully_paid


def validate_payment_amount(
    amount: Decimal | int | str,
    maximum: Decimal = MAX_PAYMENT_AMOUNT,
) -> Decimal:
    """
    Check a payment amount against the invoice-independent preconditions.

    Returns the amount quantized to cents.
    """
    value = to_decimal(amount)
    if value <= ZERO:
        raise NonPositiveAmountError(value)
    if value > maximum:
        raise AmountExceedsMaximumError(value, maximum)
    return require_money_precision(value)


def coerce_payment_method(method: PaymentMethod | str) -> PaymentMethod:
    """Accept a PaymentMethod or its string value."""
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(method)
    except ValueError as e:
        raise InvalidPaymentMethodError(method) from e


@traced_engine(
    "payment_application",
    "1.0",
    fingerprint_fields=("amount", "method", "reference_number", "payment_date"),
)
def apply_payment(
    invoice: Invoice,
    amount: Decimal | int | str,
    method: PaymentMethod | str,
    reference_number: str | None = None,
    payment_date: datetime | None = None,
    notes: str | None = None,
    *,
    clock: Clock,
    reference_generator: ReferenceGenerator,
    maximum_amount: Decimal = MAX_PAYMENT_AMOUNT,
) -> PaymentApplicationResult:
    """
    Apply ``amount`` to ``invoice`` and return the new snapshots.

    The invoice must be a freshly-read snapshot; the engine has no way to
    detect a stale balance.
    """
    value = validate_payment_amount(amount, maximum_amount)
    payment_method = coerce_payment_method(method)
    if invoice.outstanding_amount <= ZERO:
        raise InvoiceAlreadyPaidError(str(invoice.id))
    if invoice.status is InvoiceStatus.CANCELLED:
        raise InvoiceCancelledError(str(invoice.id))

    now = clock.now()

    signed_remainder = invoice.outstanding_amount - value
    is_fully_paid = signed_remainder <= ZERO
    is_overpayment = signed_remainder < ZERO
    overpayment_amount = round_money(abs(signed_remainder) if is_overpayment else ZERO)

    if is_fully_paid:
        new_status = InvoiceStatus.PAID
    elif signed_remainder < invoice.total_amount:
        new_status = InvoiceStatus.PARTIALLY_PAID
    else:
        new_status = invoice.status

    updated_invoice = replace(
        invoice,
        outstanding_amount=round_money(max(ZERO, signed_remainder)),
        status=new_status,
        updated_at=now,
    )

    payment = Payment(
        id=uuid4(),
        invoice_id=invoice.id,
        reference_number=(
            reference_number
            or reference_generator.generate(PAYMENT_PREFIX, now)
        ),
        amount=value,
        payment_method=payment_method,
        payment_date=payment_date or now,
        status=PaymentStatus.COMPLETED,
        notes=notes,
    )

    logger.info(
        "payment_application_completed",
        extra={
            "invoice_number": invoice.invoice_number,
            "reference_number": payment.reference_number,
            "amount": str(value),
            "previous_outstanding": str(invoice.outstanding_amount),
            "new_outstanding": str(updated_invoice.outstanding_amount),
            "previous_status": invoice.status.value,
            "new_status": new_status.value,
            "is_fully_paid": is_fully_paid,
            "is_overpayment": is_overpayment,
            "overpayment_amount": str(overpayment_amount),
        },
    )

    return PaymentApplicationResult(
        payment=payment,
        updated_invoice=updated_invoice,
        is_fully_paid=is_fully_paid,
        is_overpayment=is_overpayment,
        overpayment_amount=overpayment_amount,
        signed_remainder=round_money(signed_remainder),
    )


def is_overdue(invoice: Invoice, as_of: datetime) -> bool:
    """True if an open invoice is past its due date at ``as_of``."""
    if invoice.due_date is None:
        return False
    if invoice.status not in OVERDUE_ELIGIBLE_STATUSES:
        return False
    return invoice.outstanding_amount > ZERO and invoice.due_date < as_of
