"""
Module: billing_engines.receipt_allocation
Responsibility:
    Build the receipt for a settled payment by distributing the payment
    amount across the invoice's line items in proportion to each item's
    share of the invoice total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Runs after the payment and the updated invoice have been persisted.

Invariants enforced:
    - Every receipt re-splits its own payment across ALL invoice line
      items; no cumulative per-item payment progress is tracked.
    - ``paid_amount = round_money(payment.amount * item_total / total_amount)``
      per line; the sum over lines differs from the payment amount by at
      most one cent per line (``rounding_difference``).
    - ``remaining_balance`` is the invoice's clamped, post-update
      outstanding amount, so an overpayment receipt shows 0.00.  The signed
      remainder is available on PaymentApplicationResult.

Failure modes:
    - PaymentInvoiceMismatchError if the payment does not belong to the
      invoice.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from billing_engines.tracer import traced_engine
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.documents import (
    Invoice,
    Payment,
    Receipt,
    ReceiptLineItem,
)
from billing_kernel.domain.references import RECEIPT_PREFIX, ReferenceGenerator
from billing_kernel.domain.values import ZERO, round_money
from billing_kernel.exceptions import PaymentInvoiceMismatchError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.receipt_allocation")


@dataclass(frozen=True)
class ReceiptAllocation:
    """
    Allocator output: the unsaved receipt and its line items.

    Guarantees:
        - ``allocated_total + rounding_difference == receipt.total_paid``.
    """

    receipt: Receipt

    @property
    def line_items(self) -> tuple[ReceiptLineItem, ...]:
        return self.receipt.line_items

    @property
    def allocated_total(self) -> Decimal:
        return self.receipt.allocated_total

    @property
    def rounding_difference(self) -> Decimal:
        return self.receipt.total_paid - self.allocated_total


@traced_engine(
    "receipt_allocation",
    "1.0",
    fingerprint_fields=("payment", "updated_invoice", "receipt_number"),
)
def allocate(
    payment: Payment,
    updated_invoice: Invoice,
    *,
    receipt_number: str | None = None,
    clock: Clock,
    reference_generator: ReferenceGenerator,
) -> ReceiptAllocation:
    """
    Split ``payment.amount`` across ``updated_invoice.line_items``.

    An invoice with a zero total allocates 0.00 to every line.
    """
    if payment.invoice_id != updated_invoice.id:
        raise PaymentInvoiceMismatchError(
            str(payment.id), str(payment.invoice_id), str(updated_invoice.id)
        )

    receipt_id = uuid4()
    total_amount = updated_invoice.total_amount

    lines: list[ReceiptLineItem] = []
    for item in updated_invoice.line_items:
        if total_amount > ZERO:
            proportion = item.item_total / total_amount
            paid_amount = round_money(payment.amount * proportion)
        else:
            paid_amount = round_money(ZERO)
        lines.append(
            ReceiptLineItem(
                id=uuid4(),
                receipt_id=receipt_id,
                invoice_line_item_id=item.id,
                line_number=item.line_number,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
                tax_amount=item.tax_amount,
                paid_amount=paid_amount,
            )
        )

    receipt = Receipt(
        id=receipt_id,
        receipt_number=(
            receipt_number
            or reference_generator.generate(RECEIPT_PREFIX, clock.now())
        ),
        payment_id=payment.id,
        invoice_id=updated_invoice.id,
        receipt_date=payment.payment_date,
        total_paid=payment.amount,
        remaining_balance=updated_invoice.outstanding_amount,
        payment_method=payment.payment_method,
        line_items=tuple(lines),
        notes=payment.notes,
    )
    allocation = ReceiptAllocation(receipt=receipt)

    logger.info(
        "receipt_allocated",
        extra={
            "receipt_number": receipt.receipt_number,
            "reference_number": payment.reference_number,
            "line_count": len(lines),
            "total_paid": str(receipt.total_paid),
            "allocated_total": str(allocation.allocated_total),
            "rounding_difference": str(allocation.rounding_difference),
            "remaining_balance": str(receipt.remaining_balance),
        },
    )
    return allocation
