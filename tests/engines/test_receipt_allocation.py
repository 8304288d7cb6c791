"""
Tests for the Receipt Allocation Engine.

Covers:
- Proportional split of the payment across invoice line items
- Per-line rounding and the reported rounding difference
- Remaining balance taken from the updated invoice
- Zero-total invoices and mismatched payments
"""

from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.invoice_totals import LineItemInput, compute_totals
from billing_engines.payment_application import apply_payment
from billing_engines.receipt_allocation import allocate
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.documents import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    PaymentMethod,
)
from billing_kernel.domain.references import SequentialReferenceGenerator
from billing_kernel.exceptions import PaymentInvoiceMismatchError

NOW = datetime(2025, 1, 15, 9, 30, tzinfo=UTC)


def _invoice(*items: LineItemInput, tax_rate: str = "0.07") -> Invoice:
    totals = compute_totals(list(items), default_tax_rate=Decimal(tax_rate))
    invoice_id = uuid4()
    return Invoice(
        id=invoice_id,
        invoice_number="INV-20250115-0001",
        invoice_date=NOW,
        subtotal=totals.subtotal,
        total_tax=totals.total_tax,
        total_amount=totals.total_amount,
        outstanding_amount=totals.total_amount,
        status=InvoiceStatus.PENDING,
        line_items=tuple(
            InvoiceLineItem(
                id=uuid4(),
                invoice_id=invoice_id,
                line_number=n,
                description=f.description,
                quantity=f.quantity,
                unit_price=f.unit_price,
                line_total=f.line_total,
                tax_rate=f.tax_rate,
                tax_amount=f.tax_amount,
            )
            for n, f in enumerate(totals.lines, start=1)
        ),
    )


class TestAllocate:

    def setup_method(self):
        self.clock = DeterministicClock(NOW)
        self.generator = SequentialReferenceGenerator()

    def _pay_and_allocate(self, invoice, amount):
        application = apply_payment(
            invoice, Decimal(amount), PaymentMethod.BANK_TRANSFER,
            clock=self.clock, reference_generator=self.generator,
        )
        allocation = allocate(
            application.payment,
            application.updated_invoice,
            clock=self.clock,
            reference_generator=self.generator,
        )
        return application, allocation

    def test_proportional_split(self):
        invoice = _invoice(
            LineItemInput("Consulting", Decimal("1"), Decimal("500")),
            LineItemInput("Widgets", Decimal("2"), Decimal("25.50")),
        )

        _, allocation = self._pay_and_allocate(invoice, "300.00")

        paid = [line.paid_amount for line in allocation.line_items]
        # 300 * 535.00 / 589.57 and 300 * 54.57 / 589.57
        assert paid == [Decimal("272.23"), Decimal("27.77")]
        assert allocation.allocated_total == Decimal("300.00")
        assert allocation.rounding_difference == Decimal("0.00")

    def test_rounding_difference_reported(self):
        invoice = _invoice(
            LineItemInput("A", Decimal("1"), Decimal("10")),
            LineItemInput("B", Decimal("1"), Decimal("10")),
            LineItemInput("C", Decimal("1"), Decimal("10")),
            tax_rate="0",
        )

        _, allocation = self._pay_and_allocate(invoice, "10.00")

        assert [line.paid_amount for line in allocation.line_items] == [Decimal("3.33")] * 3
        assert allocation.allocated_total == Decimal("9.99")
        assert allocation.rounding_difference == Decimal("0.01")
        assert allocation.receipt.total_paid == Decimal("10.00")

    def test_remaining_balance_from_updated_invoice(self):
        invoice = _invoice(
            LineItemInput("Consulting", Decimal("1"), Decimal("500")),
            LineItemInput("Widgets", Decimal("2"), Decimal("25.50")),
        )

        _, allocation = self._pay_and_allocate(invoice, "300.00")

        assert allocation.receipt.remaining_balance == Decimal("289.57")

    def test_overpayment_receipt_shows_zero_balance(self):
        invoice = _invoice(
            LineItemInput("Web Development", Decimal("1"), Decimal("750")),
            tax_rate="0",
        )

        application, allocation = self._pay_and_allocate(invoice, "1000.00")

        assert allocation.receipt.remaining_balance == Decimal("0.00")
        assert application.signed_remainder == Decimal("-250.00")
        # The whole payment is split across the items, excess included
        assert allocation.line_items[0].paid_amount == Decimal("1000.00")

    def test_every_receipt_splits_all_items(self):
        invoice = _invoice(
            LineItemInput("A", Decimal("1"), Decimal("60")),
            LineItemInput("B", Decimal("1"), Decimal("40")),
            tax_rate="0",
        )

        first, _ = self._pay_and_allocate(invoice, "50.00")
        _, second = self._pay_and_allocate(first.updated_invoice, "50.00")

        assert [line.paid_amount for line in second.line_items] == [
            Decimal("30.00"),
            Decimal("20.00"),
        ]

    def test_receipt_fields(self):
        invoice = _invoice(LineItemInput("A", Decimal("1"), Decimal("10")))

        application, allocation = self._pay_and_allocate(invoice, "5.00")
        receipt = allocation.receipt

        millis = int(NOW.timestamp() * 1000)
        assert receipt.receipt_number == f"RCP-{millis}-0001"
        assert receipt.payment_id == application.payment.id
        assert receipt.invoice_id == invoice.id
        assert receipt.payment_method is PaymentMethod.BANK_TRANSFER
        assert receipt.receipt_date == application.payment.payment_date
        line = receipt.line_items[0]
        assert line.receipt_id == receipt.id
        assert line.invoice_line_item_id == invoice.line_items[0].id
        assert line.line_total == Decimal("10.00")
        assert line.tax_amount == Decimal("0.70")

    def test_explicit_receipt_number(self):
        invoice = _invoice(LineItemInput("A", Decimal("1"), Decimal("10")))
        application = apply_payment(
            invoice, Decimal("5.00"), PaymentMethod.CASH,
            clock=self.clock, reference_generator=self.generator,
        )

        allocation = allocate(
            application.payment,
            application.updated_invoice,
            receipt_number="RCP-MANUAL-1",
            clock=self.clock,
            reference_generator=self.generator,
        )

        assert allocation.receipt.receipt_number == "RCP-MANUAL-1"

    def test_zero_total_invoice_allocates_nothing(self):
        invoice = _invoice(
            LineItemInput("Free", Decimal("1"), Decimal("0")),
            LineItemInput("Also free", Decimal("2"), Decimal("0")),
        )
        application = apply_payment(
            _invoice(LineItemInput("X", Decimal("1"), Decimal("1"))),
            Decimal("1.00"),
            PaymentMethod.CASH,
            clock=self.clock,
            reference_generator=self.generator,
        )
        payment = replace(application.payment, invoice_id=invoice.id)

        allocation = allocate(
            payment, invoice, clock=self.clock, reference_generator=self.generator,
        )

        assert [line.paid_amount for line in allocation.line_items] == [
            Decimal("0.00"),
            Decimal("0.00"),
        ]
        assert allocation.rounding_difference == Decimal("1.00")

    def test_payment_for_other_invoice_rejected(self):
        invoice = _invoice(LineItemInput("A", Decimal("1"), Decimal("10")))
        other = _invoice(LineItemInput("B", Decimal("1"), Decimal("10")))
        application = apply_payment(
            invoice, Decimal("5.00"), PaymentMethod.CASH,
            clock=self.clock, reference_generator=self.generator,
        )

        with pytest.raises(PaymentInvoiceMismatchError) as exc_info:
            allocate(
                application.payment,
                other,
                clock=self.clock,
                reference_generator=self.generator,
            )
        assert exc_info.value.code == "PAYMENT_INVOICE_MISMATCH"
        assert exc_info.value.payment_invoice_id == str(invoice.id)
        assert exc_info.value.invoice_id == str(other.id)
