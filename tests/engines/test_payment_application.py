"""
Tests for the Payment Application Engine.

Covers:
- Partial, exact, and overpayments (balance, status, outcome flags)
- Sequential payments against the returned snapshot
- Precondition order and error types
- Payment record construction (reference, date, method)
- Overdue detection
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.payment_application import (
    apply_payment,
    coerce_payment_method,
    is_overdue,
    validate_payment_amount,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.documents import (
    Invoice,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
)
from billing_kernel.domain.references import SequentialReferenceGenerator
from billing_kernel.exceptions import (
    AmountExceedsMaximumError,
    InvalidMoneyPrecisionError,
    InvalidPaymentMethodError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
    NonPositiveAmountError,
)

NOW = datetime(2025, 1, 15, 9, 30, tzinfo=UTC)


def _invoice(total="589.57", outstanding=None, status=InvoiceStatus.PENDING, **kwargs):
    total = Decimal(total)
    return Invoice(
        id=uuid4(),
        invoice_number="INV-20250115-0001",
        invoice_date=NOW,
        subtotal=total,
        total_tax=Decimal("0.00"),
        total_amount=total,
        outstanding_amount=Decimal(outstanding) if outstanding is not None else total,
        status=status,
        **kwargs,
    )


class TestApplyPayment:
    """Balance, status and flags."""

    def setup_method(self):
        self.clock = DeterministicClock(NOW)
        self.generator = SequentialReferenceGenerator()

    def _apply(self, invoice, amount, method=PaymentMethod.BANK_TRANSFER, **kwargs):
        return apply_payment(
            invoice,
            Decimal(amount),
            method,
            clock=self.clock,
            reference_generator=self.generator,
            **kwargs,
        )

    def test_partial_payment(self):
        result = self._apply(_invoice(), "300.00")

        assert result.updated_invoice.outstanding_amount == Decimal("289.57")
        assert result.updated_invoice.status is InvoiceStatus.PARTIALLY_PAID
        assert result.is_fully_paid is False
        assert result.is_partial is True
        assert result.is_overpayment is False
        assert result.overpayment_amount == Decimal("0.00")

    def test_second_payment_overpays(self):
        first = self._apply(_invoice(), "300.00")
        second = self._apply(first.updated_invoice, "750.00")

        assert second.updated_invoice.outstanding_amount == Decimal("0.00")
        assert second.updated_invoice.status is InvoiceStatus.PAID
        assert second.is_fully_paid is True
        assert second.is_overpayment is True
        assert second.overpayment_amount == Decimal("460.43")
        assert second.signed_remainder == Decimal("-460.43")

    def test_single_overpayment_clamps_balance(self):
        result = self._apply(_invoice("750.00"), "1000.00")

        assert result.is_overpayment is True
        assert result.overpayment_amount == Decimal("250.00")
        assert result.updated_invoice.outstanding_amount == Decimal("0.00")
        assert result.updated_invoice.status is InvoiceStatus.PAID

    def test_exact_payment(self):
        result = self._apply(_invoice("107.00"), "107.00")

        assert result.is_fully_paid is True
        assert result.is_overpayment is False
        assert result.overpayment_amount == Decimal("0.00")
        assert result.updated_invoice.status is InvoiceStatus.PAID

    def test_overdue_invoice_partial_payment(self):
        invoice = _invoice("100.00", status=InvoiceStatus.OVERDUE)

        result = self._apply(invoice, "10.00")

        assert result.updated_invoice.status is InvoiceStatus.PARTIALLY_PAID

    def test_input_invoice_not_mutated(self):
        invoice = _invoice()

        result = self._apply(invoice, "300.00")

        assert invoice.outstanding_amount == Decimal("589.57")
        assert invoice.status is InvoiceStatus.PENDING
        assert result.updated_invoice is not invoice

    def test_updated_at_from_clock(self):
        result = self._apply(_invoice(), "1.00")

        assert result.updated_invoice.updated_at == NOW

    def test_amount_normalized_to_cents(self):
        result = self._apply(_invoice(), "300")

        assert result.payment.amount == Decimal("300.00")
        assert str(result.payment.amount) == "300.00"


class TestPaymentRecord:
    """The Payment built by the engine."""

    def setup_method(self):
        self.clock = DeterministicClock(NOW)
        self.generator = SequentialReferenceGenerator()

    def test_generated_reference(self):
        invoice = _invoice()

        result = apply_payment(
            invoice, Decimal("10.00"), PaymentMethod.CASH,
            clock=self.clock, reference_generator=self.generator,
        )

        millis = int(NOW.timestamp() * 1000)
        assert result.payment.reference_number == f"PAY-{millis}-0001"
        assert result.payment.invoice_id == invoice.id
        assert result.payment.status is PaymentStatus.COMPLETED
        assert result.payment.payment_method is PaymentMethod.CASH
        assert result.payment.payment_date == NOW

    def test_caller_reference_and_date_kept(self):
        paid_on = NOW - timedelta(days=2)

        result = apply_payment(
            _invoice(), Decimal("10.00"), "e_wallet", "BANK-REF-42", paid_on, "first",
            clock=self.clock, reference_generator=self.generator,
        )

        assert result.payment.reference_number == "BANK-REF-42"
        assert result.payment.payment_date == paid_on
        assert result.payment.payment_method is PaymentMethod.E_WALLET
        assert result.payment.notes == "first"


class TestPreconditions:
    """Errors, checked before anything is computed."""

    def setup_method(self):
        self.clock = DeterministicClock(NOW)
        self.generator = SequentialReferenceGenerator()

    def _apply(self, invoice, amount, method=PaymentMethod.CASH):
        return apply_payment(
            invoice, amount, method,
            clock=self.clock, reference_generator=self.generator,
        )

    @pytest.mark.parametrize("amount", ["0", "-0.01", "-100"])
    def test_non_positive_amount(self, amount):
        with pytest.raises(NonPositiveAmountError):
            self._apply(_invoice(), Decimal(amount))

    def test_amount_above_maximum(self):
        with pytest.raises(AmountExceedsMaximumError):
            self._apply(_invoice(), Decimal("1000000000.00"))

    def test_amount_at_maximum_accepted(self):
        result = self._apply(_invoice(), Decimal("999999999.99"))

        assert result.is_overpayment is True

    def test_sub_cent_amount(self):
        with pytest.raises(InvalidMoneyPrecisionError):
            self._apply(_invoice(), Decimal("10.001"))

    def test_float_amount(self):
        with pytest.raises(InvalidMoneyPrecisionError):
            self._apply(_invoice(), 10.5)

    def test_unknown_method(self):
        with pytest.raises(InvalidPaymentMethodError):
            self._apply(_invoice(), Decimal("10"), "cheque")

    def test_already_paid(self):
        invoice = _invoice("100.00", outstanding="0.00", status=InvoiceStatus.PAID)

        with pytest.raises(InvoiceAlreadyPaidError):
            self._apply(invoice, Decimal("1.00"))

    def test_cancelled(self):
        invoice = _invoice("100.00", status=InvoiceStatus.CANCELLED)

        with pytest.raises(InvoiceCancelledError):
            self._apply(invoice, Decimal("1.00"))

    def test_amount_checked_before_invoice_state(self):
        invoice = _invoice("100.00", outstanding="0.00", status=InvoiceStatus.PAID)

        with pytest.raises(NonPositiveAmountError):
            self._apply(invoice, Decimal("0"))

    def test_custom_maximum(self):
        with pytest.raises(AmountExceedsMaximumError) as exc_info:
            apply_payment(
                _invoice(), Decimal("500.01"), PaymentMethod.CASH,
                clock=self.clock,
                reference_generator=self.generator,
                maximum_amount=Decimal("500.00"),
            )
        assert exc_info.value.maximum == Decimal("500.00")


class TestHelpers:

    def test_validate_payment_amount_quantizes(self):
        assert validate_payment_amount("42") == Decimal("42.00")

    def test_coerce_payment_method(self):
        assert coerce_payment_method("debit_card") is PaymentMethod.DEBIT_CARD
        assert coerce_payment_method(PaymentMethod.CASH) is PaymentMethod.CASH


class TestIsOverdue:

    def test_past_due_open_invoice(self):
        invoice = _invoice(due_date=NOW - timedelta(days=1))

        assert is_overdue(invoice, NOW) is True

    def test_not_yet_due(self):
        invoice = _invoice(due_date=NOW + timedelta(days=1))

        assert is_overdue(invoice, NOW) is False

    def test_no_due_date(self):
        assert is_overdue(_invoice(), NOW) is False

    @pytest.mark.parametrize(
        "status",
        [InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED, InvoiceStatus.OVERDUE],
    )
    def test_ineligible_status(self, status):
        invoice = _invoice(status=status, due_date=NOW - timedelta(days=1))

        assert is_overdue(invoice, NOW) is False

    def test_settled_invoice(self):
        invoice = replace(
            _invoice(status=InvoiceStatus.PARTIALLY_PAID, due_date=NOW - timedelta(days=1)),
            outstanding_amount=Decimal("0.00"),
        )

        assert is_overdue(invoice, NOW) is False
