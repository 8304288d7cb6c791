"""
ORM round-trip tests for the receivables module.

Verifies: persist -> query -> field equality for every receivables ORM
model, plus the unique constraints, cascades and the invoice version
column.
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

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
from billing_modules.receivables.orm import (
    InvoiceLineItemModel,
    InvoiceModel,
    PaymentModel,
    ReceiptLineItemModel,
    ReceiptModel,
)

NOW = datetime(2025, 1, 15, 9, 30, tzinfo=UTC)


def _invoice_dto(number="INV-20250115-0001", **overrides) -> Invoice:
    invoice_id = uuid4()
    fields = dict(
        id=invoice_id,
        invoice_number=number,
        invoice_date=NOW,
        subtotal=Decimal("551.00"),
        total_tax=Decimal("38.57"),
        total_amount=Decimal("589.57"),
        outstanding_amount=Decimal("589.57"),
        status=InvoiceStatus.PENDING,
        line_items=(
            InvoiceLineItem(
                id=uuid4(),
                invoice_id=invoice_id,
                line_number=1,
                description="Consulting",
                quantity=Decimal("1.00"),
                unit_price=Decimal("500.00"),
                line_total=Decimal("500.00"),
                tax_rate=Decimal("0.0700"),
                tax_amount=Decimal("35.00"),
            ),
            InvoiceLineItem(
                id=uuid4(),
                invoice_id=invoice_id,
                line_number=2,
                description="Widgets",
                quantity=Decimal("2.00"),
                unit_price=Decimal("25.50"),
                line_total=Decimal("51.00"),
                tax_rate=Decimal("0.0700"),
                tax_amount=Decimal("3.57"),
            ),
        ),
        due_date=NOW + timedelta(days=30),
        customer_id="CUST-1",
        customer_name="John Doe",
        customer_email="john.doe@example.com",
        notes="January",
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Invoice(**fields)


def _payment_dto(invoice: Invoice, reference="PAY-1736933400000-0001", **overrides) -> Payment:
    fields = dict(
        id=uuid4(),
        invoice_id=invoice.id,
        reference_number=reference,
        amount=Decimal("300.00"),
        payment_method=PaymentMethod.BANK_TRANSFER,
        payment_date=NOW,
        status=PaymentStatus.COMPLETED,
        notes=None,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Payment(**fields)


def _receipt_dto(invoice: Invoice, payment: Payment, number="RCP-1736933400000-0001") -> Receipt:
    receipt_id = uuid4()
    return Receipt(
        id=receipt_id,
        receipt_number=number,
        payment_id=payment.id,
        invoice_id=invoice.id,
        receipt_date=NOW,
        total_paid=payment.amount,
        remaining_balance=Decimal("289.57"),
        payment_method=payment.payment_method,
        line_items=(
            ReceiptLineItem(
                id=uuid4(),
                receipt_id=receipt_id,
                invoice_line_item_id=invoice.line_items[0].id,
                line_number=1,
                description="Consulting",
                quantity=Decimal("1.00"),
                unit_price=Decimal("500.00"),
                line_total=Decimal("500.00"),
                tax_amount=Decimal("35.00"),
                paid_amount=Decimal("272.23"),
            ),
            ReceiptLineItem(
                id=uuid4(),
                receipt_id=receipt_id,
                invoice_line_item_id=invoice.line_items[1].id,
                line_number=2,
                description="Widgets",
                quantity=Decimal("2.00"),
                unit_price=Decimal("25.50"),
                line_total=Decimal("51.00"),
                tax_amount=Decimal("3.57"),
                paid_amount=Decimal("27.77"),
            ),
        ),
        created_at=NOW,
        updated_at=NOW,
    )


def _persist(session, *models):
    for model in models:
        session.add(model)
    session.commit()
    session.expire_all()


# ---------------------------------------------------------------------------
# 1. InvoiceModel + InvoiceLineItemModel
# ---------------------------------------------------------------------------


class TestInvoiceModelORM:

    def test_round_trip(self, session):
        dto = _invoice_dto()
        _persist(session, InvoiceModel.from_dto(dto))

        loaded = session.get(InvoiceModel, dto.id).to_dto()

        assert loaded.invoice_number == dto.invoice_number
        assert loaded.total_amount == Decimal("589.57")
        assert loaded.outstanding_amount == Decimal("589.57")
        assert loaded.status is InvoiceStatus.PENDING
        assert loaded.due_date == dto.due_date
        assert loaded.invoice_date == NOW
        assert loaded.created_at == NOW
        assert loaded.customer_email == "john.doe@example.com"
        assert loaded.version == 1
        assert [line.description for line in loaded.line_items] == ["Consulting", "Widgets"]
        assert loaded.line_items[1].tax_rate == Decimal("0.07")
        assert loaded.line_items[1].item_total == Decimal("54.57")

    def test_datetimes_read_back_as_utc(self, session):
        dto = _invoice_dto()
        _persist(session, InvoiceModel.from_dto(dto))

        loaded = session.get(InvoiceModel, dto.id).to_dto()

        assert loaded.invoice_date.utcoffset() == timedelta(0)

    def test_server_default_timestamps(self, session):
        dto = _invoice_dto(created_at=None, updated_at=None)
        _persist(session, InvoiceModel.from_dto(dto))

        loaded = session.get(InvoiceModel, dto.id).to_dto()

        assert loaded.created_at is not None
        assert loaded.updated_at is not None

    def test_invoice_number_unique(self, session):
        _persist(session, InvoiceModel.from_dto(_invoice_dto()))

        session.add(InvoiceModel.from_dto(_invoice_dto()))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_version_increments_on_update(self, session):
        dto = _invoice_dto()
        model = InvoiceModel.from_dto(dto)
        _persist(session, model)

        model.notes = "changed"
        session.commit()

        assert session.get(InvoiceModel, dto.id).version == 2

    def test_stale_version_detected(self, session):
        dto = _invoice_dto()
        model = InvoiceModel.from_dto(dto)
        _persist(session, model)
        model = session.get(InvoiceModel, dto.id)
        session.execute(
            text("UPDATE invoices SET version = version + 1 WHERE id = :id"),
            {"id": str(dto.id)},
        )

        model.notes = "racing"
        with pytest.raises(StaleDataError):
            session.flush()

    def test_apply_snapshot(self, session):
        dto = _invoice_dto()
        model = InvoiceModel.from_dto(dto)
        _persist(session, model)

        later = NOW + timedelta(hours=1)
        model.apply_snapshot(
            replace(
                dto,
                outstanding_amount=Decimal("289.57"),
                status=InvoiceStatus.PARTIALLY_PAID,
                updated_at=later,
            )
        )
        session.commit()
        session.expire_all()

        loaded = session.get(InvoiceModel, dto.id).to_dto()
        assert loaded.outstanding_amount == Decimal("289.57")
        assert loaded.status is InvoiceStatus.PARTIALLY_PAID
        assert loaded.updated_at == later
        assert loaded.total_amount == Decimal("589.57")

    def test_lines_deleted_with_invoice(self, session):
        dto = _invoice_dto()
        _persist(session, InvoiceModel.from_dto(dto))

        session.delete(session.get(InvoiceModel, dto.id))
        session.commit()

        assert session.query(InvoiceLineItemModel).count() == 0

    def test_line_number_unique_per_invoice(self, session):
        dto = _invoice_dto()
        _persist(session, InvoiceModel.from_dto(dto))

        session.add(InvoiceLineItemModel.from_dto(
            replace(dto.line_items[0], id=uuid4())
        ))
        with pytest.raises(IntegrityError):
            session.flush()


# ---------------------------------------------------------------------------
# 2. PaymentModel
# ---------------------------------------------------------------------------


class TestPaymentModelORM:

    def test_round_trip(self, session):
        invoice = _invoice_dto()
        payment = _payment_dto(invoice, notes="first installment")
        _persist(session, InvoiceModel.from_dto(invoice), PaymentModel.from_dto(payment))

        loaded = session.get(PaymentModel, payment.id).to_dto()

        assert loaded == payment

    def test_reference_number_unique(self, session):
        invoice = _invoice_dto()
        _persist(session, InvoiceModel.from_dto(invoice), PaymentModel.from_dto(_payment_dto(invoice)))

        session.add(PaymentModel.from_dto(_payment_dto(invoice)))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_unknown_invoice_rejected(self, session):
        orphan = _payment_dto(_invoice_dto())

        session.add(PaymentModel.from_dto(orphan))
        with pytest.raises(IntegrityError):
            session.flush()


# ---------------------------------------------------------------------------
# 3. ReceiptModel + ReceiptLineItemModel
# ---------------------------------------------------------------------------


class TestReceiptModelORM:

    def test_round_trip(self, session):
        invoice = _invoice_dto()
        payment = _payment_dto(invoice)
        receipt = _receipt_dto(invoice, payment)
        _persist(
            session,
            InvoiceModel.from_dto(invoice),
            PaymentModel.from_dto(payment),
            ReceiptModel.from_dto(receipt),
        )

        loaded = session.get(ReceiptModel, receipt.id).to_dto()

        assert loaded == receipt
        assert loaded.allocated_total == Decimal("300.00")

    def test_one_receipt_per_payment(self, session):
        invoice = _invoice_dto()
        payment = _payment_dto(invoice)
        _persist(
            session,
            InvoiceModel.from_dto(invoice),
            PaymentModel.from_dto(payment),
            ReceiptModel.from_dto(_receipt_dto(invoice, payment)),
        )

        session.add(ReceiptModel.from_dto(_receipt_dto(invoice, payment, number="RCP-OTHER")))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_receipt_lines_deleted_with_receipt(self, session):
        invoice = _invoice_dto()
        payment = _payment_dto(invoice)
        receipt = _receipt_dto(invoice, payment)
        _persist(
            session,
            InvoiceModel.from_dto(invoice),
            PaymentModel.from_dto(payment),
            ReceiptModel.from_dto(receipt),
        )

        session.delete(session.get(ReceiptModel, receipt.id))
        session.commit()

        assert session.query(ReceiptLineItemModel).count() == 0
