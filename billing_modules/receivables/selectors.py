"""
Module: billing_modules.receivables.selectors
Responsibility: Read-only query access to invoices, payments and receipts.
    Converts ORM models to frozen documents for clean layer separation.
Architecture position: Modules > Receivables.  May import from orm.py,
    models.py and billing_kernel.selectors.base.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - DTO convention: public methods return frozen documents or statistics
      records, never raw ORM models.
    - Listings are newest first (created_at DESC) with a stable tie-break.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, exists, func, select

from billing_kernel.db.types import as_utc
from billing_kernel.domain.values import ZERO, round_money
from billing_kernel.selectors.base import BaseSelector
from billing_modules.receivables.models import (
    Invoice,
    InvoiceStatistics,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatistics,
    PaymentStatus,
    Receipt,
)
from billing_modules.receivables.orm import InvoiceModel, PaymentModel, ReceiptModel


def _page(stmt: Select, limit: int, offset: int) -> Select:
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    if offset < 0:
        raise ValueError(f"offset cannot be negative, got {offset}")
    return stmt.limit(limit).offset(offset)


def _money(value) -> Decimal:
    if value is None:
        return round_money(ZERO)
    return round_money(Decimal(str(value)))


class InvoiceSelector(BaseSelector):
    """Read-only queries for invoices."""

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        model = self.session.get(InvoiceModel, invoice_id)
        return model.to_dto() if model else None

    def get_by_number(self, invoice_number: str) -> Invoice | None:
        model = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.invoice_number == invoice_number)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def number_exists(self, invoice_number: str) -> bool:
        return self.session.execute(
            select(exists().where(InvoiceModel.invoice_number == invoice_number))
        ).scalar()

    def list(
        self,
        status: InvoiceStatus | None = None,
        customer_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)
        stmt = stmt.order_by(
            InvoiceModel.created_at.desc(), InvoiceModel.invoice_number.desc()
        )
        models = self.session.execute(_page(stmt, limit, offset)).scalars().all()
        return [m.to_dto() for m in models]

    def has_payments(self, invoice_id: UUID) -> bool:
        return self.session.execute(
            select(exists().where(PaymentModel.invoice_id == invoice_id))
        ).scalar()

    def statistics(self, customer_id: str | None = None) -> InvoiceStatistics:
        stmt = select(
            InvoiceModel.status,
            func.count(InvoiceModel.id),
            func.sum(InvoiceModel.total_amount),
            func.sum(InvoiceModel.outstanding_amount),
        ).group_by(InvoiceModel.status)
        if customer_id is not None:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)

        counts = {status: 0 for status in InvoiceStatus}
        total_amount = ZERO
        total_outstanding = ZERO
        for status, count, amount, outstanding in self.session.execute(stmt):
            counts[InvoiceStatus(status)] = count
            total_amount += _money(amount)
            total_outstanding += _money(outstanding)

        return InvoiceStatistics(
            total_invoices=sum(counts.values()),
            draft=counts[InvoiceStatus.DRAFT],
            pending=counts[InvoiceStatus.PENDING],
            partially_paid=counts[InvoiceStatus.PARTIALLY_PAID],
            paid=counts[InvoiceStatus.PAID],
            cancelled=counts[InvoiceStatus.CANCELLED],
            overdue=counts[InvoiceStatus.OVERDUE],
            total_amount=round_money(total_amount),
            total_outstanding=round_money(total_outstanding),
        )

    def overdue_candidate_ids(
        self,
        as_of: datetime,
        statuses: frozenset[InvoiceStatus],
    ) -> list[UUID]:
        """Ids of open invoices whose due date is before ``as_of``."""
        stmt = (
            select(InvoiceModel.id)
            .where(InvoiceModel.status.in_([s.value for s in statuses]))
            .where(InvoiceModel.due_date.is_not(None))
            .where(InvoiceModel.due_date < as_utc(as_of))
            .where(InvoiceModel.outstanding_amount > 0)
            .order_by(InvoiceModel.due_date, InvoiceModel.invoice_number)
        )
        return list(self.session.execute(stmt).scalars().all())


class PaymentSelector(BaseSelector):
    """Read-only queries for payments."""

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        model = self.session.get(PaymentModel, payment_id)
        return model.to_dto() if model else None

    def get_by_reference(self, reference_number: str) -> Payment | None:
        model = self.session.execute(
            select(PaymentModel).where(
                PaymentModel.reference_number == reference_number
            )
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def reference_exists(self, reference_number: str) -> bool:
        return self.session.execute(
            select(exists().where(PaymentModel.reference_number == reference_number))
        ).scalar()

    def list(
        self,
        invoice_id: UUID | None = None,
        status: PaymentStatus | None = None,
        payment_method: PaymentMethod | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Payment]:
        stmt = select(PaymentModel)
        if invoice_id is not None:
            stmt = stmt.where(PaymentModel.invoice_id == invoice_id)
        if status is not None:
            stmt = stmt.where(PaymentModel.status == status.value)
        if payment_method is not None:
            stmt = stmt.where(PaymentModel.payment_method == payment_method.value)
        stmt = stmt.order_by(
            PaymentModel.created_at.desc(), PaymentModel.reference_number.desc()
        )
        models = self.session.execute(_page(stmt, limit, offset)).scalars().all()
        return [m.to_dto() for m in models]

    def without_receipt(self, invoice_id: UUID | None = None) -> list[Payment]:
        """Completed payments that have no receipt (fail-forward leftovers)."""
        stmt = (
            select(PaymentModel)
            .where(PaymentModel.status == PaymentStatus.COMPLETED.value)
            .where(~exists().where(ReceiptModel.payment_id == PaymentModel.id))
        )
        if invoice_id is not None:
            stmt = stmt.where(PaymentModel.invoice_id == invoice_id)
        stmt = stmt.order_by(PaymentModel.created_at, PaymentModel.reference_number)
        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    def statistics(self, invoice_id: UUID | None = None) -> PaymentStatistics:
        stmt = select(
            PaymentModel.status,
            func.count(PaymentModel.id),
            func.sum(PaymentModel.amount),
        ).group_by(PaymentModel.status)
        if invoice_id is not None:
            stmt = stmt.where(PaymentModel.invoice_id == invoice_id)

        counts = {status: 0 for status in PaymentStatus}
        completed_amount = round_money(ZERO)
        for status, count, amount in self.session.execute(stmt):
            counts[PaymentStatus(status)] = count
            if status == PaymentStatus.COMPLETED.value:
                completed_amount = _money(amount)

        return PaymentStatistics(
            total_payments=sum(counts.values()),
            completed=counts[PaymentStatus.COMPLETED],
            pending=counts[PaymentStatus.PENDING],
            failed=counts[PaymentStatus.FAILED],
            cancelled=counts[PaymentStatus.CANCELLED],
            refunded=counts[PaymentStatus.REFUNDED],
            total_amount=completed_amount,
        )


class ReceiptSelector(BaseSelector):
    """Read-only queries for receipts."""

    def get_by_id(self, receipt_id: UUID) -> Receipt | None:
        model = self.session.get(ReceiptModel, receipt_id)
        return model.to_dto() if model else None

    def get_by_payment(self, payment_id: UUID) -> Receipt | None:
        model = self.session.execute(
            select(ReceiptModel).where(ReceiptModel.payment_id == payment_id)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def get_by_number(self, receipt_number: str) -> Receipt | None:
        model = self.session.execute(
            select(ReceiptModel).where(ReceiptModel.receipt_number == receipt_number)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def number_exists(self, receipt_number: str) -> bool:
        return self.session.execute(
            select(exists().where(ReceiptModel.receipt_number == receipt_number))
        ).scalar()

    def list(
        self,
        invoice_id: UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Receipt]:
        stmt = select(ReceiptModel)
        if invoice_id is not None:
            stmt = stmt.where(ReceiptModel.invoice_id == invoice_id)
        stmt = stmt.order_by(
            ReceiptModel.created_at.desc(), ReceiptModel.receipt_number.desc()
        )
        models = self.session.execute(_page(stmt, limit, offset)).scalars().all()
        return [m.to_dto() for m in models]
