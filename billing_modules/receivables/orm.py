"""
Receivables ORM Models (``billing_modules.receivables.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the receivables module.  Maps the frozen
billing documents from ``billing_kernel.domain.documents`` to database
tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db`` and
the kernel domain.  MUST NOT be imported by ``billing_kernel`` or
``billing_engines``.

Invariants enforced
-------------------
* invoice_number, payment reference_number, receipt_number and
  receipt payment_id are unique.
* Invoice line items and receipt line items are owned by their parent
  (cascade delete); payments only reference their invoice.
* invoices.version is the optimistic-lock column: a flush against a stale
  row raises ``StaleDataError``.
* Datetimes are written and read back as UTC.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.db.types import (
    DocumentNumber,
    MoneyAmount,
    Quantity,
    ShortCode,
    TaxRate,
    as_utc,
)
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


def _timestamps(dto) -> dict[str, datetime]:
    """Explicit audit timestamps; omitted ones fall back to the server default."""
    values = {}
    if dto.created_at is not None:
        values["created_at"] = as_utc(dto.created_at)
    if dto.updated_at is not None:
        values["updated_at"] = as_utc(dto.updated_at)
    return values


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Maps to the ``Invoice`` frozen dataclass.  Line items are stored in a
    child table via the ``line_items`` relationship.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - status stored as string enum value.
        - version increments on every UPDATE.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[DocumentNumber] = mapped_column(nullable=False)
    invoice_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subtotal: Mapped[MoneyAmount] = mapped_column(nullable=False)
    total_tax: Mapped[MoneyAmount] = mapped_column(nullable=False)
    total_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    outstanding_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    status: Mapped[ShortCode] = mapped_column(
        default=InvoiceStatus.PENDING.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)

    line_items: Mapped[list["InvoiceLineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItemModel.line_number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            invoice_date=as_utc(self.invoice_date),
            subtotal=self.subtotal,
            total_tax=self.total_tax,
            total_amount=self.total_amount,
            outstanding_amount=self.outstanding_amount,
            status=InvoiceStatus(self.status),
            line_items=tuple(line.to_dto() for line in self.line_items),
            due_date=as_utc(self.due_date),
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            notes=self.notes,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Invoice) -> "InvoiceModel":
        """Create ORM model (with line items) from frozen dataclass."""
        model = cls(
            id=dto.id,
            invoice_number=dto.invoice_number,
            invoice_date=as_utc(dto.invoice_date),
            due_date=as_utc(dto.due_date),
            customer_id=dto.customer_id,
            customer_name=dto.customer_name,
            customer_email=dto.customer_email,
            subtotal=dto.subtotal,
            total_tax=dto.total_tax,
            total_amount=dto.total_amount,
            outstanding_amount=dto.outstanding_amount,
            status=dto.status.value,
            notes=dto.notes,
            **_timestamps(dto),
        )
        model.line_items = [
            InvoiceLineItemModel.from_dto(line) for line in dto.line_items
        ]
        return model

    def apply_snapshot(self, dto: Invoice) -> None:
        """Copy the mutable fields of an updated snapshot onto this row."""
        self.invoice_number = dto.invoice_number
        self.due_date = as_utc(dto.due_date)
        self.customer_name = dto.customer_name
        self.customer_email = dto.customer_email
        self.outstanding_amount = dto.outstanding_amount
        self.status = dto.status.value
        self.notes = dto.notes
        if dto.updated_at is not None:
            self.updated_at = as_utc(dto.updated_at)

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number}: {self.status}>"


# ---------------------------------------------------------------------------
# 2. InvoiceLineItemModel
# ---------------------------------------------------------------------------


class InvoiceLineItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    Guarantees:
        - (invoice_id, line_number) is unique.
        - Deleted with the owning invoice.
    """

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        UniqueConstraint(
            "invoice_id", "line_number", name="uq_invoice_line_items_line"
        ),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_price: Mapped[MoneyAmount] = mapped_column(nullable=False)
    line_total: Mapped[MoneyAmount] = mapped_column(nullable=False)
    tax_rate: Mapped[TaxRate] = mapped_column(nullable=False)
    tax_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="line_items")

    def to_dto(self) -> InvoiceLineItem:
        return InvoiceLineItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_total=self.line_total,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
        )

    @classmethod
    def from_dto(cls, dto: InvoiceLineItem) -> "InvoiceLineItemModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            line_number=dto.line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            line_total=dto.line_total,
            tax_rate=dto.tax_rate,
            tax_amount=dto.tax_amount,
        )

    def __repr__(self) -> str:
        return f"<InvoiceLineItemModel {self.line_number}: {self.description}>"


# ---------------------------------------------------------------------------
# 3. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments.

    Guarantees:
        - reference_number is unique (uq_payments_reference_number).
        - invoice_id FK without cascade: an invoice with payments cannot
          be deleted.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint(
            "reference_number", name="uq_payments_reference_number"
        ),
        Index("idx_payments_invoice_id", "invoice_id"),
        Index("idx_payments_status", "status"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False
    )
    reference_number: Mapped[DocumentNumber] = mapped_column(nullable=False)
    amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    payment_method: Mapped[ShortCode] = mapped_column(nullable=False)
    payment_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[ShortCode] = mapped_column(
        default=PaymentStatus.COMPLETED.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            reference_number=self.reference_number,
            amount=self.amount,
            payment_method=PaymentMethod(self.payment_method),
            payment_date=as_utc(self.payment_date),
            status=PaymentStatus(self.status),
            notes=self.notes,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    @classmethod
    def from_dto(cls, dto: Payment) -> "PaymentModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            reference_number=dto.reference_number,
            amount=dto.amount,
            payment_method=dto.payment_method.value,
            payment_date=as_utc(dto.payment_date),
            status=dto.status.value,
            notes=dto.notes,
            **_timestamps(dto),
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.reference_number}: {self.amount}>"


# ---------------------------------------------------------------------------
# 4. ReceiptModel
# ---------------------------------------------------------------------------


class ReceiptModel(TrackedBase):
    """
    ORM model for receipts.

    Guarantees:
        - receipt_number is unique (uq_receipts_receipt_number).
        - payment_id is unique: at most one receipt per payment.
    """

    __tablename__ = "receipts"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_receipts_receipt_number"),
        UniqueConstraint("payment_id", name="uq_receipts_payment_id"),
        Index("idx_receipts_invoice_id", "invoice_id"),
    )

    receipt_number: Mapped[DocumentNumber] = mapped_column(nullable=False)
    payment_id: Mapped[UUID] = mapped_column(
        ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False
    )
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False
    )
    receipt_date: Mapped[datetime] = mapped_column(nullable=False)
    total_paid: Mapped[MoneyAmount] = mapped_column(nullable=False)
    remaining_balance: Mapped[MoneyAmount] = mapped_column(nullable=False)
    payment_method: Mapped[ShortCode] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    line_items: Mapped[list["ReceiptLineItemModel"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptLineItemModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> Receipt:
        return Receipt(
            id=self.id,
            receipt_number=self.receipt_number,
            payment_id=self.payment_id,
            invoice_id=self.invoice_id,
            receipt_date=as_utc(self.receipt_date),
            total_paid=self.total_paid,
            remaining_balance=self.remaining_balance,
            payment_method=PaymentMethod(self.payment_method),
            line_items=tuple(line.to_dto() for line in self.line_items),
            notes=self.notes,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    @classmethod
    def from_dto(cls, dto: Receipt) -> "ReceiptModel":
        model = cls(
            id=dto.id,
            receipt_number=dto.receipt_number,
            payment_id=dto.payment_id,
            invoice_id=dto.invoice_id,
            receipt_date=as_utc(dto.receipt_date),
            total_paid=dto.total_paid,
            remaining_balance=dto.remaining_balance,
            payment_method=dto.payment_method.value,
            notes=dto.notes,
            **_timestamps(dto),
        )
        model.line_items = [
            ReceiptLineItemModel.from_dto(line) for line in dto.line_items
        ]
        return model

    def __repr__(self) -> str:
        return f"<ReceiptModel {self.receipt_number}: {self.total_paid}>"


# ---------------------------------------------------------------------------
# 5. ReceiptLineItemModel
# ---------------------------------------------------------------------------


class ReceiptLineItemModel(TrackedBase):
    """ORM model for receipt line items (figures copied from the invoice line)."""

    __tablename__ = "receipt_line_items"

    receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False
    )
    invoice_line_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice_line_items.id", ondelete="RESTRICT"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_price: Mapped[MoneyAmount] = mapped_column(nullable=False)
    line_total: Mapped[MoneyAmount] = mapped_column(nullable=False)
    tax_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    paid_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)

    receipt: Mapped["ReceiptModel"] = relationship(back_populates="line_items")

    def to_dto(self) -> ReceiptLineItem:
        return ReceiptLineItem(
            id=self.id,
            receipt_id=self.receipt_id,
            invoice_line_item_id=self.invoice_line_item_id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_total=self.line_total,
            tax_amount=self.tax_amount,
            paid_amount=self.paid_amount,
        )

    @classmethod
    def from_dto(cls, dto: ReceiptLineItem) -> "ReceiptLineItemModel":
        return cls(
            id=dto.id,
            receipt_id=dto.receipt_id,
            invoice_line_item_id=dto.invoice_line_item_id,
            line_number=dto.line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            line_total=dto.line_total,
            tax_amount=dto.tax_amount,
            paid_amount=dto.paid_amount,
        )
