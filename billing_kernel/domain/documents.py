"""
Documents -- Immutable billing document records.

Responsibility:
    Defines the frozen records that flow between the calculation engines
    and the service layer: Invoice with its InvoiceLineItem rows, Payment,
    and Receipt with its ReceiptLineItem rows, plus the status and method
    enumerations they carry.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Engines accept and return these records; ORM models convert to and
    from them at the persistence boundary (``to_dto`` / ``from_dto``).

Invariants enforced:
    - All records are ``frozen=True``.  State changes produce a new record
      via ``dataclasses.replace``; nothing is mutated in place.
    - All monetary fields are ``Decimal`` with 2 fractional digits; tax
      rates carry 4.
    - Line items are held as tuples in display order (``line_number``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.values import ZERO


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class PaymentMethod(Enum):
    """How an already-settled payment was made."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    E_WALLET = "e_wallet"


class PaymentStatus(Enum):
    """Payment states.  The application engine only produces COMPLETED."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class InvoiceLineItem:
    """One billed line.  Figures are fixed at invoice creation."""
    id: UUID
    invoice_id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal

    @property
    def item_total(self) -> Decimal:
        """Line total including tax; the weight used for receipt allocation."""
        return self.line_total + self.tax_amount


@dataclass(frozen=True)
class Invoice:
    """
    Invoice snapshot.

    Guarantees:
        - ``total_amount == round_money(subtotal + total_tax)``.
        - ``0 <= outstanding_amount <= total_amount`` after any payment
          application.
    """
    id: UUID
    invoice_number: str
    invoice_date: datetime
    subtotal: Decimal
    total_tax: Decimal
    total_amount: Decimal
    outstanding_amount: Decimal
    status: InvoiceStatus
    line_items: tuple[InvoiceLineItem, ...] = ()
    due_date: datetime | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1

    @property
    def amount_paid(self) -> Decimal:
        return self.total_amount - self.outstanding_amount

    @property
    def is_settled(self) -> bool:
        return self.outstanding_amount <= ZERO


@dataclass(frozen=True)
class Payment:
    """A recorded, already-settled payment against one invoice."""
    id: UUID
    invoice_id: UUID
    reference_number: str
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: datetime
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ReceiptLineItem:
    """Share of a payment attributed to one invoice line."""
    id: UUID
    receipt_id: UUID
    invoice_line_item_id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    tax_amount: Decimal
    paid_amount: Decimal


@dataclass(frozen=True)
class Receipt:
    """Receipt documenting exactly one payment."""
    id: UUID
    receipt_number: str
    payment_id: UUID
    invoice_id: UUID
    receipt_date: datetime
    total_paid: Decimal
    remaining_balance: Decimal
    payment_method: PaymentMethod
    line_items: tuple[ReceiptLineItem, ...] = ()
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def allocated_total(self) -> Decimal:
        return sum((line.paid_amount for line in self.line_items), ZERO)
