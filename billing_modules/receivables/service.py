"""
Receivables Module Service - Orchestrates billing operations via engines + persistence.

Thin glue layer that:
1. Calls the invoice totals engine when an invoice is created
2. Calls the payment application engine when a payment is recorded
3. Calls the receipt allocator to build the receipt for each payment
4. Persists documents through the receivables ORM models

All computation lives in engines.  This service owns the transaction
boundary: it commits on success and rolls back on failure.

Payment recording runs as two units of work.  Unit 1 writes the payment
row and the invoice balance/status change in one commit.  Unit 2 writes
the receipt and its lines in a second commit.  When unit 2 fails the
payment stays committed and the result reports RECEIPT_FAILED;
``reissue_receipt`` repairs it later.

Usage:
    service = ReceivablesService(session, clock=clock)
    invoice = service.create_invoice([
        LineItemInput("Consulting", Decimal("1"), Decimal("500.00")),
    ])
    result = service.record_payment(
        invoice.id, Decimal("535.00"), PaymentMethod.BANK_TRANSFER,
    )
    if result.is_success:
        print(result.receipt.receipt_number)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from billing_engines.invoice_totals import (
    LineItemInput,
    compute_totals,
    generate_invoice_number,
)
from billing_engines.payment_application import (
    OVERDUE_ELIGIBLE_STATUSES,
    apply_payment,
    is_overdue,
)
from billing_engines.receipt_allocation import allocate
from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.references import (
    INVOICE_PREFIX,
    PAYMENT_PREFIX,
    RECEIPT_PREFIX,
    RandomReferenceGenerator,
    ReferenceGenerator,
)
from billing_kernel.domain.values import ZERO, round_money
from billing_kernel.exceptions import (
    BillingError,
    ConflictError,
    DuplicateInvoiceNumberError,
    DuplicateReceiptNumberError,
    DuplicateReferenceNumberError,
    InvalidCustomerDetailsError,
    InvalidPaymentMethodError,
    InvalidStatusError,
    InvalidStatusTransitionError,
    InvoiceHasPaymentsError,
    InvoiceLockedError,
    InvoiceNotFoundError,
    OptimisticLockError,
    PaymentNotCompletedError,
    PaymentNotFoundError,
    ReceiptAlreadyExistsError,
    ReceiptNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.receivables.config import ReceivablesConfig
from billing_modules.receivables.models import (
    Invoice,
    InvoiceLineItem,
    InvoiceStatistics,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatistics,
    PaymentStatus,
    Receipt,
)
from billing_modules.receivables.orm import InvoiceModel, PaymentModel, ReceiptModel
from billing_modules.receivables.selectors import (
    InvoiceSelector,
    PaymentSelector,
    ReceiptSelector,
)
from billing_modules.receivables.workflows import (
    INVOICE_WORKFLOW,
    NO_PAYMENTS,
    PAST_DUE,
)

logger = get_logger("modules.receivables.service")

MAX_CUSTOMER_NAME_LENGTH = 255
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Status flags a caller may put on a recorded payment.  Balances are never
# touched by flagging.
PAYMENT_FLAG_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.COMPLETED: frozenset({
        PaymentStatus.FAILED,
        PaymentStatus.REFUNDED,
        PaymentStatus.CANCELLED,
    }),
}

# Statuses that only the payment application engine may set.
_BALANCE_DERIVED_STATUSES = frozenset({
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
})


class PaymentRecordingStatus(str, Enum):
    """Outcome of ``ReceivablesService.record_payment``."""

    RECORDED = "recorded"
    VALIDATION_FAILED = "validation_failed"
    INVOICE_NOT_FOUND = "invoice_not_found"
    DUPLICATE_REFERENCE = "duplicate_reference"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    RECEIPT_FAILED = "receipt_failed"


@dataclass(frozen=True)
class PaymentRecordingResult:
    """
    Result of recording a payment.

    ``payment`` and ``invoice`` are set whenever the payment was committed
    (RECORDED and RECEIPT_FAILED); ``receipt`` only for RECORDED.
    """

    status: PaymentRecordingStatus
    invoice_id: UUID | str
    payment: Payment | None = None
    invoice: Invoice | None = None
    receipt: Receipt | None = None
    is_fully_paid: bool = False
    is_overpayment: bool = False
    overpayment_amount: Decimal = Decimal("0.00")
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == PaymentRecordingStatus.RECORDED

    @property
    def payment_committed(self) -> bool:
        return self.status in (
            PaymentRecordingStatus.RECORDED,
            PaymentRecordingStatus.RECEIPT_FAILED,
        )


def _coerce_id(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _coerce_enum(enum_cls: type[Enum], value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        if enum_cls is PaymentMethod:
            raise InvalidPaymentMethodError(value) from e
        entity_type = "Payment" if enum_cls is PaymentStatus else "Invoice"
        raise InvalidStatusError(value, entity_type=entity_type) from e


class ReceivablesService:
    """
    Orchestrates invoice, payment and receipt operations.

    Engine composition:
    - compute_totals: invoice subtotal / tax / total
    - apply_payment: balance, status and outcome flags
    - allocate: proportional receipt lines

    Transaction boundary: this service commits on success, rolls back on
    failure.  Generated document numbers that collide with existing ones
    are regenerated inside a savepoint, up to
    ``config.max_reference_attempts`` times.
    """

    def __init__(
        self,
        session: Session,
        config: ReceivablesConfig | None = None,
        clock: Clock | None = None,
        reference_generator: ReferenceGenerator | None = None,
    ):
        self._session = session
        self._config = config or ReceivablesConfig()
        self._clock = clock or SystemClock()
        self._references = reference_generator or RandomReferenceGenerator()

        # Read side
        self._invoices = InvoiceSelector(session)
        self._payments = PaymentSelector(session)
        self._receipts = ReceiptSelector(session)

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        items: Sequence[LineItemInput],
        invoice_number: str | None = None,
        invoice_date: datetime | None = None,
        due_date: datetime | None = None,
        customer_id: str | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        status: InvoiceStatus | str = InvoiceStatus.PENDING,
    ) -> Invoice:
        """
        Validate items, compute totals and persist the invoice with its lines.

        The outstanding amount starts at the total.  Only DRAFT and PENDING
        are accepted as initial statuses.
        """
        initial_status = _coerce_enum(InvoiceStatus, status)
        if initial_status not in (InvoiceStatus.DRAFT, InvoiceStatus.PENDING):
            raise InvalidStatusTransitionError("(new)", "none", initial_status.value)
        self._validate_customer(customer_name, customer_email)

        totals = compute_totals(items, default_tax_rate=self._config.default_tax_rate)

        now = self._clock.now()
        invoice_id = uuid4()
        line_items = tuple(
            InvoiceLineItem(
                id=uuid4(),
                invoice_id=invoice_id,
                line_number=line_number,
                description=figures.description,
                quantity=figures.quantity,
                unit_price=figures.unit_price,
                line_total=figures.line_total,
                tax_rate=figures.tax_rate,
                tax_amount=figures.tax_amount,
            )
            for line_number, figures in enumerate(totals.lines, start=1)
        )
        draft = Invoice(
            id=invoice_id,
            invoice_number=invoice_number or generate_invoice_number(self._references, now),
            invoice_date=invoice_date or now,
            subtotal=totals.subtotal,
            total_tax=totals.total_tax,
            total_amount=totals.total_amount,
            outstanding_amount=totals.total_amount,
            status=initial_status,
            line_items=line_items,
            due_date=due_date,
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        with LogContext.bind(invoice_id=invoice_id):
            try:
                model = self._insert_unique(
                    kind="invoice",
                    number=draft.invoice_number,
                    regenerate=(
                        None if invoice_number
                        else lambda: self._references.generate(INVOICE_PREFIX, now)
                    ),
                    make_model=lambda n: InvoiceModel.from_dto(
                        replace(draft, invoice_number=n)
                    ),
                    is_taken=self._invoices.number_exists,
                    duplicate_error=DuplicateInvoiceNumberError,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            invoice = model.to_dto()
            logger.info("invoice_created", extra={
                "invoice_number": invoice.invoice_number,
                "status": invoice.status.value,
                "line_count": len(invoice.line_items),
                "total_amount": str(invoice.total_amount),
            })
            return invoice

    def get_invoice(self, invoice_id: UUID | str) -> Invoice:
        uid = _coerce_id(invoice_id)
        invoice = self._invoices.get_by_id(uid) if uid else None
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_invoice_by_number(self, invoice_number: str) -> Invoice:
        invoice = self._invoices.get_by_number(invoice_number)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_number, by="number")
        return invoice

    def list_invoices(
        self,
        status: InvoiceStatus | str | None = None,
        customer_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Invoice]:
        """Invoices newest first."""
        return self._invoices.list(
            status=_coerce_enum(InvoiceStatus, status),
            customer_id=customer_id,
            limit=limit or self._config.list_page_limit,
            offset=offset,
        )

    def update_invoice(
        self,
        invoice_id: UUID | str,
        invoice_number: str | None = None,
        due_date: datetime | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        status: InvoiceStatus | str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Update header fields.  Arguments left as None are unchanged.

        Paid invoices are locked.  Status changes must be manual
        transitions of INVOICE_WORKFLOW whose guard holds; balance-derived
        statuses are only ever set by payment application.
        """
        self._validate_customer(customer_name, customer_email)
        new_status = _coerce_enum(InvoiceStatus, status)

        try:
            model = self._lock_invoice(invoice_id)
            invoice = model.to_dto()
            if invoice.status is InvoiceStatus.PAID:
                raise InvoiceLockedError(str(invoice.id), invoice.status.value)

            now = self._clock.now()
            changes: dict = {}
            if invoice_number is not None and invoice_number != invoice.invoice_number:
                if self._invoices.number_exists(invoice_number):
                    raise DuplicateInvoiceNumberError(invoice_number)
                changes["invoice_number"] = invoice_number
            if due_date is not None:
                changes["due_date"] = due_date
            if customer_name is not None:
                changes["customer_name"] = customer_name
            if customer_email is not None:
                changes["customer_email"] = customer_email
            if notes is not None:
                changes["notes"] = notes
            if new_status is not None and new_status is not invoice.status:
                self._check_status_change(replace(invoice, **changes), new_status, now)
                changes["status"] = new_status

            if not changes:
                self._session.rollback()
                return invoice

            updated = replace(invoice, **changes, updated_at=now)
            model.apply_snapshot(updated)
            self._session.flush()
            self._session.commit()
        except StaleDataError as e:
            self._session.rollback()
            raise OptimisticLockError("Invoice", str(invoice_id)) from e
        except Exception:
            self._session.rollback()
            raise

        result = model.to_dto()
        logger.info("invoice_updated", extra={
            "invoice_number": result.invoice_number,
            "fields": sorted(changes),
            "status": result.status.value,
        })
        return result

    def delete_invoice(self, invoice_id: UUID | str) -> None:
        """Delete an invoice and its lines.  Forbidden once any payment exists."""
        try:
            model = self._lock_invoice(invoice_id)
            if (
                self._invoices.has_payments(model.id)
                or model.outstanding_amount < model.total_amount
            ):
                raise InvoiceHasPaymentsError(str(model.id))
            invoice_number = model.invoice_number
            self._session.delete(model)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("invoice_deleted", extra={"invoice_number": invoice_number})

    def invoice_statistics(self, customer_id: str | None = None) -> InvoiceStatistics:
        return self._invoices.statistics(customer_id=customer_id)

    def flag_overdue_invoices(self, as_of: datetime | None = None) -> list[Invoice]:
        """Mark open invoices past their due date as OVERDUE.  Returns them."""
        as_of = as_of or self._clock.now()
        flagged: list[Invoice] = []
        try:
            candidate_ids = self._invoices.overdue_candidate_ids(
                as_of, OVERDUE_ELIGIBLE_STATUSES
            )
            for candidate_id in candidate_ids:
                model = self._lock_invoice(candidate_id)
                invoice = model.to_dto()
                if not is_overdue(invoice, as_of):
                    continue
                model.apply_snapshot(replace(
                    invoice,
                    status=InvoiceStatus.OVERDUE,
                    updated_at=self._clock.now(),
                ))
                self._session.flush()
                flagged.append(model.to_dto())
            self._session.commit()
        except StaleDataError as e:
            self._session.rollback()
            raise OptimisticLockError("Invoice", "overdue batch") from e
        except Exception:
            self._session.rollback()
            raise

        logger.info("overdue_invoices_flagged", extra={
            "as_of": as_of,
            "flagged_count": len(flagged),
        })
        return flagged

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        invoice_id: UUID | str,
        amount: Decimal | int | str,
        payment_method: PaymentMethod | str,
        reference_number: str | None = None,
        payment_date: datetime | None = None,
        notes: str | None = None,
    ) -> PaymentRecordingResult:
        """
        Apply a settled payment to an invoice and issue its receipt.

        Never raises for expected outcomes; each one is a
        ``PaymentRecordingStatus``.  Unexpected errors roll back and
        propagate.
        """
        with LogContext.bind(invoice_id=invoice_id):
            logger.info("record_payment_started", extra={
                "amount": str(amount),
                "payment_method": str(getattr(payment_method, "value", payment_method)),
            })

            # Unit 1: payment row + invoice balance/status
            try:
                model = self._lock_invoice(invoice_id)
                application = apply_payment(
                    model.to_dto(),
                    amount,
                    payment_method,
                    reference_number,
                    payment_date,
                    notes,
                    clock=self._clock,
                    reference_generator=self._references,
                    maximum_amount=self._config.max_payment_amount,
                )
                model.apply_snapshot(application.updated_invoice)
                now = self._clock.now()
                payment_dto = replace(application.payment, created_at=now, updated_at=now)
                payment_model = self._insert_unique(
                    kind="payment",
                    number=payment_dto.reference_number,
                    regenerate=(
                        None if reference_number
                        else lambda: self._references.generate(
                            PAYMENT_PREFIX, self._clock.now()
                        )
                    ),
                    make_model=lambda n: PaymentModel.from_dto(
                        replace(payment_dto, reference_number=n)
                    ),
                    is_taken=self._payments.reference_exists,
                    duplicate_error=DuplicateReferenceNumberError,
                )
                self._session.commit()
            except InvoiceNotFoundError as e:
                return self._payment_rejected(
                    PaymentRecordingStatus.INVOICE_NOT_FOUND, invoice_id, e
                )
            except ValidationError as e:
                return self._payment_rejected(
                    PaymentRecordingStatus.VALIDATION_FAILED, invoice_id, e
                )
            except DuplicateReferenceNumberError as e:
                return self._payment_rejected(
                    PaymentRecordingStatus.DUPLICATE_REFERENCE, invoice_id, e
                )
            except StaleDataError as e:
                return self._payment_rejected(
                    PaymentRecordingStatus.CONCURRENT_MODIFICATION,
                    invoice_id,
                    OptimisticLockError("Invoice", str(invoice_id)),
                    cause=e,
                )
            except Exception:
                self._session.rollback()
                raise

            payment = payment_model.to_dto()
            invoice = model.to_dto()
            logger.info("payment_recorded", extra={
                "reference_number": payment.reference_number,
                "amount": str(payment.amount),
                "new_outstanding": str(invoice.outstanding_amount),
                "new_status": invoice.status.value,
                "is_overpayment": application.is_overpayment,
            })

            # Unit 2: receipt + receipt lines
            with LogContext.bind(payment_id=payment.id):
                try:
                    receipt = self._create_receipt(payment, invoice)
                except (BillingError, SQLAlchemyError) as e:
                    logger.error(
                        "receipt_creation_failed",
                        extra={"reference_number": payment.reference_number},
                        exc_info=True,
                    )
                    return PaymentRecordingResult(
                        status=PaymentRecordingStatus.RECEIPT_FAILED,
                        invoice_id=invoice.id,
                        payment=payment,
                        invoice=invoice,
                        is_fully_paid=application.is_fully_paid,
                        is_overpayment=application.is_overpayment,
                        overpayment_amount=application.overpayment_amount,
                        error_code=getattr(e, "code", type(e).__name__),
                        message=str(e),
                    )

            return PaymentRecordingResult(
                status=PaymentRecordingStatus.RECORDED,
                invoice_id=invoice.id,
                payment=payment,
                invoice=invoice,
                receipt=receipt,
                is_fully_paid=application.is_fully_paid,
                is_overpayment=application.is_overpayment,
                overpayment_amount=application.overpayment_amount,
            )

    def get_payment(self, payment_id: UUID | str) -> Payment:
        uid = _coerce_id(payment_id)
        payment = self._payments.get_by_id(uid) if uid else None
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def get_payment_by_reference(self, reference_number: str) -> Payment:
        payment = self._payments.get_by_reference(reference_number)
        if payment is None:
            raise PaymentNotFoundError(reference_number, by="reference")
        return payment

    def list_payments(
        self,
        invoice_id: UUID | str | None = None,
        status: PaymentStatus | str | None = None,
        payment_method: PaymentMethod | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Payment]:
        """Payments newest first."""
        return self._payments.list(
            invoice_id=_coerce_id(invoice_id) if invoice_id is not None else None,
            status=_coerce_enum(PaymentStatus, status),
            payment_method=_coerce_enum(PaymentMethod, payment_method),
            limit=limit or self._config.list_page_limit,
            offset=offset,
        )

    def list_payments_without_receipt(
        self,
        invoice_id: UUID | str | None = None,
    ) -> list[Payment]:
        """Completed payments whose receipt was never written."""
        return self._payments.without_receipt(
            invoice_id=_coerce_id(invoice_id) if invoice_id is not None else None,
        )

    def payment_statistics(self, invoice_id: UUID | str | None = None) -> PaymentStatistics:
        return self._payments.statistics(
            invoice_id=_coerce_id(invoice_id) if invoice_id is not None else None,
        )

    def flag_payment(
        self,
        payment_id: UUID | str,
        status: PaymentStatus | str,
    ) -> Payment:
        """Set a payment's status flag.  Invoice balances are not changed."""
        new_status = _coerce_enum(PaymentStatus, status)
        uid = _coerce_id(payment_id)
        try:
            model = None
            if uid is not None:
                model = self._session.execute(
                    select(PaymentModel)
                    .where(PaymentModel.id == uid)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
            if model is None:
                raise PaymentNotFoundError(str(payment_id))

            current = PaymentStatus(model.status)
            if new_status not in PAYMENT_FLAG_TRANSITIONS.get(current, frozenset()):
                raise InvalidStatusTransitionError(
                    str(model.id), current.value, new_status.value, entity_type="Payment"
                )
            model.status = new_status.value
            model.updated_at = self._clock.now()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        payment = model.to_dto()
        logger.info("payment_flagged", extra={
            "reference_number": payment.reference_number,
            "from_status": current.value,
            "to_status": new_status.value,
        })
        return payment

    # =========================================================================
    # Receipts
    # =========================================================================

    def get_receipt(self, receipt_id: UUID | str) -> Receipt:
        uid = _coerce_id(receipt_id)
        receipt = self._receipts.get_by_id(uid) if uid else None
        if receipt is None:
            raise ReceiptNotFoundError(str(receipt_id))
        return receipt

    def get_receipt_by_payment(self, payment_id: UUID | str) -> Receipt:
        uid = _coerce_id(payment_id)
        receipt = self._receipts.get_by_payment(uid) if uid else None
        if receipt is None:
            raise ReceiptNotFoundError(str(payment_id), by="payment")
        return receipt

    def get_receipt_by_number(self, receipt_number: str) -> Receipt:
        receipt = self._receipts.get_by_number(receipt_number)
        if receipt is None:
            raise ReceiptNotFoundError(receipt_number, by="number")
        return receipt

    def list_receipts(
        self,
        invoice_id: UUID | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Receipt]:
        """Receipts newest first."""
        return self._receipts.list(
            invoice_id=_coerce_id(invoice_id) if invoice_id is not None else None,
            limit=limit or self._config.list_page_limit,
            offset=offset,
        )

    def reissue_receipt(self, payment_id: UUID | str) -> Receipt:
        """
        Create the missing receipt for a committed payment.

        The receipt's remaining balance is the invoice's current
        outstanding amount.
        """
        payment = self.get_payment(payment_id)
        if self._receipts.get_by_payment(payment.id) is not None:
            raise ReceiptAlreadyExistsError(str(payment.id))
        if payment.status is not PaymentStatus.COMPLETED:
            raise PaymentNotCompletedError(str(payment.id), payment.status.value)
        invoice = self.get_invoice(payment.invoice_id)
        with LogContext.bind(invoice_id=invoice.id, payment_id=payment.id):
            receipt = self._create_receipt(payment, invoice)
            logger.info("receipt_reissued", extra={
                "receipt_number": receipt.receipt_number,
            })
            return receipt

    # =========================================================================
    # Internals
    # =========================================================================

    def _create_receipt(self, payment: Payment, invoice: Invoice) -> Receipt:
        """Allocate and persist the receipt for ``payment`` (unit 2)."""
        try:
            allocation = allocate(
                payment,
                invoice,
                clock=self._clock,
                reference_generator=self._references,
            )
            now = self._clock.now()
            draft = replace(allocation.receipt, created_at=now, updated_at=now)
            model = self._insert_unique(
                kind="receipt",
                number=draft.receipt_number,
                regenerate=lambda: self._references.generate(
                    RECEIPT_PREFIX, self._clock.now()
                ),
                make_model=lambda n: ReceiptModel.from_dto(
                    replace(draft, receipt_number=n)
                ),
                is_taken=self._receipts.number_exists,
                duplicate_error=DuplicateReceiptNumberError,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        receipt = model.to_dto()
        logger.info("receipt_created", extra={
            "receipt_number": receipt.receipt_number,
            "total_paid": str(receipt.total_paid),
            "remaining_balance": str(receipt.remaining_balance),
            "rounding_difference": str(allocation.rounding_difference),
        })
        return receipt

    def _insert_unique(
        self,
        kind: str,
        number: str,
        regenerate: Callable[[], str] | None,
        make_model: Callable[[str], TrackedBase],
        is_taken: Callable[[str], bool],
        duplicate_error: type[ConflictError],
    ):
        """
        Insert a document whose number must be unique.

        Each attempt runs in a savepoint.  On a collision a generated
        number is regenerated (``regenerate``); a caller-supplied number
        (``regenerate is None``) fails on the first collision.
        """
        attempts = self._config.max_reference_attempts if regenerate else 1
        for attempt in range(1, attempts + 1):
            savepoint = self._session.begin_nested()
            model = make_model(number)
            try:
                self._session.add(model)
                self._session.flush()
            except IntegrityError:
                savepoint.rollback()
                if not is_taken(number):
                    raise
                logger.warning("document_number_collision", extra={
                    "document_kind": kind,
                    "document_number": number,
                    "attempt": attempt,
                    "max_attempts": attempts,
                })
                if attempt < attempts:
                    number = regenerate()
                continue
            savepoint.commit()
            return model
        raise duplicate_error(number)

    def _lock_invoice(self, invoice_id: UUID | str) -> InvoiceModel:
        """Load the invoice row with SELECT ... FOR UPDATE."""
        uid = _coerce_id(invoice_id)
        model = None
        if uid is not None:
            model = self._session.execute(
                select(InvoiceModel)
                .where(InvoiceModel.id == uid)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _check_status_change(
        self,
        invoice: Invoice,
        new_status: InvoiceStatus,
        now: datetime,
    ) -> None:
        transition = INVOICE_WORKFLOW.find(invoice.status.value, new_status.value)
        allowed = (
            new_status not in _BALANCE_DERIVED_STATUSES
            and transition is not None
            and transition.manual
        )
        if allowed and transition.guard == NO_PAYMENTS:
            allowed = (
                invoice.amount_paid <= ZERO
                and not self._invoices.has_payments(invoice.id)
            )
        elif allowed and transition.guard == PAST_DUE:
            allowed = is_overdue(invoice, now)
        if not allowed:
            raise InvalidStatusTransitionError(
                str(invoice.id), invoice.status.value, new_status.value
            )

    @staticmethod
    def _validate_customer(name: str | None, email: str | None) -> None:
        if name is not None and (not name.strip() or len(name) > MAX_CUSTOMER_NAME_LENGTH):
            raise InvalidCustomerDetailsError(
                "customer_name",
                name[:40],
                f"must be 1 to {MAX_CUSTOMER_NAME_LENGTH} characters",
            )
        if email is not None and not _EMAIL_PATTERN.match(email):
            raise InvalidCustomerDetailsError(
                "customer_email", email, "must be a valid email address"
            )

    def _payment_rejected(
        self,
        status: PaymentRecordingStatus,
        invoice_id: UUID | str,
        error: BillingError,
        cause: Exception | None = None,
    ) -> PaymentRecordingResult:
        self._session.rollback()
        logger.warning("record_payment_rejected", extra={
            "status": status.value,
            "error_code": error.code,
            "reason": str(error),
            "cause": type(cause).__name__ if cause else None,
        })
        return PaymentRecordingResult(
            status=status,
            invoice_id=invoice_id,
            error_code=error.code,
            message=str(error),
            overpayment_amount=round_money(ZERO),
        )
