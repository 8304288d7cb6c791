"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the billing core must be able to tell a rejected payment from a
missing invoice from a duplicate reference number without parsing message
strings.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        result = apply_payment(invoice, amount, method, ...)
    except InvoiceCancelledError as e:
        api_response(code=e.code, invoice=e.invoice_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- ValidationError
    |   +-- EmptyInvoiceError
    |   +-- InvalidLineItemError
    |   +-- InvalidTaxRateError
    |   +-- NonPositiveAmountError
    |   +-- AmountExceedsMaximumError
    |   +-- InvalidMoneyPrecisionError
    |   +-- InvalidPaymentMethodError
    |   +-- InvoiceAlreadyPaidError
    |   +-- InvoiceCancelledError
    |   +-- InvoiceHasPaymentsError
    |   +-- InvoiceLockedError
    |   +-- InvalidStatusTransitionError
    |   +-- InvalidStatusError
    |   +-- InvalidCustomerDetailsError
    |   +-- PaymentInvoiceMismatchError
    |   +-- PaymentNotCompletedError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ReceiptNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateInvoiceNumberError
    |   +-- DuplicateReferenceNumberError
    |   +-- DuplicateReceiptNumberError
    |   +-- ReceiptAlreadyExistsError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------------
Validation   | EMPTY_INVOICE               | Invoice created with no line items
             | INVALID_LINE_ITEM           | Bad quantity, unit price or description
             | INVALID_TAX_RATE            | Tax rate outside [0, 1]
             | NON_POSITIVE_AMOUNT         | Payment amount <= 0
             | AMOUNT_EXCEEDS_MAXIMUM      | Payment or invoice total > 999,999,999.99
             | INVALID_MONEY_PRECISION     | More than 2 fractional digits, or float
             | INVALID_PAYMENT_METHOD      | Payment method not recognised
             | INVOICE_ALREADY_PAID        | Outstanding amount already <= 0
             | INVOICE_CANCELLED           | Payment against a cancelled invoice
             | INVOICE_HAS_PAYMENTS        | Deleting an invoice with payments
             | INVOICE_LOCKED              | Editing a paid invoice
             | INVALID_STATUS_TRANSITION   | Status change not permitted
             | INVALID_STATUS              | Unknown invoice or payment status value
             | INVALID_CUSTOMER_DETAILS    | Customer name too long or bad email
             | PAYMENT_NOT_COMPLETED       | Receipt requested for non-completed payment
             | PAYMENT_INVOICE_MISMATCH    | Receipt built against another invoice
-------------|-----------------------------|------------------------------------------
Not found    | INVOICE_NOT_FOUND           | Invoice id/number doesn't exist
             | PAYMENT_NOT_FOUND           | Payment id/reference doesn't exist
             | RECEIPT_NOT_FOUND           | Receipt id/number/payment doesn't exist
-------------|-----------------------------|------------------------------------------
Conflict     | DUPLICATE_INVOICE_NUMBER    | Invoice number already used
             | DUPLICATE_REFERENCE_NUMBER  | Payment reference already used
             | DUPLICATE_RECEIPT_NUMBER    | Receipt number already used
             | RECEIPT_ALREADY_EXISTS      | Payment already has its receipt
             | OPTIMISTIC_LOCK_CONFLICT    | Invoice modified by another transaction
-------------|-----------------------------|------------------------------------------
Config       | CONFIGURATION_ERROR         | Invalid or unreadable configuration
"""

from decimal import Decimal


class BillingError(Exception):
    """
    Base exception for all billing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_ERROR"


# Validation exceptions


class ValidationError(BillingError):
    """Caller-supplied data violates a precondition. Never partially applied."""

    code: str = "VALIDATION_FAILED"


class EmptyInvoiceError(ValidationError):
    """Invoice must have at least one line item."""

    code: str = "EMPTY_INVOICE"

    def __init__(self):
        super().__init__("Invoice must have at least one item")


class InvalidLineItemError(ValidationError):
    """Line item quantity or unit price is out of range."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, description: str, field: str, value: object, reason: str):
        self.description = description
        self.field = field
        self.value = value
        super().__init__(
            f"Invalid {field} for item \"{description}\": {reason}"
        )


class InvalidTaxRateError(ValidationError):
    """Tax rate must be a fraction between 0 and 1."""

    code: str = "INVALID_TAX_RATE"

    def __init__(self, rate: Decimal):
        self.rate = rate
        super().__init__(f"Tax rate must be between 0 and 1, got {rate}")


class NonPositiveAmountError(ValidationError):
    """Payment amount must be strictly positive."""

    code: str = "NON_POSITIVE_AMOUNT"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"amount must be positive, got {amount}")


class AmountExceedsMaximumError(ValidationError):
    """Payment amount or invoice total is above the supported ceiling."""

    code: str = "AMOUNT_EXCEEDS_MAXIMUM"

    def __init__(self, amount: Decimal, maximum: Decimal):
        self.amount = amount
        self.maximum = maximum
        super().__init__(f"amount exceeds maximum: {amount} > {maximum}")


class InvalidMoneyPrecisionError(ValidationError):
    """Monetary value is a float or carries more than 2 fractional digits."""

    code: str = "INVALID_MONEY_PRECISION"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid monetary value {value!r}: {reason}")


class InvalidPaymentMethodError(ValidationError):
    """Payment method is not one of the supported methods."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, method: object):
        self.method = method
        super().__init__(f"Unsupported payment method: {method!r}")


class InvoiceAlreadyPaidError(ValidationError):
    """Invoice has no outstanding balance left."""

    code: str = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"invoice already fully paid: {invoice_id}")


class InvoiceCancelledError(ValidationError):
    """Payments cannot be applied to a cancelled invoice."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"cannot pay cancelled invoice: {invoice_id}")


class InvoiceHasPaymentsError(ValidationError):
    """Invoices with applied payments cannot be deleted."""

    code: str = "INVOICE_HAS_PAYMENTS"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Cannot delete invoice with payments: {invoice_id}")


class InvoiceLockedError(ValidationError):
    """Paid invoices cannot be edited."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Cannot update a {status} invoice: {invoice_id}")


class InvalidStatusTransitionError(ValidationError):
    """Requested status change is not permitted for the entity."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_id: str,
        from_status: str,
        to_status: str,
        entity_type: str = "Invoice",
    ):
        self.entity_id = entity_id
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"{entity_type} {entity_id} cannot move from {from_status} to {to_status}"
        )


class InvalidStatusError(ValidationError):
    """Status value is not one of the entity's declared statuses."""

    code: str = "INVALID_STATUS"

    def __init__(self, status: object, entity_type: str = "Invoice"):
        self.status = status
        self.entity_type = entity_type
        super().__init__(f"Unknown {entity_type} status: {status!r}")


class InvalidCustomerDetailsError(ValidationError):
    """Customer name or email is malformed."""

    code: str = "INVALID_CUSTOMER_DETAILS"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {reason}")


class PaymentInvoiceMismatchError(ValidationError):
    """Payment being receipted belongs to a different invoice."""

    code: str = "PAYMENT_INVOICE_MISMATCH"

    def __init__(self, payment_id: str, payment_invoice_id: str, invoice_id: str):
        self.payment_id = payment_id
        self.payment_invoice_id = payment_invoice_id
        self.invoice_id = invoice_id
        super().__init__(
            f"Payment {payment_id} belongs to invoice {payment_invoice_id}, "
            f"not {invoice_id}"
        )


class PaymentNotCompletedError(ValidationError):
    """Receipts are only issued for completed payments."""

    code: str = "PAYMENT_NOT_COMPLETED"

    def __init__(self, payment_id: str, status: str):
        self.payment_id = payment_id
        self.status = status
        super().__init__(f"Payment {payment_id} is {status}, not completed")


# Not-found exceptions


class NotFoundError(BillingError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given id or number was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, lookup: str, by: str = "id"):
        self.lookup = lookup
        self.by = by
        super().__init__(f"Invoice with {by} {lookup} not found")


class PaymentNotFoundError(NotFoundError):
    """Payment with given id or reference was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, lookup: str, by: str = "id"):
        self.lookup = lookup
        self.by = by
        super().__init__(f"Payment with {by} {lookup} not found")


class ReceiptNotFoundError(NotFoundError):
    """Receipt with given id, number or payment was not found."""

    code: str = "RECEIPT_NOT_FOUND"

    def __init__(self, lookup: str, by: str = "id"):
        self.lookup = lookup
        self.by = by
        super().__init__(f"Receipt with {by} {lookup} not found")


# Conflict exceptions


class ConflictError(BillingError):
    """
    Uniqueness or concurrency conflict raised at the persistence boundary.

    Generated document numbers are regenerated and retried by the service;
    caller-supplied numbers surface this error unchanged.
    """

    code: str = "CONFLICT"


class DuplicateInvoiceNumberError(ConflictError):
    """Invoice number is already in use."""

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number already exists: {invoice_number}")


class DuplicateReferenceNumberError(ConflictError):
    """Payment reference number is already in use."""

    code: str = "DUPLICATE_REFERENCE_NUMBER"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"Payment reference already exists: {reference_number}")


class DuplicateReceiptNumberError(ConflictError):
    """Receipt number is already in use."""

    code: str = "DUPLICATE_RECEIPT_NUMBER"

    def __init__(self, receipt_number: str):
        self.receipt_number = receipt_number
        super().__init__(f"Receipt number already exists: {receipt_number}")


class ReceiptAlreadyExistsError(ConflictError):
    """A payment has at most one receipt."""

    code: str = "RECEIPT_ALREADY_EXISTS"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Receipt already exists for payment {payment_id}")


class OptimisticLockError(ConflictError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Configuration exceptions


class ConfigurationError(BillingError):
    """Configuration is missing, unreadable, or out of range."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
