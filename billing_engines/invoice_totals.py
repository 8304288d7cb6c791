"""
Module: billing_engines.invoice_totals
Responsibility:
    Turn a list of line-item inputs into invoice subtotal, tax and total
    figures, and produce the per-line figures that are persisted with the
    invoice.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain and billing_kernel/exceptions.

Invariants enforced:
    - Rounding order: line totals and tax amounts are accumulated exactly,
      then ``subtotal`` and ``total_tax`` are each rounded half-up to cents,
      and ``total_amount = round_money(subtotal + total_tax)`` is computed
      from the ROUNDED components.
    - Per-line persisted figures: ``line_total = round_money(q * p)`` and
      ``tax_amount = round_money(line_total * rate)``.
    - Decimal-only arithmetic: floats are rejected.

Failure modes:
    - EmptyInvoiceError when no items are supplied.
    - InvalidTaxRateError when the default or an item tax rate is outside
      [0, 1].
    - InvalidLineItemError when a quantity is not positive or above
      MAX_QUANTITY, a unit price is negative or above MAX_INVOICE_AMOUNT, or
      a description is blank.
    - AmountExceedsMaximumError when the invoice total is above
      MAX_INVOICE_AMOUNT.
    - InvalidMoneyPrecisionError on floats or excess fractional digits.

Usage:
    from billing_engines.invoice_totals import LineItemInput, compute_totals

    totals = compute_totals([
        LineItemInput("Consulting", Decimal("1"), Decimal("500.00")),
        LineItemInput("Widgets", Decimal("2"), Decimal("25.50")),
    ])
    totals.total_amount  # Decimal("589.57")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from billing_engines.tracer import traced_engine
from billing_kernel.domain.references import INVOICE_PREFIX, ReferenceGenerator
from billing_kernel.domain.values import (
    DEFAULT_TAX_RATE,
    MAX_INVOICE_AMOUNT,
    MAX_QUANTITY,
    ZERO,
    has_money_precision,
    round_money,
    round_rate,
    to_decimal,
)
from billing_kernel.exceptions import (
    AmountExceedsMaximumError,
    EmptyInvoiceError,
    InvalidLineItemError,
    InvalidMoneyPrecisionError,
    InvalidTaxRateError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_totals")

MAX_DESCRIPTION_LENGTH = 500

_ONE = Decimal("1")


@dataclass(frozen=True)
class LineItemInput:
    """
    Caller-supplied line item.  Transient; never persisted directly.

    ``tax_rate`` of None means "use the invoice default rate".
    """

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal | None = None


@dataclass(frozen=True)
class LineItemFigures:
    """Rounded per-line figures as persisted on InvoiceLineItem."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal

    @property
    def item_total(self) -> Decimal:
        return self.line_total + self.tax_amount


@dataclass(frozen=True)
class InvoiceTotals:
    """
    Invoice-level totals.

    Guarantees:
        - ``total_amount == round_money(subtotal + total_tax)``.
        - ``lines`` holds the per-line figures in input order.
    """

    subtotal: Decimal
    total_tax: Decimal
    total_amount: Decimal
    lines: tuple[LineItemFigures, ...] = ()


def _validate_tax_rate(value: Decimal | int | str) -> Decimal:
    rate = to_decimal(value)
    if rate < ZERO or rate > _ONE:
        raise InvalidTaxRateError(rate)
    if rate != round_rate(rate):
        raise InvalidMoneyPrecisionError(
            value, "tax rate cannot have more than 4 decimal places"
        )
    return rate


def _validate_item(
    item: LineItemInput,
    default_rate: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """Return (quantity, unit_price, effective_rate) or raise."""
    description = item.description
    if not description or not description.strip():
        raise InvalidLineItemError(
            description, "description", description, "must not be blank"
        )
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidLineItemError(
            description[:40],
            "description",
            len(description),
            f"must be at most {MAX_DESCRIPTION_LENGTH} characters",
        )

    quantity = to_decimal(item.quantity)
    if quantity <= ZERO:
        raise InvalidLineItemError(description, "quantity", quantity, "must be positive")
    if quantity > MAX_QUANTITY:
        raise InvalidLineItemError(
            description, "quantity", quantity, f"cannot exceed {MAX_QUANTITY}"
        )
    if not has_money_precision(quantity):
        raise InvalidLineItemError(
            description, "quantity", quantity, "cannot have more than 2 decimal places"
        )

    unit_price = to_decimal(item.unit_price)
    if unit_price < ZERO:
        raise InvalidLineItemError(
            description, "unit_price", unit_price, "cannot be negative"
        )
    if unit_price > MAX_INVOICE_AMOUNT:
        raise InvalidLineItemError(
            description, "unit_price", unit_price, f"cannot exceed {MAX_INVOICE_AMOUNT}"
        )
    if not has_money_precision(unit_price):
        raise InvalidLineItemError(
            description, "unit_price", unit_price, "cannot have more than 2 decimal places"
        )

    rate = default_rate if item.tax_rate is None else _validate_tax_rate(item.tax_rate)
    return quantity, unit_price, rate


def _figures(
    description: str,
    quantity: Decimal,
    unit_price: Decimal,
    rate: Decimal,
) -> LineItemFigures:
    line_total = round_money(quantity * unit_price)
    return LineItemFigures(
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        line_total=line_total,
        tax_rate=round_rate(rate),
        tax_amount=round_money(line_total * rate),
    )


@traced_engine(
    "invoice_totals", "1.0", fingerprint_fields=("items", "default_tax_rate")
)
def compute_totals(
    items: Sequence[LineItemInput],
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> InvoiceTotals:
    """
    Compute subtotal, total tax and total amount for a list of items.

    Preconditions:
        - ``items`` is non-empty.
        - ``default_tax_rate`` is within [0, 1].
    Postconditions:
        - Sums are exact until the final rounding step; see module docstring.
    Raises:
        EmptyInvoiceError, InvalidTaxRateError, InvalidLineItemError,
        InvalidMoneyPrecisionError, AmountExceedsMaximumError.
    """
    if not items:
        raise EmptyInvoiceError()
    default_rate = _validate_tax_rate(default_tax_rate)

    subtotal = ZERO
    total_tax = ZERO
    lines: list[LineItemFigures] = []
    for item in items:
        quantity, unit_price, rate = _validate_item(item, default_rate)
        line_total = quantity * unit_price
        subtotal += line_total
        total_tax += line_total * rate
        lines.append(_figures(item.description, quantity, unit_price, rate))

    rounded_subtotal = round_money(subtotal)
    rounded_tax = round_money(total_tax)
    totals = InvoiceTotals(
        subtotal=rounded_subtotal,
        total_tax=rounded_tax,
        total_amount=round_money(rounded_subtotal + rounded_tax),
        lines=tuple(lines),
    )
    if totals.total_amount > MAX_INVOICE_AMOUNT:
        raise AmountExceedsMaximumError(totals.total_amount, MAX_INVOICE_AMOUNT)

    logger.info(
        "invoice_totals_computed",
        extra={
            "item_count": len(lines),
            "subtotal": str(totals.subtotal),
            "total_tax": str(totals.total_tax),
            "total_amount": str(totals.total_amount),
        },
    )
    return totals


def compute_line_figures(
    item: LineItemInput,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> LineItemFigures:
    """Validate one item and return its rounded, persistable figures."""
    default_rate = _validate_tax_rate(default_tax_rate)
    quantity, unit_price, rate = _validate_item(item, default_rate)
    return _figures(item.description, quantity, unit_price, rate)


def generate_invoice_number(generator: ReferenceGenerator, now: datetime) -> str:
    """``INV-{YYYYMMDD}-{NNNN}``.  Uniqueness is enforced at persistence."""
    return generator.generate(INVOICE_PREFIX, now)
