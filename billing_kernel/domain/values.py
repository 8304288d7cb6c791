"""
Values -- Decimal-only monetary primitives.

Responsibility:
    Centralizes precision, rounding, and conversion rules for every monetary
    amount, quantity, and tax rate in the billing core.  The system is
    single-currency, so amounts are plain ``Decimal`` values paired with the
    precision constants defined here.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines, models, and services.

Invariants enforced:
    - No floats: ``to_decimal`` rejects ``float`` (and ``bool``) outright so
      binary floating point never enters a calculation.
    - ``round_money`` is the ONLY sanctioned rounding function for monetary
      values; it rounds half-up on the cent boundary.
    - Tax rates carry at most 4 fractional digits (``round_rate``).

Failure modes:
    - InvalidMoneyPrecisionError on floats, non-numeric strings, NaN/Infinity,
      amounts with more than 2 fractional digits where exact cents are
      required, or values too large to quantize to the cent.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billing_kernel.exceptions import InvalidMoneyPrecisionError

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")

DEFAULT_TAX_RATE = Decimal("0.07")
MAX_PAYMENT_AMOUNT = Decimal("999999999.99")
MAX_INVOICE_AMOUNT = Decimal("999999999.99")
# Largest quantity the Numeric(10, 2) quantity column holds
MAX_QUANTITY = Decimal("99999999.99")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert a caller-supplied number to ``Decimal``.

    Preconditions: value is a Decimal, int, or numeric string.
    Postconditions: Returns a finite Decimal (unrounded).

    Raises:
        InvalidMoneyPrecisionError: value is a float, a bool, not numeric,
            or not finite.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidMoneyPrecisionError(value, "floats are not accepted")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidMoneyPrecisionError(value, "not a number") from e
    if not result.is_finite():
        raise InvalidMoneyPrecisionError(value, "must be finite")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value half-up to cents.

    This is the ONLY sanctioned rounding function for monetary values.
    All other code delegates rounding here so that every total, tax amount
    and allocation rounds the same way.

    >>> round_money(Decimal("38.565"))
    Decimal('38.57')
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    try:
        return value.quantize(Decimal(quantize_str), rounding=rounding)
    except InvalidOperation as e:
        raise InvalidMoneyPrecisionError(value, "too many digits to round") from e


def round_rate(value: Decimal) -> Decimal:
    """Quantize a tax rate to 4 fractional digits (e.g. 0.0700)."""
    return value.quantize(RATE_QUANTUM, rounding=DEFAULT_ROUNDING)


def has_money_precision(value: Decimal) -> bool:
    """True if value has no significant digits beyond the cent."""
    try:
        return value == value.quantize(CENT, rounding=DEFAULT_ROUNDING)
    except InvalidOperation as e:
        raise InvalidMoneyPrecisionError(value, "too many digits") from e


def require_money_precision(value: Decimal | int | str) -> Decimal:
    """
    Convert and check that a monetary amount is exact to the cent.

    Returns the amount quantized to 2 decimal places (trailing zeros are
    normalized, e.g. ``"300"`` -> ``Decimal("300.00")``).

    Raises:
        InvalidMoneyPrecisionError: on floats, non-numeric input, or more
            than 2 significant fractional digits.
    """
    amount = to_decimal(value)
    if not has_money_precision(amount):
        raise InvalidMoneyPrecisionError(
            value, "cannot have more than 2 decimal places"
        )
    return amount.quantize(CENT)
