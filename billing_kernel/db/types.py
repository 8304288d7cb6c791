"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases for billing column types.  Centralizes
    column precision so that every model stores money, rates, and quantities
    identically.
Architecture position: Kernel > DB.  Imported by module ORM files.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.orm import mapped_column

# Monetary amount: exact cents, up to 9,999,999,999,999.99
MoneyAmount = Annotated[Decimal, mapped_column(Numeric(15, 2))]

# Tax rate fraction, 4 fractional digits (e.g. 0.0700)
TaxRate = Annotated[Decimal, mapped_column(Numeric(5, 4))]

# Line item quantity
Quantity = Annotated[Decimal, mapped_column(Numeric(10, 2))]

# Human-readable document numbers (INV-/PAY-/RCP-) and caller references
DocumentNumber = Annotated[str, mapped_column(String(100))]

# Short enum-valued strings
ShortCode = Annotated[str, mapped_column(String(50))]


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime loaded from the database to timezone-aware UTC.

    Backends without native timezone support (SQLite) hand back naive
    datetimes that were written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
