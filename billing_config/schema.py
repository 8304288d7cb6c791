"""
billing_config.schema -- Frozen runtime settings.

Responsibility:
    Defines ``BillingSettings``, the immutable result of configuration
    loading.  Every other layer receives these values; none reads YAML or
    the environment itself.

Invariants enforced:
    - ``default_tax_rate`` in [0, 1] with at most 4 fractional digits.
    - ``max_payment_amount`` positive with at most 2 fractional digits.
    - ``max_reference_attempts`` and ``list_page_limit`` are positive.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.values import (
    DEFAULT_TAX_RATE,
    MAX_PAYMENT_AMOUNT,
    has_money_precision,
    round_rate,
)
from billing_kernel.exceptions import ConfigurationError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class BillingSettings:
    """Runtime settings for the billing backend."""

    database_url: str = "sqlite:///billing.db"
    database_echo: bool = False
    currency: str = "USD"
    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    max_payment_amount: Decimal = MAX_PAYMENT_AMOUNT
    max_reference_attempts: int = 5
    list_page_limit: int = 100
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ConfigurationError("database.url", "must not be empty")
        if not self.currency or len(self.currency) != 3:
            raise ConfigurationError("billing.currency", "must be a 3-letter code")
        if not Decimal("0") <= self.default_tax_rate <= Decimal("1"):
            raise ConfigurationError(
                "billing.default_tax_rate", "must be between 0 and 1"
            )
        if self.default_tax_rate != round_rate(self.default_tax_rate):
            raise ConfigurationError(
                "billing.default_tax_rate", "at most 4 decimal places"
            )
        if self.max_payment_amount <= 0 or not has_money_precision(
            self.max_payment_amount
        ):
            raise ConfigurationError(
                "billing.max_payment_amount",
                "must be positive with at most 2 decimal places",
            )
        if self.max_reference_attempts < 1:
            raise ConfigurationError(
                "billing.max_reference_attempts", "must be at least 1"
            )
        if self.list_page_limit < 1:
            raise ConfigurationError("billing.list_page_limit", "must be at least 1")
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(
                "logging.level", f"must be one of {sorted(_LOG_LEVELS)}"
            )
