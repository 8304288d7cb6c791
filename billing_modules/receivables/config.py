"""
Receivables Configuration Schema.

Defines the structure and defaults for receivables settings.  Values are
normally derived from the active ``BillingSettings``:

    config = ReceivablesConfig.from_settings(get_active_config())
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from billing_config.schema import BillingSettings
from billing_kernel.domain.values import (
    DEFAULT_TAX_RATE,
    MAX_PAYMENT_AMOUNT,
    round_rate,
)
from billing_kernel.exceptions import ConfigurationError
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.receivables.config")


@dataclass
class ReceivablesConfig:
    """
    Configuration schema for the receivables module.

    ``max_reference_attempts`` bounds regenerate-and-retry when a
    generated invoice, payment or receipt number collides with an
    existing one.  Caller-supplied numbers are never retried.
    """

    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    max_payment_amount: Decimal = MAX_PAYMENT_AMOUNT
    max_reference_attempts: int = 5
    list_page_limit: int = 100

    def __post_init__(self):
        if not Decimal("0") <= self.default_tax_rate <= Decimal("1"):
            raise ConfigurationError("default_tax_rate", "must be between 0 and 1")
        if self.default_tax_rate != round_rate(self.default_tax_rate):
            raise ConfigurationError("default_tax_rate", "at most 4 decimal places")
        if self.max_payment_amount <= 0:
            raise ConfigurationError("max_payment_amount", "must be positive")
        if self.max_reference_attempts < 1:
            raise ConfigurationError("max_reference_attempts", "must be at least 1")
        if self.list_page_limit < 1:
            raise ConfigurationError("list_page_limit", "must be at least 1")
        logger.debug(
            "receivables_config_initialized",
            extra={
                "default_tax_rate": str(self.default_tax_rate),
                "max_payment_amount": str(self.max_payment_amount),
                "max_reference_attempts": self.max_reference_attempts,
                "list_page_limit": self.list_page_limit,
            },
        )

    @classmethod
    def from_settings(cls, settings: BillingSettings) -> Self:
        """Derive module configuration from the active billing settings."""
        return cls(
            default_tax_rate=settings.default_tax_rate,
            max_payment_amount=settings.max_payment_amount,
            max_reference_attempts=settings.max_reference_attempts,
            list_page_limit=settings.list_page_limit,
        )
