"""
billing_config.loader -- YAML parsing helpers.

Responsibility:
    Read a configuration YAML file and convert its raw values into a
    ``BillingSettings``.  Monetary and rate values must be written as
    quoted strings or integers in YAML; floats are rejected so that no
    binary floating point value ever reaches a calculation.

Failure modes:
    - ConfigurationError on unreadable files, invalid YAML, unknown or
      mistyped values.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingSettings
from billing_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    Raises:
        ConfigurationError: if the file is missing, is not valid YAML, or
            its top level is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(str(path), "configuration file not found") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(str(path), f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a quoted decimal string (or int) from YAML."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigurationError(key, "write decimal values as quoted strings")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(key, f"not a decimal: {value!r}") from e


def parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"must be an integer, got {value!r}")
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(name, "must be a mapping")
    return section


def build_settings(raw: dict[str, Any]) -> BillingSettings:
    """Convert a parsed YAML document into ``BillingSettings``."""
    defaults = BillingSettings()
    database = _section(raw, "database")
    billing = _section(raw, "billing")
    logging_section = _section(raw, "logging")

    return BillingSettings(
        database_url=str(database.get("url", defaults.database_url)),
        database_echo=bool(database.get("echo", defaults.database_echo)),
        currency=str(billing.get("currency", defaults.currency)).upper(),
        default_tax_rate=parse_decimal(
            billing.get("default_tax_rate", defaults.default_tax_rate),
            "billing.default_tax_rate",
        ),
        max_payment_amount=parse_decimal(
            billing.get("max_payment_amount", defaults.max_payment_amount),
            "billing.max_payment_amount",
        ),
        max_reference_attempts=parse_int(
            billing.get("max_reference_attempts", defaults.max_reference_attempts),
            "billing.max_reference_attempts",
        ),
        list_page_limit=parse_int(
            billing.get("list_page_limit", defaults.list_page_limit),
            "billing.list_page_limit",
        ),
        log_level=str(logging_section.get("level", defaults.log_level)).upper(),
    )
