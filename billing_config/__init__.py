"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and below
    ``billing_modules`` / ``scripts``.  The kernel MUST NEVER import from
    ``billing_config``.

Failure modes:
    - ``ConfigurationError`` -- missing file, invalid YAML, or a value
      outside its allowed range.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry naming the source file and the
    effective tax rate and limits.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from billing_config.loader import build_settings, load_yaml_file
from billing_config.schema import BillingSettings

_logger = logging.getLogger("billing_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

DATABASE_URL_ENV = "BILLING_DATABASE_URL"

__all__ = ["BillingSettings", "get_active_config", "DATABASE_URL_ENV"]


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BillingSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            billing_config/sets/default.yaml.
        environ: Environment mapping consulted for overrides.  Defaults to
            ``os.environ``.

    Returns:
        Frozen ``BillingSettings``.  ``BILLING_DATABASE_URL``, when set,
        replaces the database URL from the file.

    Raises:
        ConfigurationError: If the file cannot be loaded or a value is
            out of range.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    settings = build_settings(load_yaml_file(path))
    database_url = env.get(DATABASE_URL_ENV)
    if database_url:
        settings = replace(settings, database_url=database_url)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_path": str(path),
            "database_url_from_env": bool(database_url),
            "currency": settings.currency,
            "default_tax_rate": str(settings.default_tax_rate),
            "max_payment_amount": str(settings.max_payment_amount),
            "max_reference_attempts": settings.max_reference_attempts,
        },
    )
    return settings
