"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides ``get_active_config()``, which returns a validated
    ``BillingConfig``.  Without an explicit path the packaged
    ``defaults.yaml`` is used.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and below
    ``billing_modules``.  The kernel and the engines never import from
    this package; services translate config values into engine arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ConfigurationError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import load_config, load_yaml_file, parse_config
from billing_config.schema import BillingConfig

_logger = logging.getLogger("billing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """
    Load the billing configuration.

    Args:
        path: YAML file to load.  Defaults to the packaged defaults.yaml.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)
    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_path": str(config_path),
            "default_currency": config.default_currency,
            "invoice_number_prefix": config.invoice_number_prefix,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
