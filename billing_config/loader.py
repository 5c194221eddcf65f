"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into a ``BillingConfig``.  Runtime callers
go through ``billing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Top-level document that is not a mapping, unknown keys or invalid
  values  -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig
from billing_kernel.exceptions import ConfigurationError
from billing_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_SECTION = "billing"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_config(data: dict[str, Any]) -> BillingConfig:
    """
    Build a ``BillingConfig`` from parsed YAML.

    The settings may sit at the top level or under a ``billing:`` key.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", "configuration must be a mapping")
    section = data.get(_SECTION, data)
    if not isinstance(section, dict):
        raise ConfigurationError(_SECTION, "section must be a mapping")
    return BillingConfig.from_dict(dict(section))


def load_config(path: Path | str) -> BillingConfig:
    """Load and validate a billing configuration file."""
    path = Path(path)
    config = parse_config(load_yaml_file(path))
    logger.info("billing_config_loaded", extra={"path": str(path)})
    return config
