"""
Billing Configuration Schema.

Defines the structure and defaults for billing behaviour that varies per
deployment.  Values are loaded from YAML at runtime through
``billing_config.get_active_config()``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Self

from billing_kernel.domain.invoice import InvoiceStatus
from billing_kernel.domain.values import normalize_currency
from billing_kernel.exceptions import ConfigurationError
from billing_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_STATUS_FIELDS = (
    "preserve_status_on_partial_payment",
    "non_deletable_statuses",
    "non_editable_statuses",
)


def _parse_statuses(field_name: str, values: Any) -> tuple[InvoiceStatus, ...]:
    if isinstance(values, (str, InvoiceStatus)):
        values = (values,)
    try:
        return tuple(
            v if isinstance(v, InvoiceStatus) else InvoiceStatus(str(v).upper())
            for v in values
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(field_name, f"unknown invoice status in {values!r}") from exc


@dataclass(frozen=True)
class BillingConfig:
    """
    Configuration schema for invoicing, payments and time billing.

    Override at instantiation with deployment-specific values:

        config = BillingConfig(
            default_currency="EUR",
            invoice_number_prefix="BILL",
        )
    """

    # Invoices
    default_currency: str = "USD"
    invoice_number_prefix: str = "INV"
    non_deletable_statuses: tuple[InvoiceStatus, ...] = (
        InvoiceStatus.SENT,
        InvoiceStatus.PAID,
    )
    non_editable_statuses: tuple[InvoiceStatus, ...] = (InvoiceStatus.PAID,)

    # Payments
    preserve_status_on_partial_payment: tuple[InvoiceStatus, ...] = (
        InvoiceStatus.SENT,
        InvoiceStatus.VIEWED,
    )
    settlement_payment_method: str = "manual"

    # Display
    money_places: int = 2

    def __post_init__(self):
        try:
            object.__setattr__(
                self, "default_currency", normalize_currency(self.default_currency)
            )
        except ValueError as exc:
            raise ConfigurationError("default_currency", str(exc)) from exc

        prefix = (self.invoice_number_prefix or "").strip()
        if not prefix or not prefix.replace("_", "").isalnum():
            raise ConfigurationError(
                "invoice_number_prefix", "must be a non-empty alphanumeric string"
            )
        object.__setattr__(self, "invoice_number_prefix", prefix)

        for name in _STATUS_FIELDS:
            object.__setattr__(self, name, _parse_statuses(name, getattr(self, name)))

        if not self.settlement_payment_method or not self.settlement_payment_method.strip():
            raise ConfigurationError("settlement_payment_method", "cannot be empty")

        if not isinstance(self.money_places, int) or not 0 <= self.money_places <= 9:
            raise ConfigurationError("money_places", "must be an integer between 0 and 9")

        logger.info(
            "billing_config_initialized",
            extra={
                "default_currency": self.default_currency,
                "invoice_number_prefix": self.invoice_number_prefix,
                "preserve_status_on_partial_payment": [
                    s.value for s in self.preserve_status_on_partial_payment
                ],
                "non_deletable_statuses": [s.value for s in self.non_deletable_statuses],
                "non_editable_statuses": [s.value for s in self.non_editable_statuses],
                "money_places": self.money_places,
            },
        )

    @property
    def money_quantum(self) -> Decimal:
        """Quantization exponent for display rounding, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.money_places)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("billing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., loaded from YAML)."""
        logger.info(
            "billing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                ", ".join(sorted(unknown)), "unknown configuration key"
            )
        return cls(**data)
