"""Invoicing module - invoices, line items and payments."""

from billing_modules.invoicing.repository import (
    InMemoryInvoiceRepository,
    InvoiceRepository,
    SqlAlchemyInvoiceRepository,
)
from billing_modules.invoicing.service import InvoiceService

__all__ = [
    "InMemoryInvoiceRepository",
    "InvoiceRepository",
    "InvoiceService",
    "SqlAlchemyInvoiceRepository",
]
