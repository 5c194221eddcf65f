"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers catch by type and read structured attributes instead of parsing
messages.  Every exception carries a machine-readable ``code`` class
attribute and stores its context as attributes.

    try:
        service.record_payment(principal, invoice_id, amount=Decimal("200"))
    except OverpaymentError as e:
        api_response(code=e.code, amount_due=e.amount_due)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- DuplicateInvoiceNumberError
    |   +-- InvoiceNotEditableError
    |   +-- InvoiceNotDeletableError
    |   +-- NothingToSettleError
    |
    +-- PaymentError
    |   +-- OverpaymentError
    |   +-- PaymentNotFoundError
    |   +-- DuplicatePaymentError
    |   +-- PaidInvoicePaymentError
    |
    +-- TimeEntryError
    |   +-- TimeEntryNotFoundError
    |   +-- EntryOwnershipError
    |
    +-- ProjectError
    |   +-- ProjectNotFoundError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|---------------------------------------
Invoice     | INVOICE_NOT_FOUND         | Unknown id, or not owned by caller
            | DUPLICATE_INVOICE_NUMBER  | Invoice number already in use
            | INVOICE_NOT_EDITABLE      | Editing a PAID invoice
            | INVOICE_NOT_DELETABLE     | Deleting a SENT or PAID invoice
            | NOTHING_TO_SETTLE         | Marking a zero-total, unpaid invoice PAID
------------|---------------------------|---------------------------------------
Payment     | OVERPAYMENT               | Completed amount exceeds amount due
            | PAYMENT_NOT_FOUND         | Payment id not on the invoice
            | DUPLICATE_PAYMENT         | Payment id already applied
            | PAID_INVOICE_PAYMENT      | Removing completed payment of PAID invoice
------------|---------------------------|---------------------------------------
Time entry  | TIME_ENTRY_NOT_FOUND      | Unknown time entry id
            | TIME_ENTRY_OWNERSHIP      | Entry belongs to another user
------------|---------------------------|---------------------------------------
Project     | PROJECT_NOT_FOUND         | Unknown id, or not owned by caller
------------|---------------------------|---------------------------------------
Config      | CONFIGURATION_ERROR       | Invalid billing configuration

Tax arithmetic failures are NOT represented here: the amount calculator
recovers them locally by treating the tax amount as zero.
"""

from decimal import Decimal


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Invoice-related exceptions


class InvoiceError(BillingKernelError):
    """Base exception for invoice errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice does not exist or is not visible to the caller."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = str(invoice_id)
        super().__init__(f"Invoice not found with id: {invoice_id}")


class DuplicateInvoiceNumberError(InvoiceError):
    """Invoice number is already taken."""

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number already exists: {invoice_number}")


class InvoiceNotEditableError(InvoiceError):
    """Invoice is in a status that forbids edits."""

    code: str = "INVOICE_NOT_EDITABLE"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        super().__init__(f"Cannot update invoice {invoice_id} in status {status}")


class InvoiceNotDeletableError(InvoiceError):
    """Invoice is in a status that forbids deletion."""

    code: str = "INVOICE_NOT_DELETABLE"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        super().__init__(f"Cannot delete invoice {invoice_id} in status {status}")


class NothingToSettleError(InvoiceError):
    """Invoice has no balance and no completed payment, so it cannot be PAID."""

    code: str = "NOTHING_TO_SETTLE"

    def __init__(self, invoice_id: str):
        self.invoice_id = str(invoice_id)
        super().__init__(f"Invoice {invoice_id} has nothing to settle")


# Payment-related exceptions


class PaymentError(BillingKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Completed payment amount exceeds the invoice's amount due."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: Decimal, amount_due: Decimal):
        self.invoice_id = str(invoice_id)
        self.amount = str(amount)
        self.amount_due = str(amount_due)
        super().__init__(
            f"Payment amount {amount} exceeds the remaining amount due "
            f"{amount_due} on invoice {invoice_id}"
        )


class PaymentNotFoundError(PaymentError):
    """Payment does not exist (on the given invoice)."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str, invoice_id: str | None = None):
        self.payment_id = str(payment_id)
        self.invoice_id = str(invoice_id) if invoice_id is not None else None
        super().__init__(f"Payment not found with id: {payment_id}")


class DuplicatePaymentError(PaymentError):
    """Payment id is already applied to the invoice."""

    code: str = "DUPLICATE_PAYMENT"

    def __init__(self, payment_id: str, invoice_id: str):
        self.payment_id = str(payment_id)
        self.invoice_id = str(invoice_id)
        super().__init__(
            f"Payment {payment_id} is already applied to invoice {invoice_id}"
        )


class PaidInvoicePaymentError(PaymentError):
    """Completed payment cannot be removed while the invoice is PAID."""

    code: str = "PAID_INVOICE_PAYMENT"

    def __init__(self, payment_id: str, invoice_id: str):
        self.payment_id = str(payment_id)
        self.invoice_id = str(invoice_id)
        super().__init__(
            "Cannot delete a completed payment for a paid invoice. "
            "Mark the invoice as unpaid first."
        )


# Time entry exceptions


class TimeEntryError(BillingKernelError):
    """Base exception for time entry errors."""

    code: str = "TIME_ENTRY_ERROR"


class TimeEntryNotFoundError(TimeEntryError):
    """Time entry does not exist."""

    code: str = "TIME_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = str(entry_id)
        super().__init__(f"Time entry not found with id: {entry_id}")


class EntryOwnershipError(TimeEntryError):
    """Time entry belongs to a different user."""

    code: str = "TIME_ENTRY_OWNERSHIP"

    def __init__(self, entry_id: str, user_id: str):
        self.entry_id = str(entry_id)
        self.user_id = str(user_id)
        super().__init__(
            f"You do not have permission to update time entry with id: {entry_id}"
        )


# Project exceptions


class ProjectError(BillingKernelError):
    """Base exception for project errors."""

    code: str = "PROJECT_ERROR"


class ProjectNotFoundError(ProjectError):
    """Project does not exist or is not visible to the caller."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = str(project_id)
        super().__init__(f"Project not found with id: {project_id}")


# Configuration


class ConfigurationError(BillingKernelError):
    """Billing configuration is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for {field}: {reason}")
