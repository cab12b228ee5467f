"""
Typed Exception Hierarchy for the Payables Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch jobs, tests) must be able to react to a
failure without parsing its message.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        payments.create_payment(invoice_id, amount, actor=actor)
    except PaymentExceedsBalanceError as e:
        api_response(code=e.code, remaining=str(e.remaining))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayablesError (base)
    |
    +-- NotFoundError
    |   +-- VendorNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ApprovalRuleNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidAmountRangeError
    |   +-- OverlappingRuleRangeError
    |   +-- InvalidApprovalLevelsError
    |   +-- EmptyLineItemsError
    |   +-- InvalidLineItemError
    |   +-- InvalidDueDateError
    |   +-- ApprovalLevelMismatchError
    |   +-- InvalidPaymentAmountError
    |   +-- PaymentExceedsBalanceError
    |   +-- InvoiceNotEditableError
    |
    +-- PermissionDeniedError
    |   +-- InvoiceEditNotPermittedError
    |   +-- AccessDeniedError
    |
    +-- ConflictError
    |   +-- DuplicateApprovalError
    |   +-- DuplicateVendorError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

Messages identify the violated rule (remaining balance, expected vs.
received approval level) and never leak internal state.
"""

from decimal import Decimal


class PayablesError(Exception):
    """
    Base exception for all payables errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYABLES_ERROR"


# Not-found exceptions


class NotFoundError(PayablesError):
    """Base exception for references to records that do not exist."""

    code: str = "NOT_FOUND"


class VendorNotFoundError(NotFoundError):
    """Vendor with given ID was not found."""

    code: str = "VENDOR_NOT_FOUND"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor not found: {vendor_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class ApprovalRuleNotFoundError(NotFoundError):
    """Approval rule with given ID was not found."""

    code: str = "APPROVAL_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Approval rule not found: {rule_id}")


# Validation exceptions


class ValidationError(PayablesError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountRangeError(ValidationError):
    """Approval rule range has min >= max."""

    code: str = "INVALID_AMOUNT_RANGE"

    def __init__(self, min_amount: Decimal, max_amount: Decimal):
        self.min_amount = min_amount
        self.max_amount = max_amount
        super().__init__("Minimum amount must be less than maximum amount")


class OverlappingRuleRangeError(ValidationError):
    """Approval rule range overlaps the range of an existing rule."""

    code: str = "OVERLAPPING_RULE_RANGE"

    def __init__(
        self,
        existing_rule_id: str,
        existing_min: Decimal,
        existing_max: Decimal,
    ):
        self.existing_rule_id = existing_rule_id
        self.existing_min = existing_min
        self.existing_max = existing_max
        super().__init__(
            f"Amount range overlaps with existing rule (ID: {existing_rule_id}, "
            f"Range: {existing_min} - {existing_max})"
        )


class InvalidApprovalLevelsError(ValidationError):
    """Required approval level count is outside the allowed bounds."""

    code: str = "INVALID_APPROVAL_LEVELS"

    def __init__(self, approval_levels: int, max_levels: int):
        self.approval_levels = approval_levels
        self.max_levels = max_levels
        super().__init__(
            f"Approval levels must be between 1 and {max_levels}, got {approval_levels}"
        )


class EmptyLineItemsError(ValidationError):
    """An invoice was submitted without line items."""

    code: str = "EMPTY_LINE_ITEMS"

    def __init__(self):
        super().__init__("Invoice must have at least one line item")


class InvalidLineItemError(ValidationError):
    """A line item has a non-positive quantity or unit price."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, position: int, reason: str):
        self.position = position
        self.reason = reason
        super().__init__(f"Invalid line item at position {position}: {reason}")


class InvalidDueDateError(ValidationError):
    """Due date precedes the invoice date."""

    code: str = "INVALID_DUE_DATE"

    def __init__(self, invoice_date: str, due_date: str):
        self.invoice_date = invoice_date
        self.due_date = due_date
        super().__init__(
            f"Due date {due_date} cannot be before invoice date {invoice_date}"
        )


class ApprovalLevelMismatchError(ValidationError):
    """Approval submitted for a level other than current + 1."""

    code: str = "APPROVAL_LEVEL_MISMATCH"

    def __init__(self, invoice_id: str, expected_level: int, received_level: int):
        self.invoice_id = invoice_id
        self.expected_level = expected_level
        self.received_level = received_level
        super().__init__(
            f"Invalid approval level. Expected level {expected_level} "
            f"but received {received_level}"
        )


class InvalidPaymentAmountError(ValidationError):
    """Payment amount is zero or negative."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Payment amount must be positive, got {amount}")


class PaymentExceedsBalanceError(ValidationError):
    """Payment would take cumulative payments above the invoice total."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, invoice_id: str, amount: Decimal, remaining: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Payment amount exceeds remaining invoice amount. Remaining: {remaining}"
        )


class InvoiceNotEditableError(ValidationError):
    """Invoice is committed to settlement and can no longer be edited."""

    code: str = "INVOICE_NOT_EDITABLE"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Cannot edit invoice with status: {status}")


# Permission exceptions


class PermissionDeniedError(PayablesError):
    """Base exception for actions the actor's roles do not allow."""

    code: str = "PERMISSION_DENIED"


class InvoiceEditNotPermittedError(PermissionDeniedError):
    """Only administrators may edit invoices."""

    code: str = "INVOICE_EDIT_NOT_PERMITTED"

    def __init__(self, actor: str):
        self.actor = actor
        super().__init__("Only administrators can edit invoices")


class AccessDeniedError(PermissionDeniedError):
    """Actor's role cannot read the requested record."""

    code: str = "ACCESS_DENIED"

    def __init__(self, actor: str, reason: str):
        self.actor = actor
        self.reason = reason
        super().__init__(f"Access denied: {reason}")


# Conflict exceptions


class ConflictError(PayablesError):
    """Base exception for requests that collide with existing state."""

    code: str = "CONFLICT"


class DuplicateApprovalError(ConflictError):
    """Approver or level already has an approval recorded on the invoice."""

    code: str = "DUPLICATE_APPROVAL"

    def __init__(self, invoice_id: str, approver: str, level: int, reason: str):
        self.invoice_id = invoice_id
        self.approver = approver
        self.level = level
        self.reason = reason
        super().__init__(f"Duplicate approval on invoice {invoice_id}: {reason}")


class DuplicateVendorError(ConflictError):
    """Vendor email or tax identifier is already registered."""

    code: str = "DUPLICATE_VENDOR"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Vendor with {field} already exists: {value}")


# Concurrency exceptions


class ConcurrencyError(PayablesError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(PayablesError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    AuditEvent and InvoiceApproval rows are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
