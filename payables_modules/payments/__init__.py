"""
Payments Module.

The settlement ledger: records and deletes payments against approved
invoices and keeps the invoice's settlement status in step with the sum.
"""

from payables_modules.payments.models import Payment, PaymentMethod
from payables_modules.payments.service import PaymentService

__all__ = ["Payment", "PaymentMethod", "PaymentService"]
