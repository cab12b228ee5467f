"""
Payment Domain Models (``payables_modules.payments.models``).

Frozen value objects for the settlement ledger.  No I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CASH = "cash"
    CARD = "card"
    UPI = "upi"


@dataclass(frozen=True)
class Payment:
    """
    One payment against an invoice.

    Payments are never edited.  Deleting one is a compensating action that
    re-derives the invoice's settlement status from the remaining sum.
    """

    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: datetime
    method: PaymentMethod | None = None
    reference: str | None = None
    notes: str | None = None
    created_by: str = ""
