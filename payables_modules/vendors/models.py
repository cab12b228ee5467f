"""
Vendor Domain Models (``payables_modules.vendors.models``).

Frozen value objects for the vendor registry.  No I/O.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class VendorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class Vendor:
    """A supplier that invoices are raised against.

    ``tax_identifier`` encodes the vendor's jurisdiction in its first two
    characters.  ``risk_score`` is a cached value in [0, 100], refreshed only
    by an explicit recompute.
    """

    id: UUID
    name: str
    email: str
    tax_identifier: str | None = None
    status: VendorStatus = VendorStatus.ACTIVE
    risk_score: Decimal = Decimal("0")

    @property
    def is_active(self) -> bool:
        return self.status == VendorStatus.ACTIVE
