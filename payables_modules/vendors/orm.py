"""
Vendor ORM Models (``payables_modules.vendors.orm``).

Responsibility
--------------
SQLAlchemy persistence for the vendor registry.  Maps the frozen
``Vendor`` dataclass to the ``vendors`` table.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``payables_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``payables_kernel``.
"""

from decimal import Decimal

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payables_kernel.db.base import TrackedBase


class VendorModel(TrackedBase):
    """
    ORM model for vendors.

    Guarantees:
        - email is unique (uq_vendors_email).
        - tax_identifier is unique when present (uq_vendors_tax_identifier;
          NULLs do not collide).
        - status stored as string enum value.
        - risk_score defaults to 0.
    """

    __tablename__ = "vendors"

    __table_args__ = (
        UniqueConstraint("email", name="uq_vendors_email"),
        UniqueConstraint("tax_identifier", name="uq_vendors_tax_identifier"),
        Index("idx_vendors_status", "status"),
        Index("idx_vendors_risk_score", "risk_score"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_identifier: Mapped[str | None] = mapped_column(String(15), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    risk_score: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from payables_modules.vendors.models import Vendor, VendorStatus

        return Vendor(
            id=self.id,
            name=self.name,
            email=self.email,
            tax_identifier=self.tax_identifier,
            status=VendorStatus(self.status),
            risk_score=self.risk_score if self.risk_score is not None else Decimal("0"),
        )

    def __repr__(self) -> str:
        return f"<VendorModel {self.name} <{self.email}>>"
