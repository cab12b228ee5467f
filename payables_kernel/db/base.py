"""
Declarative base for the payables tables.

Every table gets a UUID primary key stored as a 36-character string, which
keeps PostgreSQL and SQLite schemas identical.  Money columns are declared
as ``Mapped[Decimal]`` and land as ``Numeric(38, 9)``; amounts are never
floats.  Rows that users create or edit (vendors, rules, invoices,
payments) extend ``TrackedBase`` for who/when columns.

Nothing in here imports from the rest of the kernel.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

MONEY = Numeric(38, 9)
USERNAME = String(100)


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: MONEY,
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds ``created_at``/``updated_at`` (database clock) and
    ``created_by``/``updated_by`` (usernames).

    ``created_by`` is mandatory: an invoice's creator decides what a USER
    role may see, and every vendor, rule and payment names who entered it.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by: Mapped[str] = mapped_column(USERNAME)
    updated_by: Mapped[str | None] = mapped_column(USERNAME)
