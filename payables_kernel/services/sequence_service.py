"""
SequenceService -- gap-tolerant monotonic counters on locked rows.

Two kinds of counter live in ``sequence_counters``:

* ``audit_event``: the global audit sequence.
* ``invoice_number:YYYYMMDD``: one counter per calendar day, feeding the
  ``NNNN`` part of ``INV-YYYYMMDD-NNNN``.

A counter row is read ``SELECT ... FOR UPDATE`` and bumped in place, so two
transactions allocating on the same day serialize on that row and can
never hand out the same number.  The first allocation of a day inserts the
row inside a SAVEPOINT; losing that insert race to another transaction
falls back to locking the row the winner created.

The service never commits.  A rolled-back caller gives its value back.
"""

from datetime import date

from sqlalchemy import String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from payables_kernel.db.base import Base
from payables_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), unique=True)
    current_value: Mapped[int] = mapped_column(default=0)


class SequenceService:

    AUDIT_EVENT = "audit_event"
    INVOICE_NUMBER_PREFIX = "invoice_number"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def invoice_number_sequence(cls, on: date) -> str:
        """Counter name for invoice numbers issued on ``on``."""
        return f"{cls.INVOICE_NUMBER_PREFIX}:{on:%Y%m%d}"

    def _lock(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create(self, name: str) -> SequenceCounter | None:
        """Insert a fresh counter at 0; None if another transaction won."""
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=name, current_value=0)
                self._session.add(counter)
            return counter
        except IntegrityError:
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return None

    def next_value(self, name: str) -> int:
        """
        Allocate the next value of counter ``name`` (1 on first use).

        The counter row stays locked until the caller's transaction ends.
        """
        counter = self._lock(name) or self._create(name) or self._lock(name)
        if counter is None:
            raise RuntimeError(f"Sequence counter {name!r} could not be created or locked")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        """Last value handed out for ``name``, or None if never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
