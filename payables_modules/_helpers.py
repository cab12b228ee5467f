"""
Shared helpers for module services.

Used by payables_modules/*/service.py for the transaction boundary and
for audit snapshots.

Architecture: Modules layer. Imports only from payables_kernel.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from typing import Any, Iterator

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from payables_kernel.exceptions import OptimisticLockError
from payables_kernel.logging_config import get_logger

logger = get_logger("modules.helpers")


@contextmanager
def unit_of_work(
    session: Session,
    entity_type: str,
    entity_id: Any = None,
) -> Iterator[Session]:
    """Commit on success; roll back and re-raise on any exception.

    A version-counter mismatch on flush or commit surfaces as
    ``OptimisticLockError`` for ``entity_type``/``entity_id``.
    """
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        logger.warning(
            "optimistic_lock_conflict",
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        raise OptimisticLockError(entity_type, str(entity_id)) from exc
    except Exception:
        session.rollback()
        raise


def snapshot(dto: Any) -> dict[str, Any] | None:
    """Plain-dict view of a frozen DTO for audit before/after payloads."""
    if dto is None:
        return None
    if is_dataclass(dto):
        return asdict(dto)
    return dict(dto)
