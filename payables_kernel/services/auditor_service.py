"""
AuditorService -- the audit sink.

Every payables service reports its mutations here:
``record(actor, action, entity_type, entity_id, before, after, description)``.

Recording is best-effort.  The event is written inside a SAVEPOINT; if
anything goes wrong the savepoint is rolled back, the failure is logged
with its traceback, and ``record`` returns None.  The invoice approval or
payment that triggered it carries on and commits normally.

Events are numbered by ``SequenceService`` and chained by hash, and they
are never committed here: they commit (or roll back) with the caller's
transaction, so the trail never shows a change that did not happen.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payables_kernel.domain.actors import Actor
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.logging_config import get_logger
from payables_kernel.models.audit_event import AuditAction, AuditEvent
from payables_kernel.services.sequence_service import SequenceService
from payables_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: str
    actor: str
    occurred_at: datetime
    description: str | None
    payload: dict[str, Any]


def _expected_hash(event: AuditEvent) -> str:
    return hash_audit_event(
        entity_type=event.entity_type,
        entity_id=str(event.entity_id),
        action=event.action,
        payload_hash=hash_payload(event.payload or {}),
        prev_hash=event.prev_hash,
    )


class AuditorService:

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def record(
        self,
        actor: Actor | str,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> AuditEvent | None:
        """Append one event to the chain.  Returns None instead of raising."""
        actor_name = actor.username if isinstance(actor, Actor) else str(actor)
        try:
            with self._session.begin_nested():
                event = self._append(
                    actor_name, action, entity_type, entity_id,
                    {"before": before, "after": after}, description,
                )
        except Exception:
            logger.exception("audit_record_failed", extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            })
            return None

        logger.debug("audit_event_created", extra={
            "seq": event.seq,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "action": action.value,
        })
        return event

    def _append(
        self,
        actor_name: str,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        payload: dict[str, Any],
        description: str | None,
    ) -> AuditEvent:
        seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._session.execute(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

        stored_payload = to_json_safe(payload)
        event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor=actor_name,
            occurred_at=self._clock.now(),
            description=description,
            payload=stored_payload,
            payload_hash=hash_payload(stored_payload),
            prev_hash=prev_hash,
        )
        event.hash = _expected_hash(event)
        self._session.add(event)
        self._session.flush()
        return event

    def get_trail(self, entity_type: str, entity_id: UUID) -> list[AuditTraceEntry]:
        """Events for one entity, oldest first."""
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        ).scalars()
        return [
            AuditTraceEntry(
                seq=e.seq,
                action=e.action,
                actor=e.actor,
                occurred_at=e.occurred_at,
                description=e.description,
                payload=e.payload or {},
            )
            for e in events
        ]

    def validate_chain(self) -> bool:
        """
        Recompute every link in sequence order.

        False (and a critical log naming the first bad event) when a
        payload was altered, a hash was rewritten, or an event is missing
        between two others.
        """
        previous: str | None = None
        for event in self._session.execute(select(AuditEvent).order_by(AuditEvent.seq)).scalars():
            if event.prev_hash != previous or event.hash != _expected_hash(event):
                logger.critical("audit_chain_broken", extra={
                    "seq": event.seq,
                    "audit_event_id": str(event.id),
                    "expected_prev_hash": previous,
                    "actual_prev_hash": event.prev_hash,
                })
                return False
            previous = event.hash
        return True
