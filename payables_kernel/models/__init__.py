"""Kernel-owned ORM models."""

from payables_kernel.models.audit_event import AuditAction, AuditEvent
from payables_kernel.services.sequence_service import SequenceCounter

__all__ = ["AuditAction", "AuditEvent", "SequenceCounter"]
