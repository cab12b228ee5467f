"""Services for the payables kernel (write side)."""

from payables_kernel.services.auditor_service import AuditorService, AuditTraceEntry
from payables_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditTraceEntry",
    "AuditorService",
    "SequenceService",
]
