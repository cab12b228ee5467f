"""
payables_batch -- scheduled invoice lifecycle jobs.

Three daily jobs drive the time-based transitions of the invoice
lifecycle:

    due_date_reminders  08:00  log a reminder per invoice due soon
    mark_overdue        09:00  flag unsettled invoices past their due date
    escalate_overdue    10:00  raise the escalation level of overdue invoices

``LifecycleScheduler`` polls the injected clock and runs each job at most
once per matching minute.  Each job holds a non-blocking lock so an
overlapping trigger of the same job is skipped rather than run twice.
"""

from payables_batch.jobs import (
    JobResult,
    JobStatus,
    LifecycleJob,
    build_lifecycle_jobs,
)
from payables_batch.scheduler import LifecycleScheduler

__all__ = [
    "JobResult",
    "JobStatus",
    "LifecycleJob",
    "LifecycleScheduler",
    "build_lifecycle_jobs",
]
