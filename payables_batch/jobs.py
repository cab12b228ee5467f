"""
Lifecycle batch jobs.

Contract:
    ``LifecycleJob.run()`` opens its own session, runs the job's action,
    commits on success, and on failure rolls back and logs.  It never
    raises: a failed run is retried by the next scheduled trigger, not
    within the same run.

Overlap:
    Every job owns a ``threading.Lock`` acquired without blocking.  A run
    triggered while the previous run of the same job is still in progress
    is skipped and logged as ``job_skipped_overlap``.

Architecture: payables_batch.  Calls ``InvoiceService`` from the modules
layer; all timestamps come from the injected clock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from sqlalchemy.orm import Session

from payables_batch.domain.schedule import CronSpec, parse_cron
from payables_config.schema import PayablesConfig
from payables_kernel.domain.clock import Clock
from payables_kernel.logging_config import LogContext, get_logger
from payables_modules.invoices.service import InvoiceService

logger = get_logger("batch.jobs")

JobAction = Callable[[Session, Clock, PayablesConfig], int]


class JobStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class JobResult:
    """Outcome of one job run.  ``affected`` counts the invoices touched."""

    job_name: str
    status: JobStatus
    started_at: datetime
    finished_at: datetime
    affected: int = 0
    error: str | None = None


# =============================================================================
# Actions
# =============================================================================


def mark_overdue_action(session: Session, clock: Clock, config: PayablesConfig) -> int:
    return InvoiceService(session, clock=clock, config=config).mark_overdue()


def escalate_overdue_action(session: Session, clock: Clock, config: PayablesConfig) -> int:
    return InvoiceService(session, clock=clock, config=config).escalate_overdue()


def due_date_reminder_action(session: Session, clock: Clock, config: PayablesConfig) -> int:
    """Log one ``due_date_reminder`` event per invoice due within the window."""
    invoices = InvoiceService(session, clock=clock, config=config).list_invoices_due_soon()
    today = clock.today()
    for invoice in invoices:
        logger.info("due_date_reminder", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "vendor_id": str(invoice.vendor_id),
            "due_date": invoice.due_date.isoformat(),
            "days_until_due": (invoice.due_date - today).days,
            "total_amount": str(invoice.total_amount),
            "status": invoice.status.value,
            "recipient": invoice.created_by,
        })
    return len(invoices)


# =============================================================================
# Job
# =============================================================================


class LifecycleJob:
    """A named action bound to a cron schedule."""

    def __init__(self, name: str, cron_expression: str, action: JobAction):
        self.name = name
        self.schedule: CronSpec = parse_cron(cron_expression)
        self._action = action
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(
        self,
        session_factory: Callable[[], Session],
        clock: Clock,
        config: PayablesConfig,
    ) -> JobResult:
        started_at = clock.now()
        if not self._lock.acquire(blocking=False):
            logger.warning("job_skipped_overlap", extra={"job": self.name})
            return JobResult(
                job_name=self.name,
                status=JobStatus.SKIPPED,
                started_at=started_at,
                finished_at=clock.now(),
            )

        try:
            with LogContext.bind(job_name=self.name):
                logger.info("job_started", extra={"job": self.name})
                session: Session | None = None
                try:
                    session = session_factory()
                    affected = self._action(session, clock, config)
                    session.commit()
                except Exception as exc:
                    if session is not None:
                        session.rollback()
                    logger.exception("job_failed", extra={
                        "job": self.name,
                        "error_code": getattr(exc, "code", None),
                    })
                    return JobResult(
                        job_name=self.name,
                        status=JobStatus.FAILED,
                        started_at=started_at,
                        finished_at=clock.now(),
                        error=str(exc),
                    )
                finally:
                    if session is not None:
                        session.close()

                logger.info("job_completed", extra={
                    "job": self.name,
                    "affected": affected,
                })
                return JobResult(
                    job_name=self.name,
                    status=JobStatus.SUCCEEDED,
                    started_at=started_at,
                    finished_at=clock.now(),
                    affected=affected,
                )
        finally:
            self._lock.release()


def build_lifecycle_jobs(config: PayablesConfig) -> list[LifecycleJob]:
    """The three daily lifecycle jobs, scheduled from ``config.schedule``."""
    schedule = config.schedule
    return [
        LifecycleJob("due_date_reminders", schedule.reminder_cron, due_date_reminder_action),
        LifecycleJob("mark_overdue", schedule.overdue_cron, mark_overdue_action),
        LifecycleJob("escalate_overdue", schedule.escalation_cron, escalate_overdue_action),
    ]
