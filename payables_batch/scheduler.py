"""
LifecycleScheduler -- in-process polling scheduler for the lifecycle jobs.

Contract:
    ``tick()`` reads the injected clock, runs every job whose cron
    expression matches the current minute and that has not already fired
    in that minute, and returns the results.  ``start()`` / ``stop()`` run
    ``tick()`` on a background thread every ``tick_interval_seconds``.

Non-goals:
    - NOT a distributed scheduler (no leader election).  Run one instance.
    - Does NOT catch up on minutes missed while stopped.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from payables_batch.domain.schedule import matches_cron
from payables_batch.jobs import JobResult, LifecycleJob, build_lifecycle_jobs
from payables_config.schema import PayablesConfig
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


class LifecycleScheduler:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: PayablesConfig | None = None,
        jobs: list[LifecycleJob] | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or PayablesConfig()
        self._jobs = jobs if jobs is not None else build_lifecycle_jobs(self._config)
        self._tick_interval = self._config.schedule.tick_interval_seconds
        self._last_fired: dict[str, datetime] = {}
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def jobs(self) -> list[LifecycleJob]:
        return list(self._jobs)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> list[JobResult]:
        """Run the jobs due this minute (public for testing)."""
        now = self._clock.now()
        minute = now.replace(second=0, microsecond=0)
        results: list[JobResult] = []

        for job in self._jobs:
            if self._stop_event.is_set():
                break
            if not matches_cron(job.schedule, now):
                continue
            if self._last_fired.get(job.name) == minute:
                continue
            self._last_fired[job.name] = minute
            results.append(job.run(self._session_factory, self._clock, self._config))

        if results:
            logger.info("scheduler_tick", extra={
                "minute": minute.isoformat(),
                "jobs_run": [r.job_name for r in results],
            })
        return results

    def run_job(self, name: str) -> JobResult:
        """Run one job immediately, outside its schedule."""
        for job in self._jobs:
            if job.name == name:
                return job.run(self._session_factory, self._clock, self._config)
        raise KeyError(f"Unknown job: {name}")

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="payables-lifecycle-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
