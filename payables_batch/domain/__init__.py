"""Pure schedule evaluation for payables_batch.  ZERO I/O."""

from payables_batch.domain.schedule import (
    CronSpec,
    matches_cron,
    next_cron_match,
    parse_cron,
)

__all__ = ["CronSpec", "matches_cron", "next_cron_match", "parse_cron"]
