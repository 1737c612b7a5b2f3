"""
Package du scheduler de jobs périodiques.
"""

from .cron import compute_next_run, is_cron_schedule
from .dataclasses import JobMetrics, TickResult
from .definitions import REQUEST_SYNC, JobHandler, build_job_handlers, default_jobs
from .job_scheduler import JobScheduler

__all__ = [
    "JobHandler",
    "JobMetrics",
    "JobScheduler",
    "REQUEST_SYNC",
    "TickResult",
    "build_job_handlers",
    "compute_next_run",
    "default_jobs",
    "is_cron_schedule",
]
