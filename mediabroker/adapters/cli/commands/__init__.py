"""Sous-package CLI commands - re-exporte les commandes publiques."""

from mediabroker.adapters.cli.commands.job_commands import (
    history,
    jobs,
    run_job,
    scheduler,
    sync,
)
from mediabroker.adapters.cli.commands.request_commands import (
    approve,
    delete,
    deny,
    list_requests,
    request_episodes,
    request_movie,
)

__all__ = [
    # requests
    "approve",
    "delete",
    "deny",
    "list_requests",
    "request_episodes",
    "request_movie",
    # jobs
    "history",
    "jobs",
    "run_job",
    "scheduler",
    "sync",
]
