"""
Définition des jobs planifiés et de leurs handlers.

default_jobs() alimente la table scheduled_jobs au démarrage (init_db) ;
build_job_handlers() associe chaque nom de job à la coroutine qui
l'exécute. Un handler retourne un résumé texte conservé dans l'historique.
"""

from typing import Awaitable, Callable, Optional

from loguru import logger

from mediabroker.core.entities.job import ScheduledJob
from mediabroker.services.reconciliation import ReconciliationService

JobHandler = Callable[[], Awaitable[Optional[str]]]

REQUEST_SYNC = "request-sync"


def default_jobs() -> list[ScheduledJob]:
    """Jobs créés s'ils n'existent pas encore en base."""
    return [
        ScheduledJob(
            name=REQUEST_SYNC,
            schedule="*/5 * * * *",
            interval_seconds=300,
            run_on_start=True,
        ),
    ]


def build_job_handlers(reconciliation: ReconciliationService) -> dict[str, JobHandler]:
    """Registre nom de job -> handler."""

    async def request_sync() -> str:
        summary = await reconciliation.sync_pending_requests()
        message = str(summary)
        logger.info("request-sync terminé", summary=message)
        return message

    return {REQUEST_SYNC: request_sync}
