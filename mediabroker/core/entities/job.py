"""
Entités des jobs planifiés.

Les lignes ScheduledJob sont créées par configuration (init_db) et mises à
jour par le JobScheduler après chaque tentative d'exécution.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass
class ScheduledJob:
    """
    Job exécuté périodiquement par le scheduler.

    Attributes:
        name: Nom unique, clé du registre de handlers
        schedule: Expression cron à 5 champs
        interval_seconds: Intervalle de repli si le cron est invalide
        enabled: Un job désactivé est ignoré
        run_on_start: Exécuter dès le premier tick si next_run est vide
        last_run: Date de fin de la dernière exécution
        next_run: Date de la prochaine exécution
        last_error: Message de la dernière erreur
        failure_count: Échecs consécutifs (plafonné)
        disabled_reason: Raison d'une désactivation automatique
    """

    name: str
    schedule: str
    interval_seconds: int = 300
    id: Optional[int] = None
    enabled: bool = True
    run_on_start: bool = False
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_error: Optional[str] = None
    failure_count: int = 0
    disabled_reason: Optional[str] = None


class JobRunStatus(str, Enum):
    """Résultat d'une exécution de job."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class JobRun:
    """Entrée d'historique d'exécution d'un job."""

    job_name: str
    status: JobRunStatus
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    error: Optional[str] = None
    details: Optional[str] = None
