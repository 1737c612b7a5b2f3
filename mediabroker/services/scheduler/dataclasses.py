"""
Dataclasses du scheduler de jobs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class JobMetrics:
    """
    Métriques d'exécution d'un job, propres au processus courant.

    Attributes:
        name: Nom du job
        total_runs: Exécutions lancées
        success_runs: Exécutions réussies
        failed_runs: Exécutions en échec
        duration_total_ms: Cumul des durées
        last_duration_ms: Durée de la dernière exécution
        last_started_at: Début de la dernière exécution
        last_finished_at: Fin de la dernière exécution
        last_result: "success", "failure" ou "none"
        last_error: Message du dernier échec
    """

    name: str
    total_runs: int = 0
    success_runs: int = 0
    failed_runs: int = 0
    duration_total_ms: int = 0
    last_duration_ms: Optional[int] = None
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_result: str = "none"
    last_error: Optional[str] = None

    @property
    def success_rate(self) -> float:
        return self.success_runs / self.total_runs if self.total_runs else 0.0


@dataclass
class TickResult:
    """Bilan d'un tick du scheduler."""

    tick: int
    acquired: bool = False
    fired: list[str] = field(default_factory=list)
    skipped: int = 0
    disabled: int = 0
