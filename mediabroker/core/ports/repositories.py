"""
Interfaces ports pour les repositories.

Contrats de persistance des demandes et des jobs planifiés. Les
implémentations SQLModel vivent dans infrastructure/persistence/.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mediabroker.core.entities.job import JobRun, ScheduledJob
from mediabroker.core.entities.request import (
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
)


@dataclass(frozen=True)
class ActiveItemMatch:
    """Élément déjà demandé dans une demande active."""

    request_id: str
    request_status: RequestStatus
    season: Optional[int] = None
    episode: Optional[int] = None


class IRequestRepository(ABC):
    """
    Interface de stockage des demandes et de leurs éléments.

    Toute écriture de statut d'élément recalcule le statut agrégé de la
    demande dans la même transaction.
    """

    @abstractmethod
    def create_request_with_items(
        self,
        request: MediaRequest,
        items: list[RequestItem],
    ) -> MediaRequest:
        """Crée la demande et ses éléments en une seule transaction."""
        ...

    @abstractmethod
    def get_request(self, request_id: str) -> Optional[MediaRequest]:
        """Récupère une demande avec ses éléments."""
        ...

    @abstractmethod
    def mark_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        reason: Optional[str] = None,
    ) -> None:
        """
        Écrit le statut sur la demande et sur tous ses éléments.

        reason : None conserve la raison actuelle, une chaîne vide l'efface.
        """
        ...

    @abstractmethod
    def set_items_status(
        self,
        request_id: str,
        statuses: dict[int, RequestStatus],
        reason: Optional[str] = None,
    ) -> RequestStatus:
        """
        Met à jour des éléments par id et retourne le statut agrégé recalculé.

        reason suit la même convention que mark_request_status.
        """
        ...

    @abstractmethod
    def set_items_provider_ids(
        self,
        request_id: str,
        provider_id: Optional[int],
        unit_ids: Optional[dict[int, int]] = None,
    ) -> None:
        """Enregistre l'id backend du parent et, par élément, l'id d'unité."""
        ...

    @abstractmethod
    def set_item_queue_error(self, item_id: int, seen: bool) -> None:
        """Mémorise qu'un élément a été vu en erreur dans la file."""
        ...

    @abstractmethod
    def find_active_items_matching(
        self,
        kind: RequestKind,
        tmdb_id: int,
        season: Optional[int] = None,
        episodes: Optional[list[int]] = None,
        exclude_request_id: Optional[str] = None,
    ) -> list[ActiveItemMatch]:
        """Éléments de demandes actives portant sur les mêmes unités."""
        ...

    @abstractmethod
    def list_non_terminal_requests(self, limit: int = 100) -> list[MediaRequest]:
        """Demandes encore suivies par la réconciliation, plus anciennes d'abord."""
        ...

    @abstractmethod
    def list_requests(
        self,
        statuses: Optional[list[RequestStatus]] = None,
        limit: int = 50,
    ) -> list[MediaRequest]:
        """Demandes les plus récentes, filtrées par statut si fourni."""
        ...


class IJobRepository(ABC):
    """Interface de stockage des jobs planifiés et de leur historique."""

    @abstractmethod
    def list_jobs(self) -> list[ScheduledJob]:
        """Liste tous les jobs, triés par nom."""
        ...

    @abstractmethod
    def get_job(self, name: str) -> Optional[ScheduledJob]:
        """Récupère un job par son nom."""
        ...

    @abstractmethod
    def update_job_run(
        self,
        job_id: int,
        last_run: Optional[datetime],
        next_run: datetime,
        reset_failures: bool = True,
    ) -> None:
        """Horodate la dernière exécution et la prochaine."""
        ...

    @abstractmethod
    def update_job_schedule(self, job_id: int, next_run: datetime) -> None:
        """Corrige uniquement la prochaine exécution."""
        ...

    @abstractmethod
    def record_job_failure(
        self,
        job_id: int,
        error: str,
        max_failures: int,
        disable_at_max: bool = False,
    ) -> int:
        """Incrémente le compteur d'échecs (plafonné) et retourne sa valeur."""
        ...

    @abstractmethod
    def insert_job_history(self, run: JobRun) -> None:
        """Ajoute une entrée d'historique d'exécution."""
        ...

    @abstractmethod
    def list_job_history(self, job_name: str, limit: int = 20) -> list[JobRun]:
        """Dernières exécutions d'un job, plus récentes d'abord."""
        ...

    @abstractmethod
    def ensure_default_jobs(self, jobs: list[ScheduledJob]) -> None:
        """Crée les jobs absents, sans toucher aux existants."""
        ...
