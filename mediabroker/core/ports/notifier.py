"""
Interface port pour la diffusion des événements de cycle de vie.

La livraison (Discord, e-mail, webhook...) est hors du périmètre du noyau ;
le moteur choisit seulement l'événement à émettre.
"""

from abc import ABC, abstractmethod
from typing import Any


class RequestEvent:
    """Noms des événements émis par le moteur et la réconciliation."""

    PENDING = "request_pending"
    SUBMITTED = "request_submitted"
    ALREADY_EXISTS = "request_already_exists"
    FAILED = "request_failed"
    DENIED = "request_denied"
    REMOVED = "request_removed"
    AVAILABLE = "request_available"


class INotificationDispatcher(ABC):
    """Contrat de diffusion, fire-and-forget du point de vue du moteur."""

    @abstractmethod
    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Diffuse un événement."""
        ...
