"""
Objets valeur décrivant le résultat des opérations sur les demandes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mediabroker.core.entities.request import EpisodeKey, RequestStatus


class OutcomeKind(str, Enum):
    """Nature du résultat d'une opération du moteur de demandes."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    CONFLICT = "conflict"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"
    ALREADY_RESOLVED = "already_resolved"
    DENIED = "denied"
    REMOVED = "removed"


# Correspondance résultat -> code HTTP pour les couches endpoint
_HTTP_STATUS = {
    OutcomeKind.SUBMITTED: 200,
    OutcomeKind.PENDING: 202,
    OutcomeKind.CONFLICT: 409,
    OutcomeKind.ALREADY_EXISTS: 409,
    OutcomeKind.FAILED: 500,
    OutcomeKind.ALREADY_RESOLVED: 409,
    OutcomeKind.DENIED: 200,
    OutcomeKind.REMOVED: 200,
}


@dataclass(frozen=True)
class Requester:
    """Utilisateur à l'origine d'une action (domaine externe)."""

    id: str
    username: str = ""
    is_admin: bool = False


@dataclass(frozen=True)
class RequestOutcome:
    """
    Résultat d'une création, approbation, refus ou suppression.

    Attributes:
        kind: Nature du résultat
        request_id: Demande concernée (None si rien n'a été écrit)
        status: Statut de la demande après l'opération
        event: Événement de notification émis, s'il y en a un
        conflicts: Épisodes déjà demandés ailleurs
        message: Détail lisible (raison d'attente, message d'erreur backend)
        provider_item_id: Identifiant de l'élément parent dans le backend
        skipped: Nombre d'éléments ignorés car déjà demandés
    """

    kind: OutcomeKind
    request_id: Optional[str] = None
    status: Optional[RequestStatus] = None
    event: Optional[str] = None
    conflicts: tuple[EpisodeKey, ...] = ()
    message: Optional[str] = None
    provider_item_id: Optional[int] = None
    skipped: int = 0

    @property
    def ok(self) -> bool:
        """Vrai si l'opération a abouti (soumise, en attente, refusée, supprimée)."""
        return self.kind in {
            OutcomeKind.SUBMITTED,
            OutcomeKind.PENDING,
            OutcomeKind.DENIED,
            OutcomeKind.REMOVED,
        }

    @property
    def http_status(self) -> int:
        """Code HTTP équivalent pour une couche API."""
        return _HTTP_STATUS[self.kind]


@dataclass
class SyncSummary:
    """Compteurs d'une passe de réconciliation."""

    processed: int = 0
    downloading: int = 0
    available: int = 0
    partially_available: int = 0
    removed: int = 0
    failed: int = 0
    errors: int = 0

    def __str__(self) -> str:
        return (
            f"{self.processed} processed, {self.downloading} downloading, "
            f"{self.available} available, {self.partially_available} partial, "
            f"{self.removed} removed, {self.failed} failed, {self.errors} errors"
        )
