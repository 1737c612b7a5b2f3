"""
Exceptions du domaine MediaBroker.

Hiérarchie :
- MediaBrokerError : base de toutes les erreurs applicatives
  - ValidationError : entrée mal formée, rejetée avant toute prise de verrou
  - PermissionDeniedError : action réservée aux administrateurs
  - RequestNotFoundError : demande introuvable
  - DuplicateRequestError : éléments déjà demandés dans une demande active
  - ProviderError : erreur d'un backend d'acquisition (Radarr/Sonarr)
    - ProviderLookupError, ProviderAddError, ProviderNotFoundError
  - ProviderPopulationTimeout : épisodes pas encore peuplés côté backend
  - CleanupError : nettoyage best-effort après suppression
  - SchedulerHandlerError : échec d'un handler de job planifié
  - JobNotFoundError : job planifié inconnu
"""

from typing import Iterable, Optional


class MediaBrokerError(Exception):
    """Erreur de base de l'application."""


class ValidationError(MediaBrokerError):
    """Entrée invalide (saison, épisodes, identifiant catalogue...)."""


class PermissionDeniedError(MediaBrokerError):
    """L'utilisateur n'a pas les droits pour cette action."""


class RequestNotFoundError(MediaBrokerError):
    """Aucune demande ne correspond à l'identifiant fourni."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")


class DuplicateRequestError(MediaBrokerError):
    """
    Les éléments demandés sont déjà couverts par une demande active.

    Ce n'est pas un échec : le moteur le convertit en résultat CONFLICT.

    Attributes:
        conflicts: Clés (saison, épisode) déjà demandées
        existing_request_id: Identifiant de la demande active existante
    """

    def __init__(
        self,
        conflicts: Iterable,
        existing_request_id: Optional[str] = None,
    ) -> None:
        self.conflicts = tuple(conflicts)
        self.existing_request_id = existing_request_id
        labels = ", ".join(str(key) for key in self.conflicts) or "media"
        super().__init__(f"Already requested: {labels}")


class ProviderError(MediaBrokerError):
    """
    Erreur remontée par un backend d'acquisition.

    Attributes:
        provider: Nom du backend ("radarr", "sonarr")
        status_code: Code HTTP si disponible
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class ProviderLookupError(ProviderError):
    """La recherche par identifiant externe a échoué ou n'a rien retourné."""


class ProviderAddError(ProviderError):
    """Le backend a refusé l'ajout (y compris « already exists »)."""


class ProviderNotFoundError(ProviderError):
    """L'élément n'existe plus dans le backend (HTTP 404)."""


class ProviderPopulationTimeout(MediaBrokerError):
    """
    Les épisodes demandés ne sont pas encore visibles dans le backend.

    Non fatal : la demande reste en attente avec une raison explicite.
    """

    def __init__(self, missing: Iterable, provider: str = "provider") -> None:
        self.missing = tuple(missing)
        self.provider = provider
        labels = ", ".join(str(key) for key in self.missing)
        super().__init__(f"Episodes not yet available in {provider}: {labels}")


class CleanupError(MediaBrokerError):
    """Échec d'une étape de nettoyage côté backend (toujours absorbé)."""


class SchedulerHandlerError(MediaBrokerError):
    """Échec d'exécution d'un job planifié."""

    def __init__(self, job_name: str, message: str) -> None:
        self.job_name = job_name
        super().__init__(f"Job {job_name} failed: {message}")


class JobNotFoundError(MediaBrokerError):
    """Aucun job planifié ne porte ce nom."""

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        super().__init__(f"Job {job_name} not found")
