"""
Dataclasses du moteur de cycle de vie des demandes.
"""

from dataclasses import dataclass, field
from typing import Optional

from mediabroker.config import DEFAULT_ALREADY_EXISTS_PATTERN, Settings
from mediabroker.core.entities.request import EpisodeKey, RequestStatus
from mediabroker.core.ports.providers import ProviderItem


@dataclass
class LifecycleConfig:
    """Paramètres du moteur de demandes."""

    poll_attempts_new: int = 4
    poll_attempts_existing: int = 1
    poll_delay_seconds: float = 1.2
    already_exists_pattern: str = DEFAULT_ALREADY_EXISTS_PATTERN
    cleanup_delete_files: bool = True
    cleanup_add_exclusion: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecycleConfig":
        return cls(
            poll_attempts_new=settings.poll_attempts_new,
            poll_attempts_existing=settings.poll_attempts_existing,
            poll_delay_seconds=settings.poll_delay_seconds,
            already_exists_pattern=settings.already_exists_pattern,
        )


@dataclass
class SubmissionResult:
    """
    Résultat de la soumission au backend d'une demande déjà persistée.

    Attributes:
        status: Statut agrégé écrit en base
        provider_item: Élément parent résolu dans le backend
        matched: Épisodes (ou film) surveillés et recherchés
        missing: Épisodes introuvables après le polling
        reason: Raison persistée (attente, déjà présent)
    """

    status: RequestStatus
    provider_item: Optional[ProviderItem] = None
    matched: list[EpisodeKey] = field(default_factory=list)
    missing: list[EpisodeKey] = field(default_factory=list)
    reason: Optional[str] = None
