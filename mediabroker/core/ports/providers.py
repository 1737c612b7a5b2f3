"""
Interfaces ports pour les backends d'acquisition.

Un backend (gestionnaire de films ou de séries) possède l'état réel des
téléchargements. Le domaine ne connaît que ce contrat d'appel ; les
implémentations concrètes (Radarr, Sonarr) vivent dans adapters/api/.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class CatalogMatch:
    """
    Résultat de recherche du backend pour un identifiant externe.

    Attributs :
        external_id : Identifiant externe (TMDB pour les films, TVDB pour les séries)
        title : Titre retourné par le backend
        year : Année de sortie
        payload : Enregistrement brut, renvoyé tel quel lors de l'ajout
    """

    external_id: int
    title: str = ""
    year: Optional[int] = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderItem:
    """
    Élément suivi par le backend (un film ou une série).

    Attributs :
        id : Identifiant numérique propre au backend
        external_id : Identifiant externe corrélé au catalogue
        title : Titre
        monitored : Surveillance active
        has_file : Fichier présent (films uniquement)
        payload : Enregistrement brut
    """

    id: int
    external_id: Optional[int] = None
    title: str = ""
    monitored: bool = False
    has_file: bool = False
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderUnit:
    """
    Unité surveillable dans un backend : un film entier ou un épisode.

    Attributs :
        id : Identifiant de l'unité (id d'épisode, ou id du film)
        item_id : Identifiant de l'élément parent
        season : Numéro de saison (None pour un film)
        episode : Numéro d'épisode (None pour un film)
        monitored : Surveillance active
        has_file : Fichier importé
    """

    id: int
    item_id: int
    season: Optional[int] = None
    episode: Optional[int] = None
    monitored: bool = False
    has_file: bool = False


# Statuts de file considérés comme une erreur de téléchargement
QUEUE_ERROR_STATUSES = frozenset({"failed", "warning"})
QUEUE_ERROR_STATES = frozenset({"importblocked", "failedpending", "importfailed"})


@dataclass
class QueueRecord:
    """
    Téléchargement actif dans la file d'un backend.

    Attributs :
        id : Identifiant de l'entrée de file
        item_id : Élément parent (film ou série)
        size : Taille totale en octets
        size_left : Octets restants
        status : Statut brut du client de téléchargement
        tracked_download_status : ok / warning / error
        tracked_download_state : downloading / importPending / importBlocked ...
        related_unit_ids : Unités concernées (épisodes, ou le film)
    """

    id: int
    item_id: Optional[int] = None
    size: float = 0.0
    size_left: float = 0.0
    status: str = ""
    tracked_download_status: str = ""
    tracked_download_state: str = ""
    related_unit_ids: tuple[int, ...] = ()

    @property
    def is_active(self) -> bool:
        """Vrai si l'entrée n'est pas terminée."""
        status = self.status.lower()
        return bool(status) and status != "completed"

    @property
    def is_error(self) -> bool:
        """Vrai si le téléchargement est bloqué ou en échec."""
        if self.tracked_download_status.lower() == "error":
            return True
        return (
            self.status.lower() in QUEUE_ERROR_STATUSES
            and self.tracked_download_state.lower() in QUEUE_ERROR_STATES
        )

    @property
    def progress(self) -> float:
        """Progression entre 0 et 1."""
        if self.size <= 0:
            return 0.0
        return max(0.0, min(1.0, 1 - self.size_left / self.size))


class IProviderAdapter(ABC):
    """
    Contrat d'un backend d'acquisition (Radarr pour les films, Sonarr pour les séries).

    Toutes les méthodes sont des appels réseau et peuvent échouer de façon
    transitoire ; les erreurs sont traduites en ProviderError.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Nom du backend ('radarr', 'sonarr')."""
        ...

    @abstractmethod
    async def lookup_by_external_id(self, external_id: int) -> list[CatalogMatch]:
        """Recherche un titre par identifiant externe. Liste vide si inconnu."""
        ...

    @abstractmethod
    async def list_tracked_items(self) -> list[ProviderItem]:
        """Énumère tous les éléments déjà enregistrés dans le backend."""
        ...

    @abstractmethod
    async def add_item(
        self,
        match: CatalogMatch,
        monitored: bool,
        quality_profile_id: Optional[int] = None,
    ) -> ProviderItem:
        """Ajoute un élément. Lève ProviderAddError si le backend refuse."""
        ...

    @abstractmethod
    async def get_item(self, item_id: int) -> ProviderItem:
        """Récupère un élément. Lève ProviderNotFoundError s'il n'existe plus."""
        ...

    @abstractmethod
    async def get_detail(self, item_id: int) -> list[ProviderUnit]:
        """Retourne les unités d'un élément (épisodes d'une série, ou le film)."""
        ...

    @abstractmethod
    async def set_units_monitored(self, unit_ids: list[int], monitored: bool) -> None:
        """Active ou désactive la surveillance des unités."""
        ...

    @abstractmethod
    async def trigger_search(self, unit_ids: list[int]) -> None:
        """Lance une recherche pour les unités. Idempotent."""
        ...

    @abstractmethod
    async def list_queue(self) -> list[QueueRecord]:
        """Téléchargements actifs."""
        ...

    @abstractmethod
    async def delete_queue_item(self, queue_id: int) -> None:
        """Retire une entrée de la file de téléchargement."""
        ...

    @abstractmethod
    async def delete_item(
        self,
        item_id: int,
        delete_files: bool = False,
        add_exclusion: bool = False,
    ) -> None:
        """Supprime un élément du backend."""
        ...

    async def find_tracked_item(self, external_id: int) -> Optional[ProviderItem]:
        """
        Cherche parmi les éléments suivis celui qui correspond à l'identifiant externe.

        Permet de détecter un élément déjà présent sans dépendre uniquement
        du texte des messages d'erreur.
        """
        for item in await self.list_tracked_items():
            if item.external_id == external_id:
                return item
        return None
