"""
Interface port pour le service de métadonnées (catalogue).

Le catalogue fournit le titre lisible et l'identifiant secondaire (TVDB)
requis par le backend des séries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from mediabroker.core.entities.request import RequestKind


@dataclass
class TitleInfo:
    """
    Métadonnées d'un titre du catalogue.

    Attributs :
        tmdb_id : Identifiant catalogue
        name : Titre lisible
        tvdb_id : Identifiant TVDB (séries uniquement)
        release_year : Année de sortie ou de première diffusion
        poster_path : Chemin du poster
        backdrop_path : Chemin de l'image de fond
    """

    tmdb_id: int
    name: str
    tvdb_id: Optional[int] = None
    release_year: Optional[int] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None


class ICatalogService(ABC):
    """Contrat du service de métadonnées."""

    @abstractmethod
    async def get_title(self, kind: RequestKind, tmdb_id: int) -> TitleInfo:
        """Récupère les métadonnées d'un film ou d'une série."""
        ...
