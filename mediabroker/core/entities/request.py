"""
Entités demande de média.

Une demande (MediaRequest) porte sur un film ou sur un ensemble d'épisodes
d'une même saison. Chaque unité demandée est un RequestItem. Le statut de
la demande est toujours dérivé des statuts de ses éléments via
aggregate_status().
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional


class RequestKind(str, Enum):
    """Type de demande."""

    MOVIE = "movie"
    EPISODE = "episode"


class RequestStatus(str, Enum):
    """Statut d'une demande ou d'un élément de demande."""

    PENDING = "pending"
    QUEUED = "queued"
    SUBMITTED = "submitted"
    DOWNLOADING = "downloading"
    AVAILABLE = "available"
    PARTIALLY_AVAILABLE = "partially_available"
    DENIED = "denied"
    FAILED = "failed"
    ALREADY_EXISTS = "already_exists"
    REMOVED = "removed"


# Statuts qui bloquent une nouvelle demande sur les mêmes éléments
ACTIVE_STATUSES: frozenset[RequestStatus] = frozenset(
    {
        RequestStatus.PENDING,
        RequestStatus.QUEUED,
        RequestStatus.SUBMITTED,
        RequestStatus.DOWNLOADING,
    }
)

# Statuts encore suivis par la réconciliation
NON_TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset(
    {
        RequestStatus.QUEUED,
        RequestStatus.SUBMITTED,
        RequestStatus.DOWNLOADING,
        RequestStatus.PARTIALLY_AVAILABLE,
    }
)

_CLOSED_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.FAILED, RequestStatus.REMOVED, RequestStatus.DENIED}
)

# Statuts actifs transmis au backend, du moins au plus avancé
_HANDED_OFF_ORDER = (
    RequestStatus.QUEUED,
    RequestStatus.SUBMITTED,
    RequestStatus.DOWNLOADING,
)


@dataclass(frozen=True, order=True)
class EpisodeKey:
    """Couple (saison, épisode) identifiant une unité de série."""

    season: int
    episode: int

    def __str__(self) -> str:
        return f"S{self.season:02d}E{self.episode:02d}"


@dataclass
class RequestItem:
    """
    Unité demandée dans une demande.

    Attributes:
        id: Identifiant base de données
        provider: Backend cible ("radarr" ou "sonarr")
        provider_id: Identifiant de l'élément parent dans le backend
            (film ou série), None tant qu'il n'est pas résolu
        season: Numéro de saison (None pour un film)
        episode: Numéro d'épisode (None pour un film)
        status: Statut de l'élément
        provider_unit_id: Identifiant de l'épisode dans le backend
        queue_error_seen: Erreur de file observée lors de la passe précédente
    """

    provider: str
    id: Optional[int] = None
    provider_id: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    status: RequestStatus = RequestStatus.PENDING
    provider_unit_id: Optional[int] = None
    queue_error_seen: bool = False

    @property
    def key(self) -> Optional[EpisodeKey]:
        """Clé (saison, épisode) de l'élément, None pour un film."""
        if self.season is None or self.episode is None:
            return None
        return EpisodeKey(self.season, self.episode)


@dataclass
class MediaRequest:
    """
    Demande d'un utilisateur pour un film ou des épisodes.

    Attributes:
        id: Identifiant opaque (uuid hex), immuable
        kind: Film ou épisodes
        tmdb_id: Identifiant catalogue (TMDB)
        title: Titre lisible résolu depuis le catalogue
        status: Statut agrégé
        items: Éléments demandés (un seul pour un film)
        requested_by: Référence de l'utilisateur demandeur
        created_at: Date de création
        status_reason: Cause lisible d'une attente ou d'un échec
        release_year: Année de sortie
        poster_path: Chemin du poster TMDB
    """

    id: str
    kind: RequestKind
    tmdb_id: int
    title: str = ""
    status: RequestStatus = RequestStatus.PENDING
    items: list[RequestItem] = field(default_factory=list)
    requested_by: str = ""
    created_at: Optional[datetime] = None
    status_reason: Optional[str] = None
    release_year: Optional[int] = None
    poster_path: Optional[str] = None

    @property
    def season(self) -> Optional[int]:
        """Saison commune aux éléments d'une demande d'épisodes."""
        for item in self.items:
            if item.season is not None:
                return item.season
        return None

    @property
    def episode_keys(self) -> list[EpisodeKey]:
        """Clés des épisodes demandés, dans l'ordre des éléments."""
        return [item.key for item in self.items if item.key is not None]

    @property
    def provider_id(self) -> Optional[int]:
        """Identifiant backend de l'élément parent, s'il est résolu."""
        for item in self.items:
            if item.provider_id:
                return item.provider_id
        return None


def aggregate_status(statuses: Iterable[RequestStatus]) -> RequestStatus:
    """
    Calcule le statut d'une demande à partir des statuts de ses éléments.

    Fonction pure, sans I/O. Règles :
    - aucun élément : pending
    - tous identiques : ce statut
    - au moins un disponible : partially_available (available si tous)
    - au moins un en téléchargement : downloading
    - que des statuts clos avec au moins un échec : failed
    - sinon le statut transmis au backend le moins avancé
      (queued < submitted) ; pending seulement si rien n'a été transmis

    Une soumission partielle (épisodes submitted + pending) reste donc
    submitted et continue d'être suivie par la réconciliation.
    """
    values = [RequestStatus(status) for status in statuses]
    if not values:
        return RequestStatus.PENDING

    distinct = set(values)
    if len(distinct) == 1:
        return values[0]

    if RequestStatus.AVAILABLE in distinct or RequestStatus.PARTIALLY_AVAILABLE in distinct:
        return RequestStatus.PARTIALLY_AVAILABLE

    if RequestStatus.DOWNLOADING in distinct:
        return RequestStatus.DOWNLOADING

    if distinct <= _CLOSED_STATUSES:
        if RequestStatus.FAILED in distinct:
            return RequestStatus.FAILED
        if RequestStatus.DENIED in distinct:
            return RequestStatus.DENIED
        return RequestStatus.REMOVED

    if RequestStatus.ALREADY_EXISTS in distinct and distinct <= (
        _CLOSED_STATUSES | {RequestStatus.ALREADY_EXISTS}
    ):
        return RequestStatus.ALREADY_EXISTS

    for status in _HANDED_OFF_ORDER:
        if status in distinct:
            return status

    if RequestStatus.PENDING in distinct:
        return RequestStatus.PENDING
    return RequestStatus.FAILED
