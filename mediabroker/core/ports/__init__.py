"""
Ports (interfaces abstraites) définissant les contrats pour les adaptateurs.

Les ports sont les frontières de l'architecture hexagonale. Ils définissent
ce dont le domaine a besoin du monde extérieur sans spécifier
comment ces besoins sont satisfaits.

Ports backend : Contrat des gestionnaires d'acquisition
- IProviderAdapter : Radarr (films), Sonarr (séries)
- CatalogMatch, ProviderItem, ProviderUnit, QueueRecord : Types échangés

Ports repository : Contrats de persistance
- IRequestRepository : Demandes et éléments
- IJobRepository : Jobs planifiés et historique

Ports services externes :
- ICatalogService : Métadonnées (TMDB)
- INotificationDispatcher : Diffusion des événements
- IAdvisoryLock : Verrou consultatif inter-processus
"""

from mediabroker.core.ports.catalog import ICatalogService, TitleInfo
from mediabroker.core.ports.locks import IAdvisoryLock
from mediabroker.core.ports.notifier import INotificationDispatcher, RequestEvent
from mediabroker.core.ports.providers import (
    CatalogMatch,
    IProviderAdapter,
    ProviderItem,
    ProviderUnit,
    QueueRecord,
)
from mediabroker.core.ports.repositories import (
    ActiveItemMatch,
    IJobRepository,
    IRequestRepository,
)

__all__ = [
    # Backends
    "IProviderAdapter",
    "CatalogMatch",
    "ProviderItem",
    "ProviderUnit",
    "QueueRecord",
    # Repositories
    "ActiveItemMatch",
    "IRequestRepository",
    "IJobRepository",
    # Services externes
    "ICatalogService",
    "TitleInfo",
    "INotificationDispatcher",
    "RequestEvent",
    "IAdvisoryLock",
]
