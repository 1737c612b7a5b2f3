"""
Clients API externes.

Backends d'acquisition (implémentent IProviderAdapter) :
- RadarrClient : films
- SonarrClient : séries

Catalogue :
- TMDBCatalogClient : métadonnées et identifiant TVDB (implémente ICatalogService)

Infrastructure partagée :
- APICache : Cache persistant diskcache avec TTL
- RateLimitError, with_retry, request_with_retry : retry avec backoff exponentiel
"""

from mediabroker.adapters.api.cache import APICache
from mediabroker.adapters.api.radarr_client import RadarrClient
from mediabroker.adapters.api.retry import RateLimitError, request_with_retry, with_retry
from mediabroker.adapters.api.sonarr_client import SonarrClient
from mediabroker.adapters.api.tmdb_client import TMDBCatalogClient

__all__ = [
    "APICache",
    "RadarrClient",
    "SonarrClient",
    "TMDBCatalogClient",
    "RateLimitError",
    "with_retry",
    "request_with_retry",
]
