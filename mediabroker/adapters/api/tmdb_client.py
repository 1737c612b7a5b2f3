"""
Client TMDB servant de catalogue de métadonnées.

Implémente ICatalogService : résout le titre lisible, l'année, les images
et, pour les séries, l'identifiant TVDB exigé par Sonarr (via
append_to_response=external_ids).

Usage:
    cache = APICache()
    client = TMDBCatalogClient(api_key="your_key", cache=cache)
    info = await client.get_title(RequestKind.EPISODE, 1399)
    await client.close()
"""

from typing import Any, Optional

import httpx
from loguru import logger

from mediabroker.adapters.api.cache import APICache
from mediabroker.adapters.api.retry import RateLimitError, request_with_retry
from mediabroker.core.entities.request import RequestKind
from mediabroker.core.exceptions import ProviderLookupError
from mediabroker.core.ports.catalog import ICatalogService, TitleInfo


def _year_of(date_value: Optional[str]) -> Optional[int]:
    """Extrait l'année d'une date ISO (YYYY-MM-DD)."""
    if date_value and len(date_value) >= 4 and date_value[:4].isdigit():
        return int(date_value[:4])
    return None


class TMDBCatalogClient(ICatalogService):
    """
    Client API TMDB v3 pour les métadonnées de films et de séries.

    - Cache persistant (7 jours) par type et identifiant
    - Retry automatique sur rate limiting (429)
    - Clé v3 (paramètre api_key) ou jeton v4 (header Bearer)
    """

    TMDB_BASE_URL = "https://api.themoviedb.org/3"

    def __init__(
        self,
        api_key: str,
        cache: APICache,
        language: str = "fr-FR",
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._cache = cache
        self._language = language
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Retourne le client HTTP, le crée si nécessaire (lazy init)."""
        if self._client is None or self._client.is_closed:
            # v3 : 32 caractères hex, v4 : long JWT
            is_v4_token = len(self._api_key) > 40

            headers = {"Accept": "application/json"}
            params = {}
            if is_v4_token:
                headers["Authorization"] = f"Bearer {self._api_key}"
            else:
                params["api_key"] = self._api_key

            self._client = httpx.AsyncClient(
                base_url=self.TMDB_BASE_URL,
                headers=headers,
                params=params,
                timeout=self._timeout,
            )
        return self._client

    async def get_title(self, kind: RequestKind, tmdb_id: int) -> TitleInfo:
        """
        Récupère les métadonnées d'un titre, cache d'abord.

        Raises:
            ProviderLookupError: Titre inconnu (404) ou TMDB injoignable
        """
        media = "movie" if kind == RequestKind.MOVIE else "tv"
        cache_key = f"tmdb:{media}:{tmdb_id}"

        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            response = await request_with_retry(
                self._get_client(),
                "GET",
                f"/{media}/{tmdb_id}",
                params={"language": self._language, "append_to_response": "external_ids"},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise ProviderLookupError(
                    f"TMDB {media} {tmdb_id} not found",
                    provider="tmdb",
                    status_code=404,
                ) from e
            raise ProviderLookupError(
                f"TMDB error {e.response.status_code}",
                provider="tmdb",
                status_code=e.response.status_code,
            ) from e
        except (RateLimitError, httpx.TransportError) as e:
            raise ProviderLookupError(f"TMDB unreachable: {e}", provider="tmdb") from e

        info = self._to_title_info(kind, tmdb_id, response.json())
        await self._cache.set_title(cache_key, info)
        logger.debug("Titre TMDB résolu", tmdb_id=tmdb_id, name=info.name, tvdb_id=info.tvdb_id)
        return info

    @staticmethod
    def _to_title_info(kind: RequestKind, tmdb_id: int, data: dict[str, Any]) -> TitleInfo:
        if kind == RequestKind.MOVIE:
            name = data.get("title") or data.get("original_title") or ""
            year = _year_of(data.get("release_date"))
            tvdb_id = None
        else:
            name = data.get("name") or data.get("original_name") or ""
            year = _year_of(data.get("first_air_date"))
            external_ids = data.get("external_ids") or {}
            tvdb_id = external_ids.get("tvdb_id")

        return TitleInfo(
            tmdb_id=tmdb_id,
            name=name,
            tvdb_id=int(tvdb_id) if tvdb_id else None,
            release_year=year,
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
        )

    async def close(self) -> None:
        """Ferme le client HTTP."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
