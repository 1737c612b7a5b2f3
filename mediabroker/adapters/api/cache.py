"""
Cache persistant des métadonnées catalogue.

S'appuie sur diskcache : les titres résolus survivent aux redémarrages et
évitent de solliciter TMDB à chaque demande sur un même titre.

TTL :
- TITLE_TTL : 7 jours, les métadonnées d'un titre changent rarement
"""

import asyncio
from functools import partial
from typing import Any, Optional

from diskcache import Cache


class APICache:
    """
    Cache asynchrone à TTL au-dessus de diskcache.

    Les accès disque passent par run_in_executor pour ne pas bloquer la
    boucle d'événements.

    Example:
        cache = APICache(cache_dir=".cache/api")
        await cache.set_title("tmdb:tv:1399", payload)
        data = await cache.get("tmdb:tv:1399")
    """

    TITLE_TTL = 7 * 24 * 60 * 60

    def __init__(self, cache_dir: str = ".cache/api") -> None:
        self._cache = Cache(str(cache_dir))

    async def get(self, key: str) -> Optional[Any]:
        """Valeur stockée, ou None si absente ou expirée."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._cache.get, key)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Stocke une valeur avec une durée de vie.

        Args:
            key: Clé unique
            value: Valeur sérialisable (pickle)
            ttl: Durée de vie en secondes
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, partial(self._cache.set, key, value, expire=ttl)
        )

    async def set_title(self, key: str, value: Any) -> None:
        """Stocke les métadonnées d'un titre (7 jours)."""
        await self.set(key, value, self.TITLE_TTL)

    async def delete(self, key: str) -> None:
        """Invalide une entrée."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._cache.delete, key)

    async def clear(self) -> None:
        """Vide le cache."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._cache.clear)

    def close(self) -> None:
        """Ferme le cache (à appeler à l'arrêt)."""
        self._cache.close()
