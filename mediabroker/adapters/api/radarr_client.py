"""
Client Radarr (backend des films).

Un film est à la fois l'élément suivi et l'unique unité surveillable :
get_detail() retourne donc une seule ProviderUnit portant l'id du film.

Usage:
    client = RadarrClient(base_url="http://localhost:7878", api_key="xxx")
    matches = await client.lookup_by_external_id(27205)
    movie = await client.add_item(matches[0], monitored=True)
    await client.close()
"""

import re
from typing import Any, Optional

from mediabroker.adapters.api.arr_base import ArrClient
from mediabroker.core.exceptions import ProviderAddError, ProviderLookupError
from mediabroker.core.ports.providers import CatalogMatch, ProviderItem, ProviderUnit


def _slugify(title: str, tmdb_id: int) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return f"{base or 'movie'}-{tmdb_id}"


class RadarrClient(ArrClient):
    """Adaptateur IProviderAdapter pour Radarr v3."""

    PROVIDER_NAME = "radarr"
    EXTERNAL_ID_KIND = "tmdb"
    QUEUE_ITEM_KEY = "movieId"
    QUEUE_UNIT_KEY = "movieId"

    def __init__(self, *args, minimum_availability: str = "released", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._minimum_availability = minimum_availability

    @staticmethod
    def _to_item(data: dict[str, Any]) -> ProviderItem:
        tmdb_id = data.get("tmdbId")
        return ProviderItem(
            id=int(data["id"]),
            external_id=int(tmdb_id) if tmdb_id else None,
            title=data.get("title", ""),
            monitored=bool(data.get("monitored", False)),
            has_file=bool(data.get("hasFile", False)),
            payload=data,
        )

    async def lookup_by_external_id(self, external_id: int) -> list[CatalogMatch]:
        data = await self._request(
            "GET",
            "/api/v3/movie/lookup/tmdb",
            params={"tmdbId": external_id},
            error_cls=ProviderLookupError,
        )
        # Radarr renvoie un objet unique pour ce endpoint, parfois une liste
        entries = data if isinstance(data, list) else [data] if data else []
        return [
            CatalogMatch(
                external_id=int(entry.get("tmdbId") or external_id),
                title=entry.get("title", ""),
                year=entry.get("year"),
                payload=entry,
            )
            for entry in entries
            if isinstance(entry, dict)
        ]

    async def list_tracked_items(self) -> list[ProviderItem]:
        data = await self._request("GET", "/api/v3/movie")
        return [self._to_item(entry) for entry in data or []]

    async def add_item(
        self,
        match: CatalogMatch,
        monitored: bool,
        quality_profile_id: Optional[int] = None,
    ) -> ProviderItem:
        root_folder = await self._resolve_root_folder()
        title = match.title or f"TMDB {match.external_id}"
        payload = {
            "title": title,
            "tmdbId": match.external_id,
            "year": match.year,
            "titleSlug": match.payload.get("titleSlug") or _slugify(title, match.external_id),
            "images": match.payload.get("images", []),
            "rootFolderPath": root_folder,
            "qualityProfileId": quality_profile_id or self._quality_profile_id,
            "monitored": monitored,
            "minimumAvailability": self._minimum_availability,
            "addOptions": {"searchForMovie": monitored},
        }
        data = await self._request(
            "POST", "/api/v3/movie", json=payload, error_cls=ProviderAddError, required=True
        )
        return self._to_item(data)

    async def get_item(self, item_id: int) -> ProviderItem:
        data = await self._request("GET", f"/api/v3/movie/{item_id}", required=True)
        return self._to_item(data)

    async def get_detail(self, item_id: int) -> list[ProviderUnit]:
        movie = await self.get_item(item_id)
        return [
            ProviderUnit(
                id=movie.id,
                item_id=movie.id,
                monitored=movie.monitored,
                has_file=movie.has_file,
            )
        ]

    async def set_units_monitored(self, unit_ids: list[int], monitored: bool) -> None:
        if not unit_ids:
            return
        await self._request(
            "PUT",
            "/api/v3/movie/editor",
            json={"movieIds": list(unit_ids), "monitored": monitored},
        )

    async def trigger_search(self, unit_ids: list[int]) -> None:
        if not unit_ids:
            return
        await self._command({"name": "MoviesSearch", "movieIds": list(unit_ids)})

    async def delete_item(
        self,
        item_id: int,
        delete_files: bool = False,
        add_exclusion: bool = False,
    ) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/movie/{item_id}",
            params={
                "deleteFiles": str(delete_files).lower(),
                "addImportExclusion": str(add_exclusion).lower(),
            },
        )
