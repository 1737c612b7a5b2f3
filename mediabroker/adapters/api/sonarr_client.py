"""
Client Sonarr (backend des séries).

Les séries sont corrélées au catalogue par leur identifiant TVDB. Les
unités surveillables sont les épisodes : une série est ajoutée sans
surveillance, puis seuls les épisodes demandés sont surveillés.

Usage:
    client = SonarrClient(base_url="http://localhost:8989", api_key="xxx")
    matches = await client.lookup_by_external_id(121361)
    series = await client.add_item(matches[0], monitored=False)
    episodes = await client.get_detail(series.id)
    await client.close()
"""

from typing import Any, Optional

from mediabroker.adapters.api.arr_base import ArrClient
from mediabroker.core.exceptions import ProviderAddError, ProviderLookupError
from mediabroker.core.ports.providers import CatalogMatch, ProviderItem, ProviderUnit


class SonarrClient(ArrClient):
    """Adaptateur IProviderAdapter pour Sonarr v3."""

    PROVIDER_NAME = "sonarr"
    EXTERNAL_ID_KIND = "tvdb"
    QUEUE_ITEM_KEY = "seriesId"
    QUEUE_UNIT_KEY = "episodeId"

    def __init__(
        self,
        *args,
        language_profile_id: int = 1,
        series_type: str = "standard",
        season_folder: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._language_profile_id = language_profile_id
        self._series_type = series_type
        self._season_folder = season_folder

    @staticmethod
    def _to_item(data: dict[str, Any]) -> ProviderItem:
        tvdb_id = data.get("tvdbId")
        statistics = data.get("statistics") or {}
        return ProviderItem(
            id=int(data["id"]),
            external_id=int(tvdb_id) if tvdb_id else None,
            title=data.get("title", ""),
            monitored=bool(data.get("monitored", False)),
            has_file=bool(statistics.get("episodeFileCount", 0)),
            payload=data,
        )

    async def lookup_by_external_id(self, external_id: int) -> list[CatalogMatch]:
        data = await self._request(
            "GET",
            "/api/v3/series/lookup",
            params={"term": f"tvdb:{external_id}"},
            error_cls=ProviderLookupError,
        )
        return [
            CatalogMatch(
                external_id=int(entry.get("tvdbId") or external_id),
                title=entry.get("title", ""),
                year=entry.get("year"),
                payload=entry,
            )
            for entry in data or []
            if isinstance(entry, dict)
        ]

    async def list_tracked_items(self) -> list[ProviderItem]:
        data = await self._request("GET", "/api/v3/series")
        return [self._to_item(entry) for entry in data or []]

    async def add_item(
        self,
        match: CatalogMatch,
        monitored: bool,
        quality_profile_id: Optional[int] = None,
    ) -> ProviderItem:
        root_folder = await self._resolve_root_folder()
        payload: dict[str, Any] = dict(match.payload)
        payload.update(
            {
                "tvdbId": match.external_id,
                "title": match.title or payload.get("title", ""),
                "rootFolderPath": root_folder,
                "qualityProfileId": (
                    quality_profile_id
                    or payload.get("qualityProfileId")
                    or self._quality_profile_id
                ),
                "languageProfileId": payload.get("languageProfileId") or self._language_profile_id,
                "seriesType": self._series_type,
                "seasonFolder": self._season_folder,
                "monitored": monitored,
                "addOptions": {
                    "searchForMissingEpisodes": False,
                    "searchForCutoffUnmetEpisodes": False,
                },
            }
        )
        # Ajout non surveillé : aucune saison ne doit l'être non plus
        if not monitored and isinstance(payload.get("seasons"), list):
            payload["seasons"] = [
                {**season, "monitored": False} for season in payload["seasons"]
            ]

        data = await self._request(
            "POST", "/api/v3/series", json=payload, error_cls=ProviderAddError, required=True
        )
        return self._to_item(data)

    async def get_item(self, item_id: int) -> ProviderItem:
        data = await self._request("GET", f"/api/v3/series/{item_id}", required=True)
        return self._to_item(data)

    async def get_detail(self, item_id: int) -> list[ProviderUnit]:
        data = await self._request("GET", "/api/v3/episode", params={"seriesId": item_id})
        units = []
        for entry in data or []:
            if not isinstance(entry, dict) or entry.get("id") is None:
                continue
            units.append(
                ProviderUnit(
                    id=int(entry["id"]),
                    item_id=int(entry.get("seriesId") or item_id),
                    season=entry.get("seasonNumber"),
                    episode=entry.get("episodeNumber"),
                    monitored=bool(entry.get("monitored", False)),
                    has_file=bool(entry.get("hasFile", False)),
                )
            )
        return units

    async def set_units_monitored(self, unit_ids: list[int], monitored: bool) -> None:
        if not unit_ids:
            return
        await self._request(
            "PUT",
            "/api/v3/episode/monitor",
            json={"episodeIds": list(unit_ids), "monitored": monitored},
        )

    async def trigger_search(self, unit_ids: list[int]) -> None:
        if not unit_ids:
            return
        await self._command({"name": "EpisodeSearch", "episodeIds": list(unit_ids)})

    async def delete_item(
        self,
        item_id: int,
        delete_files: bool = False,
        add_exclusion: bool = False,
    ) -> None:
        await self._request(
            "DELETE",
            f"/api/v3/series/{item_id}",
            params={
                "deleteFiles": str(delete_files).lower(),
                "addImportListExclusion": str(add_exclusion).lower(),
            },
        )
