"""
Tests for SonarrClient - series backend adapter.

Uses respx to mock httpx calls and verifies:
- Series are added unmonitored (all seasons unmonitored too)
- Episodes are exposed as ProviderUnit
- Queue records relate to episode ids
"""

import json

import httpx
import pytest
import respx

from mediabroker.adapters.api.sonarr_client import SonarrClient
from mediabroker.core.exceptions import ProviderAddError, ProviderLookupError
from mediabroker.core.ports.providers import CatalogMatch
from tests.fixtures.arr_responses import (
    ROOT_FOLDERS_RESPONSE,
    SONARR_EPISODES_RESPONSE,
    SONARR_LOOKUP_RESPONSE,
    SONARR_QUEUE_RESPONSE,
    SONARR_SERIES_RESPONSE,
)

SONARR = "http://sonarr.test"


@pytest.fixture
def sonarr() -> SonarrClient:
    return SonarrClient(SONARR + "/", "sonarr-key", max_attempts=1)


class TestLookup:
    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_by_tvdb_term(self, sonarr: SonarrClient):
        route = respx.get(f"{SONARR}/api/v3/series/lookup").mock(
            return_value=httpx.Response(200, json=SONARR_LOOKUP_RESPONSE)
        )

        matches = await sonarr.lookup_by_external_id(121361)

        assert [m.external_id for m in matches] == [121361]
        assert matches[0].payload["titleSlug"] == "game-of-thrones"
        assert route.calls.last.request.url.params["term"] == "tvdb:121361"

    @pytest.mark.asyncio
    @respx.mock
    async def test_lookup_server_error(self, sonarr: SonarrClient):
        respx.get(f"{SONARR}/api/v3/series/lookup").mock(
            return_value=httpx.Response(500, json={"message": "TVDB is down"})
        )

        with pytest.raises(ProviderLookupError, match="TVDB is down"):
            await sonarr.lookup_by_external_id(121361)


class TestAddItem:
    @pytest.mark.asyncio
    @respx.mock
    async def test_unmonitored_add_unmonitors_seasons(self, sonarr: SonarrClient):
        respx.get(f"{SONARR}/api/v3/rootfolder").mock(
            return_value=httpx.Response(200, json=ROOT_FOLDERS_RESPONSE)
        )
        route = respx.post(f"{SONARR}/api/v3/series").mock(
            return_value=httpx.Response(201, json=SONARR_SERIES_RESPONSE)
        )
        match = CatalogMatch(
            external_id=121361, title="Game of Thrones", payload=SONARR_LOOKUP_RESPONSE[0]
        )

        series = await sonarr.add_item(match, monitored=False)

        assert series.id == 7
        assert series.external_id == 121361
        assert series.has_file is False
        body = json.loads(route.calls.last.request.content)
        assert body["monitored"] is False
        assert body["rootFolderPath"] == "/data/media"
        assert all(season["monitored"] is False for season in body["seasons"])
        assert body["addOptions"]["searchForMissingEpisodes"] is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_already_added_is_add_error(self, sonarr: SonarrClient):
        respx.get(f"{SONARR}/api/v3/rootfolder").mock(
            return_value=httpx.Response(200, json=ROOT_FOLDERS_RESPONSE)
        )
        respx.post(f"{SONARR}/api/v3/series").mock(
            return_value=httpx.Response(
                400, json={"message": "This series has already been added"}
            )
        )

        with pytest.raises(ProviderAddError, match="already been added"):
            await sonarr.add_item(CatalogMatch(external_id=121361), monitored=False)


class TestEpisodes:
    @pytest.mark.asyncio
    @respx.mock
    async def test_get_detail_lists_episodes(self, sonarr: SonarrClient):
        route = respx.get(f"{SONARR}/api/v3/episode").mock(
            return_value=httpx.Response(200, json=SONARR_EPISODES_RESPONSE)
        )

        units = await sonarr.get_detail(7)

        assert [(u.id, u.season, u.episode, u.has_file) for u in units] == [
            (701, 1, 1, True),
            (702, 1, 2, False),
            (801, 2, 1, False),
        ]
        assert route.calls.last.request.url.params["seriesId"] == "7"

    @pytest.mark.asyncio
    @respx.mock
    async def test_monitor_search_and_delete(self, sonarr: SonarrClient):
        monitor = respx.put(f"{SONARR}/api/v3/episode/monitor").mock(
            return_value=httpx.Response(202, json=[])
        )
        command = respx.post(f"{SONARR}/api/v3/command").mock(
            return_value=httpx.Response(201, json={"id": 3})
        )
        delete = respx.delete(f"{SONARR}/api/v3/series/7").mock(return_value=httpx.Response(200))

        await sonarr.set_units_monitored([702, 801], False)
        await sonarr.trigger_search([702])
        await sonarr.delete_item(7, delete_files=True, add_exclusion=True)

        assert json.loads(monitor.calls.last.request.content) == {
            "episodeIds": [702, 801],
            "monitored": False,
        }
        assert json.loads(command.calls.last.request.content) == {
            "name": "EpisodeSearch",
            "episodeIds": [702],
        }
        params = delete.calls.last.request.url.params
        assert params["deleteFiles"] == "true"
        assert params["addImportListExclusion"] == "true"


class TestQueue:
    @pytest.mark.asyncio
    @respx.mock
    async def test_queue_records(self, sonarr: SonarrClient):
        respx.get(f"{SONARR}/api/v3/queue").mock(
            return_value=httpx.Response(200, json=SONARR_QUEUE_RESPONSE)
        )

        downloading, blocked = await sonarr.list_queue()

        assert downloading.related_unit_ids == (702,)
        assert downloading.is_active and not downloading.is_error
        assert blocked.related_unit_ids == (801,)
        assert blocked.is_error

    @pytest.mark.asyncio
    @respx.mock
    async def test_delete_queue_item(self, sonarr: SonarrClient):
        route = respx.delete(f"{SONARR}/api/v3/queue/9001").mock(return_value=httpx.Response(200))

        await sonarr.delete_queue_item(9001)
        await sonarr.close()

        assert route.call_count == 1
