"""
Fixtures du moteur de demandes : backends factices, catalogue et diffuseur mockes.
"""

from unittest.mock import AsyncMock

import pytest

from mediabroker.core.entities.request import RequestKind
from mediabroker.core.ports.catalog import ICatalogService, TitleInfo
from mediabroker.core.ports.notifier import INotificationDispatcher
from mediabroker.services.keyed_mutex import KeyedMutex
from mediabroker.services.requests import LifecycleConfig, RequestLifecycleService
from tests.fixtures.providers import (
    MOVIE_TMDB_ID,
    SERIES_TMDB_ID,
    SERIES_TVDB_ID,
    FakeProvider,
)


@pytest.fixture
def radarr() -> FakeProvider:
    provider = FakeProvider("radarr")
    provider.allow_lookup(MOVIE_TMDB_ID, "Inception")
    return provider


@pytest.fixture
def sonarr() -> FakeProvider:
    provider = FakeProvider("sonarr")
    provider.allow_lookup(SERIES_TVDB_ID, "Game of Thrones")
    provider.episodes_on_add[SERIES_TVDB_ID] = [(1, 1), (1, 2), (1, 3), (2, 1)]
    return provider


@pytest.fixture
def catalog() -> AsyncMock:
    """Catalogue TMDB mocke : un film et une serie connus."""

    async def get_title(kind: RequestKind, tmdb_id: int) -> TitleInfo:
        if kind == RequestKind.MOVIE:
            return TitleInfo(tmdb_id=tmdb_id, name="Inception", release_year=2010)
        return TitleInfo(
            tmdb_id=tmdb_id,
            name="Game of Thrones",
            tvdb_id=SERIES_TVDB_ID if tmdb_id == SERIES_TMDB_ID else None,
            release_year=2011,
            poster_path="/got.jpg",
        )

    mock = AsyncMock(spec=ICatalogService)
    mock.get_title.side_effect = get_title
    return mock


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock(spec=INotificationDispatcher)


@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    return LifecycleConfig(poll_attempts_new=3, poll_attempts_existing=1, poll_delay_seconds=0)


@pytest.fixture
def service(request_repo, radarr, sonarr, catalog, notifier, lifecycle_config) -> RequestLifecycleService:
    return RequestLifecycleService(
        request_repo,
        radarr,
        sonarr,
        catalog,
        notifier,
        KeyedMutex(),
        config=lifecycle_config,
    )
