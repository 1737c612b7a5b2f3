"""
Tests du service de reconciliation des demandes.

Base SQLite en memoire et backends factices : les demandes sont creees
directement en base, deja soumises et rattachees a leur element backend.
"""

from unittest.mock import AsyncMock

import pytest

from mediabroker.core.entities.request import (
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
)
from mediabroker.core.ports.notifier import INotificationDispatcher, RequestEvent
from mediabroker.core.ports.providers import QueueRecord
from mediabroker.services.reconciliation import ReconciliationService
from tests.fixtures.providers import (
    MOVIE_TMDB_ID,
    SERIES_TMDB_ID,
    SERIES_TVDB_ID,
    FakeProvider,
    emitted_events,
)

SERIES_ID = 7
E1_UNIT, E2_UNIT = 7101, 7102
MOVIE_ID = 42


@pytest.fixture
def sonarr() -> FakeProvider:
    provider = FakeProvider("sonarr")
    provider.track(SERIES_TVDB_ID, SERIES_ID, episodes=[(1, 1), (1, 2)])
    return provider


@pytest.fixture
def radarr() -> FakeProvider:
    provider = FakeProvider("radarr")
    provider.track(MOVIE_TMDB_ID, MOVIE_ID)
    return provider


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock(spec=INotificationDispatcher)


@pytest.fixture
def reconciliation(request_repo, radarr, sonarr, notifier) -> ReconciliationService:
    return ReconciliationService(request_repo, radarr, sonarr, notifier)


@pytest.fixture
def write_counter(request_repo, monkeypatch) -> list:
    """Compte les appels a set_items_status."""
    calls = []
    original = request_repo.set_items_status

    def counting(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(request_repo, "set_items_status", counting)
    return calls


def _episode_request(repo, request_id, episodes, provider_id=SERIES_ID) -> MediaRequest:
    return repo.create_request_with_items(
        MediaRequest(id=request_id, kind=RequestKind.EPISODE, tmdb_id=SERIES_TMDB_ID, title="GoT"),
        [
            RequestItem(
                provider="sonarr",
                season=1,
                episode=e,
                status=RequestStatus.SUBMITTED,
                provider_id=provider_id,
            )
            for e in episodes
        ],
    )


def _movie_request(repo, request_id, provider_id=MOVIE_ID) -> MediaRequest:
    return repo.create_request_with_items(
        MediaRequest(id=request_id, kind=RequestKind.MOVIE, tmdb_id=MOVIE_TMDB_ID, title="Inception"),
        [RequestItem(provider="radarr", status=RequestStatus.SUBMITTED, provider_id=provider_id)],
    )


def _downloading(unit_id, queue_id=1) -> QueueRecord:
    return QueueRecord(
        id=queue_id,
        item_id=SERIES_ID,
        size=100,
        size_left=40,
        status="downloading",
        tracked_download_status="ok",
        tracked_download_state="downloading",
        related_unit_ids=(unit_id,),
    )


def _blocked(unit_id, queue_id=2) -> QueueRecord:
    return QueueRecord(
        id=queue_id,
        item_id=SERIES_ID,
        status="warning",
        tracked_download_status="warning",
        tracked_download_state="importBlocked",
        related_unit_ids=(unit_id,),
    )


def _statuses(repo, request_id) -> dict:
    return {item.episode: item.status for item in repo.get_request(request_id).items}


class TestEpisodeProgress:
    @pytest.mark.asyncio
    async def test_queue_entry_marks_downloading(self, reconciliation, sonarr, request_repo, notifier):
        _episode_request(request_repo, "r1", [1, 2])
        sonarr.queue = [_downloading(E1_UNIT)]

        summary = await reconciliation.sync_pending_requests()

        assert summary.processed == 1
        assert summary.downloading == 1
        assert _statuses(request_repo, "r1") == {
            1: RequestStatus.DOWNLOADING,
            2: RequestStatus.SUBMITTED,
        }
        assert request_repo.get_request("r1").status == RequestStatus.DOWNLOADING
        notifier.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_pass_without_change_writes_nothing(
        self, reconciliation, sonarr, request_repo, notifier, write_counter
    ):
        _episode_request(request_repo, "r1", [1, 2])
        sonarr.queue = [_downloading(E1_UNIT)]
        await reconciliation.sync_pending_requests()
        writes = len(write_counter)

        summary = await reconciliation.sync_pending_requests()

        assert len(write_counter) == writes
        assert summary.downloading == 1
        notifier.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_files_present_is_available(self, reconciliation, sonarr, request_repo, notifier):
        _episode_request(request_repo, "r1", [1, 2])
        for unit in sonarr.units[SERIES_ID]:
            unit.has_file = True

        summary = await reconciliation.sync_pending_requests()

        assert summary.available == 1
        assert request_repo.get_request("r1").status == RequestStatus.AVAILABLE
        assert emitted_events(notifier) == [RequestEvent.AVAILABLE]
        assert notifier.emit.await_args.args[1]["status"] == "available"

        # Demande terminee : plus suivie
        assert (await reconciliation.sync_pending_requests()).processed == 0

    @pytest.mark.asyncio
    async def test_some_files_present_is_partial(self, reconciliation, sonarr, request_repo, notifier):
        _episode_request(request_repo, "r1", [1, 2])
        sonarr.units[SERIES_ID][0].has_file = True

        summary = await reconciliation.sync_pending_requests()

        assert summary.partially_available == 1
        assert request_repo.get_request("r1").status == RequestStatus.PARTIALLY_AVAILABLE
        notifier.emit.assert_not_awaited()

        # Le second episode arrive a la passe suivante
        sonarr.units[SERIES_ID][1].has_file = True
        summary = await reconciliation.sync_pending_requests()

        assert summary.available == 1
        assert emitted_events(notifier) == [RequestEvent.AVAILABLE]

    @pytest.mark.asyncio
    async def test_unknown_episode_is_left_alone(self, reconciliation, request_repo):
        _episode_request(request_repo, "r1", [9])

        summary = await reconciliation.sync_pending_requests()

        assert summary.processed == 1
        assert _statuses(request_repo, "r1") == {9: RequestStatus.SUBMITTED}


class TestQueueErrors:
    @pytest.mark.asyncio
    async def test_error_must_be_seen_twice(self, reconciliation, sonarr, request_repo, notifier):
        _episode_request(request_repo, "r1", [1])
        sonarr.queue = [_blocked(E1_UNIT)]

        await reconciliation.sync_pending_requests()

        stored = request_repo.get_request("r1")
        assert stored.status == RequestStatus.SUBMITTED
        assert stored.items[0].queue_error_seen is True

        summary = await reconciliation.sync_pending_requests()

        assert summary.failed == 1
        assert request_repo.get_request("r1").status == RequestStatus.FAILED
        assert emitted_events(notifier) == [RequestEvent.FAILED]

    @pytest.mark.asyncio
    async def test_transient_error_clears_flag(self, reconciliation, sonarr, request_repo):
        _episode_request(request_repo, "r1", [1])
        sonarr.queue = [_blocked(E1_UNIT)]
        await reconciliation.sync_pending_requests()

        sonarr.queue = [_downloading(E1_UNIT)]
        await reconciliation.sync_pending_requests()

        stored = request_repo.get_request("r1")
        assert stored.status == RequestStatus.DOWNLOADING
        assert stored.items[0].queue_error_seen is False

        # Une nouvelle erreur repart de zero
        sonarr.queue = [_blocked(E1_UNIT)]
        await reconciliation.sync_pending_requests()
        assert request_repo.get_request("r1").status == RequestStatus.DOWNLOADING

    @pytest.mark.asyncio
    async def test_failed_episode_with_active_sibling(self, reconciliation, sonarr, request_repo, notifier):
        _episode_request(request_repo, "r1", [1, 2])
        sonarr.queue = [_blocked(E1_UNIT), _downloading(E2_UNIT)]

        await reconciliation.sync_pending_requests()
        await reconciliation.sync_pending_requests()

        assert _statuses(request_repo, "r1") == {
            1: RequestStatus.FAILED,
            2: RequestStatus.DOWNLOADING,
        }
        assert request_repo.get_request("r1").status == RequestStatus.DOWNLOADING
        notifier.emit.assert_not_awaited()


class TestRemoval:
    @pytest.mark.asyncio
    async def test_parent_deleted_in_backend(self, reconciliation, request_repo, notifier):
        _episode_request(request_repo, "r1", [1, 2], provider_id=999)

        summary = await reconciliation.sync_pending_requests()

        assert summary.removed == 1
        assert request_repo.get_request("r1").status == RequestStatus.REMOVED
        assert emitted_events(notifier) == [RequestEvent.REMOVED]


class TestMovies:
    @pytest.mark.asyncio
    async def test_movie_progress(self, reconciliation, radarr, request_repo, notifier):
        _movie_request(request_repo, "m1")
        radarr.queue = [
            QueueRecord(id=5, item_id=MOVIE_ID, status="downloading", related_unit_ids=(MOVIE_ID,)),
            QueueRecord(id=6, item_id=77, status="downloading", related_unit_ids=(77,)),
        ]

        summary = await reconciliation.sync_pending_requests()
        assert summary.downloading == 1
        assert request_repo.get_request("m1").status == RequestStatus.DOWNLOADING

        radarr.queue = []
        radarr.tracked[MOVIE_TMDB_ID].has_file = True
        summary = await reconciliation.sync_pending_requests()

        assert summary.available == 1
        assert request_repo.get_request("m1").status == RequestStatus.AVAILABLE
        assert emitted_events(notifier) == [RequestEvent.AVAILABLE]

    @pytest.mark.asyncio
    async def test_other_movies_in_queue_are_ignored(self, reconciliation, radarr, request_repo):
        _movie_request(request_repo, "m1")
        radarr.queue = [QueueRecord(id=6, item_id=77, status="downloading")]

        await reconciliation.sync_pending_requests()

        assert request_repo.get_request("m1").status == RequestStatus.SUBMITTED


class TestPassRobustness:
    @pytest.mark.asyncio
    async def test_request_without_backend_id_is_skipped(self, reconciliation, request_repo):
        request_repo.create_request_with_items(
            MediaRequest(id="q1", kind=RequestKind.MOVIE, tmdb_id=MOVIE_TMDB_ID),
            [RequestItem(provider="radarr", status=RequestStatus.QUEUED)],
        )

        summary = await reconciliation.sync_pending_requests()

        assert summary.processed == 0
        assert summary.errors == 0

    @pytest.mark.asyncio
    async def test_error_on_one_request_does_not_stop_pass(
        self, reconciliation, sonarr, radarr, request_repo
    ):
        _episode_request(request_repo, "r1", [1])
        _movie_request(request_repo, "m1")
        radarr.tracked[MOVIE_TMDB_ID].has_file = True
        sonarr.fail_steps = {"get_item"}

        summary = await reconciliation.sync_pending_requests()

        assert summary.errors == 1
        assert summary.available == 1
        assert request_repo.get_request("r1").status == RequestStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_pass(
        self, reconciliation, sonarr, radarr, request_repo, monkeypatch
    ):
        _episode_request(request_repo, "r1", [1])
        _movie_request(request_repo, "m1")
        radarr.tracked[MOVIE_TMDB_ID].has_file = True
        monkeypatch.setattr(
            sonarr,
            "get_detail",
            AsyncMock(side_effect=AttributeError("'NoneType' object has no attribute 'get'")),
        )

        summary = await reconciliation.sync_pending_requests()

        assert summary.errors == 1
        assert summary.available == 1
        assert request_repo.get_request("m1").status == RequestStatus.AVAILABLE
        assert request_repo.get_request("r1").status == RequestStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_unavailable_queue_is_treated_as_empty(self, reconciliation, sonarr, request_repo):
        _episode_request(request_repo, "r1", [1])
        sonarr.fail_steps = {"list_queue"}
        sonarr.units[SERIES_ID][0].has_file = True

        summary = await reconciliation.sync_pending_requests()

        assert summary.available == 1

    @pytest.mark.asyncio
    async def test_no_request_makes_no_backend_call(self, reconciliation, sonarr, radarr):
        summary = await reconciliation.sync_pending_requests()

        assert summary.processed == 0
        assert sonarr.calls == []
        assert radarr.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_backend_skips_requests(self, request_repo, radarr, notifier):
        _episode_request(request_repo, "r1", [1])
        service = ReconciliationService(request_repo, radarr, None, notifier)

        summary = await service.sync_pending_requests()

        assert summary.processed == 0
        assert request_repo.get_request("r1").status == RequestStatus.SUBMITTED
