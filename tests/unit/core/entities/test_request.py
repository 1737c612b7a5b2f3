"""
Tests unitaires des entites de demande et de l'agregation de statut.
"""

import pytest

from mediabroker.core.entities.request import (
    EpisodeKey,
    MediaRequest,
    NON_TERMINAL_STATUSES,
    RequestItem,
    RequestKind,
    RequestStatus,
    aggregate_status,
)

S = RequestStatus


class TestAggregateStatus:
    """aggregate_status est une fonction pure sur les statuts d'elements."""

    def test_empty_is_pending(self):
        assert aggregate_status([]) == S.PENDING

    @pytest.mark.parametrize("status", list(RequestStatus))
    def test_uniform_statuses(self, status):
        assert aggregate_status([status, status, status]) == status

    def test_some_available_is_partial(self):
        assert aggregate_status([S.AVAILABLE, S.SUBMITTED]) == S.PARTIALLY_AVAILABLE
        assert aggregate_status([S.AVAILABLE, S.FAILED]) == S.PARTIALLY_AVAILABLE

    def test_downloading_wins_over_submitted(self):
        assert aggregate_status([S.SUBMITTED, S.DOWNLOADING, S.PENDING]) == S.DOWNLOADING

    def test_closed_with_failure_is_failed(self):
        assert aggregate_status([S.FAILED, S.REMOVED]) == S.FAILED

    def test_closed_without_failure(self):
        assert aggregate_status([S.DENIED, S.REMOVED]) == S.DENIED

    def test_least_advanced_handed_off_status(self):
        assert aggregate_status([S.QUEUED, S.SUBMITTED]) == S.QUEUED
        assert aggregate_status([S.QUEUED, S.PENDING]) == S.QUEUED

    def test_partial_submission_stays_submitted(self):
        assert aggregate_status([S.SUBMITTED, S.PENDING]) == S.SUBMITTED
        assert aggregate_status([S.SUBMITTED, S.PENDING]) in NON_TERMINAL_STATUSES

    def test_pending_when_nothing_handed_off(self):
        assert aggregate_status([S.PENDING, S.FAILED]) == S.PENDING

    def test_already_exists_with_closed(self):
        assert aggregate_status([S.ALREADY_EXISTS, S.REMOVED]) == S.ALREADY_EXISTS

    def test_active_item_keeps_request_open(self):
        assert aggregate_status([S.FAILED, S.SUBMITTED]) == S.SUBMITTED

    def test_accepts_raw_values(self):
        assert aggregate_status(["available", "available"]) == S.AVAILABLE


class TestEpisodeKey:
    def test_str(self):
        assert str(EpisodeKey(1, 2)) == "S01E02"

    def test_ordering(self):
        keys = [EpisodeKey(2, 1), EpisodeKey(1, 10), EpisodeKey(1, 2)]
        assert sorted(keys) == [EpisodeKey(1, 2), EpisodeKey(1, 10), EpisodeKey(2, 1)]

    def test_hashable(self):
        assert {EpisodeKey(1, 1), EpisodeKey(1, 1)} == {EpisodeKey(1, 1)}


class TestMediaRequest:
    def test_episode_helpers(self):
        request = MediaRequest(
            id="abc",
            kind=RequestKind.EPISODE,
            tmdb_id=1399,
            items=[
                RequestItem(provider="sonarr", season=2, episode=1),
                RequestItem(provider="sonarr", season=2, episode=3, provider_id=7),
            ],
        )

        assert request.season == 2
        assert request.episode_keys == [EpisodeKey(2, 1), EpisodeKey(2, 3)]
        assert request.provider_id == 7

    def test_movie_has_no_keys(self):
        request = MediaRequest(
            id="m", kind=RequestKind.MOVIE, tmdb_id=27205, items=[RequestItem(provider="radarr")]
        )

        assert request.season is None
        assert request.episode_keys == []
        assert request.items[0].key is None
        assert request.provider_id is None
