"""
Tests du classificateur de refus « deja present ».
"""

import pytest

from mediabroker.core.exceptions import ProviderAddError
from mediabroker.services.requests import AlreadyExistsClassifier, LifecycleConfig


class TestAlreadyExistsClassifier:
    @pytest.mark.parametrize(
        "message",
        [
            "This series has already been added",
            "This movie has already been added",
            "Movie already exists in the library",
            "Path is already in use by another series",
            "ALREADY BEEN ADDED",
        ],
    )
    def test_default_pattern_matches(self, message):
        assert AlreadyExistsClassifier().matches(ProviderAddError(message))

    @pytest.mark.parametrize(
        "message",
        ["Root folder does not exist", "Invalid quality profile", ""],
    )
    def test_other_errors_do_not_match(self, message):
        assert not AlreadyExistsClassifier().matches(ProviderAddError(message))

    def test_custom_pattern(self):
        classifier = AlreadyExistsClassifier(pattern=r"existe déjà")

        assert classifier.matches(ProviderAddError("La série existe déjà"))
        assert not classifier.matches(ProviderAddError("This series has already been added"))

    def test_predicate_overrides_pattern(self):
        classifier = AlreadyExistsClassifier(predicate=lambda e: e.status_code == 409)

        assert classifier.matches(ProviderAddError("conflict", status_code=409))
        assert not classifier.matches(ProviderAddError("already been added", status_code=400))


class TestLifecycleConfig:
    def test_from_settings(self, test_settings):
        config = LifecycleConfig.from_settings(test_settings)

        assert config.poll_attempts_new == 4
        assert config.poll_attempts_existing == 1
        assert config.poll_delay_seconds == 0
        assert config.already_exists_pattern == test_settings.already_exists_pattern
