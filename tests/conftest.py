"""
Fixtures pytest partagees pour les tests MediaBroker.

Ce module contient les fixtures communes utilisees dans les tests:
- Base SQLite en memoire et repositories SQLModel
- Demandeurs administrateur et utilisateur
- Settings de test avec chemins temporaires
"""

from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from mediabroker.config import Settings
from mediabroker.core.value_objects.outcomes import Requester
from mediabroker.infrastructure.persistence import models  # noqa: F401
from mediabroker.infrastructure.persistence.repositories import (
    SQLModelJobRepository,
    SQLModelRequestRepository,
)


@pytest.fixture
def engine() -> Iterator[Engine]:
    """
    Engine SQLite en memoire partage par toutes les connexions.

    StaticPool garde une seule connexion : la base reste visible depuis
    les threads de run_in_executor.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    """Session SQLModel sur la base de test."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def request_repo(session: Session) -> SQLModelRequestRepository:
    return SQLModelRequestRepository(session)


@pytest.fixture
def job_repo(session: Session) -> SQLModelJobRepository:
    return SQLModelJobRepository(session)


@pytest.fixture
def admin() -> Requester:
    """Administrateur : ses demandes partent directement au backend."""
    return Requester(id="admin-1", username="alice", is_admin=True)


@pytest.fixture
def user() -> Requester:
    """Utilisateur standard : ses demandes attendent une approbation."""
    return Requester(id="user-1", username="bob", is_admin=False)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings de test avec chemins temporaires.

    Radarr, Sonarr et TMDB sont configures avec des URLs factices.
    """
    return Settings(
        database_url=f"sqlite:///{tmp_path}/test.db",
        radarr_url="http://radarr.test/",
        radarr_api_key="radarr-key",
        sonarr_url="http://sonarr.test",
        sonarr_api_key="sonarr-key",
        tmdb_api_key="tmdb-key",
        cache_dir=tmp_path / "cache",
        log_file=tmp_path / "test.log",
        poll_delay_seconds=0,
    )
