"""
Modèles SQLModel pour la base de données MediaBroker.

Ces modèles représentent les tables de la base. Ils sont distincts des
entités de domaine (dataclass dans core/entities/) selon l'architecture
hexagonale ; la conversion se fait dans les repositories.

Tables:
- media_requests: Demandes (statut agrégé, métadonnées catalogue)
- request_items: Éléments demandés (un film, ou un épisode)
- scheduled_jobs: Jobs planifiés (cron, dernière et prochaine exécution)
- job_runs: Historique d'exécution des jobs
- scheduler_locks: Verrou du scheduler pour les bases sans verrou consultatif

Toutes les dates sont stockées en UTC naïf (voir utils.helpers.utc_now).
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, Index, SQLModel

from mediabroker.utils.helpers import utc_now


class MediaRequestModel(SQLModel, table=True):
    """
    Demande d'un utilisateur.

    Le statut est toujours le statut agrégé des éléments, recalculé par
    le repository à chaque écriture.
    """

    __tablename__ = "media_requests"

    id: str = Field(primary_key=True, max_length=32)
    kind: str = Field(index=True)  # movie, episode
    tmdb_id: int = Field(index=True)
    title: str = Field(default="")
    status: str = Field(default="pending", index=True)
    requested_by: str = Field(default="", index=True)
    status_reason: Optional[str] = None
    release_year: Optional[int] = None
    poster_path: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RequestItemModel(SQLModel, table=True):
    """
    Élément d'une demande : le film, ou un couple (saison, épisode).

    provider_id est l'identifiant backend du parent (film ou série),
    provider_unit_id celui de l'épisode une fois résolu.
    """

    __tablename__ = "request_items"
    __table_args__ = (
        Index("ix_request_items_unit", "season", "episode"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    request_id: str = Field(foreign_key="media_requests.id", index=True)
    provider: str  # radarr, sonarr
    provider_id: Optional[int] = None
    provider_unit_id: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    status: str = Field(default="pending", index=True)
    queue_error_seen: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ScheduledJobModel(SQLModel, table=True):
    """Job planifié, identifié par son nom (clé du registre de handlers)."""

    __tablename__ = "scheduled_jobs"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    schedule: str
    interval_seconds: int = Field(default=300)
    enabled: bool = Field(default=True)
    run_on_start: bool = Field(default=False)
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_error: Optional[str] = None
    failure_count: int = Field(default=0)
    disabled_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class JobRunModel(SQLModel, table=True):
    """Une exécution de job (succès ou échec)."""

    __tablename__ = "job_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str = Field(index=True)
    status: str  # success, failure
    started_at: datetime
    finished_at: datetime
    duration_ms: int = Field(default=0)
    error: Optional[str] = None
    details: Optional[str] = None


class SchedulerLockModel(SQLModel, table=True):
    """
    Verrou exclusif par ligne, utilisé quand la base n'offre pas
    pg_try_advisory_lock (SQLite).
    """

    __tablename__ = "scheduler_locks"

    lock_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    holder: str
    expires_at: datetime
