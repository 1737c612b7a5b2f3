"""
Tests de l'initialisation de la base : tables, migrations et jobs par defaut.
"""

from datetime import datetime

from sqlalchemy import inspect, text
from sqlmodel import Session

from mediabroker.core.entities.request import MediaRequest, RequestItem, RequestKind
from mediabroker.infrastructure.persistence.database import build_engine, init_db
from mediabroker.infrastructure.persistence.repositories import (
    SQLModelJobRepository,
    SQLModelRequestRepository,
)
from mediabroker.services.scheduler import REQUEST_SYNC


def test_init_db_creates_tables_and_default_job(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/data/broker.db")

    init_db(engine)

    tables = set(inspect(engine).get_table_names())
    assert {"media_requests", "request_items", "scheduled_jobs", "job_runs", "scheduler_locks"} <= tables
    with Session(engine) as session:
        job = SQLModelJobRepository(session).get_job(REQUEST_SYNC)
    assert job is not None
    assert job.run_on_start is True
    engine.dispose()


def test_init_db_is_idempotent(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/broker.db")

    init_db(engine)
    init_db(engine)

    with Session(engine) as session:
        assert len(SQLModelJobRepository(session).list_jobs()) == 1
    engine.dispose()


def test_migration_adds_queue_error_column(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/legacy.db")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE request_items ("
                "id INTEGER PRIMARY KEY, request_id VARCHAR(32) NOT NULL, "
                "provider VARCHAR NOT NULL, provider_id INTEGER, provider_unit_id INTEGER, "
                "season INTEGER, episode INTEGER, status VARCHAR NOT NULL, "
                "created_at DATETIME NOT NULL, updated_at DATETIME NOT NULL)"
            )
        )

    init_db(engine)

    columns = {col["name"] for col in inspect(engine).get_columns("request_items")}
    assert "queue_error_seen" in columns
    engine.dispose()


def test_naive_utc_datetimes_round_trip(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/broker.db")
    init_db(engine)
    created_at = datetime(2026, 1, 10, 12, 0)

    with Session(engine) as session:
        repo = SQLModelRequestRepository(session)
        repo.create_request_with_items(
            MediaRequest(id="m1", kind=RequestKind.MOVIE, tmdb_id=27205, created_at=created_at),
            [RequestItem(provider="radarr")],
        )

    with Session(engine) as session:
        loaded = SQLModelRequestRepository(session).get_request("m1")
    assert loaded.created_at == created_at
    assert loaded.created_at.tzinfo is None
    engine.dispose()
