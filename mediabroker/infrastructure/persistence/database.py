"""
Configuration de la base de données pour MediaBroker.

Ce module fournit :
- Engine SQLAlchemy (SQLite par défaut, PostgreSQL en déploiement multi-instance)
- Session factory
- Initialisation des tables, migrations légères et jobs par défaut

La base de données est configurée via MEDIABROKER_DATABASE_URL
(défaut: sqlite:///mediabroker.db).
"""

from collections.abc import Generator
from pathlib import Path
from typing import Optional

from loguru import logger
from sqlalchemy import Engine, inspect, text
from sqlmodel import Session, SQLModel, create_engine

# Engine global - initialisé lors du premier appel à get_engine()
_engine: Optional[Engine] = None


def build_engine(db_url: str) -> Engine:
    """
    Crée un engine pour l'URL donnée.

    SQLite est partagé entre threads (run_in_executor de diskcache, CLI),
    d'où check_same_thread=False.
    """
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if db_url.startswith("sqlite:///") and not db_url.startswith("sqlite:///:memory:"):
            db_path = Path(db_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(exist_ok=True, parents=True)

    return create_engine(db_url, echo=False, connect_args=connect_args)


def get_engine() -> Engine:
    """Retourne l'engine global, en le créant depuis la configuration si nécessaire."""
    global _engine
    if _engine is None:
        from mediabroker.config import Settings

        _engine = build_engine(Settings().database_url)
    return _engine


def get_session() -> Generator[Session, None, None]:
    """
    Générateur de session SQLModel.

    Utilisation :
        session = next(get_session())

    Ou avec context manager :
        with Session(get_engine()) as session:
            ...
    """
    with Session(get_engine()) as session:
        yield session


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Crée les tables, applique les migrations et enregistre les jobs par défaut.

    Idempotent : doit être appelée au démarrage (CLI ou process scheduler).
    """
    # Import des modèles pour enregistrer leurs métadonnées
    from mediabroker.infrastructure.persistence import models  # noqa: F401
    from mediabroker.infrastructure.persistence.repositories.job_repository import (
        SQLModelJobRepository,
    )
    from mediabroker.services.scheduler.definitions import default_jobs

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    _run_migrations(engine)

    with Session(engine) as session:
        SQLModelJobRepository(session).ensure_default_jobs(default_jobs())


def _run_migrations(engine: Engine) -> None:
    """
    Ajoute les colonnes manquantes dans les tables existantes.

    create_all() ne modifie pas une table déjà créée ; les colonnes
    apparues après la première version sont ajoutées ici.
    """
    columns = {col["name"] for col in inspect(engine).get_columns("request_items")}

    # Migration 1: drapeau d'erreur de file pour l'amortissement des échecs
    if "queue_error_seen" not in columns:
        with engine.begin() as conn:
            conn.execute(
                text(
                    "ALTER TABLE request_items "
                    "ADD COLUMN queue_error_seen BOOLEAN NOT NULL DEFAULT FALSE"
                )
            )
        logger.info("Migration appliquée", column="request_items.queue_error_seen")
