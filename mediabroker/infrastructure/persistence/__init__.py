"""
Module de persistance pour MediaBroker.

Ce module fournit l'infrastructure de stockage utilisant SQLModel (SQLAlchemy) :

- database.py : Engine, session factory, initialisation et migrations
- models.py : Modèles SQLModel représentant les tables
- repositories/ : Implémentations des ports de persistance
- advisory_lock.py : Verrou inter-processus du scheduler

Usage:
    from mediabroker.infrastructure.persistence import init_db, get_session

    init_db()  # Crée les tables et les jobs par défaut
    session = next(get_session())
"""

from mediabroker.infrastructure.persistence.database import (
    build_engine,
    get_engine,
    get_session,
    init_db,
)
from mediabroker.infrastructure.persistence.models import (
    JobRunModel,
    MediaRequestModel,
    RequestItemModel,
    ScheduledJobModel,
    SchedulerLockModel,
)

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "init_db",
    "MediaRequestModel",
    "RequestItemModel",
    "ScheduledJobModel",
    "JobRunModel",
    "SchedulerLockModel",
]
