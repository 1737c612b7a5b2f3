"""
Verrou consultatif inter-processus adossé à la base de données.

PostgreSQL : pg_try_advisory_lock / pg_advisory_unlock sur une connexion
dédiée, conservée entre l'acquisition et la libération (un verrou
consultatif de session appartient à la connexion qui l'a pris).

Autres bases (SQLite) : une ligne dans scheduler_locks par verrou, avec
une date d'expiration. Une ligne expirée (instance morte) peut être reprise.

Les appels bloquants passent par run_in_executor pour ne pas figer la
boucle d'événements.
"""

import asyncio
import uuid
from datetime import timedelta
from functools import partial
from typing import Optional

from loguru import logger
from sqlalchemy import Connection, Engine, delete, insert, select, text, update
from sqlalchemy.exc import IntegrityError

from mediabroker.core.ports.locks import IAdvisoryLock
from mediabroker.infrastructure.persistence.models import SchedulerLockModel
from mediabroker.utils.helpers import utc_now


class DatabaseAdvisoryLock(IAdvisoryLock):
    """
    Verrou non bloquant partagé par toutes les instances utilisant la même base.

    Attributes:
        holder: Jeton unique de cette instance (utilisé par le mode table)
    """

    def __init__(self, engine: Engine, ttl_seconds: int = 300) -> None:
        self._engine = engine
        self._ttl = timedelta(seconds=ttl_seconds)
        self.holder = uuid.uuid4().hex
        self._connections: dict[int, Connection] = {}

    @property
    def uses_pg_advisory_lock(self) -> bool:
        return self._engine.dialect.name == "postgresql"

    async def try_acquire(self, lock_id: int) -> bool:
        loop = asyncio.get_running_loop()
        if self.uses_pg_advisory_lock:
            acquired = await loop.run_in_executor(None, partial(self._pg_try_acquire, lock_id))
        else:
            acquired = await loop.run_in_executor(None, partial(self._row_try_acquire, lock_id))
        logger.debug("Verrou scheduler", lock_id=lock_id, acquired=acquired)
        return acquired

    async def release(self, lock_id: int) -> None:
        loop = asyncio.get_running_loop()
        if self.uses_pg_advisory_lock:
            await loop.run_in_executor(None, partial(self._pg_release, lock_id))
        else:
            await loop.run_in_executor(None, partial(self._row_release, lock_id))

    # PostgreSQL

    def _pg_try_acquire(self, lock_id: int) -> bool:
        if lock_id in self._connections:
            return False
        conn = self._engine.connect()
        try:
            acquired = bool(
                conn.execute(text("SELECT pg_try_advisory_lock(:id)"), {"id": lock_id}).scalar()
            )
            conn.commit()
        except Exception:
            conn.close()
            raise
        if not acquired:
            conn.close()
            return False
        self._connections[lock_id] = conn
        return True

    def _pg_release(self, lock_id: int) -> None:
        conn: Optional[Connection] = self._connections.pop(lock_id, None)
        if conn is None:
            return
        try:
            conn.execute(text("SELECT pg_advisory_unlock(:id)"), {"id": lock_id})
            conn.commit()
        finally:
            conn.close()

    # Table scheduler_locks

    def _row_try_acquire(self, lock_id: int) -> bool:
        table = SchedulerLockModel.__table__
        now = utc_now()
        with self._engine.begin() as conn:
            # Reprise d'un verrou expiré
            conn.execute(
                update(table)
                .where(table.c.lock_id == lock_id)
                .where(table.c.expires_at < now)
                .values(holder=self.holder, expires_at=now + self._ttl)
            )
            row = conn.execute(
                select(table.c.holder, table.c.expires_at).where(table.c.lock_id == lock_id)
            ).first()
        if row is not None:
            return row.holder == self.holder and row.expires_at > now

        try:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(table).values(
                        lock_id=lock_id, holder=self.holder, expires_at=now + self._ttl
                    )
                )
        except IntegrityError:
            # Une autre instance a inséré la ligne entre-temps
            return False
        return True

    def _row_release(self, lock_id: int) -> None:
        table = SchedulerLockModel.__table__
        with self._engine.begin() as conn:
            conn.execute(
                delete(table)
                .where(table.c.lock_id == lock_id)
                .where(table.c.holder == self.holder)
            )
