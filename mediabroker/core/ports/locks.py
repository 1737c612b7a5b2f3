"""
Interface port pour le verrou consultatif inter-processus.

Le verrou sérialise les ticks du scheduler entre instances : seule
l'instance qui l'obtient évalue les jobs à lancer.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator


class IAdvisoryLock(ABC):
    """Verrou nommé fourni par la base partagée. Acquisition non bloquante."""

    @abstractmethod
    async def try_acquire(self, lock_id: int) -> bool:
        """Tente d'obtenir le verrou, retourne False immédiatement s'il est pris."""
        ...

    @abstractmethod
    async def release(self, lock_id: int) -> None:
        """Libère le verrou détenu par cette instance."""
        ...

    @asynccontextmanager
    async def try_hold(self, lock_id: int) -> AsyncIterator[bool]:
        """
        Context manager qui libère toujours le verrou s'il a été obtenu.

        Usage:
            async with lock.try_hold(42) as acquired:
                if not acquired:
                    return
        """
        acquired = await self.try_acquire(lock_id)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(lock_id)
