"""
Verrou asynchrone par clé.

Deux appels with_lock() sur la même clé (comparée après str()) ne
s'exécutent jamais en même temps ; des clés différentes restent totalement
concurrentes. Sert au moteur de demandes pour sérialiser la séquence
« vérification de doublon puis création » par identifiant catalogue.

Usage:
    mutex = KeyedMutex()
    async with mutex.hold(tmdb_id):
        ...
    result = await mutex.with_lock(tmdb_id, submit, request_id)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Hashable, TypeVar

T = TypeVar("T")


class _KeyState:
    """État d'une clé : drapeau de détention et condition de réveil."""

    __slots__ = ("held", "condition", "waiters")

    def __init__(self) -> None:
        self.held = False
        self.condition = asyncio.Condition()
        self.waiters = 0


class KeyedMutex:
    """
    Exclusion mutuelle par clé, sans timeout.

    Un appelant qui ne termine jamais bloque indéfiniment les suivants sur
    la même clé : les sections critiques doivent rester bornées.
    L'ordre de réveil n'est pas FIFO.
    """

    def __init__(self) -> None:
        self._states: dict[str, _KeyState] = {}

    async def acquire(self, key: Hashable) -> None:
        """Attend que la clé soit libre puis la prend."""
        name = str(key)
        state = self._states.get(name)
        if state is None:
            state = self._states[name] = _KeyState()

        async with state.condition:
            state.waiters += 1
            try:
                await state.condition.wait_for(lambda: not state.held)
                state.held = True
            finally:
                state.waiters -= 1

    async def release(self, key: Hashable) -> None:
        """Libère la clé et réveille les appelants en attente sur celle-ci."""
        name = str(key)
        state = self._states.get(name)
        if state is None or not state.held:
            raise RuntimeError(f"Key {name!r} is not locked")

        async with state.condition:
            state.held = False
            if state.waiters:
                state.condition.notify_all()
            elif self._states.get(name) is state:
                del self._states[name]

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Context manager : la clé est libérée en sortie, même sur exception."""
        await self.acquire(key)
        try:
            yield
        finally:
            await self.release(key)

    async def with_lock(
        self,
        key: Hashable,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Exécute fn(*args, **kwargs) en détenant la clé."""
        async with self.hold(key):
            return await fn(*args, **kwargs)

    def is_locked(self, key: Hashable) -> bool:
        """Vrai si la clé est actuellement détenue."""
        state = self._states.get(str(key))
        return state is not None and state.held

    def __len__(self) -> int:
        return len(self._states)
