"""
Tests unitaires du verrou asynchrone par cle.
"""

import asyncio

import pytest

from mediabroker.services.keyed_mutex import KeyedMutex


class TestKeyedMutex:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        mutex = KeyedMutex()
        inside = 0
        max_inside = 0

        async def critical():
            nonlocal inside, max_inside
            async with mutex.hold("episode:1399"):
                inside += 1
                max_inside = max(max_inside, inside)
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                inside -= 1

        await asyncio.gather(*(critical() for _ in range(10)))

        assert max_inside == 1
        assert len(mutex) == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        mutex = KeyedMutex()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with mutex.hold("movie:1"):
                entered.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await entered.wait()

        # Une autre cle est immediatement disponible
        await asyncio.wait_for(mutex.with_lock("movie:2", asyncio.sleep, 0), timeout=1)
        assert mutex.is_locked("movie:1")
        assert not mutex.is_locked("movie:2")

        release.set()
        await task
        assert not mutex.is_locked("movie:1")

    @pytest.mark.asyncio
    async def test_keys_compared_as_strings(self):
        mutex = KeyedMutex()
        await mutex.acquire(42)
        assert mutex.is_locked("42")
        await mutex.release("42")
        assert not mutex.is_locked(42)

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        mutex = KeyedMutex()

        with pytest.raises(ValueError):
            async with mutex.hold("k"):
                raise ValueError("boom")

        assert not mutex.is_locked("k")

    @pytest.mark.asyncio
    async def test_with_lock_returns_result(self):
        mutex = KeyedMutex()

        async def add(a, b=0):
            return a + b

        assert await mutex.with_lock("k", add, 1, b=2) == 3

    @pytest.mark.asyncio
    async def test_release_unlocked_key_raises(self):
        mutex = KeyedMutex()
        with pytest.raises(RuntimeError):
            await mutex.release("nope")
