"""Unit tests for per-conversation locking."""
import asyncio

import pytest

from pedidobot.services.conversation.locks import KeyedLock


class TestKeyedLock:
    """Test KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_serialized(self):
        """Test holders of the same key never overlap."""
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.acquire("c1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        """Test different keys do not block each other."""
        locks = KeyedLock()
        events = []

        async def worker(key):
            async with locks.acquire(key):
                events.append(f"{key}-start")
                await asyncio.sleep(0.01)
                events.append(f"{key}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events[:2] == ["a-start", "b-start"]

    @pytest.mark.asyncio
    async def test_unused_locks_released(self):
        """Test lock entries are dropped once nobody uses them."""
        locks = KeyedLock()

        async with locks.acquire("c1"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        """Test the lock is released when the body raises."""
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.acquire("c1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.acquire("c1"):
            pass
