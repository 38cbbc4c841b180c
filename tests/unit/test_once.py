"""Tests for utils/once.py module."""

from __future__ import annotations

import asyncio

import pytest

from mdfetch.utils.once import AsyncOnceCell


class TestAsyncOnceCell:
    """Tests for AsyncOnceCell."""

    @pytest.mark.asyncio
    async def test_initializes_once(self):
        cell: AsyncOnceCell[str] = AsyncOnceCell()
        calls = 0

        async def factory() -> str:
            nonlocal calls
            calls += 1
            return "value"

        assert cell.get() is None
        assert not cell.initialized

        assert await cell.get_or_init(factory) == "value"
        assert await cell.get_or_init(factory) == "value"
        assert calls == 1
        assert cell.initialized
        assert cell.get() == "value"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_construction(self):
        cell: AsyncOnceCell[object] = AsyncOnceCell()
        calls = 0

        async def factory() -> object:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return object()

        results = await asyncio.gather(*(cell.get_or_init(factory) for _ in range(10)))

        assert calls == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_failure_leaves_cell_empty(self):
        cell: AsyncOnceCell[str] = AsyncOnceCell()
        attempts = 0

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("first attempt fails")
            return "recovered"

        with pytest.raises(RuntimeError, match="first attempt fails"):
            await cell.get_or_init(flaky)
        assert not cell.initialized

        assert await cell.get_or_init(flaky) == "recovered"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_reset_returns_previous_value(self):
        cell: AsyncOnceCell[int] = AsyncOnceCell()

        async def factory() -> int:
            return 42

        await cell.get_or_init(factory)
        assert cell.reset() == 42
        assert not cell.initialized
        assert cell.reset() is None
