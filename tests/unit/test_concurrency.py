"""Unit tests for the shared concurrency helpers."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import throttled_gather, with_timeout
from src.utils.errors import EmbeddingError


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_preserves_order(self) -> None:
        async def _value(n: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return n

        results = await throttled_gather([_value(1, 0.03), _value(2, 0.0), _value(3, 0.01)])
        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_semaphore_bounds_concurrency(self) -> None:
        active = 0
        peak = 0

        async def _work() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await throttled_gather([_work() for _ in range(10)], semaphore=asyncio.Semaphore(3))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_exceptions_are_returned(self) -> None:
        async def _fail() -> None:
            raise ValueError("bad batch")

        async def _ok() -> str:
            return "ok"

        results = await throttled_gather([_fail(), _ok()])
        assert isinstance(results[0], ValueError)
        assert results[1] == "ok"

    @pytest.mark.asyncio
    async def test_exceptions_raise_when_requested(self) -> None:
        async def _fail() -> None:
            raise ValueError("bad batch")

        with pytest.raises(ValueError):
            await throttled_gather([_fail()], return_exceptions=False)


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result_within_limit(self) -> None:
        async def _fast() -> int:
            return 7

        assert await with_timeout(_fast(), 1.0, EmbeddingError) == 7

    @pytest.mark.asyncio
    async def test_timeout_raises_domain_error(self) -> None:
        with pytest.raises(EmbeddingError) as exc_info:
            await with_timeout(asyncio.sleep(1.0), 0.01, EmbeddingError, "openai_embedding")

        assert exc_info.value.provider_name == "openai_embedding"
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [None, 0, -1])
    async def test_non_positive_timeout_disables_limit(self, timeout: float | None) -> None:
        async def _slowish() -> str:
            await asyncio.sleep(0.01)
            return "done"

        assert await with_timeout(_slowish(), timeout, EmbeddingError) == "done"
