"""Unit tests for the fan-out fetch combiner."""
from __future__ import annotations

import asyncio

import pytest

from walletlens.models import Disposition
from walletlens.services.fanout import fan_out


class TestFanOut:
    @pytest.mark.asyncio
    async def test_all_succeed(self) -> None:
        async def fetch(key: str) -> str:
            return key.upper()

        result = await fan_out(["x", "y"], fetch)

        assert result.data == {"x": "X", "y": "Y"}
        assert result.disposition is Disposition.SUCCESS
        assert result.percentage == 100

    @pytest.mark.asyncio
    async def test_partial_success(self) -> None:
        async def fetch(key: str) -> int:
            if key == "Y":
                raise ConnectionError("upstream down")
            return len(key)

        result = await fan_out(["X", "Y", "Z"], fetch)

        assert set(result.data) == {"X", "Z"}
        assert result.failed_keys == ("Y",)
        assert result.errors[0].reason == "upstream down"
        assert result.disposition is Disposition.PARTIAL
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_cancelled_fetch_is_a_failure(self) -> None:
        async def fetch(key: str) -> str:
            if key == "Y":
                raise asyncio.CancelledError()
            return key.lower()

        result = await fan_out(["X", "Y", "Z"], fetch)

        assert result.data == {"X": "x", "Z": "z"}
        assert result.failed_keys == ("Y",)
        assert result.errors[0].reason == "Cancelled"
        assert result.disposition is Disposition.PARTIAL

    @pytest.mark.asyncio
    async def test_total_failure(self) -> None:
        async def fetch(key: str) -> int:
            raise RuntimeError()

        result = await fan_out(["a", "b"], fetch)

        assert result.data == {}
        assert result.disposition is Disposition.FAILURE
        assert [e.reason for e in result.errors] == ["RuntimeError", "RuntimeError"]

    @pytest.mark.asyncio
    async def test_timeout_is_a_failure(self) -> None:
        async def fetch(key: str) -> str:
            if key == "slow":
                await asyncio.sleep(5)
            return key

        result = await fan_out(["fast", "slow"], fetch, timeout=0.05)

        assert result.data == {"fast": "fast"}
        assert result.errors[0].key == "slow"
        assert result.errors[0].reason == "Timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_waits_for_every_fetch(self) -> None:
        finished: list[str] = []

        async def fetch(key: str) -> str:
            if key == "boom":
                raise ValueError("bad")
            await asyncio.sleep(0.02)
            finished.append(key)
            return key

        result = await fan_out(["boom", "a", "b"], fetch)

        assert sorted(finished) == ["a", "b"]
        assert result.loaded == 2

    @pytest.mark.asyncio
    async def test_duplicate_keys_fetched_once(self) -> None:
        calls: list[str] = []

        async def fetch(key: str) -> str:
            calls.append(key)
            return key

        result = await fan_out(["a", "a", "b"], fetch)

        assert calls == ["a", "b"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_no_keys(self) -> None:
        async def fetch(key: str) -> str:
            return key

        result = await fan_out([], fetch)

        assert result.data == {}
        assert result.disposition is Disposition.SUCCESS

    @pytest.mark.asyncio
    async def test_tuple_keys(self) -> None:
        async def fetch(key: tuple[str, str]) -> str:
            return "-".join(key)

        result = await fan_out([("0xA", "2025-01-01")], fetch)

        assert result.data == {("0xA", "2025-01-01"): "0xA-2025-01-01"}
