"""Tests for the single-flight icon cache."""

from __future__ import annotations

import asyncio

import pytest

from focus_flow.icon_cache import UNAVAILABLE, IconCache, to_data_uri


class RecordingFetcher:
    """Fetch double that records calls and can hold every fetch on a gate."""

    def __init__(self, icons: dict[str, str] | None = None, gated: bool = False) -> None:
        self.icons = icons or {}
        self.calls: list[str] = []
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, app_id: str) -> str:
        self.calls.append(app_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.gate.wait()
            if app_id not in self.icons:
                raise RuntimeError(f"no icon for {app_id}")
            return self.icons[app_id]
        finally:
            self.in_flight -= 1


class TestGet:
    def test_unknown_id_returns_none(self) -> None:
        cache = IconCache(RecordingFetcher())
        assert cache.get("code") is None

    @pytest.mark.asyncio
    async def test_get_never_fetches(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"})
        cache = IconCache(fetcher)
        cache.get("code")
        await asyncio.sleep(0)
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_get_returns_resolved_value(self) -> None:
        cache = IconCache(RecordingFetcher({"code": "Zm9v"}))
        await cache.resolve("code")
        assert cache.get("code") == "data:image/png;base64,Zm9v"
        assert "code" in cache
        assert len(cache) == 1


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_subscribers_share_one_fetch(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"}, gated=True)
        cache = IconCache(fetcher)
        received: list[str] = []

        for _ in range(5):
            cache.subscribe("code", received.append)
        await asyncio.sleep(0)
        assert fetcher.calls == ["code"]
        assert cache.is_pending("code")

        fetcher.gate.set()
        await cache.join()

        assert received == [to_data_uri("Zm9v")] * 5
        assert fetcher.calls == ["code"]
        assert not cache.is_pending("code")

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_fetch(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"})
        cache = IconCache(fetcher)
        results = await asyncio.gather(*(cache.resolve("code") for _ in range(10)))
        assert set(results) == {to_data_uri("Zm9v")}
        assert fetcher.calls == ["code"]
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_queue_is_fifo_with_one_fetch_in_flight(self) -> None:
        fetcher = RecordingFetcher({"a": "YQ==", "b": "Yg==", "c": "Yw=="})
        cache = IconCache(fetcher)
        for app_id in ("b", "a", "c", "a", "b"):
            cache.subscribe(app_id, lambda _src: None)
        await cache.join()

        assert fetcher.calls == ["b", "a", "c"]
        assert fetcher.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_resolved_id_is_never_fetched_again(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"})
        cache = IconCache(fetcher)
        await cache.resolve("code")
        received: list[str] = []
        cache.subscribe("code", received.append)
        await cache.resolve("code")
        assert received == [to_data_uri("Zm9v")]
        assert fetcher.calls == ["code"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_is_cached_as_unavailable(self) -> None:
        fetcher = RecordingFetcher()
        cache = IconCache(fetcher)
        received: list[str] = []
        cache.subscribe("ghost", received.append)
        cache.subscribe("ghost", received.append)
        await cache.join()

        assert received == [UNAVAILABLE, UNAVAILABLE]
        assert cache.get("ghost") == UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unavailable_is_returned_without_refetch(self) -> None:
        fetcher = RecordingFetcher()
        cache = IconCache(fetcher)
        assert await cache.resolve("ghost") == UNAVAILABLE

        later: list[str] = []
        cache.subscribe("ghost", later.append)
        assert later == [UNAVAILABLE]
        assert fetcher.calls == ["ghost"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stall_queue(self) -> None:
        fetcher = RecordingFetcher({"ok": "b2s="})
        cache = IconCache(fetcher)
        cache.subscribe("ghost", lambda _src: None)
        cache.subscribe("ok", lambda _src: None)
        await cache.join()
        assert cache.get("ghost") == UNAVAILABLE
        assert cache.get("ok") == to_data_uri("b2s=")

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_block_others(self) -> None:
        cache = IconCache(RecordingFetcher({"code": "Zm9v"}))
        received: list[str] = []

        def broken(_src: str) -> None:
            raise ValueError("boom")

        cache.subscribe("code", broken)
        cache.subscribe("code", received.append)
        await cache.join()
        assert received == [to_data_uri("Zm9v")]


class TestUnsubscribe:
    @pytest.mark.asyncio
    async def test_unsubscribed_callback_is_not_called(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"}, gated=True)
        cache = IconCache(fetcher)
        kept: list[str] = []
        dropped: list[str] = []
        cache.subscribe("code", kept.append)
        unsubscribe = cache.subscribe("code", dropped.append)
        unsubscribe()

        fetcher.gate.set()
        await cache.join()
        assert kept == [to_data_uri("Zm9v")]
        assert dropped == []

    @pytest.mark.asyncio
    async def test_last_unsubscribe_removes_entry_but_fetch_completes(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"}, gated=True)
        cache = IconCache(fetcher)
        unsubscribe = cache.subscribe("code", lambda _src: None)
        assert cache.subscriber_count("code") == 1
        unsubscribe()
        assert cache.subscriber_count("code") == 0

        fetcher.gate.set()
        await cache.join()
        assert cache.get("code") == to_data_uri("Zm9v")

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_harmless(self) -> None:
        cache = IconCache(RecordingFetcher({"code": "Zm9v"}))
        unsubscribe = cache.subscribe("code", lambda _src: None)
        unsubscribe()
        unsubscribe()
        await cache.join()


class TestResolve:
    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_others(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"}, gated=True)
        cache = IconCache(fetcher)
        doomed = asyncio.create_task(cache.resolve("code"))
        survivor = asyncio.create_task(cache.resolve("code"))
        await asyncio.sleep(0)

        doomed.cancel()
        fetcher.gate.set()

        assert await survivor == to_data_uri("Zm9v")
        with pytest.raises(asyncio.CancelledError):
            await doomed

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_fetch(self) -> None:
        fetcher = RecordingFetcher({"code": "Zm9v"}, gated=True)
        cache = IconCache(fetcher)
        cache.subscribe("code", lambda _src: None)
        await asyncio.sleep(0)
        cache.close()
        for _ in range(3):
            await asyncio.sleep(0)
        assert cache.get("code") is None
        assert not cache.is_pending("code")

    @pytest.mark.asyncio
    async def test_close_releases_queued_ids_and_waiters(self) -> None:
        fetcher = RecordingFetcher({"a": "YQ==", "b": "Yg=="}, gated=True)
        cache = IconCache(fetcher)
        cache.subscribe("a", lambda _src: None)
        cache.subscribe("b", lambda _src: None)
        waiting = asyncio.create_task(cache.resolve("b"))
        await asyncio.sleep(0)
        assert fetcher.calls == ["a"]

        cache.close()
        assert not cache.is_pending("a")
        assert not cache.is_pending("b")
        assert cache.subscriber_count("b") == 0
        with pytest.raises(asyncio.CancelledError):
            await waiting

        fetcher.gate.set()
        assert await cache.resolve("b") == to_data_uri("Yg==")
        assert await cache.resolve("a") == to_data_uri("YQ==")
        assert fetcher.calls == ["a", "b", "a"]


class TestWithoutRunningLoop:
    def test_failed_subscribe_leaves_cache_usable(self) -> None:
        fetcher = RecordingFetcher({"a": "YQ==", "b": "Yg=="})
        cache = IconCache(fetcher)
        received: list[str] = []

        with pytest.raises(RuntimeError):
            cache.subscribe("a", received.append)
        assert not cache.is_pending("a")
        assert cache.subscriber_count("a") == 0

        async def resolve_both() -> tuple[str, str]:
            return await cache.resolve("b"), await cache.resolve("a")

        assert asyncio.run(resolve_both()) == (to_data_uri("Yg=="), to_data_uri("YQ=="))
        assert fetcher.calls == ["b", "a"]
        assert received == []
