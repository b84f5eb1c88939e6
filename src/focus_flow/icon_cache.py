"""Process-wide application icon cache with single-flight backend fetches."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

UNAVAILABLE = "error"

IconFetcher = Callable[[str], Awaitable[str]]
IconCallback = Callable[[str], None]


def to_data_uri(base64_png: str) -> str:
    return f"data:image/png;base64,{base64_png}"


class IconCache:
    """Resolve app ids to icon data URIs, fetching each id at most once.

    Requests are queued FIFO and fetched one at a time. A failed fetch is
    stored as the permanent ``UNAVAILABLE`` sentinel and never retried. All
    mutation happens on the event loop that owns the cache; callers must use
    it from that loop only.
    """

    def __init__(self, fetch_icon: IconFetcher) -> None:
        self._fetch_icon = fetch_icon
        self._cache: dict[str, str] = {}
        self._pending: set[str] = set()
        self._queue: deque[str] = deque()
        self._subscribers: dict[str, list[IconCallback]] = {}
        self._waiters: dict[str, asyncio.Future[str]] = {}
        self._processing = False
        self._worker: Optional[asyncio.Task[None]] = None
        self.fetch_count = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._cache

    def get(self, app_id: str) -> Optional[str]:
        """Return the cached value, or ``None`` if the id is not resolved yet."""
        return self._cache.get(app_id)

    def is_pending(self, app_id: str) -> bool:
        return app_id in self._pending

    def subscribe(self, app_id: str, callback: IconCallback) -> Callable[[], None]:
        """Call ``callback`` once with the icon for ``app_id``.

        Returns a function that removes the callback again. Must be called
        while the event loop is running.
        """
        cached = self._cache.get(app_id)
        if cached is not None:
            callback(cached)
            return lambda: None

        self._request_icon(app_id)
        self._subscribers.setdefault(app_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(app_id)
            if not callbacks:
                return
            try:
                callbacks.remove(callback)
            except ValueError:
                return
            if not callbacks:
                del self._subscribers[app_id]

        return unsubscribe

    def subscriber_count(self, app_id: str) -> int:
        return len(self._subscribers.get(app_id, ()))

    async def resolve(self, app_id: str) -> str:
        """Wait for the icon of ``app_id``; concurrent callers share one result."""
        cached = self._cache.get(app_id)
        if cached is not None:
            return cached
        waiter = self._waiters.get(app_id)
        if waiter is None:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[app_id] = waiter
        self._request_icon(app_id)
        return await asyncio.shield(waiter)

    async def join(self) -> None:
        """Wait until every queued id has been resolved."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    def close(self) -> None:
        """Cancel the in-flight fetch and drop everything still queued.

        Outstanding ``resolve()`` callers are cancelled and subscribers are
        forgotten; dropped ids can be requested again afterwards.
        """
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None
        self._processing = False
        self._queue.clear()
        self._pending.clear()
        self._subscribers.clear()
        for waiter in self._waiters.values():
            if not waiter.done():
                waiter.cancel()
        self._waiters.clear()

    def _request_icon(self, app_id: str) -> None:
        if app_id in self._cache or app_id in self._pending:
            return
        self._pending.add(app_id)
        self._queue.append(app_id)
        try:
            self._process_queue()
        except RuntimeError:
            # No running event loop: leave the id requestable again.
            self._queue.remove(app_id)
            self._pending.discard(app_id)
            raise

    def _process_queue(self) -> None:
        if self._processing or not self._queue:
            return
        loop = asyncio.get_running_loop()
        app_id = self._queue.popleft()
        self._processing = True
        self._worker = loop.create_task(self._fetch(app_id))

    async def _fetch(self, app_id: str) -> None:
        self.fetch_count += 1
        try:
            blob = await self._fetch_icon(app_id)
        except asyncio.CancelledError:
            if self._worker is asyncio.current_task():
                self._pending.discard(app_id)
                self._processing = False
            raise
        except Exception as exc:
            logger.warning("Failed to fetch icon for %s: %s", app_id, exc)
            value = UNAVAILABLE
        else:
            value = to_data_uri(blob)

        self._cache[app_id] = value
        self._pending.discard(app_id)
        self._processing = False
        self._notify(app_id, value)
        self._process_queue()

    def _notify(self, app_id: str, value: str) -> None:
        for callback in self._subscribers.pop(app_id, []):
            try:
                callback(value)
            except Exception:
                logger.exception("Icon subscriber for %s failed.", app_id)
        waiter = self._waiters.pop(app_id, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(value)
