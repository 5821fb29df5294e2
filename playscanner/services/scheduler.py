"""
In-process collection scheduler.

Optional: production deployments usually trigger ``POST /collect`` (or
``scripts/collect.py``) from an external cron.  When
``PLAYSCANNER_COLLECT_INTERVAL`` is set, this loop runs a collection
pass every interval, followed by a cache cleanup sweep.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from playscanner.errors import CollectionInProgressError
from playscanner.services.collector import Collector
from playscanner.store import PersistentCacheStore

logger = logging.getLogger(__name__)


class CollectionScheduler:
    """Periodic background loop around :class:`Collector`."""

    def __init__(
        self,
        collector: Collector,
        store: PersistentCacheStore,
        *,
        interval: float,
        retention_days: int = 30,
        name: str = "collection-scheduler",
    ) -> None:
        self._collector = collector
        self._store = store
        self._interval = interval
        self._retention_days = retention_days
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self.enabled:
            logger.info("%s disabled (no interval configured)", self._name)
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (every %ds)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("%s stopped", self._name)

    async def tick(self) -> None:
        """One scheduled pass: collect, then sweep expired entries."""
        try:
            await self._collector.collect_all()
        except CollectionInProgressError:
            logger.info("%s: previous pass still running, skipping", self._name)
            return
        await self._store.cleanup()
        await self._store.prune_history(self._retention_days)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("%s tick failed, will retry", self._name)
