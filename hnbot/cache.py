from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from hnbot.client import StoryFetcher
from hnbot.constants import REFRESH_INTERVAL, SCORE_THRESHOLD, WORKER_COUNT
from hnbot.errors import UpstreamError
from hnbot.logging_config import get_logger
from hnbot.models import Story
from hnbot.pipeline import Pipeline, iter_results

logger = get_logger(__name__)


class RWLock:
    """
    Reader/writer lock for asyncio tasks: any number of readers, or a single
    writer. Waiting writers block new readers so a refresh is never starved.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writing(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and self._waiting_writers == 0
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            finally:
                self._waiting_writers -= 1
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class StoryCache:
    """
    In-memory map of story ID to Story.

    Written only by the CacheRefresher; command handlers read snapshots.
    Entries are replaced in place and never evicted, so a story that drops
    off the front page lingers until it is fetched again.
    """

    def __init__(self) -> None:
        self._stories: dict[int, Story] = {}
        self._lock = RWLock()
        self.updated_at: Optional[float] = None

    def __len__(self) -> int:
        return len(self._stories)

    async def snapshot(self) -> list[Story]:
        async with self._lock.read():
            return list(self._stories.values())

    async def get(self, story_id: int) -> Optional[Story]:
        async with self._lock.read():
            return self._stories.get(story_id)

    async def update(self, stories: Iterable[Story]) -> int:
        written = 0
        async with self._lock.write():
            for story in stories:
                self._stories[story.id] = story
                written += 1
            self.updated_at = time.time()
        return written


class CacheRefresher:
    """Periodically re-runs the pipeline over all top stories into a StoryCache."""

    def __init__(
        self,
        fetcher: StoryFetcher,
        cache: StoryCache,
        interval: float = REFRESH_INTERVAL,
        worker_count: int = WORKER_COUNT,
        threshold: int = SCORE_THRESHOLD,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.interval = interval
        self.worker_count = worker_count
        self.threshold = threshold
        self.iterations = 0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_once(self) -> int:
        """
        Fetch the top story list and write every qualifying story into the
        cache. Raises UpstreamError if the top story list is unavailable.
        """
        start = time.monotonic()
        ids = await self.fetcher.get_top_story_ids()
        async with Pipeline(self.fetcher, self.worker_count, self.threshold) as pipeline:
            merged = pipeline.run(ids)
            stories = [story async for story in iter_results(merged, self.worker_count)]
        written = await self.cache.update(stories)
        logger.info(
            "cache_refreshed",
            iteration=self.iterations,
            scanned=len(ids),
            stories=written,
            cached=len(self.cache),
            elapsed=round(time.monotonic() - start, 3),
        )
        return written

    async def run_forever(self) -> None:
        while True:
            self.iterations += 1
            start = time.monotonic()
            try:
                await self.refresh_once()
            except UpstreamError as e:
                logger.warning(
                    "cache_refresh_failed", iteration=self.iterations, error=str(e)
                )
            except Exception:
                logger.exception("cache_refresh_crashed", iteration=self.iterations)
            # Ticks are measured from the start of the previous run
            await asyncio.sleep(max(0.0, self.interval - (time.monotonic() - start)))

    def start(self) -> asyncio.Task[None]:
        task = self._task
        if task is None or task.done():
            task = asyncio.create_task(self.run_forever())
            self._task = task
        return task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
