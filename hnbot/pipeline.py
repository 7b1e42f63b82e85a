"""
Fan-out/fan-in story fetch pipeline.

    generate(ids) -> Channel[int] --+--> fetch_worker 0 -> Channel[Story | None] --+
                                    +--> fetch_worker 1 -> Channel[Story | None] --+--> merge -> Channel
                                    +--> ...                                       |
                                    +--> fetch_worker N -> Channel[Story | None] --+

Every worker finishes its output with exactly one WORKER_DONE sentinel, so a
consumer of the merged channel knows the stream is exhausted once it has
counted ``worker_count`` sentinels.
"""

from __future__ import annotations

import asyncio
import time
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Coroutine,
    Generic,
    Iterable,
    Optional,
    TypeVar,
)

from hnbot.client import StoryFetcher
from hnbot.constants import SCORE_THRESHOLD, WORKER_COUNT
from hnbot.logging_config import get_logger
from hnbot.models import Story

logger = get_logger(__name__)

T = TypeVar("T")

# Terminal value each worker sends after its last story.
WORKER_DONE = None

Spawn = Callable[[Coroutine[Any, Any, None]], "asyncio.Task[None]"]


class ChannelClosed(Exception):
    """Raised by Channel.recv once the channel is closed and drained."""


class _Closed:
    pass


_CLOSED = _Closed()


class Channel(Generic[T]):
    """
    Unbounded, closable FIFO shared between asyncio tasks.

    Any number of tasks may receive from the same channel. Values are handed
    out first-come, first-served, and once the channel is closed and drained
    every receiver gets ChannelClosed.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[T | _Closed] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("send on closed channel")
        await self._queue.put(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def recv(self) -> T:
        item = await self._queue.get()
        if isinstance(item, _Closed):
            # Put the marker back so other receivers see the close too
            self._queue.put_nowait(item)
            raise ChannelClosed("channel closed")
        return item

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.recv()
            except ChannelClosed:
                return


def generate(ids: Iterable[int], spawn: Spawn) -> Channel[int]:
    """Emit each ID once, in input order, then close."""
    out: Channel[int] = Channel()

    async def produce() -> None:
        try:
            for story_id in ids:
                await out.send(story_id)
        finally:
            out.close()

    spawn(produce())
    return out


async def fetch_worker(
    worker_id: int,
    inbox: Channel[int],
    outbox: Channel[Optional[Story]],
    fetcher: StoryFetcher,
    threshold: int = SCORE_THRESHOLD,
) -> None:
    """
    Fetch stories for IDs pulled from ``inbox`` and forward those scoring at
    least ``threshold``. A failed fetch drops that ID.
    """
    elapsed = 0.0
    fetched = 0
    try:
        async for story_id in inbox:
            start = time.perf_counter()
            story: Optional[Story] = None
            try:
                story = await fetcher.get_story(story_id)
            except Exception as e:
                logger.debug(
                    "story_fetch_failed", worker=worker_id, story_id=story_id, error=str(e)
                )
            elapsed += time.perf_counter() - start
            fetched += 1
            if story is not None and story.score >= threshold:
                await outbox.send(story)

        mean_ms = (elapsed / fetched) * 1000 if fetched else 0.0
        logger.debug(
            "worker_done", worker=worker_id, fetched=fetched, mean_rtt_ms=round(mean_ms, 1)
        )
        await outbox.send(WORKER_DONE)
    finally:
        outbox.close()


def start_workers(
    inbox: Channel[int],
    fetcher: StoryFetcher,
    worker_count: int,
    threshold: int,
    spawn: Spawn,
) -> list[Channel[Optional[Story]]]:
    """Fan out: start ``worker_count`` workers sharing one input channel."""
    outboxes: list[Channel[Optional[Story]]] = []
    for worker_id in range(worker_count):
        outbox: Channel[Optional[Story]] = Channel()
        spawn(fetch_worker(worker_id, inbox, outbox, fetcher, threshold))
        outboxes.append(outbox)
    return outboxes


def merge(channels: list[Channel[T]], spawn: Spawn) -> Channel[T]:
    """Fan in: relay every value from ``channels`` into one channel."""
    out: Channel[T] = Channel()

    async def relay(c: Channel[T]) -> None:
        async for value in c:
            await out.send(value)

    async def close_when_done(relays: list[asyncio.Task[None]]) -> None:
        try:
            await asyncio.gather(*relays)
        finally:
            out.close()

    relays = [spawn(relay(c)) for c in channels]
    spawn(close_when_done(relays))
    return out


async def iter_results(
    merged: Channel[Optional[Story]], worker_count: int
) -> AsyncIterator[Story]:
    """Yield stories from a merged channel until every worker has finished."""
    done = 0
    while done < worker_count:
        try:
            value = await merged.recv()
        except ChannelClosed:
            return
        if value is WORKER_DONE:
            done += 1
        else:
            yield value


class Pipeline:
    """
    Owns every task of one generator -> workers -> merger run.

    Leaving the ``async with`` block cancels whatever is still running, so an
    abandoned run (e.g. after a deadline) never leaks workers.
    """

    def __init__(
        self,
        fetcher: StoryFetcher,
        worker_count: int = WORKER_COUNT,
        threshold: int = SCORE_THRESHOLD,
    ) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.fetcher = fetcher
        self.worker_count = worker_count
        self.threshold = threshold
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def run(self, ids: Iterable[int]) -> Channel[Optional[Story]]:
        inbox = generate(ids, self.spawn)
        outboxes = start_workers(
            inbox, self.fetcher, self.worker_count, self.threshold, self.spawn
        )
        return merge(outboxes, self.spawn)

    async def cancel(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> Pipeline:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.cancel()
