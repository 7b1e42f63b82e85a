"""
Selection policies over fetched stories.

- ``collect_until_deadline``: drain a live merged pipeline stream, keeping
  everything that arrives before the deadline.
- ``best_of_k``: pick the K highest-scored stories from a materialized set
  (e.g. the shared cache).
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from hnbot.client import StoryFetcher
from hnbot.constants import MAX_TOP_TIMEOUT, SCORE_THRESHOLD, WORKER_COUNT
from hnbot.logging_config import get_logger
from hnbot.models import Story
from hnbot.pipeline import WORKER_DONE, Channel, ChannelClosed, Pipeline
from hnbot.rank_queue import RankQueue
from hnbot.report import Report

logger = get_logger(__name__)


def clamp_timeout(timeout: float) -> float:
    return max(0.0, min(float(timeout), MAX_TOP_TIMEOUT))


async def collect_until_deadline(
    merged: Channel[Optional[Story]],
    worker_count: int,
    timeout: float,
    threshold: int = SCORE_THRESHOLD,
    scanned: int = 0,
) -> Report:
    """
    Collect every story from ``merged`` until all ``worker_count`` sentinels
    have arrived or ``timeout`` seconds (capped at MAX_TOP_TIMEOUT) pass.

    A deadline is not an error: the report then holds whatever arrived in
    time plus a timeout notice.
    """
    timeout = clamp_timeout(timeout)
    report = Report(
        header=f"Delivering top news (score >= {threshold}) within {timeout:g} seconds...",
        scanned=scanned,
    )
    loop = asyncio.get_running_loop()
    start = loop.time()
    deadline = start + timeout
    done = 0

    while done < worker_count:
        remaining = deadline - loop.time()
        if remaining <= 0:
            report.timed_out = True
            break
        try:
            value = await asyncio.wait_for(merged.recv(), remaining)
        except asyncio.TimeoutError:
            report.timed_out = True
            break
        except ChannelClosed:
            break
        if value is WORKER_DONE:
            done += 1
        else:
            report.add(value)

    elapsed = loop.time() - start
    if report.timed_out:
        report.summary = (
            f"Timed out after {timeout:g} seconds, {done} of {worker_count} workers "
            f"finished. Here are the {report.selected} articles found so far."
        )
    else:
        report.summary = (
            f"All done. I scanned {scanned} articles, selected {report.selected} "
            f"with score >= {threshold} in {elapsed:.2f} seconds."
        )
    logger.info(
        "deadline_collect_finished",
        selected=report.selected,
        scanned=scanned,
        timed_out=report.timed_out,
        elapsed=round(elapsed, 3),
    )
    return report


async def fetch_top_report(
    fetcher: StoryFetcher,
    timeout: float,
    worker_count: int = WORKER_COUNT,
    threshold: int = SCORE_THRESHOLD,
) -> Report:
    """
    Run a live pipeline over the current top stories under a deadline.

    Raises UpstreamError when the top story list itself cannot be fetched.
    Workers still running at the deadline are cancelled before returning.
    """
    ids = await fetcher.get_top_story_ids()
    async with Pipeline(fetcher, worker_count, threshold) as pipeline:
        merged = pipeline.run(ids)
        return await collect_until_deadline(
            merged, worker_count, timeout, threshold=threshold, scanned=len(ids)
        )


def best_of_k(stories: Iterable[Story], k: int) -> Report:
    """Select the ``k`` highest-scored stories, best first."""
    queue = RankQueue(stories)
    scanned = len(queue)
    k = max(0, min(k, scanned))
    report = Report(header=f"Delivering top {k} news...", scanned=scanned)
    for _ in range(k):
        report.add(queue.pop())

    if report.selected:
        report.summary = (
            f"All done. I scanned {scanned} articles, selected {k} top articles "
            f"sorted with score(min:{report.min_score}, max:{report.max_score})."
        )
    else:
        report.summary = f"All done. I scanned {scanned} articles, nothing to select."
    return report
