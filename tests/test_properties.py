import asyncio

from hypothesis import given, settings, strategies as st

from conftest import StubFetcher
from hnbot.aggregator import best_of_k
from hnbot.models import Story
from hnbot.pipeline import WORKER_DONE, Pipeline, generate


def _stories(scores):
    return [
        Story(id=i, title=f"t{i}", url=f"http://e.com/{i}", score=s)
        for i, s in enumerate(scores)
    ]


@given(st.lists(st.integers(min_value=0, max_value=10**9), max_size=200))
def test_generator_emits_every_id_in_order(ids):
    async def run():
        tasks = []

        def spawn(coro):
            task = asyncio.create_task(coro)
            tasks.append(task)
            return task

        out = generate(ids, spawn)
        received = [i async for i in out]
        await asyncio.gather(*tasks)
        return received, out.closed

    received, closed = asyncio.run(run())
    assert received == ids
    assert closed


@settings(deadline=None, max_examples=50)
@given(
    scores=st.lists(st.integers(min_value=0, max_value=1000), max_size=40),
    workers=st.integers(min_value=1, max_value=12),
    threshold=st.integers(min_value=0, max_value=1000),
)
def test_merged_stream_is_bounded_by_qualifying_stories(scores, workers, threshold):
    stories = _stories(scores)
    fetcher = StubFetcher(stories)

    async def run():
        async with Pipeline(fetcher, worker_count=workers, threshold=threshold) as p:
            return [v async for v in p.run([s.id for s in stories])]

    values = asyncio.run(run())
    real = [v for v in values if v is not WORKER_DONE]
    assert values.count(WORKER_DONE) == workers
    assert len(real) <= len([s for s in stories if s.score >= threshold])
    assert all(s.score >= threshold for s in real)


@given(
    scores=st.lists(st.integers(min_value=0, max_value=5000), max_size=60),
    k=st.integers(min_value=0, max_value=80),
)
def test_best_of_k_is_true_top_k(scores, k):
    stories = _stories(scores)
    report = best_of_k(stories, k)

    assert report.selected == min(k, len(stories))
    chosen_ids = {s.id for s in report.stories}
    rest = [s.score for s in stories if s.id not in chosen_ids]
    if report.stories and rest:
        assert min(s.score for s in report.stories) >= max(rest)
    # Best first
    picked = [s.score for s in report.stories]
    assert picked == sorted(picked, reverse=True)
