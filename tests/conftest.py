import asyncio

import pytest

from hnbot.errors import UpstreamError
from hnbot.models import Story


class StubFetcher:
    """
    Deterministic in-memory StoryFetcher.

    IDs in ``failing`` (or unknown IDs) raise UpstreamError, ``delays`` maps an
    ID to seconds slept before answering.
    """

    def __init__(self, stories, top_ids=None, delays=None, failing=(), top_error=None):
        self.stories = {s.id: s for s in stories}
        self.top_ids = list(top_ids) if top_ids is not None else list(self.stories)
        self.delays = delays or {}
        self.failing = set(failing)
        self.top_error = top_error
        self.calls = []
        self.cancelled = []

    async def get_top_story_ids(self):
        if self.top_error is not None:
            raise self.top_error
        return list(self.top_ids)

    async def get_story(self, story_id):
        self.calls.append(story_id)
        delay = self.delays.get(story_id)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(story_id)
                raise
        if story_id in self.failing or story_id not in self.stories:
            raise UpstreamError("boom", service="stub", context={"id": story_id})
        return self.stories[story_id]


def make_stories(scores):
    """Stories with IDs 1..n and the given scores."""
    return [
        Story(id=i, title=f"Story {i}", url=f"http://example.com/{i}", score=score)
        for i, score in enumerate(scores, start=1)
    ]


@pytest.fixture
def fixture_stories():
    # IDs 1..5
    return make_stories([100, 600, 50, 900, 500])


@pytest.fixture
def stub_fetcher(fixture_stories):
    return StubFetcher(fixture_stories)
