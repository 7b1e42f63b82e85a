from __future__ import annotations

from typing import Optional, Protocol, cast

import httpx

from hnbot.constants import HN_API_BASE, STORY_FETCH_TIMEOUT, TOP_STORIES_TIMEOUT
from hnbot.errors import UpstreamError
from hnbot.logging_config import get_logger
from hnbot.models import HNItem, Story

logger = get_logger(__name__)


class StoryFetcher(Protocol):
    """Anything that can list top stories and fetch one story by ID."""

    async def get_top_story_ids(self) -> list[int]: ...

    async def get_story(self, story_id: int) -> Story: ...


class HNClient:
    """Client for the official Hacker News Firebase API."""

    BASE_URL: str = HN_API_BASE

    def __init__(
        self,
        timeout: float = STORY_FETCH_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout
        self.client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"User-Agent": "hn-slackbot"},
            timeout=httpx.Timeout(timeout, connect=timeout),
        )

    async def _get_json(self, path: str, timeout: float) -> object:
        try:
            resp: httpx.Response = await self.client.get(path, timeout=timeout)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Request failed: {e}", service="hackernews", context={"path": path}
            ) from e
        if resp.status_code != 200:
            raise UpstreamError(
                f"Unexpected status {resp.status_code}",
                service="hackernews",
                context={"path": path},
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(
                f"Invalid JSON: {e}", service="hackernews", context={"path": path}
            ) from e

    async def get_top_story_ids(self) -> list[int]:
        """Fetch the current top story IDs (up to 500, ranked)."""
        data = await self._get_json("/topstories.json", timeout=TOP_STORIES_TIMEOUT)
        if not isinstance(data, list):
            raise UpstreamError("Top stories payload is not a list", service="hackernews")
        ids: list[int] = []
        for item in data:
            if isinstance(item, int):
                ids.append(item)
            elif isinstance(item, str) and item.isdigit():
                ids.append(int(item))
        logger.debug("top_stories_fetched", count=len(ids))
        return ids

    async def get_story(self, story_id: int) -> Story:
        """Fetch a single story. Missing, deleted or non-story items are errors."""
        data = await self._get_json(f"/item/{story_id}.json", timeout=self.timeout)
        if not isinstance(data, dict):
            raise UpstreamError(
                "Item not found", service="hackernews", context={"id": story_id}
            )
        item = cast(HNItem, data)
        if item.get("type") != "story" or item.get("deleted") or item.get("dead"):
            raise UpstreamError(
                "Item is not a live story",
                service="hackernews",
                context={"id": story_id, "type": item.get("type")},
            )
        return Story.from_item(item)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> HNClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
