from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from hnbot.aggregator import best_of_k, fetch_top_report
from hnbot.cache import StoryCache
from hnbot.client import StoryFetcher
from hnbot.constants import (
    ALLOWED_CHANNELS,
    DEFAULT_NEWS_COUNT,
    DEFAULT_TOP_TIMEOUT,
    MAX_NEWS_COUNT,
    MAX_TOP_TIMEOUT,
    SCORE_THRESHOLD,
    WORKER_COUNT,
)
from hnbot.errors import InputError, UpstreamError
from hnbot.logging_config import get_logger
from hnbot.models import Message
from hnbot.quotes import QuoteClient

logger = get_logger(__name__)

HELP_TEXT = (
    "sorry, can't serve you anything except 'news [n]', "
    "'top [timeout in seconds]' and 'stock {ticker}' for now.\n"
)
EMPTY_CACHE_TEXT = "No news cached yet, I'm still warming up. Try again in a minute.\n"
FAILURE_TEXT = "error: something went wrong handling that, please try again later.\n"


@dataclass(frozen=True)
class Command:
    verb: str
    args: tuple[str, ...]
    channel: str


def parse_command(message: Message, bot_id: str) -> Optional[Command]:
    """Return the command in ``message`` if it mentions the bot, else None."""
    if message.type != "message" or not message.text.startswith(f"<@{bot_id}>"):
        return None
    parts = message.text.split()
    verb = parts[1].lower() if len(parts) > 1 else ""
    return Command(verb=verb, args=tuple(parts[2:]), channel=message.channel)


def parse_positive_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise InputError(f"not a number: {raw!r}") from e
    if value < 1:
        raise InputError(f"must be positive, got {value}")
    return value


def move_channel_text(channel_names: Iterable[str]) -> str:
    names = " or ".join(f"#{n}" for n in channel_names)
    return (
        f"Please kindly move to {names} first and then talk to me again, thank you!"
    )


class CommandRouter:
    """Turns parsed commands into reply text. Never raises for user input."""

    def __init__(
        self,
        cache: StoryCache,
        fetcher: StoryFetcher,
        quotes: QuoteClient,
        worker_count: int = WORKER_COUNT,
        threshold: int = SCORE_THRESHOLD,
        allowed_channel_ids: Optional[set[str]] = None,
        allowed_channel_names: Iterable[str] = ALLOWED_CHANNELS,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.quotes = quotes
        self.worker_count = worker_count
        self.threshold = threshold
        # None means every channel is allowed
        self.allowed_channel_ids = allowed_channel_ids
        self.move_text = move_channel_text(allowed_channel_names)

    def is_allowed(self, channel: str) -> bool:
        return self.allowed_channel_ids is None or channel in self.allowed_channel_ids

    async def handle(self, command: Command) -> str:
        if not self.is_allowed(command.channel):
            return self.move_text
        try:
            if command.verb == "news" and len(command.args) <= 1:
                return await self.news(*command.args)
            if command.verb == "top" and len(command.args) <= 1:
                return await self.top(*command.args)
            if command.verb == "stock" and len(command.args) == 1:
                return await self.stock(command.args[0])
        except InputError as e:
            return f"{command.verb} parsed error: {e}"
        return HELP_TEXT

    async def news(self, raw_count: Optional[str] = None) -> str:
        """Best stories from the background cache."""
        n = min(parse_positive_int(raw_count, DEFAULT_NEWS_COUNT), MAX_NEWS_COUNT)
        stories = await self.cache.snapshot()
        if not stories:
            return EMPTY_CACHE_TEXT
        return best_of_k(stories, n).render()

    async def top(self, raw_timeout: Optional[str] = None) -> str:
        """Live pipeline run bounded by a deadline."""
        timeout = min(parse_positive_int(raw_timeout, DEFAULT_TOP_TIMEOUT), MAX_TOP_TIMEOUT)
        try:
            report = await fetch_top_report(
                self.fetcher,
                timeout,
                worker_count=self.worker_count,
                threshold=self.threshold,
            )
        except UpstreamError as e:
            logger.warning("top_stories_unavailable", error=str(e))
            return f"error: {e}"
        return report.render()

    async def stock(self, symbol: str) -> str:
        return await self.quotes.get_quote(symbol)
