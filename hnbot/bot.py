from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from hnbot.cache import CacheRefresher, StoryCache
from hnbot.client import HNClient
from hnbot.commands import FAILURE_TEXT, Command, CommandRouter, parse_command
from hnbot.config import Settings
from hnbot.errors import SlackError
from hnbot.logging_config import get_logger
from hnbot.models import Message
from hnbot.quotes import QuoteClient
from hnbot.slack import SlackRTM, lookup_channel_ids

logger = get_logger(__name__)


class Transport(Protocol):
    async def get_message(self) -> Message: ...

    async def post_message(self, message: Message) -> Message: ...


async def reply(transport: Transport, router: CommandRouter, command: Command) -> None:
    try:
        text = await router.handle(command)
    except Exception:
        logger.exception("command_failed", verb=command.verb, channel=command.channel)
        text = FAILURE_TEXT
    try:
        await transport.post_message(
            Message(type="message", channel=command.channel, text=text)
        )
    except SlackError as e:
        logger.warning("reply_failed", channel=command.channel, error=str(e))


async def serve(transport: Transport, router: CommandRouter, bot_id: str) -> None:
    """
    Read events forever, answering each command in its own task.

    Returns only by raising: a lost connection surfaces as SlackError.
    """
    pending: set[asyncio.Task[None]] = set()
    try:
        while True:
            message = await transport.get_message()
            command = parse_command(message, bot_id)
            if command is None:
                continue
            logger.info("command_received", verb=command.verb, channel=command.channel)
            task = asyncio.create_task(reply(transport, router, command))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        for task in list(pending):
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def run_bot(settings: Settings) -> None:
    """Connect to Slack, start the cache refresher and serve until disconnected."""
    allowed: Optional[set[str]] = None
    if settings.allowed_channels:
        allowed = await lookup_channel_ids(settings.token, settings.allowed_channels)

    async with HNClient(timeout=settings.story_timeout) as fetcher, QuoteClient() as quotes:
        cache = StoryCache()
        refresher = CacheRefresher(
            fetcher,
            cache,
            interval=settings.refresh_interval,
            worker_count=settings.worker_count,
            threshold=settings.score_threshold,
        )
        router = CommandRouter(
            cache,
            fetcher,
            quotes,
            worker_count=settings.worker_count,
            threshold=settings.score_threshold,
            allowed_channel_ids=allowed,
            allowed_channel_names=settings.allowed_channels,
        )
        async with SlackRTM(settings.token) as rtm:
            bot_id = await rtm.connect()
            refresher.start()
            logger.info("bot_ready", bot_id=bot_id, workers=settings.worker_count)
            try:
                await serve(rtm, router, bot_id)
            finally:
                await refresher.stop()
