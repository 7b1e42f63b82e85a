import asyncio

import pytest

from conftest import StubFetcher
from hnbot.bot import serve
from hnbot.cache import StoryCache
from hnbot.commands import FAILURE_TEXT, HELP_TEXT, CommandRouter
from hnbot.errors import SlackError
from hnbot.models import Message


class FakeTransport:
    def __init__(self, inbound):
        self.inbound = list(inbound)
        self.sent = []

    async def get_message(self):
        if self.inbound:
            return self.inbound.pop(0)
        # Give reply tasks a chance to finish, then drop the connection
        await asyncio.sleep(0.2)
        raise SlackError("RTM connection closed")

    async def post_message(self, message):
        self.sent.append(message)
        return message


@pytest.mark.asyncio
async def test_serve_replies_to_commands_only(fixture_stories):
    cache = StoryCache()
    await cache.update(fixture_stories)
    router = CommandRouter(
        cache, StubFetcher(fixture_stories), quotes=None, worker_count=2
    )
    transport = FakeTransport(
        [
            Message(type="hello", channel="", text=""),
            Message(type="message", channel="C1", text="just chatting"),
            Message(type="message", channel="C1", text="<@U42> news 1"),
            Message(type="message", channel="C2", text="<@U42> dance"),
        ]
    )

    with pytest.raises(SlackError):
        await serve(transport, router, "U42")

    by_channel = {m.channel: m.text for m in transport.sent}
    assert len(transport.sent) == 2
    assert "Story 4" in by_channel["C1"]
    assert by_channel["C2"] == HELP_TEXT


class BrokenQuotes:
    async def get_quote(self, symbol):
        raise RuntimeError("quote parser blew up")


@pytest.mark.asyncio
async def test_failing_handler_still_gets_a_reply(fixture_stories):
    router = CommandRouter(
        StoryCache(),
        StubFetcher(fixture_stories),
        quotes=BrokenQuotes(),
        worker_count=2,
    )
    transport = FakeTransport(
        [
            Message(type="message", channel="C1", text="<@U1> stock aapl"),
            Message(type="message", channel="C2", text="<@U1> dance"),
        ]
    )

    with pytest.raises(SlackError):
        await serve(transport, router, "U1")

    by_channel = {m.channel: m.text for m in transport.sent}
    assert len(transport.sent) == 2
    assert by_channel["C1"] == FAILURE_TEXT
    assert by_channel["C2"] == HELP_TEXT
