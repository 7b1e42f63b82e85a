from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import StubFetcher, make_stories
from hnbot.cache import StoryCache
from hnbot.commands import (
    EMPTY_CACHE_TEXT,
    HELP_TEXT,
    Command,
    CommandRouter,
    parse_command,
    parse_positive_int,
)
from hnbot.constants import MAX_TOP_TIMEOUT
from hnbot.errors import InputError, UpstreamError
from hnbot.models import Message


def make_router(fetcher, cache=None, allowed=None, quotes=None):
    return CommandRouter(
        cache or StoryCache(),
        fetcher,
        quotes or MagicMock(),
        worker_count=2,
        threshold=500,
        allowed_channel_ids=allowed,
    )


class TestParseCommand:
    def test_mention_with_args(self):
        msg = Message(type="message", channel="C1", text="<@U42> top 10")
        assert parse_command(msg, "U42") == Command("top", ("10",), "C1")

    def test_mention_with_colon(self):
        msg = Message(type="message", channel="C1", text="<@U42>: NEWS")
        assert parse_command(msg, "U42") == Command("news", (), "C1")

    def test_bare_mention(self):
        msg = Message(type="message", channel="C1", text="<@U42>")
        assert parse_command(msg, "U42").verb == ""

    @pytest.mark.parametrize(
        "msg",
        [
            Message(type="message", channel="C1", text="top 10"),
            Message(type="message", channel="C1", text="<@U99> top"),
            Message(type="user_typing", channel="C1", text="<@U42> top"),
        ],
    )
    def test_ignored(self, msg):
        assert parse_command(msg, "U42") is None


def test_parse_positive_int():
    assert parse_positive_int(None, 3) == 3
    assert parse_positive_int("7", 3) == 7
    with pytest.raises(InputError):
        parse_positive_int("abc", 3)
    with pytest.raises(InputError):
        parse_positive_int("0", 3)


class TestNews:
    @pytest.mark.asyncio
    async def test_uses_cache_best_first(self, stub_fetcher, fixture_stories):
        cache = StoryCache()
        await cache.update(fixture_stories)
        router = make_router(stub_fetcher, cache)

        text = await router.handle(Command("news", ("2",), "C1"))

        assert text.startswith("Delivering top 2 news...")
        assert text.index("Story 4") < text.index("Story 2")
        assert "score(min:600, max:900)" in text
        # Live pipeline is not touched
        assert stub_fetcher.calls == []

    @pytest.mark.asyncio
    async def test_default_and_cap(self, stub_fetcher):
        cache = StoryCache()
        await cache.update(make_stories([10 * i for i in range(1, 20)]))
        router = make_router(stub_fetcher, cache)

        assert "top 3 news" in await router.handle(Command("news", (), "C1"))
        assert "top 5 news" in await router.handle(Command("news", ("50",), "C1"))

    @pytest.mark.asyncio
    async def test_empty_cache(self, stub_fetcher):
        router = make_router(stub_fetcher)
        assert await router.handle(Command("news", (), "C1")) == EMPTY_CACHE_TEXT

    @pytest.mark.asyncio
    async def test_bad_count(self, stub_fetcher):
        router = make_router(stub_fetcher)
        text = await router.handle(Command("news", ("many",), "C1"))
        assert text.startswith("news parsed error")


class TestTop:
    @pytest.mark.asyncio
    async def test_live_pipeline(self, stub_fetcher):
        router = make_router(stub_fetcher)
        text = await router.handle(Command("top", ("5",), "C1"))
        for sid in (2, 4, 5):
            assert f"item?id={sid}\n" in text
        assert "selected 3" in text

    @pytest.mark.asyncio
    async def test_parsed_error(self, stub_fetcher):
        router = make_router(stub_fetcher)
        text = await router.handle(Command("top", ("abc",), "C1"))
        assert "parsed error" in text
        assert "Delivering" not in text
        assert stub_fetcher.calls == []

    @pytest.mark.asyncio
    async def test_timeout_is_clamped(self, stub_fetcher):
        router = make_router(stub_fetcher)
        with patch(
            "hnbot.commands.fetch_top_report", new_callable=AsyncMock
        ) as mock_report:
            mock_report.return_value = MagicMock(render=lambda: "ok")
            assert await router.handle(Command("top", ("600",), "C1")) == "ok"
            assert mock_report.call_args.args[1] == MAX_TOP_TIMEOUT

    @pytest.mark.asyncio
    async def test_upstream_failure_is_reported(self, fixture_stories):
        fetcher = StubFetcher(
            fixture_stories, top_error=UpstreamError("down", service="stub")
        )
        router = make_router(fetcher)
        text = await router.handle(Command("top", (), "C1"))
        assert text.startswith("error: down")


class TestRouting:
    @pytest.mark.asyncio
    async def test_stock(self, stub_fetcher):
        quotes = MagicMock()
        quotes.get_quote = AsyncMock(return_value="Apple (AAPL) is trading at $1")
        router = make_router(stub_fetcher, quotes=quotes)
        text = await router.handle(Command("stock", ("aapl",), "C1"))
        assert text == "Apple (AAPL) is trading at $1"
        quotes.get_quote.assert_awaited_once_with("aapl")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "command",
        [
            Command("weather", (), "C1"),
            Command("", (), "C1"),
            Command("stock", (), "C1"),
            Command("top", ("1", "2"), "C1"),
        ],
    )
    async def test_help(self, stub_fetcher, command):
        router = make_router(stub_fetcher)
        assert await router.handle(command) == HELP_TEXT

    @pytest.mark.asyncio
    async def test_channel_allow_list(self, stub_fetcher):
        router = make_router(stub_fetcher, allowed={"C_RANDOM"})
        text = await router.handle(Command("news", (), "C_OTHER"))
        assert text.startswith("Please kindly move to #random or #test-chamber")
        assert router.is_allowed("C_RANDOM")
