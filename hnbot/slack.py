"""
Slack Real Time Messaging transport.

Only the pieces the bot needs: open an RTM session, look up channel IDs,
read events and post messages over the websocket.
"""
from __future__ import annotations

import dataclasses
import itertools
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, cast

import httpx
import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from hnbot.constants import (
    SLACK_API_BASE,
    SLACK_ORIGIN,
    WS_CLOSE_TIMEOUT,
    WS_PING_INTERVAL,
    WS_PING_TIMEOUT,
)
from hnbot.errors import SlackError
from hnbot.logging_config import get_logger
from hnbot.models import Message

logger = get_logger(__name__)

# Outbound message IDs are unique for the whole process
_message_ids = itertools.count(1)


def next_message_id() -> int:
    return next(_message_ids)


async def _call_api(
    client: httpx.AsyncClient,
    token: str,
    method: str,
    params: Optional[dict[str, str | int]] = None,
) -> dict[str, object]:
    try:
        resp: httpx.Response = await client.get(
            f"{SLACK_API_BASE}/{method}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
    except httpx.HTTPError as e:
        raise SlackError(f"{method} request failed: {e}") from e
    if resp.status_code != 200:
        raise SlackError(
            f"API request failed with code {resp.status_code}", {"method": method}
        )
    try:
        data = cast(dict[str, object], resp.json())
    except ValueError as e:
        raise SlackError(f"{method} returned invalid JSON") from e
    if not data.get("ok"):
        raise SlackError(f"Slack error: {data.get('error')}", {"method": method})
    return data


async def rtm_connect(
    token: str, client: Optional[httpx.AsyncClient] = None
) -> tuple[str, str]:
    """Start an RTM session. Returns the websocket URL and the bot's user ID."""
    async with _client_scope(client) as ac:
        data = await _call_api(ac, token, "rtm.connect")
    ws_url = data.get("url")
    me = data.get("self")
    if not isinstance(ws_url, str) or not isinstance(me, dict):
        raise SlackError("rtm.connect response is missing url or self")
    return ws_url, str(cast(dict[str, object], me).get("id", ""))


async def lookup_channel_ids(
    token: str,
    names: Iterable[str],
    client: Optional[httpx.AsyncClient] = None,
) -> set[str]:
    """Resolve channel names (with or without '#') to channel IDs."""
    wanted = {n.lstrip("#") for n in names}
    found: set[str] = set()
    cursor = ""
    async with _client_scope(client) as ac:
        while True:
            params: dict[str, str | int] = {
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
                "limit": 200,
            }
            if cursor:
                params["cursor"] = cursor
            data = await _call_api(ac, token, "conversations.list", params)
            for channel in cast(list[dict[str, object]], data.get("channels", [])):
                if channel.get("name") in wanted:
                    found.add(str(channel.get("id")))
            meta = cast(dict[str, object], data.get("response_metadata") or {})
            cursor = str(meta.get("next_cursor") or "")
            if not cursor:
                break
    if len(found) < len(wanted):
        logger.warning("channels_not_found", wanted=sorted(wanted), found=len(found))
    return found


@asynccontextmanager
async def _client_scope(
    client: Optional[httpx.AsyncClient],
) -> AsyncIterator[httpx.AsyncClient]:
    """Use the given client, or a short-lived one that is closed afterwards."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=15.0) as owned:
        yield owned


class SlackRTM:
    """A websocket-based Real Time Messaging session."""

    def __init__(
        self,
        token: str,
        *,
        ping_interval: float = WS_PING_INTERVAL,
        ping_timeout: float = WS_PING_TIMEOUT,
        close_timeout: float = WS_CLOSE_TIMEOUT,
    ) -> None:
        self._token = token
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._close_timeout = close_timeout
        self._ws: Optional[ClientConnection] = None
        self.self_id: str = ""

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> str:
        """Open the session and return the bot's own user ID."""
        ws_url, self.self_id = await rtm_connect(self._token)
        try:
            self._ws = await websockets.connect(
                ws_url,
                origin=SLACK_ORIGIN,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
                close_timeout=self._close_timeout,
            )
        except (OSError, InvalidHandshake) as e:
            raise SlackError(f"Failed to open RTM websocket: {e}") from e
        logger.info("rtm_connected", self_id=self.self_id)
        return self.self_id

    def _require_ws(self) -> ClientConnection:
        if self._ws is None:
            raise SlackError("RTM session is not connected")
        return self._ws

    async def get_message(self) -> Message:
        ws = self._require_ws()
        try:
            raw = await ws.recv()
        except ConnectionClosed as e:
            raise SlackError(f"RTM connection closed: {e}") from e
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise SlackError("RTM sent invalid JSON") from e
        if not isinstance(payload, dict):
            raise SlackError("RTM event is not an object")
        return Message.from_dict(payload)

    async def post_message(self, message: Message) -> Message:
        """Send ``message`` with a fresh sequence ID; returns what was sent."""
        ws = self._require_ws()
        sent = dataclasses.replace(message, id=next_message_id())
        try:
            await ws.send(json.dumps(sent.to_dict()))
        except ConnectionClosed as e:
            raise SlackError(f"RTM connection closed: {e}") from e
        return sent

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> SlackRTM:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
