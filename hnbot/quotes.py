from __future__ import annotations

import csv
import io
from typing import Optional
from urllib.parse import quote

import httpx

from hnbot.constants import STOCK_QUOTE_URL
from hnbot.logging_config import get_logger

logger = get_logger(__name__)


class QuoteClient:
    """
    Looks up a stock quote from a CSV endpoint.

    The endpoint must answer with one ``name,symbol,last,open,prev`` row.
    Replies are always chat-ready text, errors included.
    """

    def __init__(
        self,
        url_template: str = STOCK_QUOTE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.url_template = url_template
        self.client: httpx.AsyncClient = client or httpx.AsyncClient(
            follow_redirects=True, timeout=timeout
        )

    async def get_quote(self, symbol: str) -> str:
        sym = symbol.upper()
        url = self.url_template.format(symbol=quote(sym))
        try:
            resp: httpx.Response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning("quote_fetch_failed", symbol=sym, error=str(e))
            return f"error: {e}"
        if resp.status_code != 200:
            return f"error: quote service answered with status {resp.status_code}"

        try:
            rows = list(csv.reader(io.StringIO(resp.text)))
        except csv.Error as e:
            logger.warning("quote_parse_failed", symbol=sym, error=str(e))
            return f"error: {e}"
        if rows and len(rows[0]) == 5:
            name, ticker, last = rows[0][:3]
            return f"{name} ({ticker}) is trading at ${last}"
        return f'unknown response format (symbol was "{sym}")'

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> QuoteClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
