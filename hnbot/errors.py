"""
Exception hierarchy for the bot.

Every error carries a message plus optional key/value context that is rendered
into ``str(err)`` so log lines and chat replies stay informative.
"""
from __future__ import annotations

from typing import Any, Optional


class BotError(Exception):
    """Base exception for all bot errors."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class UpstreamError(BotError):
    """Raised when fetching or decoding data from an upstream API fails."""

    def __init__(
        self,
        message: str,
        service: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["service"] = service
        super().__init__(message, ctx)
        self.service = service


class InputError(BotError):
    """Raised when a command argument cannot be parsed."""

    def __init__(
        self,
        message: str,
        value: Any = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        if value is not None:
            ctx["value"] = repr(value)[:100]  # Truncate long values
        super().__init__(message, ctx)
        self.value = value


class SlackError(BotError):
    """Raised when the Slack API rejects a request or the socket fails."""


class ConfigError(BotError):
    """Raised when startup configuration is invalid."""
