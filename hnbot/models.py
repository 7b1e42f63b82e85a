"""Typed data models for the HN Slack bot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, TypedDict


class HNItem(TypedDict, total=False):
    """Subset of the Firebase item payload that we read."""

    id: int
    type: str
    title: str
    url: str
    score: int
    deleted: bool
    dead: bool


@dataclass(frozen=True)
class Story:
    """A Hacker News story. Read-only once fetched."""

    id: int
    title: str
    url: str
    score: int

    @classmethod
    def from_item(cls, item: HNItem) -> Story:
        """Create Story from a Firebase item payload."""
        return cls(
            id=int(item.get("id", 0)),
            title=str(item.get("title", "")),
            url=str(item.get("url", "") or ""),
            score=int(item.get("score", 0) or 0),
        )


@dataclass
class Message:
    """
    A Slack RTM message.

    Serves as both the inbound event and the outbound reply; ``id`` is only
    meaningful for outbound messages and is assigned right before sending.
    """

    type: str
    channel: str
    text: str
    id: int = 0
    user: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Message:
        return cls(
            type=str(d.get("type", "")),
            channel=str(d.get("channel", "")),
            text=str(d.get("text", "")),
            id=int(d.get("id", 0) or 0),
            user=d.get("user"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "channel": self.channel,
            "text": self.text,
        }
