"""Chat report building blocks shared by the selection policies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from hnbot.constants import HN_ITEM_URL_PREFIX
from hnbot.models import Story
from hnbot.text_format import client_formatting


@dataclass(frozen=True)
class ReportLine:
    title: str
    url: str
    discussion: str

    def render(self) -> str:
        return (
            f"Title: {client_formatting(self.title)}\n"
            f"\tURL: {self.url}\n"
            f"\tDiscussion: {self.discussion}\n"
        )


def format_story(story: Story) -> ReportLine:
    return ReportLine(
        title=story.title,
        url=story.url,
        discussion=f"{HN_ITEM_URL_PREFIX}{story.id}",
    )


@dataclass
class Report:
    """A header, one line per selected story, and a closing summary."""

    header: str
    stories: list[Story] = field(default_factory=list)
    lines: list[ReportLine] = field(default_factory=list)
    summary: str = ""
    scanned: int = 0
    timed_out: bool = False

    def add(self, story: Story) -> None:
        self.stories.append(story)
        self.lines.append(format_story(story))

    @property
    def selected(self) -> int:
        return len(self.stories)

    @property
    def min_score(self) -> Optional[int]:
        return min((s.score for s in self.stories), default=None)

    @property
    def max_score(self) -> Optional[int]:
        return max((s.score for s in self.stories), default=None)

    def render(self) -> str:
        body = "".join(line.render() for line in self.lines)
        return f"{self.header}\n{body}{self.summary}\n"
