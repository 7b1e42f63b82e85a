from __future__ import annotations

import heapq
import itertools
from typing import Iterable, Optional

from hnbot.models import Story


class RankQueue:
    """
    Max-priority queue of stories ordered by score.

    Ties come out in insertion order. Heap positions stay internal; callers
    only ever see stories.
    """

    def __init__(self, stories: Iterable[Story] = ()) -> None:
        self._seq = itertools.count()
        self._heap: list[tuple[int, int, Story]] = [
            (-s.score, next(self._seq), s) for s in stories
        ]
        heapq.heapify(self._heap)

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, story: Story) -> None:
        heapq.heappush(self._heap, (-story.score, next(self._seq), story))

    def pop(self) -> Story:
        if not self._heap:
            raise IndexError("pop from empty RankQueue")
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[Story]:
        return self._heap[0][2] if self._heap else None
