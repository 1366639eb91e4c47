"""Chapter segmentation.

A chapter is the span of the log between two ``chapter:ended`` events. The
boundary itself is decided upstream by the extractor; here the ended event is
taken as ground truth and the log is only partitioned and summarized.

An event's chapter index is the number of ``chapter:ended`` events strictly
before it, so indices never decrease along the log.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, Field

from .common import ChapterEndReason, MessageAndSwipe, advance
from .events import ChapterEnded, Event, TimeDeltaEvent, TimeInitial
from .projection import project
from .snapshot import Milestone

logger = logging.getLogger(__name__)


class Chapter(BaseModel):
    index: int
    title: str
    summary: str = ""
    end_reason: ChapterEndReason | None = None  # None while the chapter is still open
    ended_at: MessageAndSwipe | None = None
    event_count: int = 0
    characters: list[str] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None


def assign_chapter_indices(events: Iterable[Event]) -> list[tuple[Event, int]]:
    """Pair every live event with its chapter index."""
    out: list[tuple[Event, int]] = []
    index = 0
    for event in events:
        if event.deleted:
            continue
        out.append((event, index))
        if isinstance(event, ChapterEnded):
            index += 1
    return out


def current_chapter_index(events: Iterable[Event]) -> int:
    return sum(1 for e in events if isinstance(e, ChapterEnded) and not e.deleted)


def _time_spans(
    indexed: list[tuple[Event, int]], chapter_count: int
) -> list[tuple[datetime | None, datetime | None]]:
    """(start, end) narrative time per chapter.

    A chapter without time events spans the moment carried into it.
    """
    spans: list[list[datetime | None]] = [[None, None] for _ in range(chapter_count)]
    carried: list[datetime | None] = [None] * chapter_count
    now: datetime | None = None
    last_index = -1
    for event, index in indexed:
        while last_index < index:
            last_index += 1
            carried[last_index] = now
        if isinstance(event, TimeInitial):
            now = event.time
        elif isinstance(event, TimeDeltaEvent) and now is not None:
            try:
                now = advance(now, event.delta)
            except OverflowError:
                continue
        else:
            continue
        start, end = spans[index]
        spans[index] = [
            now if start is None or now < start else start,
            now if end is None or now > end else end,
        ]
    while last_index < chapter_count - 1:
        last_index += 1
        carried[last_index] = now

    return [
        (start, end) if start is not None else (carried[i], carried[i])
        for i, (start, end) in enumerate(spans)
    ]


def compute_chapters(events: Iterable[Event]) -> list[Chapter]:
    """Every chapter up to and including the open one, with its aggregates."""
    events = [e for e in events if not e.deleted]
    snapshot = project(events)
    count = snapshot.current_chapter + 1
    indexed = assign_chapter_indices(events)
    spans = _time_spans(indexed, count)

    chapters: list[Chapter] = []
    for index in range(count):
        state = snapshot.chapter(index)
        names: set[str] = set()
        milestones: list[Milestone] = []
        for rel in snapshot.relationships.values():
            for occurrence in rel.subjects:
                if occurrence.chapter_index != index:
                    continue
                names.update(rel.pair)
                if occurrence.is_milestone:
                    milestones.append(Milestone.from_occurrence(rel.pair, occurrence))
        narratives = [n for n in snapshot.narrative_events if n.chapter_index == index]
        for narrative in narratives:
            names.update(narrative.witnesses)
        milestones.sort(key=lambda m: (m.source.message_id, m.source.swipe_id))

        start, end = spans[index]
        chapters.append(Chapter(
            index=index,
            title=state.title if state else f"Chapter {index + 1}",
            summary=state.summary if state else "",
            end_reason=state.end_reason if state else None,
            ended_at=state.ended_at if state else None,
            event_count=len(narratives),
            characters=sorted(names),
            milestones=milestones,
            start_time=start,
            end_time=end,
        ))
    logger.debug("computed %d chapters", len(chapters))
    return chapters


def compute_chapter(events: Iterable[Event], index: int) -> Chapter | None:
    for chapter in compute_chapters(events):
        if chapter.index == index:
            return chapter
    return None
