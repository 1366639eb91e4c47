"""Tests for rpg_chronicle.chapters."""

from datetime import datetime

from rpg_chronicle.chapters import (
    assign_chapter_indices,
    compute_chapter,
    compute_chapters,
    current_chapter_index,
)
from rpg_chronicle.common import MessageAndSwipe, TimeDelta
from rpg_chronicle.events import (
    ChapterDescribed,
    ChapterEnded,
    CharacterAppeared,
    CharacterDeparted,
    NarrativeDescription,
    SubjectOccurred,
    TimeDeltaEvent,
    TimeInitial,
)


def at(message_id: int) -> MessageAndSwipe:
    return MessageAndSwipe(message_id=message_id)


def two_chapters() -> list:
    return [
        TimeInitial(source=at(0), time=datetime(2024, 1, 15, 9)),
        CharacterAppeared(source=at(0), character="Alice"),
        NarrativeDescription(source=at(0), description="Alice wakes."),
        TimeDeltaEvent(source=at(1), delta=TimeDelta(hours=3)),
        SubjectOccurred(source=at(1), pair=("Alice", "Zoe"), subject="confession",
                        milestone_description="Alice confesses"),
        NarrativeDescription(source=at(1), description="Alice confesses."),
        ChapterEnded(source=at(2), reason="time_jump"),
        ChapterDescribed(source=at(2), chapter_index=0, title="Morning", summary="A confession."),
        TimeDeltaEvent(source=at(3), delta=TimeDelta(days=2)),
        CharacterDeparted(source=at(3), character="Alice"),
        CharacterAppeared(source=at(3), character="Bob"),
        NarrativeDescription(source=at(3), description="Bob arrives."),
    ]


def test_indices_count_preceding_ends():
    indexed = assign_chapter_indices(two_chapters())
    ended_at = next(i for i, (e, _) in enumerate(indexed) if isinstance(e, ChapterEnded))
    assert [idx for _, idx in indexed[:ended_at + 1]] == [0] * (ended_at + 1)
    assert all(idx == 1 for _, idx in indexed[ended_at + 1:])


def test_indices_monotonic():
    events = two_chapters() + [ChapterEnded(source=at(4), reason="manual"),
                               NarrativeDescription(source=at(5), description="x")]
    indices = [idx for _, idx in assign_chapter_indices(events)]
    assert all(b >= a for a, b in zip(indices, indices[1:]))
    assert indices[-1] == 2


def test_deleted_end_does_not_count():
    events = two_chapters()
    events[6] = events[6].model_copy(update={"deleted": True})
    assert current_chapter_index(events) == 0
    assert len(compute_chapters(events)) == 1


def test_compute_chapters_aggregates():
    first, second = compute_chapters(two_chapters())

    assert first.title == "Morning"
    assert first.summary == "A confession."
    assert first.end_reason == "time_jump"
    assert first.event_count == 2
    assert first.characters == ["Alice", "Zoe"]
    assert [m.subject for m in first.milestones] == ["confession"]
    assert first.start_time == datetime(2024, 1, 15, 9)
    assert first.end_time == datetime(2024, 1, 15, 12)

    assert second.title == "Chapter 2"
    assert second.end_reason is None
    assert second.event_count == 1
    assert second.characters == ["Bob"]
    assert second.milestones == []
    assert second.start_time == datetime(2024, 1, 17, 12)
    assert second.end_time == datetime(2024, 1, 17, 12)


def test_chapter_without_time_events_uses_carried_time():
    events = two_chapters() + [
        ChapterEnded(source=at(4), reason="location_change"),
        NarrativeDescription(source=at(5), description="Quiet."),
    ]
    third = compute_chapter(events, 2)
    assert third.start_time == third.end_time == datetime(2024, 1, 17, 12)


def test_just_ended_chapter_is_open_and_empty():
    events = two_chapters() + [ChapterEnded(source=at(4), reason="manual")]
    chapters = compute_chapters(events)
    assert len(chapters) == 3
    assert chapters[2].event_count == 0
    assert chapters[2].end_reason is None


def test_compute_chapter_out_of_range():
    assert compute_chapter(two_chapters(), 7) is None


def test_milestones_carry_display_names():
    first = compute_chapters(two_chapters())[0]
    assert [(m.display_name, m.group) for m in first.milestones] == [("Confession", "conversation")]


def test_time_delta_past_the_calendar_keeps_carried_time():
    events = two_chapters() + [TimeDeltaEvent(source=at(4), delta=TimeDelta(days=3_000_000))]
    second = compute_chapters(events)[1]
    assert second.end_time == datetime(2024, 1, 17, 12)
