"""Projection: fold active events into a snapshot.

    events (log order, deleted filtered out)
        -> _Fold.apply(event) for each
        -> narrative descriptions finalized at the end of their message
        -> climate computed from forecasts, time and location
        -> Snapshot

``project`` is pure. It copies its input before folding, touches no I/O and
keeps no state between calls, so the same events always produce the same
snapshot. The fold is tolerant: removing an absent value, or mentioning a
character or pair that never appeared, adjusts state best-effort instead of
raising, since extraction upstream is approximate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import assert_never

from .climate import compute_climate
from .common import MessageAndSwipe, advance
from .events import (
    ActivityChanged,
    ChapterDescribed,
    ChapterEnded,
    CharacterAppeared,
    CharacterDeparted,
    DirectionalEvent,
    Event,
    FeelingAdded,
    FeelingRemoved,
    ForecastGenerated,
    LocationMoved,
    MoodAdded,
    MoodRemoved,
    NarrativeDescription,
    OutfitChanged,
    Pair,
    PhysicalAdded,
    PhysicalRemoved,
    PositionChanged,
    ProfileSet,
    PropAdded,
    PropRemoved,
    SecretAdded,
    SecretRemoved,
    StatusChanged,
    SubjectOccurred,
    TensionChanged,
    TimeDeltaEvent,
    TimeInitial,
    TopicToneChanged,
    WantAdded,
    WantRemoved,
    pair_key,
    sorted_pair,
)
from .snapshot import (
    Attitude,
    ChapterState,
    CharacterState,
    Milestone,
    NarrativeEvent,
    NarrativeSubject,
    RelationshipState,
    Snapshot,
    SubjectOccurrence,
)
from .subjects import is_milestone_worthy

logger = logging.getLogger(__name__)


def _add(values: list[str], value: str) -> None:
    if value not in values:
        values.append(value)


def _remove(values: list[str], value: str) -> None:
    if value in values:
        values.remove(value)


class _Fold:
    def __init__(self) -> None:
        self.snap = Snapshot()
        self._chapters: dict[int, ChapterState] = {}
        self._seen_subjects: set[tuple[Pair, str]] = set()
        self._source: MessageAndSwipe | None = None
        self._pending: list[NarrativeEvent] = []

    # -- helpers ------------------------------------------------------------

    def _chapter(self, index: int) -> ChapterState:
        if index not in self._chapters:
            self._chapters[index] = ChapterState(
                index=index, title=ChapterState.default_title(index)
            )
        return self._chapters[index]

    def _relationship(self, pair: Pair) -> RelationshipState:
        key = pair_key(pair)
        rel = self.snap.relationships.get(key)
        if rel is None:
            rel = RelationshipState(pair=pair)
            self.snap.relationships[key] = rel
        return rel

    def _present(self, name: str) -> None:
        if name in self.snap.characters_present:
            return
        for other in self.snap.characters_present:
            if other != name:
                self._relationship(sorted_pair(name, other))
        self.snap.characters_present.append(name)

    def _character(self, name: str) -> CharacterState:
        """Existing entry, or an implicit first appearance."""
        state = self.snap.characters.get(name)
        if state is None:
            state = CharacterState(name=name)
            self.snap.characters[name] = state
            self._present(name)
        return state

    def _flush(self) -> None:
        """Give pending narrative descriptions the scene as it stands now."""
        if not self._pending:
            return
        snap = self.snap
        for narrative in self._pending:
            narrative.witnesses = list(snap.characters_present)
            narrative.location = snap.location.describe()
            narrative.tension = snap.tension.model_copy() if snap.tension.level else None
            narrative.subjects = [
                NarrativeSubject(pair=rel.pair, subject=s.subject)
                for rel in snap.relationships.values()
                for s in rel.subjects
                if s.source == narrative.source
            ]
            snap.narrative_events.append(narrative)
        self._pending = []

    # -- reduction ------------------------------------------------------------

    def apply(self, event: Event) -> None:
        if event.source != self._source:
            self._flush()
            self._source = event.source
        snap = self.snap

        match event:
            case TimeInitial():
                snap.time = event.time
            case TimeDeltaEvent():
                if snap.time is None:
                    logger.warning("time delta %s with no initial time, skipped", event.id)
                else:
                    try:
                        snap.time = advance(snap.time, event.delta)
                    except OverflowError:
                        logger.warning("time delta %s leaves the calendar, skipped", event.id)

            case LocationMoved():
                snap.location.area = event.new_area
                snap.location.place = event.new_place
                snap.location.position = event.new_position
                if event.new_location_type is not None:
                    snap.location.location_type = event.new_location_type
            case PropAdded():
                _add(snap.location.props, event.prop)
            case PropRemoved():
                _remove(snap.location.props, event.prop)

            case ForecastGenerated():
                snap.forecasts[event.area_name] = event.forecast

            case CharacterAppeared():
                state = snap.characters.get(event.character)
                if state is None:
                    state = CharacterState(name=event.character)
                    snap.characters[event.character] = state
                self._present(event.character)
                if state.position is None:
                    state.position = event.initial_position
                if state.activity is None:
                    state.activity = event.initial_activity
                if not state.mood:
                    for mood in event.initial_mood:
                        _add(state.mood, mood)
                if not state.physical_state:
                    for physical in event.initial_physical_state:
                        _add(state.physical_state, physical)
            case CharacterDeparted():
                if event.character in snap.characters_present:
                    snap.characters_present.remove(event.character)
            case ProfileSet():
                state = self._character(event.character)
                if state.profile is None:
                    state.profile = event.profile
            case PositionChanged():
                self._character(event.character).position = event.new_value
            case ActivityChanged():
                self._character(event.character).activity = event.new_value
            case MoodAdded():
                _add(self._character(event.character).mood, event.mood)
            case MoodRemoved():
                _remove(self._character(event.character).mood, event.mood)
            case OutfitChanged():
                self._character(event.character).outfit[event.slot] = event.new_value
            case PhysicalAdded():
                _add(self._character(event.character).physical_state, event.physical_state)
            case PhysicalRemoved():
                _remove(self._character(event.character).physical_state, event.physical_state)

            case FeelingAdded() | SecretAdded() | WantAdded():
                attitude = self._relationship(event.pair).attitude(
                    event.from_character, event.toward_character
                )
                _add(_attitude_field(attitude, event), event.value)
            case FeelingRemoved() | SecretRemoved() | WantRemoved():
                attitude = self._relationship(event.pair).attitude(
                    event.from_character, event.toward_character
                )
                _remove(_attitude_field(attitude, event), event.value)
            case StatusChanged():
                self._relationship(event.pair).status = event.new_status
            case SubjectOccurred():
                key = (event.pair, event.subject)
                first = key not in self._seen_subjects
                self._seen_subjects.add(key)
                milestone = first and bool(event.milestone_description)
                self._relationship(event.pair).subjects.append(SubjectOccurrence(
                    subject=event.subject,
                    source=event.source,
                    chapter_index=snap.current_chapter,
                    is_milestone=milestone,
                    description=event.milestone_description if milestone else None,
                ))

            case TopicToneChanged():
                tt = snap.topic_tone
                tt.previous_topic, tt.previous_tone = tt.topic, tt.tone
                tt.topic, tt.tone = event.topic, event.tone
            case TensionChanged():
                t = snap.tension
                t.previous_level, t.previous_type, t.previous_direction = (
                    t.level, t.type, t.direction
                )
                t.level, t.type, t.direction = event.level, event.type, event.direction

            case NarrativeDescription():
                self._pending.append(NarrativeEvent(
                    description=event.description,
                    source=event.source,
                    chapter_index=snap.current_chapter,
                    narrative_time=snap.time,
                ))

            case ChapterEnded():
                chapter = self._chapter(snap.current_chapter)
                chapter.end_reason = event.reason
                chapter.ended_at = event.source
                snap.current_chapter += 1
            case ChapterDescribed():
                chapter = self._chapter(event.chapter_index)
                chapter.title = event.title
                chapter.summary = event.summary

            case _:
                assert_never(event)

    def finish(self) -> Snapshot:
        self._flush()
        snap = self.snap
        snap.source = self._source
        self._chapter(snap.current_chapter)
        for index in range(snap.current_chapter):
            self._chapter(index)
        snap.chapters = [self._chapters[i] for i in sorted(self._chapters)]
        snap.climate = compute_climate(snap.forecasts, snap.time, snap.location)
        return snap


def _attitude_field(attitude: Attitude, event: DirectionalEvent) -> list[str]:
    if isinstance(event, (FeelingAdded, FeelingRemoved)):
        return attitude.feelings
    if isinstance(event, (SecretAdded, SecretRemoved)):
        return attitude.secrets
    return attitude.wants


def project(events: Iterable[Event]) -> Snapshot:
    """Fold ``events`` (already filtered to the active branch) into a snapshot.

    Events still flagged ``deleted`` contribute nothing.
    """
    fold = _Fold()
    for event in tuple(events):
        if event.deleted:
            continue
        fold.apply(event)
    return fold.finish()


def project_store(store, **filters) -> Snapshot:
    """Project a store's active events. ``filters`` go to ``get_active_events``."""
    return project(store.get_active_events(**filters))


def milestones(snapshot: Snapshot, worthy_only: bool = True) -> list[Milestone]:
    """Milestones in the story, in the order they happened per pair.

    By default only subjects worth a milestone (first kiss, confession, ...)
    are listed; everyday subjects such as conversation are left out.
    """
    return [
        Milestone.from_occurrence(rel.pair, occurrence)
        for rel in snapshot.relationships.values()
        for occurrence in rel.milestones
        if not worthy_only or is_milestone_worthy(occurrence.subject)
    ]
