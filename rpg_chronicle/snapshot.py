"""Snapshot models: the narrative state at one point in the log.

Snapshots are always computed, never stored. Set-valued fields (props, moods,
physical states, feelings, secrets, wants) are kept as lists in first-added
order with set semantics enforced by the projection, so that two projections
of the same events serialize to identical JSON.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .climate import Climate
from .common import (
    OUTFIT_SLOTS,
    ChapterEndReason,
    LocationType,
    MessageAndSwipe,
    RelationshipStatus,
    TensionDirection,
    TensionLevel,
    TensionType,
)
from .events import CharacterProfile, Pair, pair_key, sorted_pair
from .forecast import LocationForecast
from .subjects import subject_display_name, subject_group


class LocationState(BaseModel):
    area: str | None = None
    place: str | None = None
    position: str | None = None
    location_type: LocationType | None = None
    props: list[str] = Field(default_factory=list)

    def describe(self) -> str | None:
        parts = [p for p in (self.area, self.place, self.position) if p]
        return ", ".join(parts) if parts else None


class TopicToneState(BaseModel):
    topic: str | None = None
    tone: str | None = None
    previous_topic: str | None = None
    previous_tone: str | None = None


class TensionState(BaseModel):
    level: TensionLevel | None = None
    type: TensionType | None = None
    direction: TensionDirection | None = None
    previous_level: TensionLevel | None = None
    previous_type: TensionType | None = None
    previous_direction: TensionDirection | None = None


def _empty_outfit() -> dict[str, str | None]:
    return {slot: None for slot in OUTFIT_SLOTS}


class CharacterState(BaseModel):
    name: str
    position: str | None = None
    activity: str | None = None
    mood: list[str] = Field(default_factory=list)
    physical_state: list[str] = Field(default_factory=list)
    outfit: dict[str, str | None] = Field(default_factory=_empty_outfit)
    profile: CharacterProfile | None = None


class Attitude(BaseModel):
    feelings: list[str] = Field(default_factory=list)
    secrets: list[str] = Field(default_factory=list)
    wants: list[str] = Field(default_factory=list)


class SubjectOccurrence(BaseModel):
    subject: str
    source: MessageAndSwipe
    chapter_index: int
    is_milestone: bool = False
    description: str | None = None


class Milestone(BaseModel):
    """A milestone as shown to readers: subject label, group and where it happened."""

    pair: Pair
    subject: str
    display_name: str
    group: str | None = None
    description: str | None = None
    source: MessageAndSwipe
    chapter_index: int

    @classmethod
    def from_occurrence(cls, pair: Pair, occurrence: SubjectOccurrence) -> Milestone:
        return cls(
            pair=pair,
            subject=occurrence.subject,
            display_name=subject_display_name(occurrence.subject),
            group=subject_group(occurrence.subject),
            description=occurrence.description,
            source=occurrence.source,
            chapter_index=occurrence.chapter_index,
        )


class RelationshipState(BaseModel):
    pair: Pair
    status: RelationshipStatus = "strangers"
    a_toward_b: Attitude = Field(default_factory=Attitude)
    b_toward_a: Attitude = Field(default_factory=Attitude)
    subjects: list[SubjectOccurrence] = Field(default_factory=list)

    def attitude(self, from_character: str, toward_character: str) -> Attitude:
        """The attitude ``from_character`` holds toward ``toward_character``."""
        if from_character == self.pair[0] and toward_character != self.pair[0]:
            return self.a_toward_b
        return self.b_toward_a

    @property
    def milestones(self) -> list[SubjectOccurrence]:
        return [s for s in self.subjects if s.is_milestone]


class ChapterState(BaseModel):
    index: int
    title: str
    summary: str = ""
    end_reason: ChapterEndReason | None = None
    ended_at: MessageAndSwipe | None = None

    @staticmethod
    def default_title(index: int) -> str:
        return f"Chapter {index + 1}"


class NarrativeSubject(BaseModel):
    pair: Pair
    subject: str


class NarrativeEvent(BaseModel):
    """A narrative description plus the scene it happened in."""

    description: str
    source: MessageAndSwipe
    chapter_index: int
    narrative_time: datetime | None = None
    witnesses: list[str] = Field(default_factory=list)
    location: str | None = None
    tension: TensionState | None = None
    subjects: list[NarrativeSubject] = Field(default_factory=list)


class Snapshot(BaseModel):
    source: MessageAndSwipe | None = None
    time: datetime | None = None
    location: LocationState = Field(default_factory=LocationState)
    forecasts: dict[str, LocationForecast] = Field(default_factory=dict)
    climate: Climate = Field(default_factory=Climate.unknown)
    topic_tone: TopicToneState = Field(default_factory=TopicToneState)
    tension: TensionState = Field(default_factory=TensionState)
    characters: dict[str, CharacterState] = Field(default_factory=dict)
    characters_present: list[str] = Field(default_factory=list)
    relationships: dict[str, RelationshipState] = Field(default_factory=dict)
    current_chapter: int = 0
    chapters: list[ChapterState] = Field(default_factory=list)
    narrative_events: list[NarrativeEvent] = Field(default_factory=list)

    def relationship(self, a: str, b: str) -> RelationshipState | None:
        return self.relationships.get(pair_key(sorted_pair(a, b)))

    def present_characters(self) -> list[CharacterState]:
        return [self.characters[n] for n in self.characters_present if n in self.characters]

    def chapter(self, index: int) -> ChapterState | None:
        for chapter in self.chapters:
            if chapter.index == index:
                return chapter
        return None
