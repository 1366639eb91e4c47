"""Event models.

Every fact the extractor produces is one of the models below. They form a
two-level tagged union: ``kind`` picks the family, ``subkind`` picks the
shape inside families that have more than one. Validation through
``EventAdapter`` (or ``parse_event``) rejects any kind/subkind combination
not listed here, unknown enumeration values, and negative time deltas.

Events are frozen. An edit is always "tombstone the old id, append a new
event", see ``store.EventStore`` and ``editing.PendingEdit``.

Wire layout (one record):

    {"id": "...", "source": {"message_id": 3, "swipe_id": 0},
     "timestamp": 1705314600000, "deleted": false,
     "kind": "relationship", "subkind": "feeling_added",
     "from_character": "Zoe", "toward_character": "Alice", "value": "trust"}
"""

from __future__ import annotations

import time
import uuid
from datetime import date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .common import (
    ChapterEndReason,
    LocationType,
    MessageAndSwipe,
    OutfitSlot,
    RelationshipStatus,
    Sex,
    TensionDirection,
    TensionLevel,
    TensionType,
    TimeDelta,
    naive,
    parse_narrative_time,
)
from .forecast import LocationForecast
from .subjects import Subject

Pair = tuple[str, str]


def sorted_pair(a: str, b: str) -> Pair:
    return (a, b) if a <= b else (b, a)


def pair_key(pair: Pair) -> str:
    """Snapshot dictionary key for a pair: "Alice|Zoe"."""
    return f"{pair[0]}|{pair[1]}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source: MessageAndSwipe
    timestamp: int = Field(default_factory=_now_ms)  # audit only, never ordered on
    deleted: bool = False


# ---------------------------------------------------------------------------
# time
# ---------------------------------------------------------------------------

class TimeInitial(BaseEvent):
    kind: Literal["time"] = "time"
    subkind: Literal["initial"] = "initial"
    time: datetime

    @field_validator("time", mode="before")
    @classmethod
    def _wall_clock(cls, v):
        if isinstance(v, str):
            return parse_narrative_time(v)
        if isinstance(v, datetime):
            return naive(v)
        return v


class TimeDeltaEvent(BaseEvent):
    kind: Literal["time"] = "time"
    subkind: Literal["delta"] = "delta"
    delta: TimeDelta


TimeEvent = Annotated[Union[TimeInitial, TimeDeltaEvent], Field(discriminator="subkind")]


# ---------------------------------------------------------------------------
# location
# ---------------------------------------------------------------------------

class LocationMoved(BaseEvent):
    kind: Literal["location"] = "location"
    subkind: Literal["moved"] = "moved"
    new_area: str
    new_place: str
    new_position: str
    new_location_type: LocationType | None = None
    previous_area: str | None = None
    previous_place: str | None = None
    previous_position: str | None = None


class PropAdded(BaseEvent):
    kind: Literal["location"] = "location"
    subkind: Literal["prop_added"] = "prop_added"
    prop: str


class PropRemoved(BaseEvent):
    kind: Literal["location"] = "location"
    subkind: Literal["prop_removed"] = "prop_removed"
    prop: str


LocationEvent = Annotated[
    Union[LocationMoved, PropAdded, PropRemoved], Field(discriminator="subkind")
]


class ForecastGenerated(BaseEvent):
    kind: Literal["forecast_generated"] = "forecast_generated"
    area_name: str
    start_date: date
    forecast: LocationForecast

    @model_validator(mode="after")
    def _matches_table(self) -> ForecastGenerated:
        if self.area_name != self.forecast.location_id:
            raise ValueError(
                f"area_name {self.area_name!r} does not match forecast {self.forecast.location_id!r}"
            )
        if self.start_date != self.forecast.start_date:
            raise ValueError(
                f"start_date {self.start_date} does not match forecast {self.forecast.start_date}"
            )
        return self


# ---------------------------------------------------------------------------
# character
# ---------------------------------------------------------------------------

class CharacterProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    sex: Sex
    species: str
    age: int = Field(ge=0)
    appearance: list[str] = Field(default_factory=list)
    personality: list[str] = Field(default_factory=list)


class _CharacterEvent(BaseEvent):
    kind: Literal["character"] = "character"
    character: str


class CharacterAppeared(_CharacterEvent):
    subkind: Literal["appeared"] = "appeared"
    initial_position: str | None = None
    initial_activity: str | None = None
    initial_mood: list[str] = Field(default_factory=list)
    initial_physical_state: list[str] = Field(default_factory=list)


class CharacterDeparted(_CharacterEvent):
    subkind: Literal["departed"] = "departed"


class ProfileSet(_CharacterEvent):
    subkind: Literal["profile_set"] = "profile_set"
    profile: CharacterProfile


class PositionChanged(_CharacterEvent):
    subkind: Literal["position_changed"] = "position_changed"
    new_value: str
    previous_value: str | None = None


class ActivityChanged(_CharacterEvent):
    subkind: Literal["activity_changed"] = "activity_changed"
    new_value: str | None
    previous_value: str | None = None


class MoodAdded(_CharacterEvent):
    subkind: Literal["mood_added"] = "mood_added"
    mood: str


class MoodRemoved(_CharacterEvent):
    subkind: Literal["mood_removed"] = "mood_removed"
    mood: str


class OutfitChanged(_CharacterEvent):
    subkind: Literal["outfit_changed"] = "outfit_changed"
    slot: OutfitSlot
    new_value: str | None
    previous_value: str | None = None


class PhysicalAdded(_CharacterEvent):
    subkind: Literal["physical_added"] = "physical_added"
    physical_state: str


class PhysicalRemoved(_CharacterEvent):
    subkind: Literal["physical_removed"] = "physical_removed"
    physical_state: str


CharacterEvent = Annotated[
    Union[
        CharacterAppeared,
        CharacterDeparted,
        ProfileSet,
        PositionChanged,
        ActivityChanged,
        MoodAdded,
        MoodRemoved,
        OutfitChanged,
        PhysicalAdded,
        PhysicalRemoved,
    ],
    Field(discriminator="subkind"),
]


# ---------------------------------------------------------------------------
# relationship
# ---------------------------------------------------------------------------

class _DirectionalEvent(BaseEvent):
    """Attitude change held by ``from_character`` toward ``toward_character``.

    The pair is derived from the two names, never stored.
    """

    kind: Literal["relationship"] = "relationship"
    from_character: str
    toward_character: str
    value: str

    @property
    def pair(self) -> Pair:
        return sorted_pair(self.from_character, self.toward_character)


class FeelingAdded(_DirectionalEvent):
    subkind: Literal["feeling_added"] = "feeling_added"


class FeelingRemoved(_DirectionalEvent):
    subkind: Literal["feeling_removed"] = "feeling_removed"


class SecretAdded(_DirectionalEvent):
    subkind: Literal["secret_added"] = "secret_added"


class SecretRemoved(_DirectionalEvent):
    subkind: Literal["secret_removed"] = "secret_removed"


class WantAdded(_DirectionalEvent):
    subkind: Literal["want_added"] = "want_added"


class WantRemoved(_DirectionalEvent):
    subkind: Literal["want_removed"] = "want_removed"


class _PairEvent(BaseEvent):
    kind: Literal["relationship"] = "relationship"
    pair: Pair

    @field_validator("pair")
    @classmethod
    def _sort_pair(cls, v: Pair) -> Pair:
        return sorted_pair(*v)


class StatusChanged(_PairEvent):
    subkind: Literal["status_changed"] = "status_changed"
    new_status: RelationshipStatus
    previous_status: RelationshipStatus | None = None


class SubjectOccurred(_PairEvent):
    subkind: Literal["subject"] = "subject"
    subject: Subject
    milestone_description: str | None = None


DirectionalEvent = Union[
    FeelingAdded, FeelingRemoved, SecretAdded, SecretRemoved, WantAdded, WantRemoved
]

RelationshipEvent = Annotated[
    Union[
        FeelingAdded,
        FeelingRemoved,
        SecretAdded,
        SecretRemoved,
        WantAdded,
        WantRemoved,
        StatusChanged,
        SubjectOccurred,
    ],
    Field(discriminator="subkind"),
]


# ---------------------------------------------------------------------------
# scene
# ---------------------------------------------------------------------------

class TopicToneChanged(BaseEvent):
    kind: Literal["topic_tone"] = "topic_tone"
    topic: str
    tone: str


class TensionChanged(BaseEvent):
    kind: Literal["tension"] = "tension"
    level: TensionLevel
    type: TensionType
    direction: TensionDirection


class NarrativeDescription(BaseEvent):
    kind: Literal["narrative_description"] = "narrative_description"
    description: str


# ---------------------------------------------------------------------------
# chapter
# ---------------------------------------------------------------------------

class ChapterEnded(BaseEvent):
    kind: Literal["chapter"] = "chapter"
    subkind: Literal["ended"] = "ended"
    reason: ChapterEndReason


class ChapterDescribed(BaseEvent):
    kind: Literal["chapter"] = "chapter"
    subkind: Literal["described"] = "described"
    chapter_index: int = Field(ge=0)
    title: str
    summary: str = ""


ChapterEvent = Annotated[
    Union[ChapterEnded, ChapterDescribed], Field(discriminator="subkind")
]


# ---------------------------------------------------------------------------
# The union
# ---------------------------------------------------------------------------

Event = Annotated[
    Union[
        TimeEvent,
        LocationEvent,
        ForecastGenerated,
        CharacterEvent,
        RelationshipEvent,
        TopicToneChanged,
        TensionChanged,
        NarrativeDescription,
        ChapterEvent,
    ],
    Field(discriminator="kind"),
]

EventAdapter: TypeAdapter[Event] = TypeAdapter(Event)


def parse_event(data: dict | BaseEvent) -> Event:
    """Validate a raw record (or re-validate a model) into a concrete event.

    Raises pydantic.ValidationError on anything outside the closed union.
    """
    if isinstance(data, BaseEvent):
        data = data.model_dump()
    return EventAdapter.validate_python(data)


def kind_and_subkind(event: BaseEvent) -> tuple[str, str | None]:
    return event.kind, getattr(event, "subkind", None)  # type: ignore[attr-defined]


def event_pair(event: BaseEvent) -> Pair | None:
    """The relationship pair an event touches, if any."""
    if isinstance(event, (_DirectionalEvent, _PairEvent)):
        return event.pair
    return None


def forecast_event(forecast: LocationForecast, source: MessageAndSwipe) -> ForecastGenerated:
    return ForecastGenerated(
        source=source,
        area_name=forecast.location_id,
        start_date=forecast.start_date,
        forecast=forecast,
    )
