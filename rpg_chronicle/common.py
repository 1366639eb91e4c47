"""Shared value types: closed enumerations, event addressing, narrative time.

Narrative time is a naive wall-clock ``datetime``. It is never converted to
UTC or an epoch; adding a ``TimeDelta`` steps through the calendar, so month
lengths, leap days and day rollover come from ``datetime`` itself.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TensionLevel = Literal[
    "relaxed",
    "aware",
    "guarded",
    "tense",
    "charged",
    "volatile",
    "explosive",
]

TensionType = Literal[
    "confrontation",
    "intimate",
    "vulnerable",
    "celebratory",
    "negotiation",
    "suspense",
    "conversation",
]

TensionDirection = Literal["escalating", "stable", "decreasing"]

RelationshipStatus = Literal[
    "strangers",
    "acquaintances",
    "friendly",
    "close",
    "intimate",
    "strained",
    "hostile",
    "complicated",
]

OutfitSlot = Literal[
    "head",
    "neck",
    "jacket",
    "back",
    "torso",
    "legs",
    "footwear",
    "socks",
    "underwear",
]

OUTFIT_SLOTS: tuple[OutfitSlot, ...] = (
    "head",
    "neck",
    "jacket",
    "back",
    "torso",
    "legs",
    "footwear",
    "socks",
    "underwear",
)

LocationType = Literal[
    "outdoor",
    "modern",
    "heated",
    "unheated",
    "underground",
    "tent",
    "vehicle",
]

ChapterEndReason = Literal["location_change", "time_jump", "both", "manual"]

Sex = Literal["M", "F", "O"]


class MessageAndSwipe(BaseModel):
    """Address of the chat message (and which of its swipes) an event came from."""

    model_config = ConfigDict(frozen=True)

    message_id: int = Field(ge=0)
    swipe_id: int = Field(default=0, ge=0)


class TimeDelta(BaseModel):
    """A forward-only span of narrative time."""

    model_config = ConfigDict(frozen=True)

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)
    seconds: int = Field(default=0, ge=0)

    def as_timedelta(self) -> timedelta:
        return timedelta(
            days=self.days, hours=self.hours, minutes=self.minutes, seconds=self.seconds
        )


def naive(value: datetime) -> datetime:
    """Drop any timezone so narrative time stays wall-clock."""
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def parse_narrative_time(value: str) -> datetime:
    """Parse an ISO timestamp string into a naive narrative datetime.

    Accepts the trailing ``Z`` some serializers emit.
    """
    if value.endswith("Z"):
        value = value[:-1]
    return naive(datetime.fromisoformat(value))


def advance(moment: datetime, delta: TimeDelta) -> datetime:
    return moment + delta.as_timedelta()
