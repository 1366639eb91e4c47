"""Append-only event store.

Records live in an arena in append order and are never edited or removed.
Deletion adds the event id to a tombstone set; every read path filters
through it. Log position (index in the arena) is the only ordering; event
timestamps are audit data.

Branching is a read-time filter. Each message may have several swipes
(alternative continuations). A ``SwipeContext`` says which swipe is
selected for each message, and ``get_active_events`` hides events produced
on any other swipe. Switching swipes deletes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from .common import MessageAndSwipe
from .events import Event, Pair, event_pair, kind_and_subkind, parse_event, sorted_pair

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class SwipeContext(Protocol):
    def selected_swipe(self, message_id: int) -> int: ...


class SwipeSelection:
    """Selected swipe per message. Messages never selected default to swipe 0."""

    def __init__(self, selected: dict[int, int] | None = None) -> None:
        self._selected: dict[int, int] = dict(selected or {})

    def selected_swipe(self, message_id: int) -> int:
        return self._selected.get(message_id, 0)

    def select(self, message_id: int, swipe_id: int) -> None:
        self._selected[message_id] = swipe_id

    def to_dict(self) -> dict[str, int]:
        return {str(k): v for k, v in sorted(self._selected.items())}

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> SwipeSelection:
        return cls({int(k): int(v) for k, v in data.items()})


class EventStore:
    def __init__(self, events: Iterable[Event | dict[str, Any]] = ()) -> None:
        self._events: list[Event] = []
        self._index: dict[str, int] = {}
        self._tombstones: set[str] = set()
        self.append_many(events)

    def __len__(self) -> int:
        return len(self._events)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, event: Event | dict[str, Any]) -> Event:
        """Validate and append. Raises ValidationError for malformed records."""
        parsed = parse_event(event)
        if parsed.id in self._index:
            raise ValueError(f"Duplicate event id: {parsed.id}")
        self._index[parsed.id] = len(self._events)
        self._events.append(parsed)
        if parsed.deleted:
            self._tombstones.add(parsed.id)
        kind, subkind = kind_and_subkind(parsed)
        logger.debug(
            "append id=%s kind=%s subkind=%s position=%d",
            parsed.id, kind, subkind, len(self._events) - 1,
        )
        return parsed

    def append_many(self, events: Iterable[Event | dict[str, Any]]) -> list[Event]:
        """Append a batch. Nothing is stored unless every record is valid."""
        parsed = [parse_event(e) for e in events]
        seen: set[str] = set()
        for event in parsed:
            if event.id in self._index or event.id in seen:
                raise ValueError(f"Duplicate event id: {event.id}")
            seen.add(event.id)
        return [self.append(e) for e in parsed]

    def soft_delete(self, event_id: str) -> bool:
        """Tombstone an event. Unknown or already-deleted ids are a no-op."""
        if event_id not in self._index or event_id in self._tombstones:
            return False
        self._tombstones.add(event_id)
        logger.debug("soft delete id=%s", event_id)
        return True

    def _delete_where(self, predicate) -> int:
        count = 0
        for event in self._live():
            if predicate(event):
                self._tombstones.add(event.id)
                count += 1
        if count:
            logger.debug("soft deleted %d events", count)
        return count

    def delete_events_at_message(self, source: MessageAndSwipe) -> int:
        return self._delete_where(lambda e: e.source == source)

    def delete_all_events_for_message(self, message_id: int) -> int:
        """Every swipe of the message."""
        return self._delete_where(lambda e: e.source.message_id == message_id)

    def delete_events_after_message(self, message_id: int) -> int:
        return self._delete_where(lambda e: e.source.message_id > message_id)

    def replace_events_at_message(
        self, source: MessageAndSwipe, events: Iterable[Event | dict[str, Any]]
    ) -> list[Event]:
        """Re-extraction of one message: tombstone what it produced, append the new facts."""
        parsed = [parse_event(e) for e in events]
        for event in parsed:
            if event.source != source:
                raise ValueError(f"Event {event.id} does not belong to {source}")
        self.delete_events_at_message(source)
        return self.append_many(parsed)

    def replace_relationship_events_for_pair(
        self, source: MessageAndSwipe, pair: Pair, events: Iterable[Event | dict[str, Any]]
    ) -> list[Event]:
        pair = sorted_pair(*pair)
        parsed = [parse_event(e) for e in events]
        for event in parsed:
            if event.source != source or event_pair(event) != pair:
                raise ValueError(f"Event {event.id} is not a {pair} event at {source}")
        self._delete_where(lambda e: e.source == source and event_pair(e) == pair)
        return self.append_many(parsed)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _live(self) -> list[Event]:
        return [e for e in self._events if not self.is_deleted(e.id)]

    def is_deleted(self, event_id: str) -> bool:
        return event_id in self._tombstones

    def get(self, event_id: str) -> Event | None:
        position = self._index.get(event_id)
        return self._events[position] if position is not None else None

    def position_of(self, event_id: str) -> int | None:
        return self._index.get(event_id)

    def all_events(self) -> list[Event]:
        """Every record, deleted ones included, with the deletion flag applied."""
        return [self._with_flag(e) for e in self._events]

    def _with_flag(self, event: Event) -> Event:
        if self.is_deleted(event.id) and not event.deleted:
            return event.model_copy(update={"deleted": True})
        return event

    def get_active_events(
        self,
        up_to_position: int | None = None,
        up_to_message: int | None = None,
        swipe_context: SwipeContext | None = None,
    ) -> list[Event]:
        """Live events on the selected branch, in log order.

        ``up_to_position`` is an inclusive log index; ``up_to_message`` an
        inclusive message id. The returned list is a fresh copy, so later
        appends and deletions never show up in it.
        """
        active: list[Event] = []
        for position, event in enumerate(self._events):
            if up_to_position is not None and position > up_to_position:
                break
            if self.is_deleted(event.id) or event.deleted:
                continue
            if up_to_message is not None and event.source.message_id > up_to_message:
                continue
            if (
                swipe_context is not None
                and swipe_context.selected_swipe(event.source.message_id) != event.source.swipe_id
            ):
                continue
            active.append(event)
        return active

    def events_at_message(self, source: MessageAndSwipe) -> list[Event]:
        return [e for e in self._live() if e.source == source]

    def message_ids_with_events(self) -> list[int]:
        return sorted({e.source.message_id for e in self._live()})

    def relationship_events_for_pair(self, pair: Pair) -> list[Event]:
        pair = sorted_pair(*pair)
        return [e for e in self._live() if event_pair(e) == pair]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "events": [e.model_dump(mode="json") for e in self.all_events()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventStore:
        version = data.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported event log version: {version}")
        return cls(data.get("events", []))
