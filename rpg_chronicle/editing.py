"""Pending edits to stored events.

An edit is held as a value (original event + field changes) until it is
committed. Committing tombstones the original and appends a new event built
from it; cancelling leaves the store untouched. Nothing here depends on how
the edit was collected.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from .events import Event, parse_event
from .store import EventStore

logger = logging.getLogger(__name__)

EditState = Literal["pending", "committed", "cancelled"]

_FIXED_FIELDS = {"id", "deleted", "timestamp"}


class PendingEdit:
    def __init__(self, original: Event, changes: dict[str, Any] | None = None) -> None:
        self.original = original
        self.changes: dict[str, Any] = {
            k: v for k, v in (changes or {}).items() if k not in _FIXED_FIELDS
        }
        self.state: EditState = "pending"

    @classmethod
    def begin(cls, store: EventStore, event_id: str) -> PendingEdit:
        event = store.get(event_id)
        if event is None or store.is_deleted(event_id):
            raise LookupError(f"No active event {event_id}")
        return cls(event)

    def with_changes(self, **changes: Any) -> PendingEdit:
        return PendingEdit(self.original, {**self.changes, **changes})

    def preview(self) -> Event:
        """The replacement event. Raises ValidationError if the changes are malformed."""
        data = self.original.model_dump(exclude=_FIXED_FIELDS)
        data.update(self.changes)
        return parse_event(data)

    def commit(self, store: EventStore) -> Event:
        if self.state != "pending":
            raise RuntimeError(f"Edit already {self.state}")
        replacement = self.preview()
        store.soft_delete(self.original.id)
        store.append(replacement)
        self.state = "committed"
        logger.debug("edit committed %s -> %s", self.original.id, replacement.id)
        return replacement

    def cancel(self) -> None:
        if self.state != "pending":
            raise RuntimeError(f"Edit already {self.state}")
        self.state = "cancelled"
