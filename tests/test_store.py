"""Tests for rpg_chronicle.store — append-only log, tombstones, swipe filtering."""

import pytest
from pydantic import ValidationError

from rpg_chronicle.common import MessageAndSwipe
from rpg_chronicle.events import FeelingAdded, MoodAdded, NarrativeDescription, StatusChanged
from rpg_chronicle.store import EventStore, SwipeSelection


def at(message_id: int, swipe_id: int = 0) -> MessageAndSwipe:
    return MessageAndSwipe(message_id=message_id, swipe_id=swipe_id)


def note(message_id: int, text: str, swipe_id: int = 0) -> NarrativeDescription:
    return NarrativeDescription(source=at(message_id, swipe_id), description=text)


def descriptions(events) -> list[str]:
    return [e.description for e in events]


# ── Append ──────────────────────────────────────────────────


def test_append_preserves_log_order():
    store = EventStore()
    for i, text in enumerate(["a", "b", "c"]):
        store.append(note(i, text))
    assert descriptions(store.get_active_events()) == ["a", "b", "c"]
    assert len(store) == 3


def test_order_is_position_not_timestamp():
    store = EventStore()
    late = note(0, "late").model_copy(update={"timestamp": 2_000})
    early = note(0, "early").model_copy(update={"timestamp": 1_000})
    store.append(late)
    store.append(early)
    assert descriptions(store.get_active_events()) == ["late", "early"]


def test_append_dict_is_validated():
    store = EventStore()
    e = store.append({"source": {"message_id": 1}, "kind": "narrative_description", "description": "x"})
    assert isinstance(e, NarrativeDescription)


def test_append_malformed_never_stored():
    store = EventStore()
    with pytest.raises(ValidationError):
        store.append({"source": {"message_id": 1}, "kind": "character", "subkind": "flew"})
    assert len(store) == 0


def test_append_duplicate_id_rejected():
    store = EventStore()
    e = store.append(note(0, "a"))
    with pytest.raises(ValueError):
        store.append(e)


def test_append_many_is_all_or_nothing():
    store = EventStore()
    batch = [note(0, "a"), {"source": {"message_id": 0}, "kind": "tension", "level": "furious"}]
    with pytest.raises(ValidationError):
        store.append_many(batch)
    assert len(store) == 0

    repeated = note(0, "b")
    with pytest.raises(ValueError):
        store.append_many([repeated, repeated])
    assert len(store) == 0


# ── Soft delete ─────────────────────────────────────────────


def test_soft_delete_hides_event():
    store = EventStore()
    a = store.append(note(0, "a"))
    store.append(note(1, "b"))
    assert store.soft_delete(a.id) is True
    assert descriptions(store.get_active_events()) == ["b"]
    assert store.is_deleted(a.id)


def test_soft_delete_unknown_id_is_noop():
    store = EventStore()
    store.append(note(0, "a"))
    assert store.soft_delete("nope") is False
    assert descriptions(store.get_active_events()) == ["a"]


def test_soft_delete_never_mutates_record():
    store = EventStore()
    a = store.append(note(0, "a"))
    store.soft_delete(a.id)
    assert store.get(a.id).deleted is False
    assert store.all_events()[0].deleted is True


def test_deleted_flag_on_load_becomes_tombstone():
    data = note(0, "gone").model_dump(mode="json")
    data["deleted"] = True
    store = EventStore([data])
    assert store.get_active_events() == []
    assert store.is_deleted(data["id"])


# ── Cut-offs ────────────────────────────────────────────────


def test_up_to_position_inclusive():
    store = EventStore([note(i, str(i)) for i in range(5)])
    assert descriptions(store.get_active_events(up_to_position=2)) == ["0", "1", "2"]


def test_up_to_position_counts_deleted_records():
    store = EventStore([note(i, str(i)) for i in range(4)])
    store.soft_delete(store.all_events()[1].id)
    assert descriptions(store.get_active_events(up_to_position=2)) == ["0", "2"]


def test_up_to_message_inclusive():
    store = EventStore([note(0, "a"), note(1, "b"), note(2, "c"), note(1, "b2")])
    assert descriptions(store.get_active_events(up_to_message=1)) == ["a", "b", "b2"]


def test_active_events_is_a_copy():
    store = EventStore([note(0, "a")])
    active = store.get_active_events()
    store.append(note(1, "b"))
    store.soft_delete(active[0].id)
    assert descriptions(active) == ["a"]


# ── Swipes ──────────────────────────────────────────────────


def test_only_selected_swipe_is_active():
    store = EventStore([note(0, "intro"), note(1, "first", 0), note(1, "second", 1)])
    swipes = SwipeSelection()
    assert descriptions(store.get_active_events(swipe_context=swipes)) == ["intro", "first"]
    swipes.select(1, 1)
    assert descriptions(store.get_active_events(swipe_context=swipes)) == ["intro", "second"]


def test_switching_swipe_deletes_nothing():
    store = EventStore([note(1, "first", 0), note(1, "second", 1)])
    swipes = SwipeSelection({1: 1})
    store.get_active_events(swipe_context=swipes)
    assert descriptions(store.get_active_events()) == ["first", "second"]


def test_swipe_selection_round_trip():
    swipes = SwipeSelection({3: 2, 1: 1})
    restored = SwipeSelection.from_dict(swipes.to_dict())
    assert restored.selected_swipe(3) == 2
    assert restored.selected_swipe(9) == 0


# ── Message-level operations ───────────────────────────────


def test_delete_events_at_message_only_that_swipe():
    store = EventStore([note(1, "a", 0), note(1, "b", 1), note(2, "c")])
    assert store.delete_events_at_message(at(1, 0)) == 1
    assert descriptions(store.get_active_events()) == ["b", "c"]


def test_delete_all_events_for_message():
    store = EventStore([note(1, "a", 0), note(1, "b", 1), note(2, "c")])
    assert store.delete_all_events_for_message(1) == 2
    assert descriptions(store.get_active_events()) == ["c"]


def test_delete_events_after_message():
    store = EventStore([note(1, "a"), note(2, "b"), note(3, "c")])
    store.delete_events_after_message(1)
    assert descriptions(store.get_active_events()) == ["a"]


def test_replace_events_at_message():
    store = EventStore([note(1, "old"), note(2, "keep")])
    store.replace_events_at_message(at(1), [note(1, "new")])
    assert descriptions(store.get_active_events()) == ["keep", "new"]
    assert len(store) == 3


def test_replace_events_rejects_foreign_source():
    store = EventStore([note(1, "old")])
    with pytest.raises(ValueError):
        store.replace_events_at_message(at(1), [note(2, "wrong")])
    assert descriptions(store.get_active_events()) == ["old"]


def test_events_at_message_and_message_ids():
    store = EventStore([note(4, "a"), note(2, "b"), note(4, "c", 1)])
    assert descriptions(store.events_at_message(at(4))) == ["a"]
    assert store.message_ids_with_events() == [2, 4]


def test_relationship_events_for_pair_any_direction():
    feeling = FeelingAdded(source=at(1), from_character="Zoe", toward_character="Alice", value="awe")
    status = StatusChanged(source=at(2), pair=("Alice", "Zoe"), new_status="friendly")
    other = StatusChanged(source=at(2), pair=("Alice", "Bob"), new_status="close")
    mood = MoodAdded(source=at(2), character="Alice", mood="calm")
    store = EventStore([feeling, status, other, mood])
    assert store.relationship_events_for_pair(("Zoe", "Alice")) == [feeling, status]


def test_replace_relationship_events_for_pair():
    old = StatusChanged(source=at(2), pair=("Alice", "Zoe"), new_status="friendly")
    other = StatusChanged(source=at(2), pair=("Alice", "Bob"), new_status="close")
    store = EventStore([old, other])
    new = StatusChanged(source=at(2), pair=("Alice", "Zoe"), new_status="close")
    store.replace_relationship_events_for_pair(at(2), ("Zoe", "Alice"), [new])
    assert store.get_active_events() == [other, new]


# ── Serialization ───────────────────────────────────────────


def test_to_dict_from_dict_keeps_order_and_deletions():
    store = EventStore([note(0, "a"), note(1, "b"), note(2, "c")])
    store.soft_delete(store.all_events()[1].id)
    restored = EventStore.from_dict(store.to_dict())
    assert descriptions(restored.get_active_events()) == ["a", "c"]
    assert len(restored) == 3
    assert restored.to_dict() == store.to_dict()


def test_from_dict_unknown_version():
    with pytest.raises(ValueError):
        EventStore.from_dict({"version": 99, "events": []})
