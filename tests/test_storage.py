"""Tests for rpg_chronicle.storage — JSON files under the data directory."""

import json

import pytest

from rpg_chronicle.common import MessageAndSwipe
from rpg_chronicle.events import NarrativeDescription
from rpg_chronicle.storage import slugify
from rpg_chronicle.store import EventStore, SwipeSelection


# ── Slugify ──────────────────────────────────────────────────


def test_slugify_basic():
    assert slugify("Hello World") == "hello-world"


def test_slugify_apostrophe():
    assert slugify("Dragon's Hollow") == "dragons-hollow"


def test_slugify_unicode():
    assert slugify("Café Münch") == "cafe-munch"


def test_slugify_empty():
    assert slugify("") == "untitled"


# ── Chats ───────────────────────────────────────────────────


def test_create_and_list_chats(storage):
    assert storage.create_chat("The Cursed Tavern") == "the-cursed-tavern"
    assert storage.list_chats() == ["the-cursed-tavern"]
    assert storage.chat_exists("the-cursed-tavern")


def test_create_chat_collision(storage):
    storage.create_chat("Quest")
    assert storage.create_chat("Quest") == "quest-2"
    assert storage.create_chat("Quest") == "quest-3"


def test_path_traversal_rejected(storage):
    with pytest.raises(ValueError):
        storage.load_events("../config")


# ── Event log ───────────────────────────────────────────────


def test_missing_log_is_empty(storage):
    assert len(storage.load_events("nothing-here")) == 0


def test_save_and_load_events(storage):
    chat = storage.create_chat("Log")
    store = EventStore()
    kept = store.append(NarrativeDescription(source=MessageAndSwipe(message_id=0), description="a"))
    gone = store.append(NarrativeDescription(source=MessageAndSwipe(message_id=1), description="b"))
    store.soft_delete(gone.id)
    storage.save_events(chat, store)

    loaded = storage.load_events(chat)
    assert loaded.get_active_events() == [kept]
    assert loaded.is_deleted(gone.id)


def test_events_file_layout(storage):
    chat = storage.create_chat("Layout")
    store = EventStore([NarrativeDescription(source=MessageAndSwipe(message_id=0), description="a")])
    storage.save_events(chat, store)
    data = json.loads((storage._base / "chats" / chat / "events.json").read_text())
    assert data["version"] == 1
    assert data["events"][0]["kind"] == "narrative_description"
    assert data["events"][0]["source"] == {"message_id": 0, "swipe_id": 0}


# ── Swipes ──────────────────────────────────────────────────


def test_save_and_load_swipes(storage):
    chat = storage.create_chat("Swipes")
    swipes = SwipeSelection()
    swipes.select(4, 2)
    storage.save_swipes(chat, swipes)
    assert storage.load_swipes(chat).selected_swipe(4) == 2
    assert storage.load_swipes(chat).selected_swipe(5) == 0
