"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database — reads and writes go through plain helper methods
that load and dump JSON.

Directory layout:

    {base}/
      config.json               ← app settings (merged over defaults on read)
      chats/
        {chat_id}/
          events.json           ← {"version": 1, "events": [...]} in log order
          swipes.json           ← {message_id: selected swipe}
"""

from __future__ import annotations

import json
import re
import unicodedata
from pathlib import Path
from typing import Any

from .config import default_config, merge_config
from .store import EventStore, SwipeSelection

_CHAT_ID = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def slugify(title: str) -> str:
    """Convert a title to a filesystem-safe chat id.

    "The Cursed Tavern" → "the-cursed-tavern"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._chats_root = base_path / "chats"
        self._chats_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _chat_dir(self, chat_id: str) -> Path:
        if not _CHAT_ID.match(chat_id):
            raise ValueError(f"Invalid chat id: {chat_id!r}")
        return self._chats_root / chat_id

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def create_chat(self, title: str) -> str:
        """Create an empty chat and return its id (a unique slug of ``title``)."""
        base = slugify(title)
        chat_id, n = base, 2
        while self._chat_dir(chat_id).exists():
            chat_id = f"{base}-{n}"
            n += 1
        self.save_events(chat_id, EventStore())
        return chat_id

    def chat_exists(self, chat_id: str) -> bool:
        return self._chat_dir(chat_id).is_dir()

    def list_chats(self) -> list[str]:
        return sorted(p.name for p in self._chats_root.iterdir() if p.is_dir())

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def load_events(self, chat_id: str) -> EventStore:
        path = self._chat_dir(chat_id) / "events.json"
        if not path.exists():
            return EventStore()
        return EventStore.from_dict(self._read_json(path))

    def save_events(self, chat_id: str, store: EventStore) -> None:
        self._write_json(self._chat_dir(chat_id) / "events.json", store.to_dict())

    # ------------------------------------------------------------------
    # Swipe selection
    # ------------------------------------------------------------------

    def load_swipes(self, chat_id: str) -> SwipeSelection:
        path = self._chat_dir(chat_id) / "swipes.json"
        if not path.exists():
            return SwipeSelection()
        return SwipeSelection.from_dict(self._read_json(path))

    def save_swipes(self, chat_id: str, swipes: SwipeSelection) -> None:
        self._write_json(self._chat_dir(chat_id) / "swipes.json", swipes.to_dict())

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> dict[str, Any]:
        """Read config, returning defaults merged with stored values."""
        path = self._base / "config.json"
        if not path.is_file():
            return default_config()
        return merge_config(default_config(), self._read_json(path))

    def update_config(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into config and persist. Returns full config."""
        config = merge_config(self.get_config(), fields)
        self._write_json(self._base / "config.json", config)
        return config
