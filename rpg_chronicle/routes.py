"""FastAPI endpoints under /api.

Endpoint groups: health, settings, chats, and per-chat resources (events,
messages, swipes, projection, chapters, forecast) nested under
/api/chats/{chat_id}/. Every read of narrative state is a fresh projection
of the stored log; nothing derived is ever written back.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError

from .chapters import compute_chapters
from .common import MessageAndSwipe
from .editing import PendingEdit
from .forecast import MIN_FORECAST_DAYS, get_days_remaining_in_forecast, needs_new_forecast
from .projection import milestones, project, project_store
from .storage import Storage
from .store import EventStore

router = APIRouter()


class CreateChat(BaseModel):
    title: str


class SelectSwipe(BaseModel):
    swipe_id: int


def _storage(request: Request) -> Storage:
    return request.app.state.storage


def _invalid(e: ValidationError) -> HTTPException:
    return HTTPException(422, json.loads(e.json(include_url=False)))


def _load(request: Request, chat_id: str) -> tuple[Storage, EventStore]:
    storage = _storage(request)
    try:
        exists = storage.chat_exists(chat_id)
    except ValueError:
        exists = False
    if not exists:
        raise HTTPException(404, "Chat not found")
    return storage, storage.load_events(chat_id)


# ── Settings ────────────────────────────────────────────────


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    return _storage(request).get_config()


@router.patch("/settings")
async def update_settings(request: Request, body: dict[str, Any]):
    """Update settings (partial merge)."""
    try:
        return _storage(request).update_config(body)
    except ValidationError as e:
        raise _invalid(e)


# ── Chats ───────────────────────────────────────────────────


@router.get("/chats")
async def list_chats(request: Request):
    return _storage(request).list_chats()


@router.post("/chats", status_code=201)
async def create_chat(request: Request, body: CreateChat):
    return {"id": _storage(request).create_chat(body.title)}


# ── Events ──────────────────────────────────────────────────


@router.get("/chats/{chat_id}/events")
async def list_events(request: Request, chat_id: str, include_deleted: bool = False):
    """Events in log order: the active branch, or every record for auditing."""
    storage, store = _load(request, chat_id)
    if include_deleted:
        events = store.all_events()
    else:
        events = store.get_active_events(swipe_context=storage.load_swipes(chat_id))
    return [e.model_dump(mode="json") for e in events]


@router.post("/chats/{chat_id}/events", status_code=201)
async def append_events(request: Request, chat_id: str, body: list[dict[str, Any]]):
    """Append a batch of events. The whole batch is rejected if any record is malformed."""
    storage, store = _load(request, chat_id)
    try:
        appended = store.append_many(body)
    except ValidationError as e:
        raise _invalid(e)
    except ValueError as e:
        raise HTTPException(409, str(e))
    storage.save_events(chat_id, store)
    return [e.model_dump(mode="json") for e in appended]


@router.delete("/chats/{chat_id}/events/{event_id}")
async def delete_event(request: Request, chat_id: str, event_id: str):
    storage, store = _load(request, chat_id)
    if store.get(event_id) is None:
        raise HTTPException(404, "Event not found")
    deleted = store.soft_delete(event_id)
    storage.save_events(chat_id, store)
    return {"deleted": deleted}


@router.patch("/chats/{chat_id}/events/{event_id}")
async def edit_event(request: Request, chat_id: str, event_id: str, body: dict[str, Any]):
    """Replace an event: the original is tombstoned and the edited copy appended."""
    storage, store = _load(request, chat_id)
    try:
        edit = PendingEdit.begin(store, event_id).with_changes(**body)
        replacement = edit.commit(store)
    except LookupError:
        raise HTTPException(404, "Event not found")
    except ValidationError as e:
        raise _invalid(e)
    storage.save_events(chat_id, store)
    return replacement.model_dump(mode="json")


# ── Messages / swipes ───────────────────────────────────────


@router.delete("/chats/{chat_id}/messages/{message_id}")
async def delete_message_events(
    request: Request, chat_id: str, message_id: int, swipe_id: int | None = None
):
    """Delete the events of one swipe of a message, or of every swipe when none is given."""
    storage, store = _load(request, chat_id)
    if swipe_id is None:
        count = store.delete_all_events_for_message(message_id)
    else:
        count = store.delete_events_at_message(
            MessageAndSwipe(message_id=message_id, swipe_id=swipe_id)
        )
    storage.save_events(chat_id, store)
    return {"deleted": count}


@router.put("/chats/{chat_id}/messages/{message_id}/swipe")
async def select_swipe(request: Request, chat_id: str, message_id: int, body: SelectSwipe):
    storage, _ = _load(request, chat_id)
    swipes = storage.load_swipes(chat_id)
    swipes.select(message_id, body.swipe_id)
    storage.save_swipes(chat_id, swipes)
    return swipes.to_dict()


# ── Derived state ───────────────────────────────────────────


@router.get("/chats/{chat_id}/projection")
async def get_projection(
    request: Request,
    chat_id: str,
    up_to_message: int | None = None,
    up_to_position: int | None = None,
):
    storage, store = _load(request, chat_id)
    snapshot = project_store(
        store,
        up_to_position=up_to_position,
        up_to_message=up_to_message,
        swipe_context=storage.load_swipes(chat_id),
    )
    return snapshot.model_dump(mode="json")


@router.get("/chats/{chat_id}/chapters")
async def get_chapters(request: Request, chat_id: str):
    storage, store = _load(request, chat_id)
    events = store.get_active_events(swipe_context=storage.load_swipes(chat_id))
    return [c.model_dump(mode="json") for c in compute_chapters(events)]


@router.get("/chats/{chat_id}/milestones")
async def get_milestones(request: Request, chat_id: str, all_subjects: bool = False):
    """Milestones per pair with display labels. Everyday subjects only with ``all_subjects``."""
    storage, store = _load(request, chat_id)
    snapshot = project(store.get_active_events(swipe_context=storage.load_swipes(chat_id)))
    return [m.model_dump(mode="json") for m in milestones(snapshot, worthy_only=not all_subjects)]


@router.get("/chats/{chat_id}/forecast")
async def forecast_status(request: Request, chat_id: str, area: str | None = None):
    """Whether the extractor should generate a forecast for ``area`` (default: current area)."""
    storage, store = _load(request, chat_id)
    snapshot = project(store.get_active_events(swipe_context=storage.load_swipes(chat_id)))
    area = area or snapshot.location.area
    if area is None or snapshot.time is None:
        return {
            "area": area,
            "time": None,
            "needs_new_forecast": False,
            "days_remaining": 0,
            "min_forecast_days": MIN_FORECAST_DAYS,
        }
    forecast = snapshot.forecasts.get(area)
    return {
        "area": area,
        "time": snapshot.time.isoformat(),
        "needs_new_forecast": needs_new_forecast(snapshot.forecasts, area, snapshot.time),
        "days_remaining": (
            get_days_remaining_in_forecast(forecast, snapshot.time) if forecast else 0
        ),
        "min_forecast_days": MIN_FORECAST_DAYS,
    }
