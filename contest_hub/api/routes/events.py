# api/routes/events.py
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from contest_hub.api.deps import Actor
from contest_hub.db.schemas.event import EventRead
from contest_hub.services.event import EventService

router = APIRouter(prefix="/competitions/{competition_id}/events", tags=["events"])


class EventIn(BaseModel):
    title: str
    description: Optional[str] = None
    form_schema: Any


class EventPatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    form_schema: Any = None


@router.get("")
async def list_events(competition_id: int):
    return {"events": await EventService().list_events(competition_id)}


@router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(competition_id: int, body: EventIn, actor_id: Actor):
    return await EventService().create_event(
        competition_id, body.title, body.form_schema, actor_id, description=body.description
    )


@router.get("/{event_id}", response_model=EventRead)
async def get_event(competition_id: int, event_id: int):
    return await EventService().get_event(competition_id, event_id)


@router.patch("/{event_id}", response_model=EventRead)
async def update_event(competition_id: int, event_id: int, body: EventPatch, actor_id: Actor):
    # Only fields present in the request body are changed.
    changes = {name: getattr(body, name) for name in body.model_fields_set}
    return await EventService().update_event(competition_id, event_id, actor_id, **changes)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(competition_id: int, event_id: int, actor_id: Actor):
    await EventService().delete_event(competition_id, event_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
