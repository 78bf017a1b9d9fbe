# api/routes/submissions.py
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from contest_hub.api.deps import Actor
from contest_hub.db.schemas.submission import SubmissionRead
from contest_hub.services.event import EventService
from contest_hub.services.submission import SubmissionService

router = APIRouter(tags=["submissions"])


class SubmissionIn(BaseModel):
    event_id: int
    enrollment_id: Optional[int] = None
    submission: Any = None


class SubmissionPatch(BaseModel):
    submission: Any


@router.post("/competitions/{competition_id}/submissions", response_model=SubmissionRead)
async def submit(competition_id: int, body: SubmissionIn, actor_id: Actor):
    event = await EventService().get_event(competition_id, body.event_id)
    return await SubmissionService().submit(event.id, body.enrollment_id, body.submission, actor_id)


@router.get("/competitions/{competition_id}/submissions")
async def list_competition_submissions(competition_id: int, actor_id: Actor):
    return {"submissions": await SubmissionService().list_by_competition(competition_id, actor_id)}


@router.get("/competitions/{competition_id}/submissions/enrollment/{enrollment_id}")
async def list_enrollment_submissions(competition_id: int, enrollment_id: int, actor_id: Actor):
    return {"submissions": await SubmissionService().list_by_enrollment(competition_id, enrollment_id, actor_id)}


# Registered before the /{submission_id} routes so "orphaned" is not parsed as an id.
@router.delete("/competitions/{competition_id}/submissions/orphaned")
async def purge_orphaned(competition_id: int, actor_id: Actor):
    return {"deleted": await SubmissionService().purge_orphaned(competition_id, actor_id)}


@router.patch("/competitions/{competition_id}/submissions/{submission_id}", response_model=SubmissionRead)
async def update_submission(competition_id: int, submission_id: int, body: SubmissionPatch, actor_id: Actor):
    return await SubmissionService().update(submission_id, body.submission, actor_id, competition_id=competition_id)


@router.delete("/competitions/{competition_id}/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(competition_id: int, submission_id: int, actor_id: Actor):
    await SubmissionService().delete(submission_id, actor_id, competition_id=competition_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/events/{event_id}/submissions")
async def list_event_submissions(event_id: int, actor_id: Actor, enrollment_id: Optional[int] = None):
    svc = SubmissionService()
    if enrollment_id is not None:
        return {"submission": await svc.get_for_event(event_id, enrollment_id, actor_id)}
    return {"submissions": await svc.list_by_event(event_id, actor_id)}


@router.get("/events/{event_id}/submissions/export")
async def export_event(event_id: int, actor_id: Actor):
    return {"event_id": event_id, "submissions": await SubmissionService().export_event(event_id, actor_id)}
