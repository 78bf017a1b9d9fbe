# api/routes/enrollments.py
from fastapi import APIRouter, status
from pydantic import BaseModel

from contest_hub.api.deps import Actor
from contest_hub.db.enums import EnrollmentStatus
from contest_hub.db.schemas.enrollment import EnrollmentRead
from contest_hub.services.enrollment import EnrollmentService

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


class EnrollmentIn(BaseModel):
    team_id: int
    competition_id: int
    status: EnrollmentStatus = EnrollmentStatus.REGISTERED


class StatusIn(BaseModel):
    status: EnrollmentStatus


@router.post("", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
async def create_enrollment(body: EnrollmentIn, actor_id: Actor):
    return await EnrollmentService().create_enrollment(
        body.team_id, body.competition_id, actor_id, initial_status=body.status
    )


@router.get("/user/{user_id}")
async def list_user_enrollments(user_id: str):
    return {"enrollments": await EnrollmentService().list_by_user(user_id)}


@router.get("/competition/{competition_id}")
async def list_competition_enrollments(competition_id: int):
    return {"enrollments": await EnrollmentService().list_by_competition(competition_id)}


@router.get("/team/{team_id}/competition/{competition_id}", response_model=EnrollmentRead)
async def get_team_enrollment(team_id: int, competition_id: int):
    return await EnrollmentService().get_team_enrollment(team_id, competition_id)


@router.put("/{enrollment_id}", response_model=EnrollmentRead)
async def set_status(enrollment_id: int, body: StatusIn, actor_id: Actor):
    return await EnrollmentService().set_status(enrollment_id, body.status, actor_id)


@router.delete("/{enrollment_id}")
async def delete_enrollment(enrollment_id: int, actor_id: Actor):
    removed = await EnrollmentService().delete_enrollment(enrollment_id, actor_id)
    return {"deleted": enrollment_id, "submissions_deleted": removed}
