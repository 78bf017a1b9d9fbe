# api/routes/teams.py
from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from contest_hub.api.deps import Actor
from contest_hub.db.enums import TeamRole
from contest_hub.db.schemas.team import TeamWithMembers
from contest_hub.db.schemas.team_member import TeamMemberRead
from contest_hub.services.team import TeamService

router = APIRouter(prefix="/teams", tags=["teams"])


class TeamIn(BaseModel):
    name: str
    max_participants: int


class MemberIn(BaseModel):
    member_id: str
    role: TeamRole = TeamRole.MEMBER


class LeaderIn(BaseModel):
    member_id: str


@router.post("", response_model=TeamWithMembers, status_code=status.HTTP_201_CREATED)
async def create_team(body: TeamIn, actor_id: Actor):
    return await TeamService().create_team(body.name, actor_id, body.max_participants)


@router.get("/user/{user_id}")
async def list_created_teams(user_id: str):
    return {"teams": await TeamService().list_created_teams(user_id)}


@router.get("/user/{user_id}/all")
async def list_user_teams(user_id: str):
    return {"teams": await TeamService().list_user_teams(user_id)}


@router.get("/{team_id}", response_model=TeamWithMembers)
async def get_team(team_id: int):
    return await TeamService().get_team(team_id)


@router.post("/{team_id}/members", response_model=TeamMemberRead, status_code=status.HTTP_201_CREATED)
async def add_member(team_id: int, body: MemberIn, actor_id: Actor):
    return await TeamService().add_member(team_id, body.member_id, actor_id, role=body.role)


@router.delete("/{team_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(team_id: int, member_id: str, actor_id: Actor):
    await TeamService().remove_member(team_id, member_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{team_id}/leader", response_model=TeamMemberRead)
async def transfer_leadership(team_id: int, body: LeaderIn, actor_id: Actor):
    return await TeamService().transfer_leadership(team_id, body.member_id, actor_id)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(team_id: int, actor_id: Actor):
    await TeamService().delete_team(team_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
