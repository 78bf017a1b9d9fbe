# db/schemas/team.py
from datetime import datetime
from typing import List
from contest_hub.db.schemas._base import OrmModel
from contest_hub.db.schemas.team_member import TeamMemberRead

class TeamBase(OrmModel):
    name: str
    created_by: str
    max_participants: int

class TeamCreate(TeamBase): ...

class TeamRead(TeamBase):
    id: int
    created_at: datetime
    last_modified: datetime

class TeamWithMembers(TeamRead):
    members: List[TeamMemberRead] = []
