# db/schemas/team_member.py
from datetime import datetime
from contest_hub.db.schemas._base import OrmModel
from contest_hub.db.enums import TeamRole


class TeamMemberBase(OrmModel):
    team_id: int
    member_id: str
    role: TeamRole

class TeamMemberCreate(TeamMemberBase): ...

class TeamMemberRead(TeamMemberBase):
    id: int
    created_at: datetime
    last_modified: datetime

    def __hash__(self) -> int:
        return hash(self.id)
