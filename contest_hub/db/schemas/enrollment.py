# db/schemas/enrollment.py
from datetime import datetime
from typing import Optional
from contest_hub.db.schemas._base import OrmModel
from contest_hub.db.enums import EnrollmentStatus

class EnrollmentBase(OrmModel):
    team_id: Optional[int]
    competition_id: int
    status: EnrollmentStatus = EnrollmentStatus.REGISTERED

class EnrollmentCreate(EnrollmentBase):
    team_id: int

class EnrollmentRead(EnrollmentBase):
    id: int
    created_at: datetime
    last_modified: datetime

class EnrollmentWithDetails(EnrollmentRead):
    team_name: Optional[str] = None
    competition_title: Optional[str] = None
    competition_start_at: Optional[datetime] = None
    competition_end_at: Optional[datetime] = None
