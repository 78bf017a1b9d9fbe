# db/schemas/competition.py
from datetime import datetime
from typing import Optional
from pydantic import field_validator
from contest_hub.db.schemas._base import OrmModel

class CompetitionBase(OrmModel):
    title: str
    organizer_id: str
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

class CompetitionCreate(CompetitionBase):
    @field_validator("title", "organizer_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

class CompetitionRead(CompetitionBase):
    id: int
    created_at: datetime
