# db/schemas/submission.py
from datetime import datetime
from typing import Any
from pydantic import field_validator
from contest_hub.db.schemas._base import OrmModel
from contest_hub.services.normalization import normalize

class SubmissionBase(OrmModel):
    event_id: int
    enrollment_id: int
    submission: Any

class SubmissionCreate(SubmissionBase): ...

class SubmissionRead(SubmissionBase):
    id: int
    created_at: datetime
    modified_at: datetime

    # Every read path (submitter, organizer review, export) goes through here.
    @field_validator("submission", mode="before")
    @classmethod
    def _canonical_payload(cls, v: Any) -> Any:
        return normalize(v)
