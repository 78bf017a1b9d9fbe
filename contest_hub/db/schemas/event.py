# db/schemas/event.py
from datetime import datetime
from typing import List, Optional
from pydantic import ConfigDict, Field
from contest_hub.db.schemas._base import OrmModel
from contest_hub.db.enums import FieldType
from contest_hub.utils.sentinels import Missing

class FormField(OrmModel):
    """One element of an event's form schema, in the form builder's wire shape."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="allow")

    name: str
    type: FieldType
    title: Optional[str] = None
    is_required: bool = Field(default=False, alias="isRequired")
    choices: List[str] = []
    accepted_file_types: List[str] = Field(default_factory=list, alias="acceptedFileTypes")

class EventBase(OrmModel):
    title: str
    description: Optional[str] = None
    form_schema: dict

class EventCreate(EventBase):
    competition_id: int

class EventUpdate(OrmModel):
    id: int
    title: str | Missing = Missing()
    description: str | Missing | None = Missing()
    form_schema: dict | Missing = Missing()

class EventRead(EventBase):
    id: int
    competition_id: int
    created_at: datetime
    modified_at: datetime
