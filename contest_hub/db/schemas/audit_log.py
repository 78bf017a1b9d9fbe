from datetime import datetime
from typing import Optional
from ._base import OrmModel

class AuditLogBase(OrmModel):
    actor_id: Optional[str] = None
    action: str
    payload: dict = {}

class AuditLogCreate(AuditLogBase): ...
class AuditLogRead(AuditLogBase):
    id: int
    created_at: datetime
