# api/deps.py
from typing import Annotated, Optional

from fastapi import Depends, Header

from contest_hub.errors import PermissionDenied

USER_HEADER = "X-User-Id"


def optional_actor(x_user_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_actor(actor_id: Annotated[Optional[str], Depends(optional_actor)]) -> str:
    if actor_id is None:
        raise PermissionDenied(f"The {USER_HEADER} header is required.")
    return actor_id


Actor = Annotated[str, Depends(require_actor)]
OptionalActor = Annotated[Optional[str], Depends(optional_actor)]
