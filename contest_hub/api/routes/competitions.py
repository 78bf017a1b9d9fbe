# api/routes/competitions.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from contest_hub.api.deps import Actor
from contest_hub.db.schemas.competition import CompetitionRead
from contest_hub.services.competition import CompetitionService

router = APIRouter(prefix="/competitions", tags=["competitions"])


class CompetitionIn(BaseModel):
    title: str
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


@router.post("", response_model=CompetitionRead, status_code=status.HTTP_201_CREATED)
async def create_competition(body: CompetitionIn, actor_id: Actor):
    return await CompetitionService().create_competition(
        title=body.title, actor_id=actor_id, start_at=body.start_at, end_at=body.end_at
    )


@router.get("")
async def list_competitions(
    page: int = Query(0, ge=0),
    page_size: int = Query(20, ge=1, le=100),
):
    items, total = await CompetitionService().list_competitions_page(page, page_size)
    return {"competitions": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{competition_id}", response_model=CompetitionRead)
async def get_competition(competition_id: int):
    return await CompetitionService().get_competition(competition_id)
