import pytest

from contest_hub.errors import NotFound, ValidationError
from contest_hub.services import competition as competition_module
from contest_hub.services.competition import CompetitionService


@pytest.mark.asyncio
async def test_create_competition_validation(db):
    with pytest.raises(ValidationError):
        await CompetitionService().create_competition("   ", "org-1")
    with pytest.raises(ValidationError):
        await CompetitionService().create_competition("Cup", "")


@pytest.mark.asyncio
async def test_competition_cache_is_bounded(db, monkeypatch):
    monkeypatch.setattr(competition_module, "CACHE_LIMIT", 2)
    svc = CompetitionService()

    created = [await svc.create_competition(f"Cup {n}", "org-1") for n in range(3)]
    assert list(svc._competitions) == [c.id for c in created[1:]]

    evicted = await svc.get_competition(created[0].id)
    assert evicted.organizer_id == "org-1"
    assert len(svc._competitions) == 2
    assert created[0].id in svc._competitions

    with pytest.raises(NotFound):
        await svc.get_competition(created[-1].id + 100)
