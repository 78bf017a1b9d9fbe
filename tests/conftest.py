import copy

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from contest_hub.api.app import create_app
from contest_hub.config import Settings
from contest_hub.db.database import DataBase
from contest_hub.services.competition import CompetitionService
from contest_hub.services.enrollment import EnrollmentService
from contest_hub.services.event import EventService
from contest_hub.services.submission import SubmissionService
from contest_hub.services.team import TeamService

SINGLETONS = (
    Settings,
    DataBase,
    CompetitionService,
    TeamService,
    EventService,
    EnrollmentService,
    SubmissionService,
)

ORGANIZER = "org-1"

FORM_SCHEMA = {
    "elements": [
        {"type": "text", "name": "answer", "title": "Answer"},
        {"type": "comment", "name": "notes"},
        {"type": "radiogroup", "name": "track", "choices": ["ml", "web"]},
        {"type": "checkbox", "name": "stack", "choices": ["python", {"value": "go", "text": "Go"}]},
        {"type": "file", "name": "report", "acceptedFileTypes": [".pdf", "zip"]},
    ]
}


def _reset_singletons() -> None:
    for cls in SINGLETONS:
        cls._instance = None


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'contest_hub.db'}")
    monkeypatch.setenv("SUBMISSION_CASCADE_POLICY", "retain")
    monkeypatch.setenv("TRANSIENT_RETRIES", "1")
    _reset_singletons()
    yield monkeypatch
    _reset_singletons()


@pytest_asyncio.fixture
async def db(settings_env):
    database = DataBase()
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
def form_schema():
    return copy.deepcopy(FORM_SCHEMA)


@pytest_asyncio.fixture
async def competition(db):
    return await CompetitionService().create_competition("Spring Cup", ORGANIZER)


@pytest_asyncio.fixture
async def team(db):
    return await TeamService().create_team("Alpha", "u1", 4)


@pytest_asyncio.fixture
async def enrollment(team, competition):
    return await EnrollmentService().create_enrollment(team.id, competition.id, "u1")


@pytest_asyncio.fixture
async def event(competition):
    return await EventService().create_event(competition.id, "Final report", FORM_SCHEMA, ORGANIZER)


@pytest.fixture
def client(settings_env):
    with TestClient(create_app()) as c:
        yield c
