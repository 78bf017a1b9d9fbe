import pytest

from contest_hub.db.enums import FieldType
from contest_hub.errors import NotFound, PermissionDenied, ValidationError
from contest_hub.services.event import EventService, schema_fields, validate_schema
from contest_hub.services.submission import SubmissionService

ORGANIZER = "org-1"


@pytest.mark.parametrize(
    "schema",
    [
        None,
        [],
        {},
        {"elements": "text"},
        {"elements": ["text"]},
        {"elements": [{"name": "a"}]},
        {"elements": [{"type": "slider", "name": "a"}]},
        {"elements": [{"type": "text", "name": ""}]},
        {"elements": [{"type": "text", "name": "a"}, {"type": "comment", "name": "a"}]},
        {"elements": [{"type": "text", "name": "submission"}]},
        {"elements": [{"type": "radiogroup", "name": "pick"}]},
        {"elements": [{"type": "dropdown", "name": "pick", "choices": [""]}]},
        {"elements": [{"type": "file", "name": "doc", "acceptedFileTypes": ".pdf"}]},
    ],
)
def test_invalid_schemas_are_rejected(schema):
    with pytest.raises(ValidationError):
        validate_schema(schema)


def test_schema_fields_read_builder_tags(form_schema):
    fields = {f.name: f for f in schema_fields(validate_schema(form_schema))}
    assert fields["notes"].type == FieldType.LONG_TEXT
    assert fields["stack"].choices == ["python", "go"]
    assert fields["report"].accepted_file_types == [".pdf", "zip"]
    assert not fields["answer"].is_required


def test_empty_form_is_valid():
    assert validate_schema({"elements": []}) == {"elements": []}


@pytest.mark.asyncio
async def test_event_crud(competition, form_schema):
    svc = EventService()
    event = await svc.create_event(competition.id, "  Qualifier ", form_schema, ORGANIZER, description="first round")
    assert event.title == "Qualifier"
    assert [e.id for e in await svc.list_events(competition.id)] == [event.id]

    updated = await svc.update_event(competition.id, event.id, ORGANIZER, title="Qualifier v2")
    assert updated.title == "Qualifier v2"
    assert updated.description == "first round"
    assert updated.form_schema == form_schema

    cleared = await svc.update_event(competition.id, event.id, ORGANIZER, description=None)
    assert cleared.description is None
    assert cleared.title == "Qualifier v2"

    await svc.delete_event(competition.id, event.id, ORGANIZER)
    with pytest.raises(NotFound):
        await svc.get_event(competition.id, event.id)


@pytest.mark.asyncio
async def test_only_organizer_mutates_events(competition, event, form_schema):
    svc = EventService()
    with pytest.raises(PermissionDenied):
        await svc.create_event(competition.id, "Other", form_schema, "u1")
    with pytest.raises(PermissionDenied):
        await svc.update_event(competition.id, event.id, "u1", title="Hijacked")
    with pytest.raises(PermissionDenied):
        await svc.delete_event(competition.id, event.id, "u1")


@pytest.mark.asyncio
async def test_update_validates_schema(competition, event):
    with pytest.raises(ValidationError):
        await EventService().update_event(
            competition.id, event.id, ORGANIZER, form_schema={"elements": [{"type": "text"}]}
        )
    unchanged = await EventService().get_event(competition.id, event.id)
    assert unchanged.form_schema == event.form_schema


@pytest.mark.asyncio
async def test_event_is_scoped_to_its_competition(event):
    with pytest.raises(NotFound):
        await EventService().get_event(event.competition_id + 1, event.id)


@pytest.mark.asyncio
async def test_deleting_event_deletes_its_submissions(competition, event, enrollment):
    submission = await SubmissionService().submit(event.id, enrollment.id, {"answer": "x"}, "u1")
    await EventService().delete_event(competition.id, event.id, ORGANIZER)
    assert await SubmissionService().list_by_competition(competition.id, ORGANIZER) == []
    with pytest.raises(NotFound):
        await SubmissionService().delete(submission.id, ORGANIZER)
