import pytest

from contest_hub.config import Settings
from contest_hub.db.enums import EnrollmentStatus
from contest_hub.errors import Conflict, NotFound, PermissionDenied, ValidationError
from contest_hub.services.enrollment import EnrollmentService, cascade_policy
from contest_hub.services.submission import SubmissionService
from contest_hub.services.team import TeamService

ORGANIZER = "org-1"


@pytest.mark.asyncio
async def test_duplicate_enrollment_conflicts(enrollment, team, competition):
    assert enrollment.status == EnrollmentStatus.REGISTERED
    with pytest.raises(Conflict):
        await EnrollmentService().create_enrollment(team.id, competition.id, "u1")


@pytest.mark.asyncio
@pytest.mark.parametrize("team_id, competition_id", [(0, 1), (1, -5), (None, 1)])
async def test_non_positive_ids_are_rejected(db, team_id, competition_id):
    with pytest.raises(ValidationError):
        await EnrollmentService().create_enrollment(team_id, competition_id, "u1")


@pytest.mark.asyncio
async def test_only_leader_enrolls(team, competition):
    await TeamService().add_member(team.id, "u2", "u1")
    with pytest.raises(PermissionDenied):
        await EnrollmentService().create_enrollment(team.id, competition.id, "u2")


@pytest.mark.asyncio
async def test_unknown_competition(team):
    with pytest.raises(NotFound):
        await EnrollmentService().create_enrollment(team.id, 999, "u1")


@pytest.mark.asyncio
async def test_status_transitions_are_unrestricted(enrollment):
    svc = EnrollmentService()
    finals = await svc.set_status(enrollment.id, "finals", ORGANIZER)
    assert finals.status == EnrollmentStatus.FINALS
    back = await svc.set_status(enrollment.id, EnrollmentStatus.REGISTERED, ORGANIZER)
    assert back.status == EnrollmentStatus.REGISTERED


@pytest.mark.asyncio
async def test_status_vocabulary_and_permissions(enrollment):
    svc = EnrollmentService()
    with pytest.raises(ValidationError):
        await svc.set_status(enrollment.id, "champion", ORGANIZER)
    with pytest.raises(PermissionDenied):
        await svc.set_status(enrollment.id, "winner", "u1")


@pytest.mark.asyncio
async def test_listings_carry_details(enrollment, team, competition):
    svc = EnrollmentService()
    by_user = await svc.list_by_user("u1")
    assert [(e.id, e.team_name, e.competition_title) for e in by_user] == [(enrollment.id, "Alpha", "Spring Cup")]

    by_comp = await svc.list_by_competition(competition.id)
    assert [e.id for e in by_comp] == [enrollment.id]

    found = await svc.get_team_enrollment(team.id, competition.id)
    assert found.id == enrollment.id


@pytest.mark.asyncio
async def test_delete_retains_submissions_until_purged(enrollment, event, competition):
    await SubmissionService().submit(event.id, enrollment.id, {"answer": "x"}, "u1")

    with pytest.raises(PermissionDenied):
        await EnrollmentService().delete_enrollment(enrollment.id, "u1")

    removed = await EnrollmentService().delete_enrollment(enrollment.id, ORGANIZER)
    assert removed == 0
    with pytest.raises(NotFound):
        await EnrollmentService().get_enrollment(enrollment.id)

    orphaned = await SubmissionService().list_by_event(event.id, ORGANIZER)
    assert [s.enrollment_id for s in orphaned] == [enrollment.id]

    assert await SubmissionService().purge_orphaned(competition.id, ORGANIZER) == 1
    assert await SubmissionService().list_by_event(event.id, ORGANIZER) == []


@pytest.mark.asyncio
async def test_delete_policy_removes_submissions(settings_env, enrollment, event):
    settings_env.setenv("SUBMISSION_CASCADE_POLICY", "delete")
    Settings._instance = None

    await SubmissionService().submit(event.id, enrollment.id, {"answer": "x"}, "u1")
    removed = await EnrollmentService().delete_enrollment(enrollment.id, ORGANIZER)
    assert removed == 1
    assert await SubmissionService().list_by_event(event.id, ORGANIZER) == []


def test_unknown_cascade_policy_is_a_startup_error(settings_env):
    settings_env.setenv("SUBMISSION_CASCADE_POLICY", "archive")
    with pytest.raises(ValueError):
        cascade_policy()
