from datetime import datetime

import pytest

from contest_hub.db.enums import TeamRole
from contest_hub.db.schemas.competition import CompetitionRead
from contest_hub.db.schemas.team import TeamRead
from contest_hub.db.schemas.team_member import TeamMemberRead
from contest_hub.errors import PermissionDenied
from contest_hub.services import policy

NOW = datetime(2024, 1, 1)


def _team(created_by="u1"):
    return TeamRead(id=1, name="Alpha", created_by=created_by, max_participants=4, created_at=NOW, last_modified=NOW)


def _member(member_id, role, team_id=1, id_=1):
    return TeamMemberRead(
        id=id_, team_id=team_id, member_id=member_id, role=role, created_at=NOW, last_modified=NOW
    )


def test_creator_is_leader_even_without_membership_row():
    assert policy.is_team_leader(_team(), [], "u1")


def test_promoted_member_is_leader():
    members = [_member("u1", TeamRole.MEMBER), _member("u2", TeamRole.LEADER, id_=2)]
    assert policy.is_team_leader(_team(), members, "u2")


def test_leader_row_of_another_team_does_not_count():
    members = [_member("u2", TeamRole.LEADER, team_id=2)]
    assert not policy.is_team_leader(_team(), members, "u2")
    assert not policy.is_team_member(_team(), members, "u2")


def test_anonymous_caller_has_no_role():
    assert not policy.is_team_leader(_team(), [], None)
    assert not policy.is_team_member(_team(), [], "")


def test_require_team_leader_rejects_plain_member():
    members = [_member("u2", TeamRole.MEMBER)]
    with pytest.raises(PermissionDenied):
        policy.require_team_leader(_team(), members, "u2", "add members")


def test_require_organizer():
    comp = CompetitionRead(id=5, title="Cup", organizer_id="org", created_at=NOW)
    policy.require_organizer(comp, "org", "edit events")
    with pytest.raises(PermissionDenied, match="organizer"):
        policy.require_organizer(comp, "u1", "edit events")
