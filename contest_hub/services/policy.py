"""Authorization rules.

Pure functions over already-loaded DTOs: no I/O, no caching.  Leadership is
derived on every call from the team row and its membership rows, so the two
signals (``team.created_by`` and a ``leader`` membership) can never be read
from a stale copy.
"""
from typing import Iterable, Optional

from contest_hub.db.enums import TeamRole
from contest_hub.db.schemas.competition import CompetitionRead
from contest_hub.db.schemas.team import TeamRead
from contest_hub.db.schemas.team_member import TeamMemberRead
from contest_hub.errors import PermissionDenied


def is_team_creator(team: TeamRead, actor_id: Optional[str]) -> bool:
	return bool(actor_id) and team.created_by == actor_id


def is_team_leader(team: TeamRead, memberships: Iterable[TeamMemberRead], actor_id: Optional[str]) -> bool:
	"""The creator is always a leader, whatever the membership rows say."""
	if not actor_id:
		return False
	if is_team_creator(team, actor_id):
		return True
	return any(
		m.team_id == team.id and m.member_id == actor_id and m.role == TeamRole.LEADER
		for m in memberships
	)


def is_team_member(team: TeamRead, memberships: Iterable[TeamMemberRead], actor_id: Optional[str]) -> bool:
	if not actor_id:
		return False
	if is_team_creator(team, actor_id):
		return True
	return any(m.team_id == team.id and m.member_id == actor_id for m in memberships)


def is_competition_organizer(competition: CompetitionRead, actor_id: Optional[str]) -> bool:
	return bool(actor_id) and competition.organizer_id == actor_id


def require_team_leader(team: TeamRead, memberships: Iterable[TeamMemberRead], actor_id: Optional[str], action: str) -> None:
	if not is_team_leader(team, memberships, actor_id):
		raise PermissionDenied(f"Only the team leader can {action}.")


def require_team_member(team: TeamRead, memberships: Iterable[TeamMemberRead], actor_id: Optional[str], action: str) -> None:
	if not is_team_member(team, memberships, actor_id):
		raise PermissionDenied(f"Only members of the team can {action}.")


def require_organizer(competition: CompetitionRead, actor_id: Optional[str], action: str) -> None:
	if not is_competition_organizer(competition, actor_id):
		raise PermissionDenied(f"Only the competition organizer can {action}.")


__all__ = [
	"is_team_creator",
	"is_team_leader",
	"is_team_member",
	"is_competition_organizer",
	"require_team_leader",
	"require_team_member",
	"require_organizer",
]
