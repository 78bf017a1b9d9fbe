# services/team.py
import logging
from typing import Awaitable, Callable, ClassVar, List, Optional, Self, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from contest_hub.db.database import DataBase
from contest_hub.db.enums import TeamRole
from contest_hub.db.schemas.team import TeamCreate, TeamRead, TeamWithMembers
from contest_hub.db.schemas.team_member import TeamMemberCreate, TeamMemberRead
from contest_hub.errors import Conflict, InvalidOperation, NotFound, ValidationError
from contest_hub.services import policy
from contest_hub.services.audit_log import instrument_service_class

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One retry after a concurrent membership change, then the caller gets Conflict.
OPTIMISTIC_ATTEMPTS = 2


def _require_id(value: object, label: str) -> int:
	if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
		raise ValidationError(f"A valid {label} is required.")
	return value


def _require_user(value: object, label: str) -> str:
	if not isinstance(value, str) or not value.strip():
		raise ValidationError(f"{label} is required.")
	return value.strip()


class TeamService:
	"""
	Teams and their memberships.

	Invariants kept here: the creator is always a leader, a team has at most
	one ``leader`` membership, and the creator's membership can only go away
	together with the team.
	"""
	_instance: ClassVar[Optional["TeamService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._initialized = True

	async def _load(self, team_id: int) -> Tuple[TeamWithMembers, List[TeamMemberRead]]:
		_require_id(team_id, "team id")
		team = await self._database.get_team_with_members(team_id)
		if team is None:
			logger.info("Team %s not found", team_id)
			raise NotFound("Team not found.")
		return team, team.members

	async def _optimistic(self, team_id: int, op: Callable[[], Awaitable[T]]) -> T:
		for attempt in range(1, OPTIMISTIC_ATTEMPTS + 1):
			try:
				return await op()
			except StaleDataError:
				logger.info("Team %s changed concurrently (attempt %d/%d)", team_id, attempt, OPTIMISTIC_ATTEMPTS)
		raise Conflict("The team was modified by someone else at the same time. Reload it and try again.")

	async def create_team(self, name: str, actor_id: str, max_participants: int) -> TeamWithMembers:
		if not isinstance(name, str) or not name.strip():
			raise ValidationError("Team name is required.")
		creator = _require_user(actor_id, "Creator id")
		if isinstance(max_participants, bool) or not isinstance(max_participants, int) or max_participants < 1:
			raise ValidationError("Number of participants must be at least 1.")

		team = await self._database.create_team(
			TeamCreate(name=name.strip(), created_by=creator, max_participants=max_participants)
		)
		logger.info("Team %s (%r) created by %s", team.id, team.name, creator)
		return team

	async def get_team(self, team_id: int) -> TeamWithMembers:
		team, _ = await self._load(team_id)
		return team

	async def list_user_teams(self, user_id: str) -> List[TeamRead]:
		return await self._database.list_teams_for_user(_require_user(user_id, "User id"))

	async def list_created_teams(self, user_id: str) -> List[TeamRead]:
		return await self._database.list_teams_created_by(_require_user(user_id, "User id"))

	async def is_leader(self, team_id: int, user_id: str) -> bool:
		team, members = await self._load(team_id)
		return policy.is_team_leader(team, members, user_id)

	async def is_member(self, team_id: int, user_id: str) -> bool:
		team, members = await self._load(team_id)
		return policy.is_team_member(team, members, user_id)

	async def add_member(
		self,
		team_id: int,
		member_id: str,
		actor_id: str,
		role: TeamRole = TeamRole.MEMBER,
	) -> TeamMemberRead:
		member_id = _require_user(member_id, "Member id")
		try:
			role = TeamRole(role)
		except ValueError:
			raise ValidationError(f"Unknown role {role!r}.") from None

		team, members = await self._load(team_id)
		policy.require_team_leader(team, members, actor_id, "add members to the team")
		if role == TeamRole.LEADER:
			raise Conflict("A team has exactly one leader. Add the user as a member, then transfer leadership.")
		if any(m.member_id == member_id for m in members) or member_id == team.created_by:
			raise Conflict("This user is already a member of the team.")

		async def op() -> TeamMemberRead:
			try:
				return await self._database.add_membership(
					TeamMemberCreate(team_id=team.id, member_id=member_id, role=role)
				)
			except IntegrityError:
				raise Conflict("This user is already a member of the team.") from None
			except LookupError:
				raise NotFound("Team not found.") from None

		membership = await self._optimistic(team.id, op)
		logger.info("User %s added to team %s by %s", member_id, team.id, actor_id)
		return membership

	async def remove_member(self, team_id: int, member_id: str, actor_id: str) -> None:
		member_id = _require_user(member_id, "Member id")
		team, members = await self._load(team_id)
		policy.require_team_leader(team, members, actor_id, "remove members from the team")
		if member_id == team.created_by:
			raise InvalidOperation("The team creator cannot be removed. Delete the team instead.")
		target = next((m for m in members if m.member_id == member_id), None)
		if target is None:
			logger.info("User %s is not a member of team %s", member_id, team.id)
			raise NotFound("Team member not found.")
		if target.role == TeamRole.LEADER:
			raise InvalidOperation("The team leader cannot be removed. Transfer leadership first.")

		async def op() -> None:
			try:
				await self._database.remove_membership(team.id, member_id)
			except LookupError:
				raise NotFound("Team member not found.") from None

		await self._optimistic(team.id, op)
		logger.info("User %s removed from team %s by %s", member_id, team.id, actor_id)

	async def transfer_leadership(self, team_id: int, member_id: str, actor_id: str) -> TeamMemberRead:
		member_id = _require_user(member_id, "Member id")
		team, members = await self._load(team_id)
		policy.require_team_leader(team, members, actor_id, "transfer leadership")
		if not any(m.member_id == member_id for m in members):
			raise NotFound("Team member not found.")

		async def op() -> TeamMemberRead:
			try:
				return await self._database.transfer_leadership(team.id, member_id)
			except LookupError:
				raise NotFound("Team member not found.") from None

		membership = await self._optimistic(team.id, op)
		logger.info("Leadership of team %s transferred to %s by %s", team.id, member_id, actor_id)
		return membership

	async def delete_team(self, team_id: int, actor_id: str) -> None:
		team, members = await self._load(team_id)
		policy.require_team_leader(team, members, actor_id, "delete the team")
		if not await self._database.delete_team(team.id):
			raise NotFound("Team not found.")
		logger.info("Team %s deleted by %s", team.id, actor_id)


instrument_service_class(
	TeamService,
	prefix="services.team",
	exclude={"get_team", "list_user_teams", "list_created_teams", "is_leader", "is_member"},
)
