# services/enrollment.py
import logging
from typing import ClassVar, List, Optional, Self

from sqlalchemy.exc import IntegrityError

from contest_hub.config import Settings
from contest_hub.db.database import DataBase
from contest_hub.db.enums import CascadePolicy, EnrollmentStatus
from contest_hub.db.schemas.enrollment import EnrollmentCreate, EnrollmentRead, EnrollmentWithDetails
from contest_hub.errors import Conflict, NotFound, ValidationError
from contest_hub.services import policy
from contest_hub.services.audit_log import instrument_service_class
from contest_hub.services.competition import CompetitionService
from contest_hub.services.team import TeamService

logger = logging.getLogger(__name__)


def _positive_id(value: object, label: str) -> int:
	if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
		raise ValidationError(f"Valid {label} is required.")
	return value


def parse_status(value: object) -> EnrollmentStatus:
	try:
		return EnrollmentStatus(value)
	except ValueError:
		allowed = ", ".join(s.value for s in EnrollmentStatus)
		raise ValidationError(f"Unknown status {value!r} (allowed: {allowed}).") from None


def cascade_policy() -> CascadePolicy:
	raw = Settings().submission_cascade_policy
	try:
		return CascadePolicy(raw)
	except ValueError:
		raise ValueError(f"SUBMISSION_CASCADE_POLICY must be 'retain' or 'delete', got {raw!r}") from None


class EnrollmentService:
	"""
	Team participation in competitions.

	Status labels are a closed set but any label may follow any other; the
	organizer decides. What happens to an enrollment's submissions on deletion
	is governed by ``SUBMISSION_CASCADE_POLICY``.
	"""
	_instance: ClassVar[Optional["EnrollmentService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._team_svc = TeamService()
		self._competition_svc = CompetitionService()
		self._initialized = True

	async def create_enrollment(
		self,
		team_id: int,
		competition_id: int,
		actor_id: str,
		initial_status: EnrollmentStatus | str = EnrollmentStatus.REGISTERED,
	) -> EnrollmentRead:
		_positive_id(competition_id, "competition ID")
		_positive_id(team_id, "team ID")
		status = parse_status(initial_status)

		team = await self._team_svc.get_team(team_id)
		policy.require_team_leader(team, team.members, actor_id, "enroll the team")
		competition = await self._competition_svc.get_competition(competition_id)

		try:
			enrollment = await self._database.create_enrollment(
				EnrollmentCreate(team_id=team.id, competition_id=competition.id, status=status)
			)
		except IntegrityError:
			logger.info("Team %s already enrolled in competition %s", team.id, competition.id)
			raise Conflict("This team is already enrolled in the competition.") from None

		logger.info("Team %s enrolled in competition %s as %s", team.id, competition.id, status)
		return enrollment

	async def find_enrollment(self, enrollment_id: int) -> Optional[EnrollmentRead]:
		return await self._database.get_enrollment(enrollment_id)

	async def get_enrollment(self, enrollment_id: int) -> EnrollmentRead:
		_positive_id(enrollment_id, "enrollment ID")
		enrollment = await self._database.get_enrollment(enrollment_id)
		if enrollment is None:
			logger.info("Enrollment %s not found", enrollment_id)
			raise NotFound("Enrollment not found.")
		return enrollment

	async def get_team_enrollment(self, team_id: int, competition_id: int) -> EnrollmentRead:
		_positive_id(team_id, "team ID")
		_positive_id(competition_id, "competition ID")
		enrollment = await self._database.get_enrollment_by_pair(team_id, competition_id)
		if enrollment is None:
			raise NotFound("Enrollment not found.")
		return enrollment

	async def set_status(self, enrollment_id: int, new_status: EnrollmentStatus | str, actor_id: str) -> EnrollmentRead:
		status = parse_status(new_status)
		enrollment = await self.get_enrollment(enrollment_id)
		competition = await self._competition_svc.get_competition(enrollment.competition_id)
		policy.require_organizer(competition, actor_id, "update enrollment status")
		try:
			updated = await self._database.update_enrollment_status(enrollment.id, status)
		except LookupError:
			raise NotFound("Enrollment not found.") from None
		logger.info("Enrollment %s status %s -> %s", enrollment.id, enrollment.status, status)
		return updated

	async def delete_enrollment(self, enrollment_id: int, actor_id: str) -> int:
		"""
		Delete an enrollment (organizer only).

		Returns the number of submissions deleted with it: always 0 under the
		``retain`` policy, where they stay until ``purge_orphaned`` is run.
		"""
		enrollment = await self.get_enrollment(enrollment_id)
		competition = await self._competition_svc.get_competition(enrollment.competition_id)
		policy.require_organizer(competition, actor_id, "delete enrollments")

		mode = cascade_policy()
		try:
			removed = await self._database.delete_enrollment(
				enrollment.id, delete_submissions=mode == CascadePolicy.DELETE
			)
		except LookupError:
			raise NotFound("Enrollment not found.") from None
		logger.info("Enrollment %s deleted (policy=%s, submissions removed=%d)", enrollment.id, mode, removed)
		return removed

	async def list_by_user(self, user_id: str) -> List[EnrollmentWithDetails]:
		if not isinstance(user_id, str) or not user_id.strip():
			raise ValidationError("User id is required.")
		return await self._database.list_enrollments_for_user(user_id.strip())

	async def list_by_competition(self, competition_id: int) -> List[EnrollmentWithDetails]:
		_positive_id(competition_id, "competition ID")
		await self._competition_svc.get_competition(competition_id)
		return await self._database.list_enrollments_by_competition(competition_id)


instrument_service_class(
	EnrollmentService,
	prefix="services.enrollment",
	exclude={"find_enrollment", "get_enrollment", "get_team_enrollment", "list_by_user", "list_by_competition"},
)
