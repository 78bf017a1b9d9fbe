# services/submission.py
import logging
from collections.abc import Mapping
from typing import Any, ClassVar, Dict, List, Optional, Self, Tuple

from contest_hub.db.database import DataBase
from contest_hub.db.enums import FieldType
from contest_hub.db.schemas.competition import CompetitionRead
from contest_hub.db.schemas.enrollment import EnrollmentRead
from contest_hub.db.schemas.event import EventRead, FormField
from contest_hub.db.schemas.submission import SubmissionCreate, SubmissionRead
from contest_hub.errors import InvalidOperation, NotFound, PermissionDenied, ValidationError
from contest_hub.services import policy
from contest_hub.services.audit_log import instrument_service_class
from contest_hub.services.competition import CompetitionService
from contest_hub.services.enrollment import EnrollmentService
from contest_hub.services.event import schema_fields
from contest_hub.services.normalization import normalize_payload
from contest_hub.services.team import TeamService

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
	if value is None:
		return True
	if isinstance(value, str):
		return not value.strip()
	if isinstance(value, (list, dict)):
		return not value
	return False


def _extension_allowed(filename: str, accepted: List[str]) -> bool:
	if not accepted:
		return True
	lowered = filename.lower()
	for entry in accepted:
		suffix = entry.lower().strip()
		if not suffix.startswith("."):
			suffix = "." + suffix
		if lowered.endswith(suffix):
			return True
	return False


def _check_answer(field: FormField, value: Any) -> None:
	label = field.title or field.name
	if field.type in (FieldType.TEXT, FieldType.LONG_TEXT):
		if not isinstance(value, str):
			raise ValidationError(f"Answer to {label!r} must be text.")
	elif field.type in (FieldType.SINGLE_CHOICE, FieldType.DROPDOWN):
		if value not in field.choices:
			raise ValidationError(f"Answer to {label!r} must be one of the offered choices.")
	elif field.type == FieldType.MULTI_CHOICE:
		if not isinstance(value, list):
			raise ValidationError(f"Answer to {label!r} must be a list of choices.")
		unknown = [v for v in value if v not in field.choices]
		if unknown:
			raise ValidationError(f"Answer to {label!r} contains unknown choices: {unknown!r}.")
	elif field.type == FieldType.FILE:
		if not isinstance(value, list):
			raise ValidationError(f"Answer to {label!r} must be a list of files.")
		for item in value:
			name = item.get("name") if isinstance(item, Mapping) else None
			if not isinstance(name, str) or not name:
				raise ValidationError(f"Every file in {label!r} needs a name.")
			if not _extension_allowed(name, field.accepted_file_types):
				allowed = ", ".join(field.accepted_file_types)
				raise ValidationError(f"File {name!r} in {label!r} is not an accepted type ({allowed}).")


def validate_answers(event: EventRead, answers: Mapping) -> None:
	"""
	Check normalized answers against the event's form.

	Unknown keys are rejected, required fields must be present and non-empty,
	and every non-empty answer must have the shape its field type calls for.
	"""
	fields = {f.name: f for f in schema_fields(event.form_schema)}
	unknown = sorted(set(answers) - set(fields))
	if unknown:
		raise ValidationError(f"Unknown form fields: {', '.join(unknown)}.")

	for name, field in fields.items():
		value = answers.get(name)
		if _is_blank(value):
			if field.is_required:
				raise ValidationError(f"{field.title or name!r} is required.")
			continue
		_check_answer(field, value)


def canonical_answers(payload: Any) -> Dict[str, Any]:
	result = normalize_payload(payload)
	if not result.normalizable:
		raise ValidationError("Submission payload must be an object of form answers.")
	return dict(result.data)


class SubmissionService:
	"""
	One submission per (event, enrollment).

	Payloads are stored in canonical (normalized) form; reads normalize again
	through :class:`SubmissionRead`, so rows written before that still come out
	in the same shape for submitters, organizers, and exports.
	"""
	_instance: ClassVar[Optional["SubmissionService"]] = None

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
		self._enrollment_svc = EnrollmentService()
		self._initialized = True

	# ---------- context loading ----------

	async def _event(self, event_id: int) -> EventRead:
		event = await self._database.get_event(event_id)
		if event is None:
			logger.info("Event %s not found", event_id)
			raise NotFound("Event not found.")
		return event

	async def _submission(self, submission_id: int, competition_id: Optional[int]) -> Tuple[SubmissionRead, EventRead]:
		submission = await self._database.get_submission_by_id(submission_id)
		if submission is None:
			logger.info("Submission %s not found", submission_id)
			raise NotFound("Submission not found.")
		event = await self._event(submission.event_id)
		if competition_id is not None and event.competition_id != competition_id:
			raise NotFound("Submission not found.")
		return submission, event

	async def _is_team_member(self, enrollment: Optional[EnrollmentRead], actor_id: str) -> bool:
		if enrollment is None or enrollment.team_id is None:
			return False
		team = await self._team_svc.get_team(enrollment.team_id)
		return policy.is_team_member(team, team.members, actor_id)

	async def _require_submitter(self, enrollment: EnrollmentRead, actor_id: str, action: str) -> None:
		if enrollment.team_id is None:
			raise InvalidOperation("The team of this enrollment no longer exists.")
		team = await self._team_svc.get_team(enrollment.team_id)
		policy.require_team_member(team, team.members, actor_id, action)

	async def _require_reader(self, competition: CompetitionRead, enrollment: Optional[EnrollmentRead], actor_id: str) -> None:
		if policy.is_competition_organizer(competition, actor_id):
			return
		if await self._is_team_member(enrollment, actor_id):
			return
		raise PermissionDenied("Only the organizer or members of the team can view these submissions.")

	# ---------- writes ----------

	async def submit(self, event_id: int, enrollment_id: Optional[int], payload: Any, actor_id: str) -> SubmissionRead:
		"""
		Create or overwrite the enrollment's submission for the event.

		Repeated calls for the same pair leave exactly one row holding the
		latest payload.
		"""
		if enrollment_id is None or isinstance(enrollment_id, bool) or not isinstance(enrollment_id, int) or enrollment_id <= 0:
			raise ValidationError("Enrollment ID is required.")
		answers = canonical_answers(payload)

		event = await self._event(event_id)
		enrollment = await self._enrollment_svc.get_enrollment(enrollment_id)
		if enrollment.competition_id != event.competition_id:
			raise ValidationError("The enrollment does not belong to this event's competition.")
		await self._require_submitter(enrollment, actor_id, "submit for this enrollment")
		validate_answers(event, answers)

		submission = await self._database.upsert_submission(
			SubmissionCreate(event_id=event.id, enrollment_id=enrollment.id, submission=answers)
		)
		logger.info("Submission %s stored for event %s / enrollment %s", submission.id, event.id, enrollment.id)
		return submission

	async def update(
		self,
		submission_id: int,
		payload: Any,
		actor_id: str,
		competition_id: Optional[int] = None,
	) -> SubmissionRead:
		answers = canonical_answers(payload)
		submission, event = await self._submission(submission_id, competition_id)
		enrollment = await self._enrollment_svc.find_enrollment(submission.enrollment_id)
		if enrollment is None:
			raise InvalidOperation("The enrollment of this submission no longer exists.")
		await self._require_submitter(enrollment, actor_id, "edit this submission")
		validate_answers(event, answers)

		try:
			return await self._database.update_submission_payload(submission.id, answers)
		except LookupError:
			raise NotFound("Submission not found.") from None

	async def delete(self, submission_id: int, actor_id: str, competition_id: Optional[int] = None) -> None:
		submission, event = await self._submission(submission_id, competition_id)
		competition = await self._competition_svc.get_competition(event.competition_id)
		if not policy.is_competition_organizer(competition, actor_id):
			enrollment = await self._enrollment_svc.find_enrollment(submission.enrollment_id)
			if not await self._is_team_member(enrollment, actor_id):
				raise PermissionDenied("Only the organizer or members of the team can delete this submission.")
		try:
			await self._database.delete_submission(submission.id)
		except LookupError:
			raise NotFound("Submission not found.") from None
		logger.info("Submission %s deleted by %s", submission.id, actor_id)

	async def purge_orphaned(self, competition_id: int, actor_id: str) -> int:
		competition = await self._competition_svc.get_competition(competition_id)
		policy.require_organizer(competition, actor_id, "purge submissions")
		removed = await self._database.delete_orphaned_submissions(competition.id)
		logger.info("Purged %d orphaned submission(s) in competition %s", removed, competition.id)
		return removed

	# ---------- reads ----------

	async def list_by_event(self, event_id: int, actor_id: str) -> List[SubmissionRead]:
		event = await self._event(event_id)
		competition = await self._competition_svc.get_competition(event.competition_id)
		policy.require_organizer(competition, actor_id, "review submissions")
		return await self._database.list_submissions_by_event(event.id)

	async def list_by_enrollment(self, competition_id: int, enrollment_id: int, actor_id: str) -> List[SubmissionRead]:
		competition = await self._competition_svc.get_competition(competition_id)
		enrollment = await self._enrollment_svc.get_enrollment(enrollment_id)
		if enrollment.competition_id != competition.id:
			raise NotFound("Enrollment not found.")
		await self._require_reader(competition, enrollment, actor_id)
		return await self._database.list_submissions_by_enrollment(competition.id, enrollment.id)

	async def list_by_competition(self, competition_id: int, actor_id: str) -> List[SubmissionRead]:
		competition = await self._competition_svc.get_competition(competition_id)
		policy.require_organizer(competition, actor_id, "review submissions")
		return await self._database.list_submissions_by_competition(competition.id)

	async def get_for_event(self, event_id: int, enrollment_id: int, actor_id: str) -> Optional[SubmissionRead]:
		"""Return the enrollment's submission for the event, or None if it has not submitted yet."""
		event = await self._event(event_id)
		competition = await self._competition_svc.get_competition(event.competition_id)
		enrollment = await self._enrollment_svc.get_enrollment(enrollment_id)
		await self._require_reader(competition, enrollment, actor_id)
		return await self._database.get_submission_by_pair(event.id, enrollment.id)

	async def export_event(self, event_id: int, actor_id: str) -> List[Dict[str, Any]]:
		"""
		Bulk export of an event's submissions as JSON-ready dicts.

		Teams are resolved through the competition's enrollments; submissions
		whose enrollment is gone are exported with ``team_id``/``team_name`` None.
		"""
		event = await self._event(event_id)
		competition = await self._competition_svc.get_competition(event.competition_id)
		policy.require_organizer(competition, actor_id, "export submissions")

		enrollments = {e.id: e for e in await self._database.list_enrollments_by_competition(competition.id)}
		rows: List[Dict[str, Any]] = []
		for sub in await self._database.list_submissions_by_event(event.id):
			enrollment = enrollments.get(sub.enrollment_id)
			rows.append({
				"submission_id": sub.id,
				"event_id": event.id,
				"event_title": event.title,
				"enrollment_id": sub.enrollment_id,
				"team_id": enrollment.team_id if enrollment else None,
				"team_name": enrollment.team_name if enrollment else None,
				"status": enrollment.status.value if enrollment else None,
				"created_at": sub.created_at.isoformat(),
				"modified_at": sub.modified_at.isoformat(),
				"answers": sub.submission,
			})
		return rows


instrument_service_class(
	SubmissionService,
	prefix="services.submission",
	exclude={"list_by_event", "list_by_enrollment", "list_by_competition", "get_for_event", "export_event"},
)
