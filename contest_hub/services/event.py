# services/event.py
import logging
from typing import Any, ClassVar, List, Optional, Self

from contest_hub.db.database import DataBase
from contest_hub.db.enums import CHOICE_FIELD_TYPES, FieldType
from contest_hub.db.schemas.event import EventCreate, EventRead, EventUpdate, FormField
from contest_hub.errors import NotFound, ValidationError
from contest_hub.services import policy
from contest_hub.services.audit_log import instrument_service_class
from contest_hub.services.competition import CompetitionService
from contest_hub.services.normalization import METADATA_KEYS
from contest_hub.utils.sentinels import MISSING, Missing, provided

logger = logging.getLogger(__name__)

FIELD_TYPE_TAGS = frozenset(t.value for t in FieldType)


def _choice_value(choice: Any) -> Any:
	# Choices are plain strings from the builder, or {"value": ..., "text": ...}.
	if isinstance(choice, dict):
		return choice.get("value")
	return choice


def validate_schema(schema: Any) -> dict:
	"""
	Check an event form schema before it is stored.

	The schema must be an object with an ``elements`` array; every element needs
	a known string ``type`` and a non-empty string ``name``; names are unique and
	may not collide with submission envelope keys. Choice fields need choices.

	Returns the schema unchanged. Raises ValidationError on the first problem.
	"""
	if not isinstance(schema, dict):
		raise ValidationError("Form schema must be an object.")
	elements = schema.get("elements")
	if not isinstance(elements, list):
		raise ValidationError("Form schema must contain an 'elements' array.")

	seen: set[str] = set()
	for index, element in enumerate(elements):
		where = f"Form element #{index + 1}"
		if not isinstance(element, dict):
			raise ValidationError(f"{where} must be an object.")
		kind = element.get("type")
		if not isinstance(kind, str):
			raise ValidationError(f"{where} needs a string 'type'.")
		if kind not in FIELD_TYPE_TAGS:
			allowed = ", ".join(t.value for t in FieldType)
			raise ValidationError(f"{where} has unknown type {kind!r} (allowed: {allowed}).")
		name = element.get("name")
		if not isinstance(name, str) or not name.strip():
			raise ValidationError(f"{where} needs a non-empty string 'name'.")
		if name in METADATA_KEYS:
			raise ValidationError(f"{where}: field name {name!r} is reserved.")
		if name in seen:
			raise ValidationError(f"Field name {name!r} is used more than once.")
		seen.add(name)

		if FieldType(kind) in CHOICE_FIELD_TYPES:
			choices = element.get("choices")
			if not isinstance(choices, list) or not choices:
				raise ValidationError(f"Field {name!r} needs at least one choice.")
			values = [_choice_value(c) for c in choices]
			if any(not isinstance(v, str) or not v for v in values):
				raise ValidationError(f"Field {name!r} has an invalid choice.")
		if FieldType(kind) == FieldType.FILE:
			accepted = element.get("acceptedFileTypes", [])
			if not isinstance(accepted, list) or any(not isinstance(a, str) or not a for a in accepted):
				raise ValidationError(f"Field {name!r} has invalid accepted file types.")
	return schema


def schema_fields(schema: dict) -> List[FormField]:
	"""Typed view of an already validated schema."""
	fields: List[FormField] = []
	for element in schema.get("elements", []):
		data = dict(element)
		data["choices"] = [_choice_value(c) for c in element.get("choices", [])]
		fields.append(FormField.model_validate(data))
	return fields


class EventService:
	_instance: ClassVar[Optional["EventService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._competition_svc = CompetitionService()
		self._initialized = True

	async def list_events(self, competition_id: int) -> List[EventRead]:
		await self._competition_svc.get_competition(competition_id)
		return await self._database.list_events_by_competition(competition_id)

	async def get_event(self, competition_id: int, event_id: int) -> EventRead:
		event = await self._database.get_event(event_id)
		if event is None or event.competition_id != competition_id:
			logger.info("Event %s not found in competition %s", event_id, competition_id)
			raise NotFound("Event not found.")
		return event

	async def create_event(
		self,
		competition_id: int,
		title: str,
		form_schema: Any,
		actor_id: str,
		description: Optional[str] = None,
	) -> EventRead:
		competition = await self._competition_svc.get_competition(competition_id)
		policy.require_organizer(competition, actor_id, "create events")
		if not isinstance(title, str) or not title.strip():
			raise ValidationError("Event title is required.")
		validate_schema(form_schema)

		event = await self._database.create_event(
			EventCreate(
				competition_id=competition.id,
				title=title.strip(),
				description=description,
				form_schema=form_schema,
			)
		)
		logger.info("Event %s created in competition %s", event.id, competition.id)
		return event

	async def update_event(
		self,
		competition_id: int,
		event_id: int,
		actor_id: str,
		title: str | Missing = MISSING,
		description: str | Missing | None = MISSING,
		form_schema: Any = MISSING,
	) -> EventRead:
		competition = await self._competition_svc.get_competition(competition_id)
		policy.require_organizer(competition, actor_id, "edit events")
		event = await self.get_event(competition.id, event_id)

		if provided(title):
			if not isinstance(title, str) or not title.strip():
				raise ValidationError("Event title is required.")
			title = title.strip()
		if provided(form_schema):
			validate_schema(form_schema)

		try:
			return await self._database.update_event(
				EventUpdate(id=event.id, title=title, description=description, form_schema=form_schema)
			)
		except LookupError:
			raise NotFound("Event not found.") from None

	async def delete_event(self, competition_id: int, event_id: int, actor_id: str) -> None:
		competition = await self._competition_svc.get_competition(competition_id)
		policy.require_organizer(competition, actor_id, "delete events")
		event = await self.get_event(competition.id, event_id)
		try:
			removed = await self._database.delete_event(event.id)
		except LookupError:
			raise NotFound("Event not found.") from None
		logger.info("Event %s deleted with %d submission(s)", event.id, removed)


instrument_service_class(
	EventService,
	prefix="services.event",
	exclude={"list_events", "get_event"},
)
