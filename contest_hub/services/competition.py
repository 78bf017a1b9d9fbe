# services/competition.py
import logging
from collections import OrderedDict
from datetime import datetime
from typing import ClassVar, Optional, Self

from contest_hub.db.database import DataBase
from contest_hub.db.schemas.competition import CompetitionCreate, CompetitionRead
from contest_hub.errors import NotFound, ValidationError
from contest_hub.services.audit_log import instrument_service_class

logger = logging.getLogger(__name__)

CACHE_LIMIT = 256


class CompetitionService:
	"""
	Singleton service layer for competitions.

	Competitions only matter here as the owner of events and enrollments:
	the organizer recorded on a competition is who may mutate them.
	"""

	_instance: ClassVar[Optional["CompetitionService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database: DataBase = DataBase()
		# Organizer ownership never changes after creation; least recently used entries are evicted.
		self._competitions: OrderedDict[int, CompetitionRead] = OrderedDict()

		self._initialized = True

	async def create_competition(
		self,
		title: str,
		actor_id: str,
		start_at: Optional[datetime] = None,
		end_at: Optional[datetime] = None,
	) -> CompetitionRead:
		if not title or not title.strip():
			raise ValidationError("Competition title is required.")
		if not actor_id:
			raise ValidationError("Organizer id is required.")
		if start_at and end_at and end_at < start_at:
			raise ValidationError("Competition cannot end before it starts.")

		comp = await self._database.create_competition(
			CompetitionCreate(title=title, organizer_id=actor_id, start_at=start_at, end_at=end_at)
		)
		self._remember(comp)
		return comp

	def _remember(self, comp: CompetitionRead) -> None:
		self._competitions[comp.id] = comp
		self._competitions.move_to_end(comp.id)
		while len(self._competitions) > CACHE_LIMIT:
			self._competitions.popitem(last=False)

	async def find_competition(self, competition_id: int) -> Optional[CompetitionRead]:
		if competition_id in self._competitions:
			self._competitions.move_to_end(competition_id)
			return self._competitions[competition_id]
		comp = await self._database.get_competition_by_id(competition_id)
		if comp:
			self._remember(comp)
		return comp

	async def get_competition(self, competition_id: int) -> CompetitionRead:
		comp = await self.find_competition(competition_id)
		if comp is None:
			logger.info("Competition %s not found", competition_id)
			raise NotFound("Competition not found.")
		return comp

	async def list_competitions_page(self, page: int, page_size: int) -> tuple[list[CompetitionRead], int]:
		limit = page_size
		offset = max(page, 0) * page_size
		items, total = await self._database.list_competitions(limit=limit, offset=offset)
		for comp in items:
			self._remember(comp)
		return items, total


instrument_service_class(
	CompetitionService,
	prefix="services.competition",
	exclude={"find_competition", "get_competition", "list_competitions_page"},
)
