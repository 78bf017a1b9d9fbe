# db/database.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, ClassVar, Self, Any, List, Tuple

from sqlalchemy import select, func, delete, update, or_, event as sa_event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload

from contest_hub.config import Settings
from contest_hub.errors import InvalidOperation
from contest_hub.db.enums import TeamRole, EnrollmentStatus
from contest_hub.db.models._base import Base, utcnow
from contest_hub.db.models.competition import Competition
from contest_hub.db.models.team import Team
from contest_hub.db.models.team_member import TeamMember
from contest_hub.db.models.event import Event
from contest_hub.db.models.enrollment import Enrollment
from contest_hub.db.models.submission import Submission
from contest_hub.db.models.audit_log import AuditLog
from contest_hub.db.schemas.competition import CompetitionCreate, CompetitionRead
from contest_hub.db.schemas.team import TeamCreate, TeamRead, TeamWithMembers
from contest_hub.db.schemas.team_member import TeamMemberCreate, TeamMemberRead
from contest_hub.db.schemas.event import EventCreate, EventRead, EventUpdate
from contest_hub.db.schemas.enrollment import EnrollmentCreate, EnrollmentRead, EnrollmentWithDetails
from contest_hub.db.schemas.submission import SubmissionCreate, SubmissionRead
from contest_hub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from contest_hub.utils.sentinels import provided
from contest_hub.utils.transient import transient


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DataBase():
    """
    Async SQLAlchemy database singleton.
    Usage:
        db = DataBase()  # same instance everywhere
        async with db.session() as s:
            ...

    Methods return pydantic DTOs, never ORM rows. Missing rows in update paths
    raise LookupError; constraint violations propagate as IntegrityError.
    """
    _instance: ClassVar[Optional["DataBase"]] = None

    def __new__(cls, *args: Any, **kwargs: Any) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __init__(self, echo: Optional[bool] = None) -> None:
        if getattr(self, "_initialized", False):
            return

        settings = Settings()
        url = settings.database_url
        self._engine: AsyncEngine = create_async_engine(
            url,
            echo=settings.database_echo if echo is None else echo,
            pool_pre_ping=True,
        )
        if self._engine.dialect.name == "sqlite":
            sa_event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

        self._initialized = True

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides an AsyncSession with safe commit/rollback semantics.
        """
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # --- schema management helpers ---

    async def create_all(self) -> None:
        """
        Create tables based on Base metadata. Use only in dev/tests; prefer Alembic in prod.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def _insert(self):
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}.")

    # ---------- Competition ----------

    @transient()
    async def create_competition(self, payload: CompetitionCreate) -> CompetitionRead:
        comp = Competition(
            title=payload.title,
            organizer_id=payload.organizer_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
        )
        async with self.session() as s:
            s.add(comp)
            await s.flush()
            await s.refresh(comp)

        return CompetitionRead.model_validate(comp)

    @transient(retry=True)
    async def get_competition_by_id(self, competition_id: int) -> Optional[CompetitionRead]:
        """Fetch a competition by primary key; None if absent."""
        if not competition_id:
            return None
        async with self.session() as s:
            row = await s.get(Competition, competition_id)
        return CompetitionRead.model_validate(row) if row is not None else None

    @transient(retry=True)
    async def list_competitions(self, *, limit: int, offset: int) -> Tuple[list[CompetitionRead], int]:
        """
        Deterministic paging by start date then id.
        Returns (items, total).
        """
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        async with self.session() as s:
            total = int((await s.execute(select(func.count(Competition.id)))).scalar_one())
            if limit == 0:
                return [], total

            stmt = (
                select(Competition)
                .order_by(Competition.start_at.asc().nullslast(), Competition.id.asc())
                .limit(limit)
                .offset(offset)
            )
            rows = (await s.execute(stmt)).scalars().all()

        return [CompetitionRead.model_validate(r) for r in rows], total

    # ---------- Team ----------

    @transient()
    async def create_team(self, payload: TeamCreate) -> TeamWithMembers:
        """
        Create a team and its creator's leader membership in one transaction.

        Args:
            payload: TeamCreate DTO.

        Returns:
            TeamWithMembers: the new team with its single (leader) membership.

        Raises:
            IntegrityError: On constraint violations.
        """
        team = Team(
            name=payload.name,
            created_by=payload.created_by,
            max_participants=payload.max_participants,
        )
        async with self.session() as s:
            s.add(team)
            await s.flush()
            s.add(TeamMember(team_id=team.id, member_id=payload.created_by, role=TeamRole.LEADER))
            await s.flush()

            stmt = (
                select(Team)
                .options(selectinload(Team.members))
                .where(Team.id == team.id)
                .execution_options(populate_existing=True)
            )
            team = (await s.execute(stmt)).scalar_one()

        return TeamWithMembers.model_validate(team)

    @transient(retry=True)
    async def get_team_with_members(self, team_id: int) -> Optional[TeamWithMembers]:
        """Fetch a team together with its memberships (leader first)."""
        if not team_id:
            return None

        async with self.session() as s:
            stmt = select(Team).options(selectinload(Team.members)).where(Team.id == team_id)
            row = (await s.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            result = TeamWithMembers.model_validate(row)

        result.members.sort(key=lambda m: (m.role != TeamRole.LEADER, m.created_at, m.id))
        return result

    @transient(retry=True)
    async def list_teams_created_by(self, user_id: str) -> List[TeamRead]:
        async with self.session() as s:
            stmt = (
                select(Team)
                .where(Team.created_by == user_id)
                .order_by(Team.created_at.desc(), Team.id.desc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [TeamRead.model_validate(r) for r in rows]

    @transient(retry=True)
    async def list_teams_for_user(self, user_id: str) -> List[TeamRead]:
        """
        Teams where the user is the creator or holds a membership.
        A team matching both conditions appears once.
        """
        member_of = select(TeamMember.team_id).where(TeamMember.member_id == user_id)
        async with self.session() as s:
            stmt = (
                select(Team)
                .where(or_(Team.created_by == user_id, Team.id.in_(member_of)))
                .order_by(Team.created_at.desc(), Team.id.desc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [TeamRead.model_validate(r) for r in rows]

    @transient()
    async def delete_team(self, team_id: int) -> bool:
        """
        Delete a team and its memberships. Enrollments referencing the team are
        kept but lose their team reference.

        Returns:
            bool: False if the team did not exist.
        """
        async with self.session() as s:
            if await s.get(Team, team_id) is None:
                return False
            await s.execute(
                update(Enrollment)
                .where(Enrollment.team_id == team_id)
                .values(team_id=None, last_modified=utcnow())
            )
            await s.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
            await s.execute(delete(Team).where(Team.id == team_id))
        return True

    # ---------- Team membership ----------

    async def _lock_team(self, s: AsyncSession, team_id: int) -> Team:
        """
        Load the team inside the caller's transaction and mark it modified, so
        the flush bumps its version and fails with StaleDataError if another
        transaction changed the team's membership meanwhile.
        """
        team = await s.get(Team, team_id)
        if team is None:
            raise LookupError("Team not found.")
        team.last_modified = utcnow()
        return team

    @transient()
    async def add_membership(self, payload: TeamMemberCreate) -> TeamMemberRead:
        """
        Insert a membership, respecting the team's participant limit.

        Raises:
            LookupError: If the team does not exist.
            InvalidOperation: If the team is already full.
            IntegrityError: If the member already belongs to the team, or a
                second leader would be created.
            StaleDataError: If the team changed concurrently.
        """
        async with self.session() as s:
            team = await self._lock_team(s, payload.team_id)
            count_stmt = select(func.count(TeamMember.id)).where(TeamMember.team_id == payload.team_id)
            count = int((await s.execute(count_stmt)).scalar_one())
            if count >= team.max_participants:
                raise InvalidOperation(
                    f"Team is full ({count}/{team.max_participants} participants)."
                )

            db_m = TeamMember(team_id=payload.team_id, member_id=payload.member_id, role=payload.role)
            s.add(db_m)
            await s.flush()
            await s.refresh(db_m)

        return TeamMemberRead.model_validate(db_m)

    @transient()
    async def remove_membership(self, team_id: int, member_id: str) -> None:
        """
        Delete a membership by (team_id, member_id).

        Raises:
            LookupError: If the team or the membership does not exist.
            StaleDataError: If the team changed concurrently.
        """
        async with self.session() as s:
            await self._lock_team(s, team_id)
            stmt = select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.member_id == member_id,
            )
            db_m = (await s.execute(stmt)).scalar_one_or_none()
            if db_m is None:
                raise LookupError("Membership not found.")
            await s.delete(db_m)
            await s.flush()

    @transient()
    async def transfer_leadership(self, team_id: int, member_id: str) -> TeamMemberRead:
        """
        Demote the current leader and promote ``member_id`` in one transaction.

        Raises:
            LookupError: If the team or the target membership does not exist.
            StaleDataError: If the team changed concurrently.
        """
        async with self.session() as s:
            await self._lock_team(s, team_id)
            target = (
                await s.execute(
                    select(TeamMember).where(
                        TeamMember.team_id == team_id,
                        TeamMember.member_id == member_id,
                    )
                )
            ).scalar_one_or_none()
            if target is None:
                raise LookupError("Membership not found.")

            leaders = (
                await s.execute(
                    select(TeamMember).where(
                        TeamMember.team_id == team_id,
                        TeamMember.role == TeamRole.LEADER,
                    )
                )
            ).scalars().all()
            for leader in leaders:
                leader.role = TeamRole.MEMBER
            # demote before promote: the single-leader index is checked per row
            await s.flush()

            target.role = TeamRole.LEADER
            await s.flush()
            await s.refresh(target)

        return TeamMemberRead.model_validate(target)

    # ---------- Event ----------

    @transient()
    async def create_event(self, payload: EventCreate) -> EventRead:
        ev = Event(
            competition_id=payload.competition_id,
            title=payload.title,
            description=payload.description,
            form_schema=payload.form_schema,
        )
        async with self.session() as s:
            s.add(ev)
            await s.flush()
            await s.refresh(ev)
        return EventRead.model_validate(ev)

    @transient(retry=True)
    async def get_event(self, event_id: int) -> Optional[EventRead]:
        if not event_id:
            return None
        async with self.session() as s:
            row = await s.get(Event, event_id)
        return EventRead.model_validate(row) if row is not None else None

    @transient(retry=True)
    async def list_events_by_competition(self, competition_id: int) -> list[EventRead]:
        async with self.session() as s:
            stmt = (
                select(Event)
                .where(Event.competition_id == competition_id)
                .order_by(Event.created_at.asc(), Event.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [EventRead.model_validate(r) for r in rows]

    @transient()
    async def update_event(self, payload: EventUpdate) -> EventRead:
        """
        Partially update an event by id.
        Only fields explicitly provided (i.e., not MISSING) are updated.

        Raises:
            LookupError: If the event does not exist.
        """
        async with self.session() as s:
            db_obj = await s.get(Event, payload.id)
            if db_obj is None:
                raise LookupError("Event not found.")

            if provided(payload.title):
                db_obj.title = payload.title
            if provided(payload.description):
                db_obj.description = payload.description
            if provided(payload.form_schema):
                db_obj.form_schema = payload.form_schema

            await s.flush()
            await s.refresh(db_obj)
        return EventRead.model_validate(db_obj)

    @transient()
    async def delete_event(self, event_id: int) -> int:
        """
        Delete an event together with its submissions.

        Returns:
            int: number of submissions removed.

        Raises:
            LookupError: If the event does not exist.
        """
        async with self.session() as s:
            if await s.get(Event, event_id) is None:
                raise LookupError("Event not found.")
            res = await s.execute(delete(Submission).where(Submission.event_id == event_id))
            await s.execute(delete(Event).where(Event.id == event_id))
        return int(res.rowcount or 0)

    # ---------- Enrollment ----------

    @transient()
    async def create_enrollment(self, payload: EnrollmentCreate) -> EnrollmentRead:
        """
        Insert an enrollment.

        Raises:
            IntegrityError: If (team_id, competition_id) is already enrolled.
        """
        db_obj = Enrollment(
            team_id=payload.team_id,
            competition_id=payload.competition_id,
            status=payload.status,
        )
        async with self.session() as s:
            s.add(db_obj)
            await s.flush()
            await s.refresh(db_obj)
        return EnrollmentRead.model_validate(db_obj)

    @transient(retry=True)
    async def get_enrollment(self, enrollment_id: int) -> Optional[EnrollmentRead]:
        if not enrollment_id:
            return None
        async with self.session() as s:
            row = await s.get(Enrollment, enrollment_id)
        return EnrollmentRead.model_validate(row) if row is not None else None

    @transient(retry=True)
    async def get_enrollment_by_pair(self, team_id: int, competition_id: int) -> Optional[EnrollmentRead]:
        async with self.session() as s:
            stmt = select(Enrollment).where(
                Enrollment.team_id == team_id,
                Enrollment.competition_id == competition_id,
            )
            row = (await s.execute(stmt)).scalar_one_or_none()
        return EnrollmentRead.model_validate(row) if row is not None else None

    @transient(retry=True)
    async def update_enrollment_status(self, enrollment_id: int, status: EnrollmentStatus) -> EnrollmentRead:
        """
        Overwrite the status (last writer wins).

        Raises:
            LookupError: If the enrollment does not exist.
        """
        async with self.session() as s:
            db_obj = await s.get(Enrollment, enrollment_id)
            if db_obj is None:
                raise LookupError("Enrollment not found.")
            db_obj.status = status
            await s.flush()
            await s.refresh(db_obj)
        return EnrollmentRead.model_validate(db_obj)

    @transient()
    async def delete_enrollment(self, enrollment_id: int, *, delete_submissions: bool) -> int:
        """
        Delete an enrollment; its submissions go with it only when asked to.

        Returns:
            int: number of submissions removed.

        Raises:
            LookupError: If the enrollment does not exist.
        """
        removed = 0
        async with self.session() as s:
            if await s.get(Enrollment, enrollment_id) is None:
                raise LookupError("Enrollment not found.")
            if delete_submissions:
                res = await s.execute(delete(Submission).where(Submission.enrollment_id == enrollment_id))
                removed = int(res.rowcount or 0)
            await s.execute(delete(Enrollment).where(Enrollment.id == enrollment_id))
        return removed

    def _details_stmt(self):
        return (
            select(
                Enrollment,
                Team.name.label("team_name"),
                Competition.title.label("competition_title"),
                Competition.start_at.label("competition_start_at"),
                Competition.end_at.label("competition_end_at"),
            )
            .join(Competition, Competition.id == Enrollment.competition_id)
            .outerjoin(Team, Team.id == Enrollment.team_id)
            .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        )

    @staticmethod
    def _details(row) -> EnrollmentWithDetails:
        base = EnrollmentRead.model_validate(row.Enrollment).model_dump()
        return EnrollmentWithDetails(
            **base,
            team_name=row.team_name,
            competition_title=row.competition_title,
            competition_start_at=row.competition_start_at,
            competition_end_at=row.competition_end_at,
        )

    @transient(retry=True)
    async def list_enrollments_by_competition(self, competition_id: int) -> list[EnrollmentWithDetails]:
        async with self.session() as s:
            stmt = self._details_stmt().where(Enrollment.competition_id == competition_id)
            rows = (await s.execute(stmt)).all()
        return [self._details(r) for r in rows]

    @transient(retry=True)
    async def list_enrollments_for_user(self, user_id: str) -> list[EnrollmentWithDetails]:
        """Enrollments of every team the user created or belongs to."""
        member_of = select(TeamMember.team_id).where(TeamMember.member_id == user_id)
        team_ids = select(Team.id).where(or_(Team.created_by == user_id, Team.id.in_(member_of)))
        async with self.session() as s:
            stmt = self._details_stmt().where(Enrollment.team_id.in_(team_ids))
            rows = (await s.execute(stmt)).all()
        return [self._details(r) for r in rows]

    # ---------- Submission ----------

    @transient(retry=True)
    async def upsert_submission(self, payload: SubmissionCreate) -> SubmissionRead:
        """
        Insert the submission for (event_id, enrollment_id), or overwrite the
        payload of the existing one, in a single INSERT ... ON CONFLICT statement.
        """
        now = utcnow()
        insert = self._insert()
        stmt = insert(Submission).values(
            event_id=payload.event_id,
            enrollment_id=payload.enrollment_id,
            submission=payload.submission,
            created_at=now,
            modified_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["event_id", "enrollment_id"],
            set_={
                "submission": stmt.excluded.submission,
                "modified_at": stmt.excluded.modified_at,
            },
        ).returning(Submission.id)

        async with self.session() as s:
            sub_id = (await s.execute(stmt)).scalar_one()
            db_obj = await s.get(Submission, sub_id, populate_existing=True)
        return SubmissionRead.model_validate(db_obj)

    @transient(retry=True)
    async def get_submission_by_id(self, sub_id: int) -> Optional[SubmissionRead]:
        """
        Fetch a single submission by id.
        """
        if not sub_id:
            return None
        async with self.session() as s:
            db_obj = await s.get(Submission, sub_id)
            return SubmissionRead.model_validate(db_obj) if db_obj else None

    @transient(retry=True)
    async def get_submission_by_pair(self, event_id: int, enrollment_id: int) -> Optional[SubmissionRead]:
        async with self.session() as s:
            stmt = select(Submission).where(
                Submission.event_id == event_id,
                Submission.enrollment_id == enrollment_id,
            )
            row = (await s.execute(stmt)).scalar_one_or_none()
        return SubmissionRead.model_validate(row) if row else None

    @transient(retry=True)
    async def update_submission_payload(self, sub_id: int, payload: Any) -> SubmissionRead:
        """
        Replace a submission's payload.

        Raises:
            LookupError: If the submission does not exist.
        """
        async with self.session() as s:
            db_obj = await s.get(Submission, sub_id)
            if db_obj is None:
                raise LookupError("Submission not found.")
            db_obj.submission = payload
            db_obj.modified_at = utcnow()
            await s.flush()
            await s.refresh(db_obj)
        return SubmissionRead.model_validate(db_obj)

    @transient()
    async def delete_submission(self, sub_id: int) -> None:
        async with self.session() as s:
            db_obj = await s.get(Submission, sub_id)
            if db_obj is None:
                raise LookupError("Submission not found.")
            await s.delete(db_obj)

    @transient(retry=True)
    async def list_submissions_by_event(self, event_id: int) -> list[SubmissionRead]:
        async with self.session() as s:
            stmt = (
                select(Submission)
                .where(Submission.event_id == event_id)
                .order_by(Submission.created_at.asc(), Submission.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [SubmissionRead.model_validate(r) for r in rows]

    @transient(retry=True)
    async def list_submissions_by_enrollment(self, competition_id: int, enrollment_id: int) -> list[SubmissionRead]:
        """Submissions of one enrollment, restricted to events of the given competition."""
        async with self.session() as s:
            stmt = (
                select(Submission)
                .join(Event, Event.id == Submission.event_id)
                .where(
                    Event.competition_id == competition_id,
                    Submission.enrollment_id == enrollment_id,
                )
                .order_by(Submission.created_at.asc(), Submission.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [SubmissionRead.model_validate(r) for r in rows]

    @transient(retry=True)
    async def list_submissions_by_competition(self, competition_id: int) -> list[SubmissionRead]:
        async with self.session() as s:
            stmt = (
                select(Submission)
                .join(Event, Event.id == Submission.event_id)
                .where(Event.competition_id == competition_id)
                .order_by(Submission.event_id.asc(), Submission.created_at.asc(), Submission.id.asc())
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [SubmissionRead.model_validate(r) for r in rows]

    @transient(retry=True)
    async def delete_orphaned_submissions(self, competition_id: int) -> int:
        """
        Delete submissions for the competition's events whose enrollment no longer exists.

        Returns:
            int: number of submissions removed.
        """
        event_ids = select(Event.id).where(Event.competition_id == competition_id)
        live_enrollments = select(Enrollment.id)
        async with self.session() as s:
            res = await s.execute(
                delete(Submission).where(
                    Submission.event_id.in_(event_ids),
                    Submission.enrollment_id.not_in(live_enrollments),
                )
            )
        return int(res.rowcount or 0)

    # ---------- Audit log ----------

    async def create_audit_log(self, payload: AuditLogCreate) -> AuditLogRead:
        entry = AuditLog(actor_id=payload.actor_id, action=payload.action, payload=payload.payload)
        async with self.session() as s:
            s.add(entry)
            await s.flush()
            await s.refresh(entry)
        return AuditLogRead.model_validate(entry)

    async def list_audit_logs(
        self,
        *,
        limit: int,
        offset: int,
        actor_id: str | None = None,
        action: str | None = None,
    ) -> Tuple[list[AuditLogRead], int]:
        """Most recent first. Returns (items, total)."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        filters = []
        if actor_id is not None:
            filters.append(AuditLog.actor_id == actor_id)
        if action is not None:
            filters.append(AuditLog.action == action)

        async with self.session() as s:
            total = int((await s.execute(select(func.count(AuditLog.id)).where(*filters))).scalar_one())
            if limit == 0:
                return [], total
            stmt = (
                select(AuditLog)
                .where(*filters)
                .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = (await s.execute(stmt)).scalars().all()
        return [AuditLogRead.model_validate(r) for r in rows], total
