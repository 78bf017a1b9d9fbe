# db/models/team_member.py
from datetime import datetime
from sqlalchemy import Enum as SAEnum, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from contest_hub.db.models._base import Base, utcnow
from contest_hub.db.enums import TeamRole

class TeamMember(Base):
    __tablename__ = "team_member"
    __table_args__ = (
        UniqueConstraint("team_id", "member_id", name="uq_team_member_pair"),
        Index(
            "uq_team_member_single_leader",
            "team_id",
            unique=True,
            postgresql_where=text("role = 'LEADER'"),
            sqlite_where=text("role = 'LEADER'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("team.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    role: Mapped[TeamRole] = mapped_column(SAEnum(TeamRole, name="team_role"), nullable=False, default=TeamRole.MEMBER)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    team = relationship("Team", back_populates="members")
