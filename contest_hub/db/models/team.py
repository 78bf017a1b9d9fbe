# db/models/team.py
from datetime import datetime
from typing import List
from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from contest_hub.db.models._base import Base, utcnow

class Team(Base):
    __tablename__ = "team"
    __table_args__ = (
        CheckConstraint("max_participants >= 1", name="ck_team_max_participants_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    # Bumped on every membership mutation; stale writers get StaleDataError.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    members: Mapped[List["TeamMember"]] = relationship(
        back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )

    __mapper_args__ = {"version_id_col": version}
