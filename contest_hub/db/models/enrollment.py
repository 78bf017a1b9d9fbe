# db/models/enrollment.py
from datetime import datetime
from typing import Optional
from sqlalchemy import Enum as SAEnum, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from contest_hub.db.models._base import Base, utcnow
from contest_hub.db.enums import EnrollmentStatus

class Enrollment(Base):
    __tablename__ = "enrollment"
    __table_args__ = (
        UniqueConstraint("team_id", "competition_id", name="uq_enrollment_team_competition"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL once the team is deleted; the organizer removes the enrollment explicitly.
    team_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("team.id", ondelete="SET NULL"), nullable=True, index=True
    )
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competition.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        SAEnum(EnrollmentStatus, name="enrollment_status"),
        nullable=False,
        default=EnrollmentStatus.REGISTERED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    team = relationship("Team")
    competition = relationship("Competition")
