# db/models/submission.py
from datetime import datetime
from typing import Any
from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from contest_hub.db.models._base import Base, JsonType, utcnow

class Submission(Base):
    __tablename__ = "submission"
    __table_args__ = (
        UniqueConstraint("event_id", "enrollment_id", name="uq_submission_event_enrollment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("event.id", ondelete="CASCADE"), nullable=False, index=True)
    # No foreign key: retained submissions outlive their enrollment.
    enrollment_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    submission: Mapped[Any] = mapped_column(JsonType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    event = relationship("Event")
