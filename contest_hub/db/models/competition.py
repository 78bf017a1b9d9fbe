# db/models/competition.py
from datetime import datetime
from typing import List, Optional
from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from contest_hub.db.models._base import Base, utcnow

class Competition(Base):
    __tablename__ = "competition"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    organizer_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    end_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    events: Mapped[List["Event"]] = relationship(back_populates="competition", cascade="all, delete-orphan", passive_deletes=True)
