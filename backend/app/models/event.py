from sqlalchemy import Column, DateTime, Index, Integer, String
from sqlalchemy.sql import func

from ..database import Base


EVENT_TYPES = ("view", "click", "save", "apply", "skip", "cancel")


class Event(Base):
    """Append-only interaction log (feed behavior signals)."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    actor_type = Column(String(20), nullable=False)  # user
    actor_id = Column(Integer, nullable=False, index=True)
    target_type = Column(String(20), nullable=False)  # job | user
    target_id = Column(Integer, nullable=False)
    event_type = Column(String(20), nullable=False)  # view | click | save | apply | skip | cancel
    dwell_seconds = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_events_actor_target", "actor_id", "target_type", "target_id"),
    )
