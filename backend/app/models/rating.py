from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class Rating(Base):
    """Append-only star ratings; feeds the trust signal."""
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, index=True)
    rater_id = Column(Integer, nullable=False)
    rater_type = Column(String(20), nullable=False)  # company | worker
    target_id = Column(Integer, nullable=False)
    target_type = Column(String(20), nullable=False)  # worker | company
    stars = Column(Integer, nullable=False)
    note = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("stars >= 1 AND stars <= 5", name="ck_ratings_stars_range"),
        Index("ix_ratings_target", "target_id", "target_type"),
    )
