from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # users.id where role='company'
    title = Column(String(150), nullable=False)
    company_name = Column(String(150), nullable=False)
    description = Column(Text, nullable=False)
    required_skills = Column(Text, nullable=False)
    location = Column(String(100), nullable=False, default="")
    job_type = Column(String(40), nullable=False, default="micro-job")  # micro-job | full-time | ...
    start_date = Column(String(40), nullable=False, default="")
    end_date = Column(String(40), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("User", back_populates="jobs")
