from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String(20), nullable=False, default="worker")  # worker | company
    name = Column(String(255), nullable=False)
    phone = Column(String(50), unique=True, index=True, nullable=False)
    # Free text used for embeddings and signal matching
    skills = Column(Text, nullable=False, default="")
    experience = Column(Text, nullable=False, default="")
    availability = Column(String(255), nullable=False, default="")
    location = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Jobs posted by a company account
    jobs = relationship("Job", back_populates="company")
