from datetime import datetime
from typing import Literal
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..utils.error_handlers import handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def user_to_public(user: User) -> dict:
    return {
        "id": user.id,
        "role": user.role,
        "name": user.name,
        "phone": user.phone,
        "skills": user.skills,
        "experience": user.experience,
        "availability": user.availability,
        "location": user.location,
        "created_at": user.created_at.isoformat() if isinstance(user.created_at, datetime) else user.created_at,
    }


class UserCreate(BaseModel):
    role: Literal["worker", "company"] = "worker"
    name: str = Field(min_length=2, max_length=255)
    phone: str = Field(min_length=6, max_length=50)
    skills: str = ""
    experience: str = ""
    availability: str = Field(default="", max_length=255)
    location: str = Field(default="", max_length=100)


@router.post("")
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    user = User(**payload.model_dump())
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise handle_database_error(e, "create_user")
    db.refresh(user)
    logger.info("Created %s user id=%s", user.role, user.id)
    return {"user": user_to_public(user)}


@router.get("")
def list_users(db: Session = Depends(get_db)):
    rows = db.query(User).order_by(User.id.desc()).limit(50).all()
    return {"users": [user_to_public(u) for u in rows]}
