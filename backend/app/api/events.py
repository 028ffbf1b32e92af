from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.stores import SqlInteractionStore

router = APIRouter(prefix="/events", tags=["Events"])


class EventCreate(BaseModel):
    actorType: Literal["user"]
    actorId: int = Field(gt=0)
    targetType: Literal["job", "user"]
    targetId: int = Field(gt=0)
    eventType: Literal["view", "click", "save", "apply", "skip", "cancel"]
    dwellSeconds: int = Field(default=0, ge=0, le=3600)


@router.post("")
def create_event(payload: EventCreate, db: Session = Depends(get_db)):
    SqlInteractionStore(db).append_event(
        actor_type=payload.actorType,
        actor_id=payload.actorId,
        target_type=payload.targetType,
        target_id=payload.targetId,
        event_type=payload.eventType,
        dwell_seconds=payload.dwellSeconds,
    )
    return {"ok": True}
