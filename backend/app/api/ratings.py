from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.stores import SqlInteractionStore

router = APIRouter(prefix="/ratings", tags=["Ratings"])


class RatingCreate(BaseModel):
    raterId: int = Field(gt=0)
    raterType: Literal["company", "worker"]
    targetId: int = Field(gt=0)
    targetType: Literal["worker", "company"]
    stars: int = Field(ge=1, le=5)
    note: str = Field(default="", max_length=2000)


@router.post("")
def create_rating(payload: RatingCreate, db: Session = Depends(get_db)):
    SqlInteractionStore(db).append_rating(
        rater_id=payload.raterId,
        rater_type=payload.raterType,
        target_id=payload.targetId,
        target_type=payload.targetType,
        stars=payload.stars,
        note=payload.note,
    )
    return {"ok": True}
