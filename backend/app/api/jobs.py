from datetime import datetime
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.job import Job
from ..utils.error_handlers import handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def job_to_public(job: Job) -> dict:
    return {
        "id": job.id,
        "company_id": job.company_id,
        "title": job.title,
        "company_name": job.company_name,
        "description": job.description,
        "required_skills": job.required_skills,
        "location": job.location,
        "job_type": job.job_type,
        "start_date": job.start_date,
        "end_date": job.end_date,
        "created_at": job.created_at.isoformat() if isinstance(job.created_at, datetime) else job.created_at,
    }


class JobCreate(BaseModel):
    companyId: int | None = Field(default=None, gt=0)
    title: str = Field(min_length=2, max_length=150)
    company_name: str = Field(min_length=2, max_length=150)
    description: str = Field(min_length=5)
    required_skills: str = Field(min_length=2)
    location: str = Field(default="", max_length=100)
    job_type: str = Field(default="micro-job", max_length=40)
    start_date: str = Field(default="", max_length=40)
    end_date: str = Field(default="", max_length=40)


@router.post("")
def create_job(payload: JobCreate, db: Session = Depends(get_db)):
    data = payload.model_dump()
    job = Job(company_id=data.pop("companyId"), **data)
    db.add(job)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise handle_database_error(e, "create_job")
    db.refresh(job)
    logger.info("Created job id=%s company_id=%s", job.id, job.company_id)
    return {"job": job_to_public(job)}


@router.get("")
def list_jobs(db: Session = Depends(get_db)):
    rows = db.query(Job).order_by(Job.id.desc()).limit(50).all()
    return {"jobs": [job_to_public(j) for j in rows]}
