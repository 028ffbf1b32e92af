from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..config import FEED_JOB_POOL_LIMIT, FEED_WORKER_POOL_LIMIT
from ..database import get_db
from ..models.job import Job
from ..models.user import User
from ..services.feed_ranking import FeedRanker
from ..services.scoring_engine import breakdown_to_public
from ..services.stores import SqlInteractionStore, SqlVectorStore
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.validation import clamp_feed_limit, validate_positive_id
from .jobs import job_to_public
from .users import user_to_public

router = APIRouter(prefix="/feed", tags=["Feed"])


def get_feed_ranker(db: Session = Depends(get_db)) -> FeedRanker:
    return FeedRanker(
        vector_store=SqlVectorStore(db),
        interaction_store=SqlInteractionStore(db),
    )


@router.get("/jobs")
async def feed_jobs(
    user_id: str | None = Query(default=None, alias="userId"),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ranker: FeedRanker = Depends(get_feed_ranker),
):
    uid = validate_positive_id(user_id, "userId")
    page_size = clamp_feed_limit(limit)

    user = db.query(User).filter(User.id == uid).first()
    if not user:
        raise NotFoundError(get_error_message("user_not_found"), details={"userId": uid})
    if user.role != "worker":
        raise HTTPException(status_code=400, detail=get_error_message("not_a_worker"))

    jobs = db.query(Job).order_by(Job.id.desc()).limit(FEED_JOB_POOL_LIMIT).all()
    result = await ranker.rank_jobs_for_worker(user, jobs, page_size)

    feed = [
        {
            "job": job_to_public(item.candidate),
            "score": item.score_pct,
            "final_score": item.final_score,
            "breakdown": breakdown_to_public(item),
            "why": item.explanation,
        }
        for item in result.items
    ]
    return {
        "user": user_to_public(user),
        "feed": feed,
        "skipped": result.skipped,
        "degraded": result.degraded,
    }


@router.get("/candidates")
async def feed_candidates(
    job_id: str | None = Query(default=None, alias="jobId"),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ranker: FeedRanker = Depends(get_feed_ranker),
):
    jid = validate_positive_id(job_id, "jobId")
    page_size = clamp_feed_limit(limit)

    job = db.query(Job).filter(Job.id == jid).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"), details={"jobId": jid})

    workers = (
        db.query(User)
        .filter(User.role == "worker")
        .order_by(User.id.desc())
        .limit(FEED_WORKER_POOL_LIMIT)
        .all()
    )
    result = await ranker.rank_workers_for_job(job, workers, page_size)

    candidates = [
        {"worker": user_to_public(item.candidate), "score": item.score_pct}
        for item in result.items
    ]
    return {
        "job": job_to_public(job),
        "candidates": candidates,
        "skipped": result.skipped,
        "degraded": result.degraded,
    }
