"""
Feed ranking engine.

rank_jobs_for_worker: embeddings -> signals -> composite score -> exploration mix ->
page -> explanations. rank_workers_for_job: same scoring with the hiring weight profile,
pure score order and no explanations.

All collaborators (stores, embedding/explanation providers, randomness) are injected.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Iterable

from ..config import (
    FEED_EMBED_TIMEOUT_S,
    FEED_EXPLAIN_TIMEOUT_S,
    FEED_EXPLAIN_TOP_N,
    FEED_EXPLORE_RATE,
    FEED_MAX_CONCURRENCY,
)
from ..schemas.feed import FeedResult, RankingConfig, ScoredCandidate
from ..utils.error_handlers import EmbeddingUnavailable, MalformedCandidate
from .ai_explanations import ExplanationGenerator
from .embeddings import EmbeddingCache
from .exploration import exploration_mix
from .scoring_engine import score_candidate
from .semantic_similarity import similarity_score
from .signals import availability_fit, behavior_score, freshness_score, location_fit, trust_score


logger = logging.getLogger(__name__)

WORKER_KIND = "worker"
JOB_KIND = "job"
COMPANY_KIND = "company"


def default_ranking_config() -> RankingConfig:
    return RankingConfig(
        explore_rate=FEED_EXPLORE_RATE,
        explain_top_n=FEED_EXPLAIN_TOP_N,
        max_concurrency=FEED_MAX_CONCURRENCY,
        embed_timeout_s=FEED_EMBED_TIMEOUT_S,
        explain_timeout_s=FEED_EXPLAIN_TIMEOUT_S,
    )


def worker_embed_text(worker: Any) -> str:
    return (
        f"skills: {worker.skills or ''}\n"
        f"experience: {worker.experience or ''}\n"
        f"availability: {worker.availability or ''}\n"
        f"location: {worker.location or ''}"
    )


def job_embed_text(job: Any) -> str:
    return (
        f"title: {job.title or ''}\n"
        f"desc: {job.description or ''}\n"
        f"required: {job.required_skills or ''}\n"
        f"location: {job.location or ''}\n"
        f"type: {job.job_type or ''}"
    )


def _blank(v: Any) -> bool:
    return not str(v or "").strip()


def require_ranking_fields(entity_kind: str, entity: Any) -> None:
    """Raises MalformedCandidate when the record has nothing meaningful to embed or match."""
    if entity_kind == JOB_KIND:
        missing = [f for f in ("title", "description", "required_skills") if _blank(getattr(entity, f, None))]
    else:
        # A worker needs at least one of skills / experience.
        missing = (
            ["skills", "experience"]
            if _blank(getattr(entity, "skills", None)) and _blank(getattr(entity, "experience", None))
            else []
        )
    if getattr(entity, "id", None) is None:
        missing.append("id")
    if missing:
        raise MalformedCandidate(entity_kind, getattr(entity, "id", None), missing)


class FeedRanker:
    def __init__(
        self,
        *,
        vector_store,
        interaction_store,
        embed_fn: Callable[[str], Any] | None = None,
        explain_fn: Callable[[dict[str, Any]], Awaitable[str]] | None = None,
        config: RankingConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or default_ranking_config()
        self.interactions = interaction_store
        self.cache = EmbeddingCache(vector_store, embed_fn, timeout_s=self.config.embed_timeout_s)
        self.explainer = ExplanationGenerator(explain_fn, timeout_s=self.config.explain_timeout_s)
        self.rng = rng or random.Random()

    # -------------------- helpers --------------------

    def _valid_pool(self, entity_kind: str, pool: Iterable[Any]) -> tuple[list[Any], int]:
        valid: list[Any] = []
        skipped = 0
        for entity in pool:
            try:
                require_ranking_fields(entity_kind, entity)
            except MalformedCandidate as e:
                logger.info("Skipping candidate: %s", e.message)
                skipped += 1
                continue
            valid.append(entity)
        return valid, skipped

    async def _resolve_or_none(
        self,
        entity_kind: str,
        entity_id: int,
        text: str,
        sem: asyncio.Semaphore,
    ) -> list[float] | None:
        async with sem:
            try:
                return await self.cache.resolve_vector(entity_kind, entity_id, text)
            except EmbeddingUnavailable as e:
                logger.warning("Similarity degraded for %s:%s (%s)", entity_kind, entity_id, e.message)
                return None

    async def _resolve_pool(
        self,
        entity_kind: str,
        pool: list[Any],
        text_fn: Callable[[Any], str],
        sem: asyncio.Semaphore,
    ) -> list[list[float] | None]:
        return list(
            await asyncio.gather(*(self._resolve_or_none(entity_kind, e.id, text_fn(e), sem) for e in pool))
        )

    def _company_trust(self, job: Any) -> float:
        if not getattr(job, "company_id", None):
            return self.config.trust_baseline
        return trust_score(self.interactions, job.company_id, COMPANY_KIND, self.config)

    # -------------------- public API --------------------

    async def rank_jobs_for_worker(
        self,
        worker: Any,
        jobs: Iterable[Any],
        page_size: int,
        *,
        explore_rate: float | None = None,
    ) -> FeedResult:
        cfg = self.config
        pool, skipped = self._valid_pool(JOB_KIND, jobs)
        sem = asyncio.Semaphore(cfg.max_concurrency)

        worker_vec = await self._resolve_or_none(WORKER_KIND, worker.id, worker_embed_text(worker), sem)
        job_vecs = await self._resolve_pool(JOB_KIND, pool, job_embed_text, sem)
        degraded = worker_vec is None or any(v is None for v in job_vecs)

        scored: list[ScoredCandidate] = []
        for job, job_vec in zip(pool, job_vecs):
            scored.append(
                score_candidate(
                    job,
                    similarity=similarity_score(worker_vec, job_vec),
                    location=location_fit(worker.location, job.location),
                    availability=availability_fit(worker.availability, job.job_type),
                    trust=self._company_trust(job),
                    behavior=behavior_score(self.interactions, worker.id, JOB_KIND, job.id, cfg),
                    freshness=freshness_score(job.id),
                    weights=cfg.worker_sees_jobs,
                )
            )

        # Small pools pass through the mixer untouched, so they are ordered here.
        scored.sort(key=lambda s: s.final_score, reverse=True)
        rate = cfg.explore_rate if explore_rate is None else explore_rate
        # Explore slots sit at the end of the mixed pool; a page shorter than the pool drops them.
        page = exploration_mix(scored, rate, self.rng)[: max(0, int(page_size))]
        await self.explainer.explain_page(
            worker,
            page,
            top_n=cfg.explain_top_n,
            max_concurrency=cfg.max_concurrency,
        )
        logger.info(
            "Ranked jobs for worker=%s pool=%s skipped=%s page=%s degraded=%s",
            worker.id,
            len(pool),
            skipped,
            len(page),
            degraded,
        )
        return FeedResult(items=page, skipped=skipped, degraded=degraded)

    async def rank_workers_for_job(
        self,
        job: Any,
        workers: Iterable[Any],
        page_size: int,
    ) -> FeedResult:
        cfg = self.config
        pool, skipped = self._valid_pool(WORKER_KIND, workers)
        sem = asyncio.Semaphore(cfg.max_concurrency)

        job_vec = await self._resolve_or_none(JOB_KIND, job.id, job_embed_text(job), sem)
        worker_vecs = await self._resolve_pool(WORKER_KIND, pool, worker_embed_text, sem)
        degraded = job_vec is None or any(v is None for v in worker_vecs)

        scored: list[ScoredCandidate] = []
        for worker, worker_vec in zip(pool, worker_vecs):
            scored.append(
                score_candidate(
                    worker,
                    similarity=similarity_score(worker_vec, job_vec),
                    location=location_fit(worker.location, job.location),
                    availability=availability_fit(worker.availability, job.job_type),
                    trust=trust_score(self.interactions, worker.id, WORKER_KIND, cfg),
                    # The worker's own history with this job
                    behavior=behavior_score(self.interactions, worker.id, JOB_KIND, job.id, cfg),
                    weights=cfg.company_sees_workers,
                )
            )

        scored.sort(key=lambda s: s.final_score, reverse=True)
        page = scored[: max(0, int(page_size))]
        logger.info(
            "Ranked workers for job=%s pool=%s skipped=%s page=%s degraded=%s",
            job.id,
            len(pool),
            skipped,
            len(page),
            degraded,
        )
        return FeedResult(items=page, skipped=skipped, degraded=degraded)
