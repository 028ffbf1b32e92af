from typing import Any

from ..schemas.feed import COMPANY_SEES_WORKERS, WORKER_SEES_JOBS, ScoredCandidate, SignalBreakdown, WeightProfile


def compute_final_score(breakdown: SignalBreakdown, weights: WeightProfile) -> float:
    """
    Weighted sum of signals. Signals are clamped to [0,1] by SignalBreakdown and the
    weights sum to 1.0, so the result stays in [0,1].
    """
    val = (
        weights.similarity * breakdown.similarity
        + weights.location * breakdown.location
        + weights.availability * breakdown.availability
        + weights.trust * breakdown.trust
        + weights.behavior * breakdown.behavior
        + weights.freshness * breakdown.freshness
    )
    if val < 0.0:
        return 0.0
    if val > 1.0:
        return 1.0
    return float(val)


def score_candidate(
    candidate: Any,
    *,
    similarity: float,
    location: float,
    availability: float,
    trust: float,
    behavior: float,
    freshness: float = 0.0,
    weights: WeightProfile = WORKER_SEES_JOBS,
) -> ScoredCandidate:
    breakdown = SignalBreakdown(
        similarity=similarity,
        location=location,
        availability=availability,
        trust=trust,
        behavior=behavior,
        # Zero-weight freshness is reported as 0.
        freshness=freshness if weights.freshness > 0.0 else 0.0,
    )
    return ScoredCandidate(
        candidate=candidate,
        breakdown=breakdown,
        final_score=compute_final_score(breakdown, weights),
    )


def breakdown_to_public(scored: ScoredCandidate, weights: WeightProfile | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = scored.breakdown.model_dump()
    if weights is not None:
        payload["weights"] = weights.model_dump()
    return payload


__all__ = [
    "COMPANY_SEES_WORKERS",
    "WORKER_SEES_JOBS",
    "breakdown_to_public",
    "compute_final_score",
    "score_candidate",
]
