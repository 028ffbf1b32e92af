from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WeightProfile(BaseModel):
    """Per-signal weights for one ranking direction. Must sum to 1.0."""

    model_config = ConfigDict(frozen=True)

    similarity: float = 0.0
    location: float = 0.0
    availability: float = 0.0
    trust: float = 0.0
    behavior: float = 0.0
    freshness: float = 0.0

    @model_validator(mode="after")
    def _weights_sum_to_one(self):
        total = self.similarity + self.location + self.availability + self.trust + self.behavior + self.freshness
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total}")
        return self


WORKER_SEES_JOBS = WeightProfile(
    similarity=0.35,
    location=0.20,
    availability=0.15,
    trust=0.15,
    behavior=0.10,
    freshness=0.05,
)

# Freshness of the worker pool is not relevant to hiring.
COMPANY_SEES_WORKERS = WeightProfile(
    similarity=0.40,
    location=0.20,
    availability=0.15,
    trust=0.20,
    behavior=0.05,
    freshness=0.0,
)


def _default_behavior_points() -> dict[str, float]:
    return {"apply": 5.0, "save": 3.0, "click": 2.0, "view": 1.0, "skip": -1.0, "cancel": -8.0}


class RankingConfig(BaseModel):
    """Feed ranking policy. Defaults are the tuned production values."""

    # -------------------- Exploration --------------------
    explore_rate: float = Field(default=0.15, ge=0.0, le=1.0)

    # -------------------- External call limits --------------------
    explain_top_n: int = Field(default=8, ge=0)
    max_concurrency: int = Field(default=4, ge=1)
    embed_timeout_s: float = Field(default=15.0, gt=0.0)
    explain_timeout_s: float = Field(default=12.0, gt=0.0)

    # -------------------- Behavior signal --------------------
    # points per event occurrence, squashed by 1 / (1 + e^(-points / behavior_divisor))
    behavior_points: dict[str, float] = Field(default_factory=_default_behavior_points)
    behavior_divisor: float = Field(default=6.0, gt=0.0)

    # -------------------- Trust signal --------------------
    # 4 of 5 stars when nobody has rated the target yet
    trust_baseline: float = Field(default=0.8, ge=0.0, le=1.0)
    trust_recent_ratings: int = Field(default=10, ge=1)
    cancel_penalty_step: float = Field(default=0.05, ge=0.0)
    cancel_penalty_cap: float = Field(default=0.4, ge=0.0, le=1.0)

    # -------------------- Composite weights --------------------
    worker_sees_jobs: WeightProfile = WORKER_SEES_JOBS
    company_sees_workers: WeightProfile = COMPANY_SEES_WORKERS


class SignalBreakdown(BaseModel):
    similarity: float = 0.0
    location: float = 0.0
    availability: float = 0.0
    trust: float = 0.0
    behavior: float = 0.0
    freshness: float = 0.0

    @field_validator("*")
    @classmethod
    def _clamp_unit(cls, v: float) -> float:
        try:
            v2 = float(v)
        except Exception:
            return 0.0
        if v2 < 0.0:
            return 0.0
        if v2 > 1.0:
            return 1.0
        return v2


class ScoredCandidate(BaseModel):
    """Request-scoped ranking result for one candidate. Never persisted."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidate: Any
    breakdown: SignalBreakdown
    final_score: float
    explanation: str | None = None

    @property
    def score_pct(self) -> int:
        return int(round(self.final_score * 100))


class FeedResult(BaseModel):
    items: list[ScoredCandidate] = Field(default_factory=list)
    # Candidates excluded for missing required text fields
    skipped: int = 0
    # True when at least one embedding could not be resolved
    degraded: bool = False


class WhyOutput(BaseModel):
    why: str = ""
