"""
Feed ranking signals. Every function returns a value in [0, 1].

location_fit, availability_fit and freshness_score are pure; trust_score and
behavior_score read the rating/event log through an injected store.
"""

import math

from ..schemas.feed import RankingConfig


DEFAULT_RANKING_CONFIG = RankingConfig()

# Nearby city pairs (checked in both directions).
NEARBY_LOCATIONS = frozenset(
    {
        ("sousse", "monastir"),
        ("tunis", "ariana"),
        ("tunis", "ben arous"),
        ("sfax", "mahdia"),
    }
)

SHORT_SHIFT_KEYWORDS = ("micro",)
FLEXIBLE_AVAILABILITY_KEYWORDS = ("weekend", "evening", "soir", "any")
FULL_TIME_KEYWORDS = ("full",)


def _clamp(v: float) -> float:
    if v < 0.0:
        return 0.0
    if v > 1.0:
        return 1.0
    return float(v)


def normalize_location(s: str | None) -> str:
    return (s or "").strip().lower()


def location_fit(a: str | None, b: str | None) -> float:
    la = normalize_location(a)
    lb = normalize_location(b)
    if not la or not lb:
        return 0.5
    if la == lb:
        return 1.0
    if (la, lb) in NEARBY_LOCATIONS or (lb, la) in NEARBY_LOCATIONS:
        return 0.8
    return 0.3


def availability_fit(availability: str | None, job_type: str | None) -> float:
    a = (availability or "").lower()
    t = (job_type or "").lower()
    if not a:
        return 0.6
    if any(k in t for k in SHORT_SHIFT_KEYWORDS) and any(k in a for k in FLEXIBLE_AVAILABILITY_KEYWORDS):
        return 0.9
    if any(k in t for k in FULL_TIME_KEYWORDS) and any(k in a for k in FULL_TIME_KEYWORDS):
        return 0.9
    return 0.6


def freshness_score(candidate_id: int | None) -> float:
    """Ids only grow, so a larger id means a newer row. Never drops below 0.6."""
    i = max(0, int(candidate_id or 0))
    return min(1.0, 0.6 + i / (i + 50))


def trust_from_ratings(stars: list[int], cancel_count: int, config: RankingConfig = DEFAULT_RANKING_CONFIG) -> float:
    if stars:
        base = (sum(stars) / len(stars)) / 5.0
    else:
        base = config.trust_baseline
    penalty = min(config.cancel_penalty_cap, config.cancel_penalty_step * max(0, int(cancel_count or 0)))
    return _clamp(base - penalty)


def trust_score(store, target_id: int, target_kind: str, config: RankingConfig = DEFAULT_RANKING_CONFIG) -> float:
    stars = store.read_recent_ratings(target_id, target_kind, config.trust_recent_ratings)
    cancels = store.count_cancel_events(target_id)
    return trust_from_ratings(stars, cancels, config)


def behavior_from_counts(counts: dict[str, int], config: RankingConfig = DEFAULT_RANKING_CONFIG) -> float:
    points = 0.0
    for event_type, c in (counts or {}).items():
        points += config.behavior_points.get(event_type, 0.0) * int(c or 0)
    z = -points / config.behavior_divisor
    if z > 700.0:  # math.exp overflow
        return 0.0
    return 1.0 / (1.0 + math.exp(z))


def behavior_score(
    store,
    actor_id: int,
    target_kind: str,
    target_id: int,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    counts = store.read_event_counts(actor_id, target_kind, target_id)
    return behavior_from_counts(counts, config)
