"""
Exploration / exploitation mixing for feed pages.

Most slots go to the best-scored candidates; a few are drawn at random from the
lowest-scored tail so new or low-signal items keep getting exposure.
"""

import math
import random

from ..schemas.feed import ScoredCandidate


MIN_POOL_FOR_EXPLORATION = 3


def explore_count_for(n: int, explore_rate: float) -> int:
    if n <= MIN_POOL_FOR_EXPLORATION:
        return 0
    return max(1, int(math.floor(n * explore_rate)))


def exploration_mix(
    scored: list[ScoredCandidate],
    explore_rate: float = 0.15,
    rng: random.Random | None = None,
) -> list[ScoredCandidate]:
    """
    Returns the exploit head (score-sorted) followed by a uniform random sample of the
    explore tail. Output length equals input length. Pools of 3 or fewer pass through
    unchanged, order included.
    """
    items = list(scored)
    if len(items) <= MIN_POOL_FOR_EXPLORATION:
        return items

    rng = rng or random.Random()
    explore_count = explore_count_for(len(items), explore_rate)
    exploit_count = len(items) - explore_count

    # sorted() is stable: equal scores keep their input order
    ranked = sorted(items, key=lambda s: s.final_score, reverse=True)
    exploit = ranked[:exploit_count]
    rest = ranked[exploit_count:]
    rng.shuffle(rest)
    return exploit + rest[:explore_count]
