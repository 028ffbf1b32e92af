import math


def _cosine_or_none(a: list[float] | None, b: list[float] | None) -> float | None:
    """Cosine of a and b, or None when either is absent, mismatched or has no usable magnitude."""
    if not a or not b:
        return None
    if len(a) != len(b):
        return None
    dot = 0.0
    na = 0.0
    nb = 0.0
    for x, y in zip(a, b):
        dot += x * y
        na += x * x
        nb += y * y
    # sqrt(na * nb) keeps cosine(a, a) exactly 1.0; an underflowed or overflowed norm is degenerate
    denom = math.sqrt(na * nb)
    if denom <= 0.0 or not math.isfinite(denom) or not math.isfinite(dot):
        return None
    return float(dot / denom)


def cosine_similarity(a: list[float] | None, b: list[float] | None) -> float:
    cos = _cosine_or_none(a, b)
    return 0.0 if cos is None else cos


def similarity_score(actor_vector: list[float] | None, candidate_vector: list[float] | None) -> float:
    """
    Cosine rescaled from [-1, 1] to [0, 1].
    Absent, mismatched or zero-magnitude vectors score exactly 0 (not the 0.5 midpoint).
    """
    cos = _cosine_or_none(actor_vector, candidate_vector)
    if cos is None:
        return 0.0
    score = (cos + 1.0) / 2.0
    # Clamp float noise (e.g. cos slightly above 1 for identical vectors)
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score
