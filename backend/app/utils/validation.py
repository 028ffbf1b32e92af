"""
Validation utilities for query parameters the pydantic request models don't cover.
"""
from typing import Any

from fastapi import HTTPException


FEED_LIMIT_DEFAULT = 20
FEED_LIMIT_MIN = 5
FEED_LIMIT_MAX = 30


def clamp_feed_limit(value: Any, default: int = FEED_LIMIT_DEFAULT) -> int:
    """Page size for feeds: out-of-range values are clamped, not rejected."""
    if value is None or value == "":
        limit = default
    else:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            limit = default
    return min(FEED_LIMIT_MAX, max(FEED_LIMIT_MIN, limit))


def validate_positive_id(value: Any, field_name: str) -> int:
    """Validate an integer id > 0."""
    if value is None or value == "":
        raise HTTPException(status_code=400, detail=f"{field_name} is required")
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{field_name} must be an integer")
    if int_value <= 0:
        raise HTTPException(status_code=400, detail=f"{field_name} must be a positive integer")
    return int_value
