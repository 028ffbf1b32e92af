"""
SQLAlchemy-backed stores consumed by the feed ranking core.

The ranker only depends on the method names below, so tests can pass any object
with the same shape (e.g. a dict-backed fake).
"""

import json
import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.embedding import Embedding
from ..models.event import Event
from ..models.rating import Rating


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKey:
    entity_kind: str  # worker | job
    entity_id: int
    model: str
    text_hash: str


class SqlVectorStore:
    """Embedding cache table with insert-if-absent semantics."""

    def __init__(self, db: Session):
        self.db = db

    def read_cached_vector(self, key: CacheKey) -> list[float] | None:
        row = (
            self.db.query(Embedding)
            .filter(
                Embedding.entity_type == key.entity_kind,
                Embedding.entity_id == int(key.entity_id),
                Embedding.model == key.model,
                Embedding.text_hash == key.text_hash,
            )
            .first()
        )
        if row is None:
            return None
        return vector_from_json(row.vector_json)

    def insert_vector_if_absent(self, key: CacheKey, vector: list[float]) -> bool:
        """Returns True when this call stored the row, False when one already existed."""
        if self.read_cached_vector(key) is not None:
            return False
        row = Embedding(
            entity_type=key.entity_kind,
            entity_id=int(key.entity_id),
            model=key.model,
            dim=len(vector),
            text_hash=key.text_hash,
            vector_json=json.dumps(vector),
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent writer stored the same key first.
            self.db.rollback()
            logger.debug("Embedding already cached for %s:%s", key.entity_kind, key.entity_id)
            return False
        return True


class SqlInteractionStore:
    """Event and rating log: append-only writes, aggregate reads."""

    def __init__(self, db: Session):
        self.db = db

    def read_recent_ratings(self, target_id: int, target_kind: str, limit: int) -> list[int]:
        rows = (
            self.db.query(Rating.stars)
            .filter(Rating.target_id == int(target_id), Rating.target_type == target_kind)
            .order_by(Rating.id.desc())
            .limit(int(limit))
            .all()
        )
        return [int(r[0]) for r in rows]

    def count_cancel_events(self, actor_id: int) -> int:
        count = (
            self.db.query(func.count(Event.id))
            .filter(Event.actor_id == int(actor_id), Event.event_type == "cancel")
            .scalar()
        )
        return int(count or 0)

    def read_event_counts(self, actor_id: int, target_kind: str, target_id: int) -> dict[str, int]:
        rows = (
            self.db.query(Event.event_type, func.count(Event.id))
            .filter(
                Event.actor_id == int(actor_id),
                Event.target_type == target_kind,
                Event.target_id == int(target_id),
            )
            .group_by(Event.event_type)
            .all()
        )
        return {str(event_type): int(c or 0) for event_type, c in rows}

    def append_event(
        self,
        *,
        actor_type: str,
        actor_id: int,
        target_type: str,
        target_id: int,
        event_type: str,
        dwell_seconds: int = 0,
    ) -> Event:
        row = Event(
            actor_type=actor_type,
            actor_id=int(actor_id),
            target_type=target_type,
            target_id=int(target_id),
            event_type=event_type,
            dwell_seconds=int(dwell_seconds or 0),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def append_rating(
        self,
        *,
        rater_id: int,
        rater_type: str,
        target_id: int,
        target_type: str,
        stars: int,
        note: str = "",
    ) -> Rating:
        row = Rating(
            rater_id=int(rater_id),
            rater_type=rater_type,
            target_id=int(target_id),
            target_type=target_type,
            stars=int(stars),
            note=note or "",
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row


def vector_from_json(raw: str | None) -> list[float] | None:
    try:
        data = json.loads(raw or "[]")
    except (TypeError, ValueError):
        return None
    if not isinstance(data, list) or not data:
        return None
    try:
        return [float(x) for x in data]
    except (TypeError, ValueError):
        return None
