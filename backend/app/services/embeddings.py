import asyncio
import hashlib
import logging
import math
import re
from typing import Any, Callable

from ..config import EMBEDDINGS_ENABLED, EMBEDDINGS_MODEL, EMBEDDINGS_PROVIDER
from ..utils.error_handlers import EmbeddingUnavailable
from .stores import CacheKey


logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_EMBEDDER = None


def normalize_text(text: str) -> str:
    t = (text or "").strip()
    t = _WS_RE.sub(" ", t)
    return t


def text_hash(*, text: str, model: str) -> str:
    blob = f"{model}\n{text}".encode("utf-8", errors="ignore")
    return hashlib.sha256(blob).hexdigest()


def _get_embedder():
    global _EMBEDDER
    if _EMBEDDER is not None:
        return _EMBEDDER
    if EMBEDDINGS_PROVIDER != "local":
        raise RuntimeError("Only local embeddings are supported in this build.")
    try:
        from fastembed import TextEmbedding  # type: ignore
    except Exception as e:
        raise RuntimeError("fastembed is not installed. Install backend requirements.") from e
    _EMBEDDER = TextEmbedding(model_name=EMBEDDINGS_MODEL)
    return _EMBEDDER


def embed_text(text: str) -> list[float]:
    if not EMBEDDINGS_ENABLED:
        return []
    t = normalize_text(text)
    if not t:
        return []
    embedder = _get_embedder()
    # fastembed returns an iterator of numpy arrays
    vec = next(embedder.embed([t]))
    return [float(x) for x in vec.tolist()]


def coerce_vector(raw: Any) -> list[float]:
    """Validate a provider result; anything but a non-empty finite numeric array is rejected."""
    if hasattr(raw, "tolist"):
        raw = raw.tolist()
    if not isinstance(raw, (list, tuple)) or not raw:
        raise EmbeddingUnavailable("Embedding provider returned no vector")
    out: list[float] = []
    for x in raw:
        if isinstance(x, bool) or not isinstance(x, (int, float)):
            raise EmbeddingUnavailable("Embedding provider returned a non-numeric vector")
        f = float(x)
        if not math.isfinite(f):
            raise EmbeddingUnavailable("Embedding provider returned a non-finite value")
        out.append(f)
    return out


class EmbeddingCache:
    """
    Resolves text to a vector, reusing the cached row while the text is unchanged.

    Keys are (entity kind, entity id, model, content hash). A miss calls the provider once
    and stores the result insert-if-absent; stored vectors are never overwritten.
    """

    def __init__(
        self,
        store,
        embed_fn: Callable[[str], Any] | None = None,
        *,
        model: str | None = None,
        timeout_s: float = 15.0,
    ):
        self.store = store
        self._embed_fn = embed_fn
        self.model = model or EMBEDDINGS_MODEL
        self.timeout_s = timeout_s

    def key_for(self, entity_kind: str, entity_id: int, text: str) -> CacheKey:
        norm = normalize_text(text)
        return CacheKey(
            entity_kind=entity_kind,
            entity_id=int(entity_id),
            model=self.model,
            text_hash=text_hash(text=norm, model=self.model),
        )

    async def resolve_vector(self, entity_kind: str, entity_id: int, text: str) -> list[float]:
        key = self.key_for(entity_kind, entity_id, text)

        cached = self.store.read_cached_vector(key)
        if cached:
            logger.debug("Embedding cache hit %s:%s", entity_kind, entity_id)
            return cached

        # Resolved at call time so tests can monkeypatch embed_text.
        fn = self._embed_fn or embed_text
        norm = normalize_text(text)
        try:
            raw = await asyncio.wait_for(asyncio.to_thread(fn, norm), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Embedding timed out for %s:%s after %.1fs", entity_kind, entity_id, self.timeout_s)
            raise EmbeddingUnavailable("Embedding provider timed out") from None
        except EmbeddingUnavailable:
            raise
        except Exception as e:
            logger.warning("Embedding failed for %s:%s: %s", entity_kind, entity_id, type(e).__name__)
            raise EmbeddingUnavailable(f"Embedding provider failed: {type(e).__name__}") from e

        vector = coerce_vector(raw)
        stored = self.store.insert_vector_if_absent(key, vector)
        if not stored:
            logger.debug("Embedding for %s:%s stored by a concurrent request", entity_kind, entity_id)
        return vector
