import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from ..config import (
    AI_LOG_PAYLOADS,
    AI_MAX_RETRIES,
    AI_TIMEOUT_S,
    GEMINI_API_KEY,
    GEMINI_API_VERSION,
    GEMINI_BASE_URL,
    GEMINI_MODEL,
)
from ..schemas.feed import ScoredCandidate, WhyOutput
from ..utils.error_handlers import ExplanationUnavailable
from .ai_client import AIClientError, AIClientHTTPError, gemini_generate_content
from .ai_common import clip_text, extract_first_json_object
from .ai_prompts import why_recommended_system_prompt, why_recommended_user_prompt


logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "Recommended based on fit."
WHY_HARD_CAP = 180


def _is_job(entity: Any) -> bool:
    return hasattr(entity, "required_skills")


def build_explanation_context(actor: Any, candidate: Any, score: float) -> dict[str, Any]:
    worker, job = (candidate, actor) if _is_job(actor) else (actor, candidate)
    return {
        "user": {
            "skills": getattr(worker, "skills", "") or "",
            "experience": getattr(worker, "experience", "") or "",
            "availability": getattr(worker, "availability", "") or "",
            "location": getattr(worker, "location", "") or "",
        },
        "job": {
            "title": getattr(job, "title", "") or "",
            "required_skills": getattr(job, "required_skills", "") or "",
            "job_type": getattr(job, "job_type", "") or "",
            "location": getattr(job, "location", "") or "",
        },
        "score": int(round(float(score or 0.0) * 100)),
    }


async def gemini_explain(context: dict[str, Any]) -> str:
    """Default explanation provider. Returns the raw model text."""
    if not GEMINI_API_KEY:
        raise ExplanationUnavailable("AI disabled: GEMINI_API_KEY not configured.")
    raw_text, call_meta = await gemini_generate_content(
        api_key=GEMINI_API_KEY,
        base_url=GEMINI_BASE_URL,
        api_version=GEMINI_API_VERSION,
        model=GEMINI_MODEL,
        user_text=why_recommended_user_prompt(context=context),
        system_text=why_recommended_system_prompt(),
        temperature=0.3,
        timeout_s=AI_TIMEOUT_S,
        max_retries=AI_MAX_RETRIES,
        log_payloads=AI_LOG_PAYLOADS,
    )
    logger.debug("Explanation generated latency_ms=%s retries=%s", call_meta.latency_ms, call_meta.retries)
    return raw_text


def parse_why(raw_text: str) -> str:
    if not isinstance(raw_text, str):
        raise ExplanationUnavailable(f"AI response is not text: {type(raw_text).__name__}")
    try:
        obj = extract_first_json_object(raw_text)
        validated = WhyOutput.model_validate(obj)
    except (ValueError, RecursionError, PydanticValidationError) as e:
        raise ExplanationUnavailable(f"AI response parse failed: {type(e).__name__}") from e
    why = clip_text(validated.why, WHY_HARD_CAP)
    if not why:
        raise ExplanationUnavailable("AI response has no explanation")
    return why


class ExplanationGenerator:
    """Short "why recommended" text for the head of a feed page, never failing the page."""

    def __init__(
        self,
        explain_fn: Callable[[dict[str, Any]], Awaitable[str]] | None = None,
        *,
        timeout_s: float = 12.0,
        fallback: str = FALLBACK_EXPLANATION,
    ):
        self._explain_fn = explain_fn
        self.timeout_s = timeout_s
        self.fallback = fallback

    async def explain_or_raise(self, actor: Any, candidate: Any, score: float) -> str:
        fn = self._explain_fn or gemini_explain
        context = build_explanation_context(actor, candidate, score)
        try:
            raw_text = await asyncio.wait_for(fn(context), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            raise ExplanationUnavailable("Explanation provider timed out") from None
        except ExplanationUnavailable:
            raise
        except AIClientHTTPError as e:
            raise ExplanationUnavailable(f"AI call failed: HTTP {e.status_code}") from e
        except AIClientError as e:
            raise ExplanationUnavailable(f"AI call failed: {type(e).__name__}") from e
        except Exception as e:
            logger.exception("Explanation provider unexpected error: %s", e)
            raise ExplanationUnavailable("Explanation failed due to unexpected error.") from e
        return parse_why(raw_text)

    async def explain(self, actor: Any, candidate: Any, score: float) -> str:
        try:
            return await self.explain_or_raise(actor, candidate, score)
        except ExplanationUnavailable as e:
            logger.warning("Explanation fallback: %s", e.message)
            return self.fallback

    async def explain_page(
        self,
        actor: Any,
        items: list[ScoredCandidate],
        *,
        top_n: int,
        max_concurrency: int = 4,
    ) -> None:
        """Explains the first top_n items concurrently; the rest get the fallback without a call."""
        head = items[: max(0, int(top_n))]
        for item in items[len(head):]:
            item.explanation = self.fallback
        if not head:
            return

        sem = asyncio.Semaphore(max(1, int(max_concurrency)))

        async def _one(item: ScoredCandidate) -> None:
            async with sem:
                item.explanation = await self.explain(actor, item.candidate, item.final_score)

        await asyncio.gather(*(_one(item) for item in head))
