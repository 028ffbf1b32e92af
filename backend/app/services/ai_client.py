import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx


logger = logging.getLogger(__name__)

_MODEL_CACHE: dict[tuple[str, str], str] = {}
_RETRY_STATUSES = {408, 429, 500, 502, 503, 504}


class AIClientError(RuntimeError):
    pass


class AIClientTimeout(AIClientError):
    pass


class AIClientHTTPError(AIClientError):
    def __init__(self, *, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class GeminiMeta:
    model: str
    latency_ms: int
    status_code: int | None
    retries: int


def _safe_truncate(s: str, n: int = 800) -> str:
    s = s or ""
    if len(s) <= n:
        return s
    return s[:n] + "…"


def _strip_models_prefix(model: str) -> str:
    m = (model or "").strip()
    return m[len("models/") :] if m.startswith("models/") else m


def _generate_url(base: str, api_v: str, model: str) -> str:
    return f"{base}/{api_v}/models/{_strip_models_prefix(model)}:generateContent"


def _candidate_text(data: dict[str, Any]) -> str:
    # { candidates: [ { content: { parts: [ { text: "..." } ] } } ], ... }
    text = (
        ((data or {}).get("candidates") or [{}])[0]
        .get("content", {})
        .get("parts", [{}])[0]
        .get("text", "")
    )
    return (text or "").strip()


def _backoff(attempt: int) -> float:
    return 0.5 * (2**attempt)


async def _list_models(
    *,
    api_key: str,
    base_url: str,
    api_version: str,
    timeout_s: float,
) -> list[dict[str, Any]]:
    base = (base_url or "").rstrip("/")
    api_v = (api_version or "v1").strip().lstrip("/")
    url = f"{base}/{api_v}/models"
    headers = {"x-goog-api-key": api_key}
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        r = await client.get(url, headers=headers)
    if r.status_code >= 400:
        raise AIClientHTTPError(status_code=r.status_code, message=_safe_truncate(r.text, 1000))
    data = r.json() or {}
    return list(data.get("models") or [])


def _pick_best_model(models: list[dict[str, Any]]) -> str | None:
    """
    Prefer a 'flash' model that supports generateContent. Fallback to the first model
    that supports generateContent.
    """
    def supports_generate(m: dict[str, Any]) -> bool:
        methods = m.get("supportedGenerationMethods") or m.get("supported_generation_methods") or []
        # Some responses omit methods; assume generateContent is supported.
        return not methods or any(str(x).lower().endswith("generatecontent") for x in methods)

    candidates = [m for m in models if isinstance(m, dict) and supports_generate(m)]
    if not candidates:
        return None

    def score(m: dict[str, Any]) -> tuple[int, int]:
        name = str(m.get("name") or "").lower()
        return (1 if "flash" in name else 0, 1 if "lite" not in name else 0)

    best = sorted(candidates, key=score, reverse=True)[0]
    name = best.get("name")
    return str(name) if name else None


async def _discover_model(*, api_key: str, base: str, api_v: str, timeout_s: float) -> str | None:
    cache_key = (base, api_v)
    discovered = _MODEL_CACHE.get(cache_key)
    if discovered:
        return discovered
    try:
        models = await _list_models(api_key=api_key, base_url=base, api_version=api_v, timeout_s=timeout_s)
    except (AIClientError, httpx.HTTPError, ValueError) as e:
        logger.warning("Gemini model discovery failed: %s", type(e).__name__)
        return None
    discovered = _pick_best_model(models)
    if discovered:
        _MODEL_CACHE[cache_key] = discovered
    return discovered


async def gemini_generate_content(
    *,
    api_key: str,
    base_url: str,
    api_version: str = "v1",
    model: str,
    user_text: str,
    system_text: str | None = None,
    temperature: float = 0.0,
    timeout_s: float = 20.0,
    max_retries: int = 2,
    log_payloads: bool = False,
) -> tuple[str, GeminiMeta]:
    """
    Calls Gemini Generative Language API (API key auth) and returns the model text.

    Endpoint:
      POST {base_url}/{api_version}/models/{model}:generateContent
    Auth:
      x-goog-api-key: {api_key}

    The system prompt is inlined into the user turn; some v1 deployments reject
    systemInstruction and responseMimeType.
    """
    if not api_key:
        raise AIClientError("Missing GEMINI_API_KEY")
    if not model:
        raise AIClientError("Missing GEMINI_MODEL")
    api_v = (api_version or "v1").strip().lstrip("/")
    base = (base_url or "").rstrip("/")
    active_model = model
    url = _generate_url(base, api_v, active_model)

    effective_user = user_text or ""
    if system_text:
        effective_user = f"{system_text.strip()}\n\n{effective_user}"
    body = {
        "contents": [{"role": "user", "parts": [{"text": effective_user}]}],
        "generationConfig": {"temperature": float(temperature)},
    }
    headers = {
        "x-goog-api-key": api_key,
        "content-type": "application/json",
    }

    start = time.perf_counter()
    rediscovered = False

    for attempt in range(max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout_s) as client:
                if log_payloads:
                    logger.info(
                        "Gemini request model=%s url=%s body=%s",
                        active_model,
                        url,
                        _safe_truncate(json.dumps(body, ensure_ascii=False)),
                    )
                r = await client.post(url, json=body, headers=headers)

                # Model not found: switch once to a model this key can use.
                if r.status_code == 404 and not rediscovered:
                    rediscovered = True
                    msg = (r.text or "").lower()
                    if "not found" in msg or "not supported" in msg:
                        discovered = await _discover_model(api_key=api_key, base=base, api_v=api_v, timeout_s=timeout_s)
                        if discovered:
                            logger.warning("Gemini model not found; switching to discovered model=%s", discovered)
                            active_model = discovered
                            url = _generate_url(base, api_v, active_model)
                            r = await client.post(url, json=body, headers=headers)

            if r.status_code >= 400:
                # Retry only on transient server errors / rate limits.
                if r.status_code in _RETRY_STATUSES and attempt < max_retries:
                    logger.warning("Gemini HTTP %s; retrying in %.1fs", r.status_code, _backoff(attempt))
                    await asyncio.sleep(_backoff(attempt))
                    continue
                raise AIClientHTTPError(status_code=r.status_code, message=_safe_truncate(r.text, 1000))

            meta = GeminiMeta(
                model=active_model,
                latency_ms=int((time.perf_counter() - start) * 1000),
                status_code=r.status_code,
                retries=attempt,
            )
            logger.info(
                "Gemini ok model=%s status=%s latency_ms=%s retries=%s",
                meta.model,
                meta.status_code,
                meta.latency_ms,
                meta.retries,
            )
            return _candidate_text(r.json()), meta
        except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout):
            if attempt < max_retries:
                logger.warning("Gemini timeout; retrying in %.1fs", _backoff(attempt))
                await asyncio.sleep(_backoff(attempt))
                continue
            raise AIClientTimeout("Gemini request timed out") from None
        except httpx.RequestError as e:
            if attempt < max_retries:
                logger.warning("Gemini network error (%s); retrying in %.1fs", type(e).__name__, _backoff(attempt))
                await asyncio.sleep(_backoff(attempt))
                continue
            raise AIClientError(f"Gemini request failed: {type(e).__name__}") from e

    raise AIClientError("Gemini request exhausted retries")
