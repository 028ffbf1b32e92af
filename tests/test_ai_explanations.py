import asyncio
from types import SimpleNamespace

import pytest


WORKER = SimpleNamespace(id=1, skills="carpentry", experience="3 years", availability="weekends", location="Sousse")
JOB = SimpleNamespace(id=2, title="Carpenter", required_skills="carpentry", job_type="micro-job", location="Monastir")


def test_build_context_from_either_side():
    from backend.app.services.ai_explanations import build_explanation_context

    a = build_explanation_context(WORKER, JOB, 0.734)
    b = build_explanation_context(JOB, WORKER, 0.734)
    assert a == b
    assert a["score"] == 73
    assert a["user"]["location"] == "Sousse"
    assert a["job"]["title"] == "Carpenter"


def test_parse_why_accepts_fenced_json_and_clips():
    from backend.app.services.ai_explanations import WHY_HARD_CAP, parse_why

    assert parse_why('```json\n{"why": "Close to you and matches carpentry."}\n```') == (
        "Close to you and matches carpentry."
    )
    long_text = "word " * 100
    assert len(parse_why('{"why": "%s"}' % long_text)) <= WHY_HARD_CAP


@pytest.mark.parametrize("raw", ["not json", '{"reason": "x"}', '{"why": "   "}', ""])
def test_parse_why_rejects_unusable_payloads(raw):
    from backend.app.services.ai_explanations import parse_why
    from backend.app.utils.error_handlers import ExplanationUnavailable

    with pytest.raises(ExplanationUnavailable):
        parse_why(raw)


def test_explain_uses_provider_text():
    from backend.app.services.ai_explanations import ExplanationGenerator

    seen = []

    async def provider(context):
        seen.append(context)
        return '{"why": "Weekend micro-job near Sousse."}'

    gen = ExplanationGenerator(provider)
    assert asyncio.run(gen.explain(WORKER, JOB, 0.8)) == "Weekend micro-job near Sousse."
    assert seen[0]["score"] == 80


def test_explain_falls_back_on_failure_and_timeout():
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION, ExplanationGenerator
    from backend.app.utils.error_handlers import ExplanationUnavailable

    async def broken(context):
        raise RuntimeError("boom")

    async def slow(context):
        await asyncio.sleep(1)
        return '{"why": "late"}'

    assert asyncio.run(ExplanationGenerator(broken).explain(WORKER, JOB, 0.5)) == FALLBACK_EXPLANATION
    assert asyncio.run(ExplanationGenerator(slow, timeout_s=0.05).explain(WORKER, JOB, 0.5)) == FALLBACK_EXPLANATION
    with pytest.raises(ExplanationUnavailable):
        asyncio.run(ExplanationGenerator(broken).explain_or_raise(WORKER, JOB, 0.5))


def test_default_provider_without_api_key_falls_back(monkeypatch):
    import backend.app.services.ai_explanations as ai_expl

    monkeypatch.setattr(ai_expl, "GEMINI_API_KEY", "")
    gen = ai_expl.ExplanationGenerator()
    assert asyncio.run(gen.explain(WORKER, JOB, 0.5)) == ai_expl.FALLBACK_EXPLANATION


def test_default_provider_calls_gemini_client(monkeypatch):
    import backend.app.services.ai_explanations as ai_expl
    from backend.app.services.ai_client import GeminiMeta

    captured = {}

    async def fake_generate(**kwargs):
        captured.update(kwargs)
        return '{"why": "Matches your carpentry skills."}', GeminiMeta(
            model=kwargs["model"], latency_ms=5, status_code=200, retries=0
        )

    monkeypatch.setattr(ai_expl, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(ai_expl, "gemini_generate_content", fake_generate)

    why = asyncio.run(ai_expl.ExplanationGenerator().explain(WORKER, JOB, 0.9))
    assert why == "Matches your carpentry skills."
    assert captured["api_key"] == "test-key"
    assert '"score":90' in captured["user_text"]


def test_explain_page_caps_provider_calls():
    from backend.app.schemas.feed import ScoredCandidate, SignalBreakdown
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION, ExplanationGenerator

    calls = []

    async def provider(context):
        calls.append(context)
        return '{"why": "Good fit."}'

    items = [
        ScoredCandidate(candidate=JOB, breakdown=SignalBreakdown(), final_score=0.9 - i * 0.1)
        for i in range(5)
    ]
    asyncio.run(ExplanationGenerator(provider).explain_page(WORKER, items, top_n=2, max_concurrency=2))

    assert len(calls) == 2
    assert [i.explanation for i in items] == ["Good fit.", "Good fit."] + [FALLBACK_EXPLANATION] * 3


@pytest.mark.parametrize(
    "raw",
    [
        {"why": "already a dict"},
        None,
        '{"why": ' + "[" * 100000 + "]" * 100000 + "}",
    ],
)
def test_parse_why_rejects_non_text_and_deeply_nested_payloads(raw):
    from backend.app.services.ai_explanations import parse_why
    from backend.app.utils.error_handlers import ExplanationUnavailable

    with pytest.raises(ExplanationUnavailable):
        parse_why(raw)


def test_explain_falls_back_on_non_text_reply():
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION, ExplanationGenerator

    async def dict_reply(context):
        return {"why": "structured instead of text"}

    assert asyncio.run(ExplanationGenerator(dict_reply).explain(WORKER, JOB, 0.5)) == FALLBACK_EXPLANATION
