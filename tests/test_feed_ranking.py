import asyncio
import random
import threading
import time
from types import SimpleNamespace

import pytest


def _worker(**overrides):
    data = dict(
        id=1,
        role="worker",
        skills="carpentry, painting",
        experience="2 years renovating riads",
        availability="weekends",
        location="Sousse",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def _job(job_id, title, location, job_type, required_skills, company_id=None, description=None):
    return SimpleNamespace(
        id=job_id,
        company_id=company_id,
        title=title,
        description=description if description is not None else f"{title} for the summer season",
        required_skills=required_skills,
        location=location,
        job_type=job_type,
    )


def _jobs():
    return [
        _job(1, "Weekend Carpenter - Monastir", "Monastir", "micro-job", "carpentry"),
        _job(2, "Hotel Receptionist", "Tunis", "full-time", "french, english, front desk"),
        _job(3, "Pool Lifeguard", "Djerba", "seasonal", "swimming, first aid"),
        _job(4, "Kitchen Helper", "Sfax", "full-time", "cooking"),
        _job(5, "Barista", "Hammamet", "part-time", "coffee"),
    ]


async def _good_explainer(context):
    return '{"why": "Matches %s."}' % context["job"]["required_skills"]


def _ranker(vector_store, interaction_store, embed_fn, explain_fn=_good_explainer, **config):
    from backend.app.schemas.feed import RankingConfig
    from backend.app.services.feed_ranking import FeedRanker

    return FeedRanker(
        vector_store=vector_store,
        interaction_store=interaction_store,
        embed_fn=embed_fn,
        explain_fn=explain_fn,
        config=RankingConfig(**config),
        rng=random.Random(0),
    )


def test_weekend_carpenter_ranks_in_top_two(vector_store, interaction_store, fake_embed):
    ranker = _ranker(vector_store, interaction_store, fake_embed)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5, explore_rate=0.0))

    assert len(result.items) == 5
    assert result.skipped == 0
    assert result.degraded is False

    top_two = [item.candidate.id for item in result.items[:2]]
    assert 1 in top_two

    carpenter = next(item for item in result.items if item.candidate.id == 1)
    assert carpenter.breakdown.location == 0.8
    assert carpenter.breakdown.availability == 0.9
    assert carpenter.explanation == "Matches carpentry."


def test_explanation_failure_keeps_full_page(vector_store, interaction_store, fake_embed):
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION

    async def broken(context):
        raise RuntimeError("provider down")

    ranker = _ranker(vector_store, interaction_store, fake_embed, explain_fn=broken)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert len(result.items) == 5
    for item in result.items:
        assert item.explanation == FALLBACK_EXPLANATION
        assert 0.0 <= item.final_score <= 1.0


def test_only_top_n_items_are_explained(vector_store, interaction_store, fake_embed):
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION

    calls = []

    async def counting(context):
        calls.append(context)
        return '{"why": "ok"}'

    ranker = _ranker(vector_store, interaction_store, fake_embed, explain_fn=counting, explain_top_n=2)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert len(calls) == 2
    assert [i.explanation for i in result.items[2:]] == [FALLBACK_EXPLANATION] * 3


def test_page_size_truncates_after_mixing(vector_store, interaction_store, fake_embed):
    ranker = _ranker(vector_store, interaction_store, fake_embed)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 2))
    assert len(result.items) == 2


def test_malformed_jobs_are_skipped(vector_store, interaction_store, fake_embed):
    jobs = _jobs() + [
        _job(6, "Mystery", "Sousse", "micro-job", "", description=""),
        _job(7, "", "Sousse", "micro-job", "cleaning"),
    ]
    ranker = _ranker(vector_store, interaction_store, fake_embed)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), jobs, 10))

    assert result.skipped == 2
    assert sorted(item.candidate.id for item in result.items) == [1, 2, 3, 4, 5]


def test_require_ranking_fields():
    from backend.app.services.feed_ranking import require_ranking_fields
    from backend.app.utils.error_handlers import MalformedCandidate

    require_ranking_fields("worker", _worker(skills="", experience="waiter"))
    with pytest.raises(MalformedCandidate) as exc:
        require_ranking_fields("worker", _worker(skills=" ", experience=None))
    assert exc.value.missing == ["skills", "experience"]

    with pytest.raises(MalformedCandidate) as exc:
        require_ranking_fields("job", _job(9, "Cook", "Sfax", "full-time", "", description=""))
    assert exc.value.missing == ["description", "required_skills"]
    assert exc.value.entity_id == 9


def test_single_embedding_failure_degrades_only_that_item(vector_store, interaction_store, fake_embed):
    def flaky(text):
        if "barista" in text.lower():
            raise TimeoutError("slow provider")
        return fake_embed(text)

    ranker = _ranker(vector_store, interaction_store, flaky)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert result.degraded is True
    assert len(result.items) == 5
    by_id = {item.candidate.id: item for item in result.items}
    assert by_id[5].breakdown.similarity == 0.0
    assert by_id[1].breakdown.similarity > 0.5


def test_actor_embedding_failure_zeroes_similarity(vector_store, interaction_store, fake_embed):
    def no_worker(text):
        if text.startswith("skills:"):
            raise ValueError("bad input")
        return fake_embed(text)

    ranker = _ranker(vector_store, interaction_store, no_worker)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert result.degraded is True
    assert all(item.breakdown.similarity == 0.0 for item in result.items)


def test_embeddings_are_cached_between_requests(vector_store, interaction_store, fake_embed):
    calls = []

    def counting(text):
        calls.append(text)
        return fake_embed(text)

    ranker = _ranker(vector_store, interaction_store, counting)
    asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))
    asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert len(calls) == 6
    assert vector_store.inserts == 6


def test_company_trust_and_behavior_signals(vector_store, interaction_store, fake_embed):
    jobs = _jobs()
    jobs[1].company_id = 10
    jobs[2].company_id = 11
    interaction_store.ratings[(10, "company")] = [1, 1]
    interaction_store.ratings[(11, "company")] = [5, 5, 5]
    interaction_store.cancels[11] = 2
    interaction_store.events[(1, "job", 4)] = {"apply": 1, "save": 1}
    interaction_store.events[(1, "job", 5)] = {"skip": 3, "cancel": 1}

    ranker = _ranker(vector_store, interaction_store, fake_embed)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), jobs, 5))
    by_id = {item.candidate.id: item.breakdown for item in result.items}

    assert by_id[1].trust == 0.8
    assert by_id[2].trust == pytest.approx(0.2)
    assert by_id[3].trust == pytest.approx(0.9)
    assert by_id[4].behavior > 0.5
    assert by_id[5].behavior < 0.5
    assert by_id[1].behavior == 0.5


def test_embedding_calls_respect_concurrency_limit(vector_store, interaction_store, fake_embed):
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def tracked(text):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1
        return fake_embed(text)

    jobs = [_job(i, f"Helper {i}", "Tunis", "micro-job", "cooking") for i in range(1, 13)]
    ranker = _ranker(vector_store, interaction_store, tracked, max_concurrency=2)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), jobs, 12))

    assert len(result.items) == 12
    assert state["peak"] <= 2


def test_workers_for_job_is_pure_score_order(vector_store, interaction_store, fake_embed):
    job = _jobs()[0]
    workers = [
        _worker(id=21, skills="cooking", location="Tunis", availability=""),
        _worker(id=22, skills="carpentry", location="Monastir", availability="weekends"),
        _worker(id=23, skills="carpentry, painting", location="Sousse", availability="weekends"),
        _worker(id=24, skills="", experience="", location="Monastir"),
    ]
    interaction_store.ratings[(23, "worker")] = [5, 5]

    ranker = _ranker(vector_store, interaction_store, fake_embed)
    result = asyncio.run(ranker.rank_workers_for_job(job, workers, 10))

    assert result.skipped == 1
    scores = [item.final_score for item in result.items]
    assert scores == sorted(scores, reverse=True)
    assert result.items[-1].candidate.id == 21
    assert all(item.explanation is None for item in result.items)
    assert all(item.breakdown.freshness == 0.0 for item in result.items)


@pytest.mark.parametrize(
    "reply",
    [
        {"why": "structured instead of text"},
        '{"why": ' + "[" * 100000 + "]" * 100000 + "}",
    ],
)
def test_malformed_explanation_reply_keeps_full_page(vector_store, interaction_store, fake_embed, reply):
    from backend.app.services.ai_explanations import FALLBACK_EXPLANATION

    async def malformed(context):
        return reply

    ranker = _ranker(vector_store, interaction_store, fake_embed, explain_fn=malformed)
    result = asyncio.run(ranker.rank_jobs_for_worker(_worker(), _jobs(), 5))

    assert len(result.items) == 5
    assert all(item.explanation == FALLBACK_EXPLANATION for item in result.items)
