"""Tests for the Scoring phase: batching, threshold, review queue."""

from dataclasses import replace

from scout.exceptions import CollaboratorCallFailure, Throttled, UnparsableResponse
from scout.services.phases import PhaseState, ScoringPhase


def _upstream(companies, accepted=(), rejected=()):
    return {
        "companies": companies,
        "validation": {
            "accepted": list(accepted),
            "rejected": list(rejected),
            "accept_reasons": {"Perfect industry match": len(accepted)} if accepted else {},
            "reject_reasons": {},
        },
    }


async def test_queue_holds_only_qualified_sorted_desc(mission_ctx, fakes):
    phase = await ScoringPhase(mission_ctx, _upstream(fakes.companies)).load_or_start()
    assert phase.state == PhaseState.RESULTS

    scores = [c["match_score"] for c in phase.queue]
    assert scores == sorted(scores, reverse=True)
    assert all(s >= 60 for s in scores)
    assert [c["id"] for c in phase.queue][:2] == ["c0", "c1"]
    assert len(phase.queue) == 8
    assert len(phase.entities) == 10
    # 10 companies / batch size 2
    assert fakes.calls["score"] == 5

    a = phase.analytics
    assert a["score_ranges"] == {"90-100": 2, "80-89": 2, "70-79": 2, "60-69": 2, "below-60": 2}
    assert a["qualified"] == 8
    assert a["rejected"] == 2
    assert a["avg_score"] == 78
    assert a["top_score"] == 95


async def test_scorer_returning_low_scores_is_refiltered(mission_ctx, fakes):
    fakes.scores = {c["id"]: 59 for c in fakes.companies}
    fakes.scores["c3"] = 60
    phase = await ScoringPhase(mission_ctx, _upstream(fakes.companies)).load_or_start()
    assert [c["id"] for c in phase.queue] == ["c3"]


async def test_deterministic_fit_is_attached(mission_ctx, fakes):
    phase = await ScoringPhase(mission_ctx, _upstream(fakes.companies[:2])).load_or_start()
    assert all(isinstance(c["fit_score"], int) for c in phase.entities)
    assert phase.queue[0]["match_reason"] == "fit 95"


async def test_one_failed_batch_keeps_the_rest(mission_ctx, fakes):
    real = fakes.score_companies

    async def flaky(batch, profile, learning):
        if batch[0]["id"] == "c2":
            raise CollaboratorCallFailure("Claude API 529", status_code=529)
        return await real(batch, profile, learning)

    fakes.score_companies = flaky
    ctx = replace(mission_ctx, collaborators=fakes.bundle())
    phase = await ScoringPhase(ctx, _upstream(fakes.companies)).load_or_start()

    assert phase.state == PhaseState.RESULTS
    ids = [c["id"] for c in phase.queue]
    assert "c2" not in ids and "c3" not in ids
    assert "c4" in ids
    assert phase.analytics["failed_batches"] == 1
    assert "1 of 5" in phase.message


async def test_all_batches_failing_hard_is_error(mission_ctx, fakes):
    async def down(batch, profile, learning):
        raise CollaboratorCallFailure("AI scoring call failed")

    fakes.score_companies = down
    ctx = replace(mission_ctx, collaborators=fakes.bundle())
    phase = await ScoringPhase(ctx, _upstream(fakes.companies)).load_or_start()
    assert phase.state == PhaseState.ERROR


async def test_unparsable_replies_are_a_soft_empty_result(mission_ctx, fakes):
    async def chatty(batch, profile, learning):
        raise UnparsableResponse("AI scoring reply had no JSON array")

    fakes.score_companies = chatty
    ctx = replace(mission_ctx, collaborators=fakes.bundle())
    phase = await ScoringPhase(ctx, _upstream(fakes.companies)).load_or_start()
    assert phase.state == PhaseState.RESULTS
    assert phase.queue == []
    assert phase.message


async def test_all_batches_throttled_is_an_empty_result(mission_ctx, fakes):
    async def busy(batch, profile, learning):
        raise Throttled("Claude API rate limited", status_code=429)

    fakes.score_companies = busy
    ctx = replace(mission_ctx, collaborators=fakes.bundle())
    phase = await ScoringPhase(ctx, _upstream(fakes.companies)).load_or_start()
    assert phase.state == PhaseState.RESULTS
    assert phase.queue == []
    assert phase.analytics["qualified"] == 0
    assert phase.analytics["failed_batches"] == 5


async def test_no_upstream_companies_short_circuits(mission_ctx, fakes):
    phase = await ScoringPhase(mission_ctx, _upstream([])).load_or_start()
    assert phase.state == PhaseState.RESULTS
    assert "no accepted entities" in phase.message
    assert fakes.calls["score"] == 0

    await phase.begin_review()
    assert phase.state == PhaseState.SUMMARY


async def test_learning_context_reaches_scorer(mission_ctx, fakes):
    seen = []
    real = fakes.score_companies

    async def spy(batch, profile, learning):
        seen.append(learning)
        return await real(batch, profile, learning)

    fakes.score_companies = spy
    ctx = replace(mission_ctx, collaborators=fakes.bundle())
    accepted = [fakes.companies[0]]
    await ScoringPhase(ctx, _upstream(fakes.companies, accepted=accepted)).load_or_start()

    assert seen[0]["has_learning"] is True
    assert seen[0]["accepted_industries"] == {"SaaS": 1}
    assert seen[0]["top_accept_reasons"] == ["Perfect industry match"]


async def test_relevance_filter_caps_scored_set(mission_ctx, fakes):
    ctx = replace(mission_ctx, settings=mission_ctx.settings.model_copy(update={"scoring_max_companies": 4}))
    phase = await ScoringPhase(ctx, _upstream(fakes.companies)).load_or_start()
    assert phase.analytics["total_scored"] == 4
    assert phase.analytics["total_available"] == 10


async def test_review_and_summary(mission_ctx, fakes):
    phase = await ScoringPhase(mission_ctx, _upstream(fakes.companies[:3])).load_or_start()
    await phase.begin_review()
    await phase.decide("accept", ["Strong market presence"])
    await phase.decide("reject", ["Technology mismatch"])
    await phase.decide("accept")

    assert phase.state == PhaseState.SUMMARY
    assert [c["id"] for c in phase.handoff()["accepted"]] == ["c0", "c2"]
    assert phase.summary["avg_selected_score"] == 90
