"""Tests for the accept/reject review state machine."""

import pytest
from unittest.mock import AsyncMock

from scout.exceptions import InvalidReviewOperation
from scout.services.review_session import ReviewDecision, ReviewSession


def _queue(n=5):
    return [{"id": f"e{i}", "name": f"Entity {i}"} for i in range(n)]


def _assert_invariants(session: ReviewSession):
    assert len(session.accepted) + len(session.rejected) == len(session.decisions)
    assert session.cursor == len(session.decisions)


async def test_decide_advances_and_partitions():
    session = ReviewSession(_queue(3))
    await session.decide("accept", ["Perfect industry match"])
    await session.decide("reject", ["Wrong industry focus"])
    _assert_invariants(session)
    assert session.cursor == 2
    assert [e["id"] for e in session.accepted] == ["e0"]
    assert [e["id"] for e in session.rejected] == ["e1"]
    assert session.current["id"] == "e2"


async def test_invariants_hold_through_mixed_sequence():
    session = ReviewSession(_queue(6))
    for step in ["accept", "reject", "undo", "accept", "accept", "undo", "undo", "reject", "accept"]:
        if step == "undo":
            await session.undo()
        else:
            await session.decide(step)
        _assert_invariants(session)


async def test_every_decision_persists_exactly_once():
    persist = AsyncMock()
    session = ReviewSession(_queue(3), persist=persist)
    await session.decide("accept")
    assert persist.await_count == 1
    await session.undo()
    assert persist.await_count == 2
    persist.assert_awaited_with(session)


async def test_decide_past_end_is_rejected_without_state_change():
    persist = AsyncMock()
    session = ReviewSession(_queue(1), persist=persist)
    await session.decide("accept")
    with pytest.raises(InvalidReviewOperation):
        await session.decide("reject")
    assert session.cursor == 1
    assert persist.await_count == 1


async def test_decide_on_empty_queue_is_rejected():
    with pytest.raises(InvalidReviewOperation):
        await ReviewSession([]).decide("accept")


async def test_unknown_action_is_rejected():
    session = ReviewSession(_queue(2))
    with pytest.raises(InvalidReviewOperation):
        await session.decide("maybe")
    assert session.cursor == 0


async def test_undo_with_empty_history_is_rejected():
    with pytest.raises(InvalidReviewOperation):
        await ReviewSession(_queue(2)).undo()


async def test_undo_then_redo_reproduces_state():
    session = ReviewSession(_queue(4))
    await session.decide("accept", ["Ideal company size"])
    await session.decide("reject", ["Budget concerns"])
    before = (session.decisions, session.accepted, session.rejected)

    await session.undo()
    assert session.cursor == 1
    await session.decide("reject", ["Budget concerns"])

    assert (session.decisions, session.accepted, session.rejected) == before


async def test_undo_can_walk_back_repeatedly():
    session = ReviewSession(_queue(3))
    await session.decide("accept")
    await session.decide("accept")
    await session.undo()
    await session.undo()
    assert session.cursor == 0
    assert session.accepted == []


async def test_history_is_append_only():
    session = ReviewSession(_queue(3))
    await session.decide("accept")
    await session.undo()
    await session.decide("reject")
    assert [h["event"] for h in session.history] == ["decide", "undo", "decide"]
    assert len(session.decisions) == 1


async def test_completion_fires_once():
    on_complete = AsyncMock()
    session = ReviewSession(_queue(2), on_complete=on_complete)
    await session.decide("accept")
    on_complete.assert_not_awaited()
    await session.decide("reject")
    assert session.is_complete()
    on_complete.assert_awaited_once_with(session)


async def test_draining_decision_is_saved_by_completion_hook():
    persist = AsyncMock()
    on_complete = AsyncMock()
    session = ReviewSession(_queue(2), persist=persist, on_complete=on_complete)
    await session.decide("accept")
    await session.decide("reject")
    assert persist.await_count == 1
    on_complete.assert_awaited_once_with(session)


async def test_close_shuts_undo():
    session = ReviewSession(_queue(2))
    await session.decide("accept")
    session.close()
    with pytest.raises(InvalidReviewOperation):
        await session.undo()


async def test_undo_after_completion_is_rejected():
    session = ReviewSession(_queue(1), on_complete=AsyncMock())
    await session.decide("accept")
    with pytest.raises(InvalidReviewOperation):
        await session.undo()
    assert session.cursor == 1


async def test_progress():
    session = ReviewSession(_queue(4))
    assert session.progress() == {"current_card": 0, "total_cards": 4, "percent_complete": 0}
    await session.decide("accept")
    assert session.progress()["percent_complete"] == 25
    assert ReviewSession([]).progress()["percent_complete"] == 100


async def test_reasons_are_cleaned_and_counted():
    session = ReviewSession(_queue(3))
    await session.decide("accept", [" Perfect industry match ", "", "Fast-growing company"])
    await session.decide("accept", ["Perfect industry match"])
    await session.decide("reject", ["Poor market fit"])
    assert session.reason_counts("accept") == {
        "Perfect industry match": 2,
        "Fast-growing company": 1,
    }
    assert session.top_reasons("accept", 1) == [("Perfect industry match", 2)]


def test_reason_options_follow_kind():
    assert "Wrong role" in ReviewSession([], kind="contact").reason_options()["reject"]
    assert "Budget concerns" in ReviewSession([], kind="validation").reason_options()["reject"]


def test_decision_equality_ignores_timestamp():
    a = ReviewDecision("e1", "accept", 0, ("x",))
    b = ReviewDecision.from_dict({**a.to_dict(), "timestamp": "2020-01-01T00:00:00+00:00"})
    assert a == b


# ── Resume ───────────────────────────────────────────────────────────


async def test_resume_after_three_of_ten():
    queue = _queue(10)
    session = ReviewSession(queue)
    for action in ("accept", "reject", "accept"):
        await session.decide(action)

    restored = ReviewSession.from_snapshot(queue, session.snapshot())
    assert restored.cursor == 3
    assert restored.accepted == session.accepted
    assert restored.rejected == session.rejected
    assert restored.current["id"] == "e3"


def test_restore_rejects_decisions_that_do_not_fit_queue():
    queue = _queue(3)
    bad = {"decisions": [{"entity_id": "e9", "action": "accept", "index": 0, "reasons": []}]}
    with pytest.raises(InvalidReviewOperation):
        ReviewSession.from_snapshot(queue, bad)
