"""Ranking — AI-rank the selected contacts, then let the human reorder.

The AI score is authoritative. Contacts the ranker leaves out keep their
deterministic score and score_source stays "deterministic". Final order is
match_score descending (stable) with ranks 1..n; each manual move swaps two
neighbours and renumbers the whole list.
"""

import logging
from datetime import datetime, timezone

from ...exceptions import CollaboratorCallFailure, InvalidReviewOperation, MissingUpstreamSelection
from ..analytics import ranking_analytics
from ..batch_caller import call_batched
from .base import LoadOutcome, PhaseController, PhaseState

log = logging.getLogger("scout.phases.ranking")


def renumber(contacts: list[dict]) -> list[dict]:
    for rank, contact in enumerate(contacts, start=1):
        contact["rank"] = rank
    return contacts


class RankingPhase(PhaseController):
    phase_id = "ranking"
    entities_key = "ranked_contacts"
    review_kind = "contact"

    def __init__(self, ctx, upstream: dict | None = None):
        super().__init__(ctx, upstream)
        self.moves: list[dict] = []

    async def _load(self) -> LoadOutcome:
        contacts = self.upstream.get("accepted") or []
        if not contacts:
            raise MissingUpstreamSelection(self.phase_id, "people")

        cfg = self.ctx.settings
        profile = self.ctx.profile

        async def rank_batch(batch: list[dict], index: int) -> list[dict]:
            entries = await self.ctx.collaborators.rank_contacts(batch, profile)
            ranked = []
            for entry in entries:
                contact = dict(batch[entry["index"]])
                contact["match_score"] = entry["score"]
                contact["match_reason"] = entry.get("reason") or contact.get("match_reason")
                contact["score_source"] = "ai"
                ranked.append(contact)
            return ranked

        result = await call_batched(
            contacts,
            cfg.ranking_batch_size,
            rank_batch,
            concurrency=cfg.batch_concurrency,
            label="contact ranking",
        )
        if result.all_failed_hard:
            raise CollaboratorCallFailure(
                f"All {result.batch_count} ranking batches failed: {result.failed_batches[0].error}"
            )

        ai_by_id = {c["id"]: c for c in result.accepted}
        merged = [ai_by_id.get(c["id"], dict(c)) for c in contacts]
        for contact in merged:
            if contact.get("score_source") != "ai":
                contact["match_score"] = contact.get("fit_score") or contact.get("match_score") or 0
                contact["score_source"] = "deterministic"
        ordered = renumber(sorted(merged, key=lambda c: c["match_score"], reverse=True))

        message = None
        missing = len(contacts) - len(ai_by_id)
        if missing:
            message = f"{missing} contacts were not ranked by AI and keep their fit score."

        return LoadOutcome(
            entities=ordered,
            queue=[],
            analytics=ranking_analytics(ordered, len(result.failed_batches)),
            message=message,
            failed_batches=[vars(f) for f in result.failed_batches],
        )

    def _empty_analytics(self) -> dict:
        return ranking_analytics([])

    def restore(self, snap: dict) -> None:
        super().restore(snap)
        self.moves = list(snap.get("moves") or [])

    # ── Reorder review ───────────────────────────────────────────────

    async def begin_review(self) -> None:
        self._require(PhaseState.RESULTS)
        if not self.entities:
            await self._summarize()
            return
        self.state = PhaseState.REVIEW
        await self._save({"state": self.state.value})

    async def decide(self, action: str, reasons=()) -> None:
        raise InvalidReviewOperation("Ranking is reviewed by reordering, not accept/reject")

    async def undo(self) -> None:
        raise InvalidReviewOperation("Ranking is reviewed by reordering, not accept/reject")

    async def move(self, index: int, direction: str) -> list[dict]:
        self._require(PhaseState.REVIEW)
        if direction not in ("up", "down"):
            raise InvalidReviewOperation(f"Unknown move direction: {direction!r}")
        target = index - 1 if direction == "up" else index + 1
        if not (0 <= index < len(self.entities) and 0 <= target < len(self.entities)):
            raise InvalidReviewOperation(
                f"Cannot move contact {index} {direction} in a list of {len(self.entities)}"
            )

        self.entities[index], self.entities[target] = self.entities[target], self.entities[index]
        renumber(self.entities)
        self.moves.append({
            "contact_id": self.entities[target]["id"],
            "from": index,
            "to": target,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        log.debug(f"ranking: moved {self.entities[target]['id']} {direction} to rank {target + 1}")
        await self._save({
            "state": self.state.value,
            self.entities_key: self.entities,
            "moves": self.moves,
        })
        return self.entities

    async def move_up(self, index: int) -> list[dict]:
        return await self.move(index, "up")

    async def move_down(self, index: int) -> list[dict]:
        return await self.move(index, "down")

    async def complete(self) -> None:
        """Accept the current order as the mission's final contact list."""
        self._require(PhaseState.REVIEW)
        await self._summarize()

    async def _summarize(self) -> None:
        self.state = PhaseState.SUMMARY
        self.output = renumber(list(self.entities))
        scores = [c.get("match_score") or 0 for c in self.output]
        self.summary = {
            "accepted": len(self.output),
            "rejected": 0,
            "manual_moves": len(self.moves),
            "avg_score": round(sum(scores) / len(scores)) if scores else 0,
            "top_contact": self.output[0]["name"] if self.output else None,
        }
        ok = await self.ctx.gateway.mark_complete(
            self.ctx.mission_id,
            self.phase_id,
            {
                "state": self.state.value,
                self.entities_key: self.output,
                "moves": self.moves,
                "summary": self.summary,
                "output": self.output,
            },
            expected_version=self.version,
        )
        if ok:
            self.version += 1
            snap = await self.ctx.gateway.load_phase_snapshot(self.ctx.mission_id, self.phase_id)
            self.completed_at = snap.get("completed_at") if snap else None
        log.info(f"ranking: final list of {len(self.output)} contacts")

    def progress(self) -> dict:
        total = len(self.entities)
        done = self.state == PhaseState.SUMMARY
        return {"current_card": total if done else 0, "total_cards": total, "percent_complete": 100 if done else 0}

    def view(self) -> dict:
        view = super().view()
        view["counts"]["accepted"] = len(self.output)
        view["ranked"] = self.entities if self.state in (PhaseState.REVIEW, PhaseState.SUMMARY) else []
        return view
