"""Scoring — AI-score the universe, keep the qualified, review them.

Companies go to the scorer in batches of company_score_batch_size after a
relevance pre-filter driven by the validation learning. The scorer is
expected to omit companies under the threshold; the threshold is applied
again here regardless, and the queue is sorted best-first.
"""

import logging

from ...exceptions import CollaboratorCallFailure, MissingUpstreamSelection
from ..ai_scoring import build_learning_context, filter_top_matches
from ..analytics import scoring_analytics
from ..batch_caller import call_batched
from ..score_engine import score_company
from .base import LoadOutcome, PhaseController

log = logging.getLogger("scout.phases.scoring")


class ScoringPhase(PhaseController):
    phase_id = "scoring"
    entities_key = "scored_companies"
    review_kind = "company"

    async def _load(self) -> LoadOutcome:
        companies = self.upstream.get("companies") or []
        if not companies:
            raise MissingUpstreamSelection(self.phase_id, "discovery")

        cfg = self.ctx.settings
        profile = self.ctx.profile
        validation = self.upstream.get("validation") or {}
        learning = build_learning_context(
            validation.get("accepted") or [],
            validation.get("rejected") or [],
            validation.get("accept_reasons"),
            validation.get("reject_reasons"),
        )
        candidates = filter_top_matches(companies, learning, profile, cfg.scoring_max_companies)

        async def score_batch(batch: list[dict], index: int) -> list[dict]:
            entries = await self.ctx.collaborators.score_companies(batch, profile, learning)
            scored = []
            for entry in entries:
                company = dict(batch[entry["index"]])
                company["match_score"] = entry["score"]
                company["match_reason"] = entry.get("reason") or ""
                company["fit_score"] = score_company(company, profile)["score"]
                scored.append(company)
            return scored

        result = await call_batched(
            candidates,
            cfg.company_score_batch_size,
            score_batch,
            concurrency=cfg.batch_concurrency,
            label="company scoring",
        )
        if result.all_failed_hard:
            raise CollaboratorCallFailure(
                f"All {result.batch_count} scoring batches failed: {result.failed_batches[0].error}"
            )

        scored = result.accepted
        threshold = cfg.company_qualify_threshold
        qualified = sorted(
            (c for c in scored if c["match_score"] >= threshold),
            key=lambda c: c["match_score"],
            reverse=True,
        )
        dropped = len(scored) - len(qualified)
        if dropped:
            log.info(f"Dropped {dropped} companies scored below {threshold}")

        message = None
        if not qualified:
            message = f"No companies scored {threshold} or higher."
        elif result.failed_batches:
            message = f"{len(result.failed_batches)} of {result.batch_count} scoring batches returned nothing."

        return LoadOutcome(
            entities=scored,
            queue=qualified,
            analytics=scoring_analytics(scored, qualified, len(companies), len(result.failed_batches)),
            message=message,
            failed_batches=[vars(f) for f in result.failed_batches],
        )

    def _empty_analytics(self) -> dict:
        return scoring_analytics([], [], 0, 0)

    def _summary_extra(self) -> dict:
        scores = [c["match_score"] for c in self.output]
        return {"avg_selected_score": round(sum(scores) / len(scores)) if scores else 0}
