"""Discovery — find the company universe and a validation sample.

The human reviews only the sample. Their accept/reject decisions (and
reasons) become the learning context for Scoring; the universe itself is
handed on minus the companies they explicitly rejected.
"""

import logging

from pydantic import ValidationError

from ...exceptions import UnparsableResponse
from ...schemas.profile import Company
from ..analytics import discovery_distribution
from .base import LoadOutcome, PhaseController, PhaseState

log = logging.getLogger("scout.phases.discovery")


def _valid_companies(records: list) -> list[dict]:
    companies = []
    for record in records:
        try:
            companies.append(Company.model_validate(record).model_dump())
        except ValidationError as e:
            record_id = record.get("id") if isinstance(record, dict) else None
            log.warning(f"discovery: skipping malformed company {record_id}: {e.error_count()} errors")
    return companies


class DiscoveryPhase(PhaseController):
    phase_id = "discovery"
    entities_key = "companies"
    review_kind = "validation"

    async def _load(self) -> LoadOutcome:
        profile = self.ctx.profile
        result = await self.ctx.collaborators.discover(profile)

        records = result.get("companies") or []
        companies = _valid_companies(records)
        if records and not companies:
            raise UnparsableResponse(f"None of the {len(records)} discovered companies could be read")
        sample_ids = [str(c.get("id")) for c in result.get("validation_sample") or []]
        by_id = {c["id"]: c for c in companies}
        sample = [by_id[i] for i in sample_ids if i in by_id]

        analytics = result.get("analytics") or discovery_distribution(companies, profile)
        analytics["total_count"] = result.get("total_count", len(companies))

        message = None
        if not companies:
            message = "No companies found matching your criteria. Try broadening your search."
        return LoadOutcome(entities=companies, queue=sample, analytics=analytics, message=message)

    def _empty_analytics(self) -> dict:
        return discovery_distribution([], self.ctx.profile)

    def handoff(self) -> dict:
        self._require(PhaseState.SUMMARY)
        session = self.session
        rejected_ids = {c["id"] for c in session.rejected} if session else set()
        return {
            "companies": [c for c in self.entities if c["id"] not in rejected_ids],
            "validation": {
                "accepted": list(session.accepted) if session else [],
                "rejected": list(session.rejected) if session else [],
                "accept_reasons": session.reason_counts("accept") if session else {},
                "reject_reasons": session.reason_counts("reject") if session else {},
            },
        }
