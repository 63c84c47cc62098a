"""People discovery — one decision maker per selected company.

Runs only over the companies accepted in Scoring. Each company gets its own
people-search call; the first person the collaborator returns is kept.
Every contact also gets the deterministic contact score, which stands as
its match_score until Ranking replaces it.
"""

import logging

from pydantic import ValidationError

from ...exceptions import CollaboratorCallFailure, MissingUpstreamSelection
from ...schemas.profile import Contact
from ..analytics import people_analytics
from ..batch_caller import call_batched
from ..score_engine import score_contact
from .base import LoadOutcome, PhaseController

log = logging.getLogger("scout.phases.people")


def company_ref(company: dict) -> dict:
    return {
        "id": str(company["id"]),
        "name": company.get("name") or "Unknown",
        "employee_count": company.get("employee_count"),
        "industry": company.get("industry"),
        "match_score": company.get("match_score"),
    }


class PeopleDiscoveryPhase(PhaseController):
    phase_id = "people"
    entities_key = "people"
    review_kind = "contact"

    async def _load(self) -> LoadOutcome:
        companies = self.upstream.get("accepted") or []
        if not companies:
            raise MissingUpstreamSelection(self.phase_id, "scoring")

        cfg = self.ctx.settings
        profile = self.ctx.profile

        async def people_batch(batch: list[dict], index: int) -> list[dict]:
            found = []
            for company in batch:
                people = await self.ctx.collaborators.find_people(
                    company, list(profile.target_titles), cfg.people_per_company
                )
                if not people:
                    continue
                # first readable result only; the collaborator orders best-first
                for person in people:
                    contact = self._to_contact(person, company)
                    if contact is not None:
                        found.append(contact)
                        break
            return found

        result = await call_batched(
            companies,
            cfg.people_batch_size,
            people_batch,
            concurrency=cfg.batch_concurrency,
            label="people search",
        )
        if result.all_failed_hard:
            raise CollaboratorCallFailure(
                f"All {result.batch_count} people searches failed: {result.failed_batches[0].error}"
            )

        contacts = result.accepted
        message = None
        if not contacts:
            message = "No decision makers found at the selected companies."
        elif result.failed_batches:
            message = f"People search failed for {len(result.failed_batches)} of {result.batch_count} batches."

        return LoadOutcome(
            entities=contacts,
            queue=contacts,
            analytics=people_analytics(contacts, companies, len(result.failed_batches)),
            message=message,
            failed_batches=[vars(f) for f in result.failed_batches],
        )

    def _to_contact(self, person: dict, company: dict) -> dict | None:
        raw = {**person, "company": company_ref(company)}
        scored = score_contact(raw, self.ctx.profile, company.get("match_score"))
        raw.update(
            fit_score=scored["score"],
            fit_breakdown=scored["breakdown"],
            match_score=scored["score"],
            match_reason="; ".join(scored["details"]),
            score_source="deterministic",
        )
        try:
            return Contact.model_validate(raw).model_dump()
        except ValidationError as e:
            log.warning(f"people: skipping malformed person {person.get('id')} at {company.get('name')}: {e.error_count()} errors")
            return None

    def _empty_analytics(self) -> dict:
        return people_analytics([], [])
