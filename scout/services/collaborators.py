"""External collaborator contracts the pipeline calls.

    discover(profile)                       -> {companies, validation_sample, total_count, analytics}
    score_companies(batch, profile, learning) -> [{index, score, reason}]
    find_people(company, titles, limit)     -> [contact, ...] best-first
    rank_contacts(batch, profile)           -> [{index, score, reason}]

Phases only see this dataclass, so tests swap in fakes and production
wires Apollo + Claude through default_collaborators().
"""

import math
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..config import Settings, get_settings
from ..connectors import apollo_client
from ..schemas.profile import Profile
from . import ai_scoring
from .analytics import discovery_distribution


@dataclass(frozen=True)
class Collaborators:
    discover: Callable[[Profile], Awaitable[dict]]
    score_companies: Callable[[list[dict], Profile, dict], Awaitable[list[dict]]]
    find_people: Callable[[dict, list[str], int], Awaitable[list[dict]]]
    rank_contacts: Callable[[list[dict], Profile], Awaitable[list[dict]]]


def validation_sample(companies: list[dict], cfg: Settings | None = None) -> list[dict]:
    """Head of the universe: min(max, ceil(n * ratio)) companies."""
    cfg = cfg or get_settings()
    size = min(cfg.validation_sample_max, math.ceil(len(companies) * cfg.validation_sample_ratio))
    return companies[:size]


def default_collaborators(cfg: Settings | None = None) -> Collaborators:
    cfg = cfg or get_settings()

    async def discover(profile: Profile) -> dict:
        companies = await apollo_client.search_companies(profile, cfg.discovery_page_size)
        return {
            "companies": companies,
            "validation_sample": validation_sample(companies, cfg),
            "total_count": len(companies),
            "analytics": discovery_distribution(companies, profile),
        }

    return Collaborators(
        discover=discover,
        score_companies=ai_scoring.score_company_batch,
        find_people=apollo_client.find_people,
        rank_contacts=ai_scoring.rank_contact_batch,
    )
