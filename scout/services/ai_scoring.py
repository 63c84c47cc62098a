"""AI scoring and ranking — prompt builders and per-batch calls.

Company scoring learns from the Discovery validation sample: what the human
accepted (industries, size buckets, names) and why. The same learning context
pre-filters the universe so only the most relevant companies are sent to the
model.

Each batch call returns a list of {index, score, reason} entries keyed by the
company's (or contact's) position inside the batch. A failed call raises
CollaboratorCallFailure; a reply with no JSON array raises UnparsableResponse.

Called by: services/collaborators.default_collaborators
Depends on: utils/claude_client, services/score_engine
"""

import logging

from ..exceptions import CollaboratorCallFailure, UnparsableResponse
from ..schemas.profile import Profile
from ..utils import clamp_score, safe_int
from ..utils.claude_client import claude_text, safe_json_parse
from .score_engine import score_company, size_bucket

log = logging.getLogger("scout.ai_scoring")

SCORING_SYSTEM = (
    "You are an expert B2B sales development researcher. You score companies "
    "and contacts against an ideal customer profile and reply with JSON only."
)


# ── Learning context ─────────────────────────────────────────────────


def _top(counts: dict[str, int], limit: int = 5) -> list[str]:
    return [k for k, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]]


def build_learning_context(
    accepted: list[dict],
    rejected: list[dict],
    accept_reasons: dict[str, int] | None = None,
    reject_reasons: dict[str, int] | None = None,
) -> dict:
    """Summarize the validation review into patterns the scorer can use."""
    if not accepted:
        return {"has_learning": False, "summary": "No validation data available"}

    industries: dict[str, int] = {}
    sizes: dict[str, int] = {}
    for company in accepted:
        industry = company.get("industry") or "Unknown"
        industries[industry] = industries.get(industry, 0) + 1
        bucket = size_bucket(safe_int(company.get("employee_count")))
        sizes[bucket] = sizes.get(bucket, 0) + 1

    return {
        "has_learning": True,
        "accepted_count": len(accepted),
        "rejected_count": len(rejected),
        "accepted_industries": industries,
        "accepted_sizes": sizes,
        "top_accept_reasons": _top(accept_reasons or {}),
        "top_reject_reasons": _top(reject_reasons or {}),
        "accepted_company_names": [c.get("name") for c in accepted][:10],
    }


def filter_top_matches(
    companies: list[dict], learning: dict, profile: Profile, limit: int = 40
) -> list[dict]:
    """Keep the `limit` companies most like the ones the human accepted.

    Relevance = industry hits x10 + size-bucket hits x5, ties broken by
    deterministic company fit. Without learning, deterministic fit alone.
    """
    if len(companies) <= limit:
        return list(companies)

    industries = learning.get("accepted_industries") or {}
    sizes = learning.get("accepted_sizes") or {}

    def relevance(company: dict) -> tuple[int, int]:
        points = industries.get(company.get("industry") or "Unknown", 0) * 10
        points += sizes.get(size_bucket(safe_int(company.get("employee_count"))), 0) * 5
        return points, score_company(company, profile)["score"]

    ranked = sorted(companies, key=relevance, reverse=True)
    log.info(f"Relevance filter kept {limit} of {len(companies)} companies")
    return ranked[:limit]


# ── Company scoring ──────────────────────────────────────────────────


def build_scoring_prompt(companies: list[dict], profile: Profile, learning: dict) -> str:
    prompt = f"""Score these companies based on how well they match the ideal customer profile.

SCORING CRITERIA:
- 90-100: Perfect fit - matches all key criteria
- 80-89: Excellent fit - matches most criteria
- 70-79: Good fit - matches several criteria
- 60-69: Acceptable fit - matches some criteria
- Below 60: Poor fit - reject

TARGET PROFILE:
Industries: {', '.join(profile.industries) or 'Not specified'}
Company Sizes: {', '.join(profile.company_sizes) or 'Not specified'}
Revenue: {', '.join(profile.revenue_ranges) or 'Not specified'}
Locations: {'Nationwide' if profile.is_nationwide else ', '.join(profile.locations + profile.cities) or 'Not specified'}
"""
    if learning.get("has_learning"):
        total = learning["accepted_count"] + learning["rejected_count"]
        prompt += f"""
VALIDATION PATTERNS:
The user reviewed {total} sample companies and accepted {learning['accepted_count']}, including:
{', '.join(n for n in learning['accepted_company_names'] if n)}

Industries they liked: {', '.join(learning['accepted_industries'])}
Sizes they preferred: {', '.join(learning['accepted_sizes'])}
"""
        if learning["top_accept_reasons"]:
            prompt += "Reasons for acceptance:\n"
            prompt += "\n".join(f"- {r}" for r in learning["top_accept_reasons"]) + "\n"
        if learning["top_reject_reasons"]:
            prompt += "Reasons for rejection:\n"
            prompt += "\n".join(f"- {r}" for r in learning["top_reject_reasons"]) + "\n"
        prompt += "Companies similar to the accepted ones should score higher.\n"

    lines = [
        f"{i}. {c.get('name')} - {c.get('industry') or 'Unknown'} - "
        f"{c.get('employee_count') or 0} employees - {c.get('location') or 'Unknown'}"
        for i, c in enumerate(companies)
    ]
    prompt += f"""
COMPANIES TO SCORE ({len(companies)} total):
{chr(10).join(lines)}

Return ONLY a JSON array:
[{{"index": 0, "score": 85, "reason": "Excellent fit - right industry and size"}}]

Include ALL companies with scores 60+. Skip companies below 60."""
    return prompt


def _parse_entries(text: str | None, batch_len: int, what: str) -> list[dict]:
    if text is None:
        raise CollaboratorCallFailure(f"AI {what} call failed")
    data = safe_json_parse(text, list)
    if not isinstance(data, list):
        raise UnparsableResponse(f"AI {what} reply had no JSON array")

    entries = []
    seen = set()
    for item in data:
        if not isinstance(item, dict):
            continue
        index = safe_int(item.get("index"))
        score = clamp_score(item.get("score"))
        if index is None or score is None or not 0 <= index < batch_len or index in seen:
            continue
        seen.add(index)
        entries.append({
            "index": index,
            "score": score,
            "reason": item.get("reason") or item.get("reasoning") or "",
        })
    return entries


async def score_company_batch(companies: list[dict], profile: Profile, learning: dict) -> list[dict]:
    """AI-score one batch. Returns [{index, score, reason}] in the model's order."""
    text = await claude_text(
        build_scoring_prompt(companies, profile, learning),
        system=SCORING_SYSTEM,
        model_tier="fast",
        max_tokens=4096,
    )
    return _parse_entries(text, len(companies), "scoring")


# ── Contact ranking ──────────────────────────────────────────────────


def build_ranking_prompt(contacts: list[dict], profile: Profile) -> str:
    lines = []
    for i, c in enumerate(contacts):
        company = c.get("company") or {}
        lines.append(
            f"{i}. {c.get('name')} - {c.get('title') or 'Unknown title'} at {company.get('name')} "
            f"({company.get('employee_count') or '?'} employees)\n"
            f"   - Seniority: {c.get('seniority') or 'Unknown'}\n"
            f"   - Company score: {company.get('match_score') or 'n/a'}\n"
            f"   - Email: {'yes' if c.get('email') else 'no'}, "
            f"LinkedIn: {'yes' if c.get('linkedin_url') else 'no'}"
        )
    return f"""Rank these {len(contacts)} contacts from BEST (100) to WORST (1) by fit for outreach.

ICP:
- Target Industries: {', '.join(profile.industries) or 'Various'}
- Target Company Sizes: {', '.join(profile.company_sizes) or 'Various'}
- Target Titles: {', '.join(profile.target_titles) or 'Decision makers'}

CONTACTS TO RANK:
{chr(10).join(lines)}

Return ONLY a JSON array, best first:
[{{"index": 0, "score": 95, "reasoning": "Direct decision maker at a perfect-fit company"}}]"""


async def rank_contact_batch(contacts: list[dict], profile: Profile) -> list[dict]:
    """AI-rank one batch. Returns [{index, score, reason}]."""
    text = await claude_text(
        build_ranking_prompt(contacts, profile),
        system=SCORING_SYSTEM,
        model_tier="smart",
        max_tokens=4096,
    )
    return _parse_entries(text, len(contacts), "ranking")
