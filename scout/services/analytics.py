"""Phase analytics — aggregate views computed from raw phase output.

RESULTS analytics describe what a collaborator produced; SUMMARY analytics
describe what the human decided. None of these have side effects.
"""

from ..schemas.profile import Profile
from ..utils import safe_int
from .score_engine import SIZE_BUCKETS, size_bucket

SCORE_RANGES = ("90-100", "80-89", "70-79", "60-69", "below-60")
RANK_TIERS = ("90+", "80-89", "70-79", "below-70")
EMAIL_STATUSES = ("verified", "guessed", "unavailable")


def _mean(values: list[int]) -> int:
    return round(sum(values) / len(values)) if values else 0


def discovery_distribution(companies: list[dict], profile: Profile) -> dict:
    industries: dict[str, int] = {}
    sizes = {b: 0 for b in SIZE_BUCKETS}
    for c in companies:
        industry = c.get("industry") or "Unknown"
        industries[industry] = industries.get(industry, 0) + 1
        sizes[size_bucket(safe_int(c.get("employee_count")))] += 1

    top = sorted(industries.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
    return {
        "total_count": len(companies),
        "industries": [{"industry": k, "count": v} for k, v in top],
        "sizes": sizes,
        "target_industries": list(profile.industries),
        "target_sizes": list(profile.company_sizes),
    }


def score_range(score: int) -> str:
    if score >= 90:
        return "90-100"
    if score >= 80:
        return "80-89"
    if score >= 70:
        return "70-79"
    if score >= 60:
        return "60-69"
    return "below-60"


def scoring_analytics(
    scored: list[dict], qualified: list[dict], total_available: int, failed_batches: int
) -> dict:
    ranges = {r: 0 for r in SCORE_RANGES}
    for c in scored:
        ranges[score_range(c["match_score"])] += 1
    qualified_scores = [c["match_score"] for c in qualified]
    return {
        "score_ranges": ranges,
        "total_scored": len(scored),
        "total_available": total_available,
        "qualified": len(qualified),
        "rejected": len(scored) - len(qualified),
        "avg_score": _mean(qualified_scores),
        "top_score": max(qualified_scores) if qualified_scores else 0,
        "failed_batches": failed_batches,
    }


def people_analytics(people: list[dict], companies: list[dict], failed_batches: int = 0) -> dict:
    by_seniority: dict[str, int] = {}
    email_status = {s: 0 for s in EMAIL_STATUSES}
    with_email = with_phone = with_linkedin = 0
    covered = set()

    for p in people:
        seniority = p.get("seniority") or "Unknown"
        by_seniority[seniority] = by_seniority.get(seniority, 0) + 1
        status = p.get("email_status") or "unavailable"
        if status in email_status:
            email_status[status] += 1
        with_email += bool(p.get("email"))
        with_phone += bool(p.get("phone"))
        with_linkedin += bool(p.get("linkedin_url"))
        covered.add(str((p.get("company") or {}).get("id")))

    return {
        "total_people": len(people),
        "total_companies": len(companies),
        "avg_per_company": round(len(people) / len(companies), 1) if companies else 0.0,
        "by_seniority": by_seniority,
        "email_status": email_status,
        "with_email": with_email,
        "with_phone": with_phone,
        "with_linkedin": with_linkedin,
        "companies_without_people": sum(1 for c in companies if str(c.get("id")) not in covered),
        "failed_batches": failed_batches,
    }


def ranking_analytics(contacts: list[dict], failed_batches: int = 0) -> dict:
    tiers = {t: 0 for t in RANK_TIERS}
    scores = []
    for c in contacts:
        score = c.get("match_score") or 0
        scores.append(score)
        if score >= 90:
            tiers["90+"] += 1
        elif score >= 80:
            tiers["80-89"] += 1
        elif score >= 70:
            tiers["70-79"] += 1
        else:
            tiers["below-70"] += 1
    return {
        "total_ranked": len(contacts),
        "ai_scored": sum(1 for c in contacts if c.get("score_source") == "ai"),
        "tiers": tiers,
        "avg_score": _mean(scores),
        "failed_batches": failed_batches,
    }


def review_summary(session) -> dict:
    """Accept/reject counts and the most common reasons of a finished review."""
    return {
        "accepted": len(session.accepted),
        "rejected": len(session.rejected),
        "top_accept_reasons": [r for r, _ in session.top_reasons("accept")],
        "top_reject_reasons": [r for r, _ in session.top_reasons("reject")],
    }
