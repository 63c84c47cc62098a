"""Apollo.io client — company universe search and decision-maker lookup.

Two capabilities:
  1. search_companies(): organization search built from the ICP (organizations/search)
  2. find_people()     : people at one company by title (mixed_people/search)

API docs: https://docs.apollo.io/reference/organization-search

Unlike enrichment lookups, these calls sit on the pipeline's critical path:
a missing key, a transport error or a non-2xx response raises
CollaboratorCallFailure so the calling phase can decide between ERROR and
a per-batch soft failure.
"""

import logging
import re
from typing import Any

import httpx

from ..config import settings
from ..exceptions import CollaboratorCallFailure, Throttled
from ..http_client import http
from ..schemas.profile import Company, Contact, Profile
from ..services.score_engine import band_bucket

log = logging.getLogger("scout.apollo")

APOLLO_BASE = "https://api.apollo.io/api/v1"

# Used when the profile names no target titles
DEFAULT_TITLES = ["CEO", "CTO", "VP", "Director", "Head of", "Manager", "Founder"]

EMAIL_STATUSES = ["verified", "guessed", "unavailable"]

# Apollo's employee range buckets keyed by our size buckets
_APOLLO_RANGES = {
    "1-10": "1,10",
    "11-50": "11,50",
    "51-200": "51,200",
    "201-500": "201,500",
    "501-1000": "501,1000",
    "1000+": "1001,10000",
}

_MARKS_RE = re.compile(r"[®™©]")


def _api_key() -> str:
    key = getattr(settings, "apollo_api_key", "")
    if not key:
        raise CollaboratorCallFailure("Apollo API key not configured")
    return key


async def _post(path: str, payload: dict, api_key: str) -> dict:
    try:
        resp = await http.post(
            f"{APOLLO_BASE}/{path}",
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
                "X-Api-Key": api_key,
            },
            timeout=30,
        )
    except httpx.HTTPError as e:
        raise CollaboratorCallFailure(f"Apollo {path} transport error: {e}") from e

    if resp.status_code == 429:
        log.info(f"Apollo {path} throttled")
        raise Throttled(f"Apollo {path} rate limited", status_code=429)
    if resp.status_code != 200:
        log.warning(f"Apollo {path} failed: {resp.status_code} {resp.text[:200]}")
        raise CollaboratorCallFailure(
            f"Apollo {path} returned {resp.status_code}", status_code=resp.status_code
        )
    try:
        return resp.json()
    except ValueError as e:
        raise CollaboratorCallFailure(f"Apollo {path} returned invalid JSON") from e


# ── Company search ───────────────────────────────────────────────────


def build_locations(profile: Profile) -> list[str]:
    """Apollo organization_locations for the profile (defaults to the whole US)."""
    if profile.is_nationwide:
        return ["United States"]
    locations = [f"{state}, United States" for state in profile.locations]
    for city in profile.cities:
        locations.append(city.replace(" Metro", "").replace(" Area", "").strip())
    return locations or ["United States"]


def build_employee_ranges(profile: Profile) -> list[str]:
    ranges = []
    for band in profile.company_sizes:
        bucket = band_bucket(band)
        if bucket is None:
            continue
        apollo = _APOLLO_RANGES[bucket]
        if apollo not in ranges:
            ranges.append(apollo)
    return ranges


def company_location(org: dict) -> str:
    parts = [p for p in (org.get("city"), org.get("state")) if p]
    if not parts and org.get("country"):
        parts.append(org["country"])
    return ", ".join(parts) or "Unknown"


def normalize_company(org: dict) -> dict:
    return Company(
        id=str(org.get("id") or org.get("organization_id")),
        name=(org.get("name") or "").strip() or "Unknown",
        industry=org.get("industry") or "Unknown",
        employee_count=org.get("estimated_num_employees") or 0,
        location=company_location(org),
        website=org.get("website_url"),
        founded_year=org.get("founded_year"),
        revenue=org.get("annual_revenue_printed"),
    ).model_dump()


async def search_companies(profile: Profile, page_size: int | None = None) -> list[dict]:
    """Search the company universe for a profile.

    Returns normalized Company dicts in provider order. Empty list is a
    legitimate outcome (no matches); failures raise.
    """
    api_key = _api_key()
    payload: dict[str, Any] = {
        "page": 1,
        "per_page": page_size or settings.discovery_page_size,
        "organization_locations": build_locations(profile),
        "q_organization_keyword_tags": list(profile.industries),
    }
    ranges = build_employee_ranges(profile)
    if ranges:
        payload["organization_num_employees_ranges"] = ranges

    data = await _post("organizations/search", payload, api_key)
    orgs = data.get("organizations") or []
    companies = [normalize_company(o) for o in orgs if o.get("id") or o.get("organization_id")]
    log.info(f"Apollo company search: {len(companies)} companies")
    return companies


# ── People search ────────────────────────────────────────────────────


def _domain(website: str | None) -> str | None:
    if not website:
        return None
    d = re.sub(r"^https?://", "", website.strip(), flags=re.I)
    d = re.sub(r"^www\.", "", d, flags=re.I)
    return d.split("/")[0] or None


def normalize_person(person: dict, company: dict) -> dict:
    email = person.get("email")
    if email and "email_not_unlocked" in email:
        email = None
    phones = person.get("phone_numbers") or []
    name = person.get("name") or " ".join(
        p for p in (person.get("first_name"), person.get("last_name")) if p
    )
    location = ", ".join(p for p in (person.get("city"), person.get("state")) if p) or None
    return Contact(
        id=str(person.get("id")),
        name=name.strip() or "Unknown",
        title=person.get("title") or person.get("headline"),
        seniority=person.get("seniority"),
        company={
            "id": str(company.get("id")),
            "name": company.get("name") or "Unknown",
            "employee_count": company.get("employee_count"),
            "industry": company.get("industry"),
            "match_score": company.get("match_score"),
        },
        email=email,
        email_status=person.get("email_status") or "unavailable",
        phone=phones[0].get("sanitized_number") if phones else None,
        linkedin_url=person.get("linkedin_url"),
        location=location,
    ).model_dump()


async def find_people(company: dict, target_titles: list[str] | None = None, limit: int = 3) -> list[dict]:
    """Decision makers at one company, best-first as the provider returns them.

    Strategies in order: organization id, website domain, cleaned company
    name. The first strategy that yields people wins. Raises only when no
    strategy got a successful response at all.
    """
    api_key = _api_key()
    base: dict[str, Any] = {
        "page": 1,
        "per_page": 15,
        "person_titles": list(target_titles or DEFAULT_TITLES),
        "contact_email_status": EMAIL_STATUSES,
    }

    strategies: list[tuple[str, dict]] = []
    if company.get("id"):
        strategies.append(("organization_id", {"organization_ids": [str(company["id"])]}))
    domain = _domain(company.get("website"))
    if domain:
        strategies.append(("domain", {"q_organization_domains": domain}))
    clean_name = _MARKS_RE.sub("", company.get("name") or "").strip()
    if clean_name:
        strategies.append(("name", {"q_organization_name": clean_name}))

    last_error: CollaboratorCallFailure | None = None
    answered = False
    for strategy, params in strategies:
        try:
            data = await _post("mixed_people/search", {**base, **params}, api_key)
        except CollaboratorCallFailure as e:
            log.warning(f"Apollo people search via {strategy} failed for {company.get('name')}: {e}")
            last_error = e
            continue
        answered = True
        people = [p for p in data.get("people") or [] if p.get("id")]
        if people:
            log.debug(f"Found {len(people)} people at {company.get('name')} via {strategy}")
            return [normalize_person(p, company) for p in people[:limit]]

    if not answered and last_error is not None:
        raise last_error
    log.info(f"No people found for {company.get('name')} after all strategies")
    return []
