"""Score Engine — deterministic ICP fit for contacts and companies.

Pure functions, no I/O. Company scoring is normally delegated to the AI
collaborator; what lives here is the local, reproducible signal.

Contact score (0-100), unweighted sum of independent criteria:
  1. Title match (25)        : exact = 25, substring overlap = 20
  2. Industry match (20)     : company industry overlaps a target industry
  3. Size fit (20)           : employee count inside a target band (inclusive)
  4. Location fit (15)       : nationwide scope, or candidate location overlaps a target
  5. Avoid-list clear (10)   : company name matches no avoid term
  6. Data completeness (10)  : +5 email, +3 LinkedIn, +2 phone

A criterion with no target data contributes 0. The avoid-list is the
exception by construction: no avoid terms means nothing to avoid.

Company fit (0-100), weighted: industry 50, location 25, size 15, revenue 10,
each criterion 100 (match), 50 (adjacent band) or 0.
"""

import re

from ..schemas.profile import Profile
from ..utils import safe_int

# ── Contact criteria ──
TITLE_EXACT = 25
TITLE_PARTIAL = 20
INDUSTRY_MATCH = 20
SIZE_FIT = 20
LOCATION_FIT = 15
AVOID_CLEAR = 10
EMAIL_PRESENT = 5
LINKEDIN_PRESENT = 3
PHONE_PRESENT = 2

# ── Company weights (must add to 100) ──
DEFAULT_WEIGHTS = {
    "industry": 50,
    "location": 25,
    "employee_size": 15,
    "revenue": 10,
}

SIZE_BUCKETS = ("1-10", "11-50", "51-200", "201-500", "501-1000", "1000+")

REVENUE_RANGES = (
    "Less than $1M", "$1M-$2M", "$2M-$5M", "$5M-$10M", "$10M-$20M",
    "$20M-$50M", "$50M-$100M", "$100M-$200M", "$200M-$500M", "$500M-$1B", "$1B+",
)

_BAND_RE = re.compile(r"^\s*(\d+)\s*(?:-\s*(\d+)|\+)\s*$")


def _norm(s) -> str:
    return (s or "").strip().lower()


def _overlaps(a: str, b: str) -> bool:
    """Case-insensitive substring overlap in either direction, empty never matches."""
    a, b = _norm(a), _norm(b)
    if not a or not b:
        return False
    return a in b or b in a


def parse_size_band(band: str) -> tuple[int, int | None] | None:
    """'51-200' -> (51, 200); '1,000+' -> (1000, None); junk -> None."""
    m = _BAND_RE.match((band or "").replace(",", ""))
    if not m:
        return None
    low = int(m.group(1))
    high = int(m.group(2)) if m.group(2) else None
    return low, high


def in_size_band(employees: int | None, band: str) -> bool:
    parsed = parse_size_band(band)
    if parsed is None or employees is None:
        return False
    low, high = parsed
    if high is None:
        return employees >= low
    return low <= employees <= high


def size_bucket(employees: int | None) -> str:
    """Bucket an employee count the way discovery analytics report it."""
    n = employees or 0
    if n <= 10:
        return "1-10"
    if n <= 50:
        return "11-50"
    if n <= 200:
        return "51-200"
    if n <= 500:
        return "201-500"
    if n <= 1000:
        return "501-1000"
    return "1000+"


def band_bucket(band: str) -> str | None:
    """Size bucket a target band falls in; open-ended bands from 1000 up are "1000+"."""
    parsed = parse_size_band(band)
    if parsed is None:
        return None
    low, high = parsed
    if high is None and low >= 1000:
        return "1000+"
    return size_bucket(low)


def _location_matches(candidate: str | None, profile: Profile) -> bool:
    targets = list(profile.locations) + [
        c.replace(" Metro", "").replace(" Area", "") for c in profile.cities
    ]
    return any(_overlaps(candidate, t) for t in targets)


# ── Contact scoring ──────────────────────────────────────────────────


def score_contact(contact: dict, profile: Profile, company_score: int | None = None) -> dict:
    """Deterministic contact score.

    Returns:
        {
            "score": int (0-100) == sum(breakdown.values()),
            "breakdown": {title, industry, size, location, avoid_list, data_completeness},
            "details": [str, ...],
            "company_score": company_score passed through for display,
        }
    """
    company = contact.get("company") or {}
    breakdown = {
        "title": 0,
        "industry": 0,
        "size": 0,
        "location": 0,
        "avoid_list": 0,
        "data_completeness": 0,
    }
    details = []

    # 1. Title
    title = _norm(contact.get("title"))
    for target in profile.target_titles:
        if title and title == _norm(target):
            breakdown["title"] = TITLE_EXACT
            details.append(f"Exact title match ({contact.get('title')})")
            break
    else:
        if any(_overlaps(title, t) for t in profile.target_titles):
            breakdown["title"] = TITLE_PARTIAL
            details.append(f"Close title match ({contact.get('title')})")

    # 2. Industry
    industry = company.get("industry")
    if any(_overlaps(industry, t) for t in profile.industries):
        breakdown["industry"] = INDUSTRY_MATCH
        details.append(f"Target industry ({industry})")

    # 3. Size
    employees = safe_int(company.get("employee_count"))
    if any(in_size_band(employees, band) for band in profile.company_sizes):
        breakdown["size"] = SIZE_FIT
        details.append(f"Ideal company size ({employees} employees)")

    # 4. Location
    if profile.is_nationwide:
        breakdown["location"] = LOCATION_FIT
        details.append("Nationwide scope")
    elif _location_matches(contact.get("location"), profile):
        breakdown["location"] = LOCATION_FIT
        details.append(f"Target location ({contact.get('location')})")

    # 5. Avoid list
    company_name = _norm(company.get("name"))
    if not any(term in company_name for term in profile.avoid_terms):
        breakdown["avoid_list"] = AVOID_CLEAR
    else:
        details.append("Company in avoid list")

    # 6. Data completeness
    completeness = 0
    if contact.get("email"):
        completeness += EMAIL_PRESENT
    if contact.get("linkedin_url"):
        completeness += LINKEDIN_PRESENT
    if contact.get("phone"):
        completeness += PHONE_PRESENT
    breakdown["data_completeness"] = completeness

    return {
        "score": sum(breakdown.values()),
        "breakdown": breakdown,
        "details": details,
        "company_score": company_score,
    }


# ── Company scoring ──────────────────────────────────────────────────


def _industry_match(industry: str | None, targets: list[str]) -> int:
    if not industry or not targets:
        return 0
    return 100 if _norm(industry) in {_norm(t) for t in targets} else 0


def _location_match(location: str | None, profile: Profile) -> int:
    if profile.is_nationwide:
        return 100
    if not location or not profile.locations:
        return 0
    parts = {_norm(p) for p in location.split(",")}
    return 100 if any(_norm(t) in parts for t in profile.locations) else 0


def _size_match(employees: int | None, bands: list[str]) -> int:
    if employees is None or not bands:
        return 0
    if any(in_size_band(employees, b) for b in bands):
        return 100
    company_idx = SIZE_BUCKETS.index(size_bucket(employees))
    for band in bands:
        bucket = band_bucket(band)
        if bucket is None:
            continue
        band_idx = SIZE_BUCKETS.index(bucket)
        if abs(company_idx - band_idx) == 1:
            return 50
    return 0


def _revenue_match(revenue: str | None, targets: list[str]) -> int:
    if not revenue or not targets:
        return 0
    if revenue in targets:
        return 100
    if revenue not in REVENUE_RANGES:
        return 0
    idx = REVENUE_RANGES.index(revenue)
    for target in targets:
        if target in REVENUE_RANGES and abs(REVENUE_RANGES.index(target) - idx) == 1:
            return 50
    return 0


def validate_weights(weights: dict) -> bool:
    """Custom weights must cover exactly the default criteria and sum to 100."""
    return set(weights) == set(DEFAULT_WEIGHTS) and sum(weights.values()) == 100


def score_company(company: dict, profile: Profile, weights: dict | None = None) -> dict:
    """Weighted ICP fit for a company.

    Returns: {"score": int, "reasons": [str], "breakdown": {criterion: contribution}}
    """
    if weights is None:
        weights = DEFAULT_WEIGHTS
    elif not validate_weights(weights):
        raise ValueError(f"Company weights must cover {sorted(DEFAULT_WEIGHTS)} and sum to 100")
    matches = {
        "industry": _industry_match(company.get("industry"), profile.industries),
        "location": _location_match(company.get("location"), profile),
        "employee_size": _size_match(
            safe_int(company.get("employee_count")), profile.company_sizes
        ),
        "revenue": _revenue_match(company.get("revenue"), profile.revenue_ranges),
    }

    breakdown = {k: round(v * weights[k] / 100) for k, v in matches.items()}
    score = round(sum(v * weights[k] / 100 for k, v in matches.items()))

    labels = {
        "industry": "industry",
        "location": "location",
        "employee_size": "company size",
        "revenue": "revenue",
    }
    reasons = []
    for key, match in matches.items():
        if match == 100:
            reasons.append(f"Matches target {labels[key]}")
        elif match == 50:
            reasons.append(f"Near target {labels[key]}")

    return {"score": score, "reasons": reasons, "breakdown": breakdown}
