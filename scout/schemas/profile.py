"""schemas/profile.py — the ICP and the entities the pipeline moves around.

Entities travel through phases and snapshots as plain dicts; these models
normalize collaborator output on the way in (Company.model_validate(raw).model_dump()).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

NATIONWIDE_SCOPES = {"nationwide", "all us", "united states", "remote"}


class Profile(BaseModel):
    """Ideal Customer Profile — immutable input to a mission."""

    model_config = ConfigDict(frozen=True)

    industries: list[str] = Field(default_factory=list)
    company_sizes: list[str] = Field(default_factory=list)
    revenue_ranges: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    location_scope: list[str] = Field(default_factory=list)
    nationwide: bool = False
    target_titles: list[str] = Field(default_factory=list)
    avoid_list: str = ""

    @property
    def is_nationwide(self) -> bool:
        if self.nationwide:
            return True
        return any(s.strip().lower() in NATIONWIDE_SCOPES for s in self.location_scope)

    @property
    def avoid_terms(self) -> list[str]:
        return [t.strip().lower() for t in self.avoid_list.split(",") if t.strip()]


class Company(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    industry: str | None = None
    employee_count: int | None = None
    location: str | None = None
    website: str | None = None
    founded_year: int | None = None
    revenue: str | None = None
    fit_score: int | None = Field(default=None, ge=0, le=100)
    match_score: int | None = Field(default=None, ge=0, le=100)
    match_reason: str | None = None


class CompanyRef(BaseModel):
    """Weak reference to a Company, denormalized for display and scoring."""

    id: str
    name: str
    employee_count: int | None = None
    industry: str | None = None
    match_score: int | None = None


class Contact(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    title: str | None = None
    seniority: str | None = None
    company: CompanyRef
    email: str | None = None
    email_status: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    location: str | None = None
    fit_score: int | None = Field(default=None, ge=0, le=100)
    fit_breakdown: dict[str, int] | None = None
    match_score: int | None = Field(default=None, ge=0, le=100)
    match_reason: str | None = None
    score_source: str | None = None
    rank: int | None = None
