"""
conftest.py — Shared test fixtures for Scout

Provides an in-memory SQLite database, a PersistenceGateway bound to it,
fake collaborators, ICP profile fixtures and a FastAPI TestClient with the
gateway/collaborator dependencies overridden.

Business Rules:
- All tests run against an isolated in-memory DB
- No real network calls: every collaborator is a fake or an AsyncMock
- Each test function gets fresh tables

Called by: all test files via pytest autodiscovery
Depends on: scout.models (Base), scout.services.persistence, scout.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing scout modules
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scout.config import Settings
from scout.context import MissionContext
from scout.models import Base
from scout.schemas.profile import Profile
from scout.services.collaborators import Collaborators, validation_sample
from scout.services.analytics import discovery_distribution
from scout.services.persistence import PersistenceGateway

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def gateway() -> PersistenceGateway:
    return PersistenceGateway(TestSessionLocal)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        company_score_batch_size=2,
        ranking_batch_size=2,
        validation_sample_max=3,
    )


# ── Profiles and entities ────────────────────────────────────────────


@pytest.fixture()
def profile() -> Profile:
    return Profile(
        industries=["SaaS"],
        company_sizes=["51-200"],
        target_titles=["VP Sales"],
        locations=["Texas"],
        avoid_list="Globex, Initech",
    )


@pytest.fixture()
def nationwide_profile(profile) -> Profile:
    return profile.model_copy(update={"location_scope": ["All US"]})


def make_company(i: int, **kw) -> dict:
    base = {
        "id": f"c{i}",
        "name": f"Company {i}",
        "industry": "SaaS" if i % 2 == 0 else "Fintech",
        "employee_count": 50 + i * 10,
        "location": "Austin, Texas",
        "website": f"https://www.company{i}.com/about",
    }
    base.update(kw)
    return base


def make_person(company: dict, i: int = 0, **kw) -> dict:
    base = {
        "id": f"p-{company['id']}-{i}",
        "name": f"Person {i} at {company['name']}",
        "title": "VP Sales",
        "seniority": "vp",
        "company": {"id": company["id"], "name": company["name"]},
        "email": f"p{i}@example.com",
        "email_status": "verified",
        "phone": None,
        "linkedin_url": None,
        "location": "Austin, Texas",
    }
    base.update(kw)
    return base


# ── Fake collaborators ───────────────────────────────────────────────


class FakeCollaborators:
    """Deterministic stand-ins for the four external calls.

    scores maps company id -> AI score (missing ids are omitted, like a
    scorer skipping sub-60 companies). rank_scores does the same for contacts.
    """

    def __init__(self, companies=None, scores=None, rank_scores=None, people_per_company=2):
        self.companies = companies if companies is not None else [make_company(i) for i in range(10)]
        self.scores = scores if scores is not None else {
            c["id"]: 95 - i * 5 for i, c in enumerate(self.companies)
        }
        self.rank_scores = rank_scores
        self.people_per_company = people_per_company
        self.calls = {"discover": 0, "score": 0, "people": 0, "rank": 0}

    async def discover(self, profile):
        self.calls["discover"] += 1
        return {
            "companies": self.companies,
            "validation_sample": validation_sample(self.companies, Settings(_env_file=None, validation_sample_max=3, validation_sample_ratio=0.3)),
            "total_count": len(self.companies),
            "analytics": discovery_distribution(self.companies, profile),
        }

    async def score_companies(self, batch, profile, learning):
        self.calls["score"] += 1
        return [
            {"index": i, "score": self.scores[c["id"]], "reason": f"fit {self.scores[c['id']]}"}
            for i, c in enumerate(batch)
            if c["id"] in self.scores
        ]

    async def find_people(self, company, titles, limit):
        self.calls["people"] += 1
        return [make_person(company, i) for i in range(min(limit, self.people_per_company))]

    async def rank_contacts(self, batch, profile):
        self.calls["rank"] += 1
        scores = self.rank_scores or {}
        return [
            {"index": i, "score": scores.get(c["id"], 70), "reason": "ranked"}
            for i, c in enumerate(batch)
            if self.rank_scores is None or c["id"] in scores
        ]

    def bundle(self) -> Collaborators:
        return Collaborators(
            discover=self.discover,
            score_companies=self.score_companies,
            find_people=self.find_people,
            rank_contacts=self.rank_contacts,
        )


@pytest.fixture()
def fakes() -> FakeCollaborators:
    return FakeCollaborators()


@pytest.fixture()
async def mission_ctx(gateway, fakes, profile, test_settings) -> MissionContext:
    mission = await gateway.create_mission(profile.model_dump(), "user-1")
    return MissionContext(
        mission_id=mission["id"],
        user_id="user-1",
        profile=profile,
        settings=test_settings,
        gateway=gateway,
        collaborators=fakes.bundle(),
    )


# ── FastAPI client ───────────────────────────────────────────────────


@pytest.fixture()
def client(gateway, fakes):
    from scout.dependencies import get_collaborators, get_gateway
    from scout.main import app

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_collaborators] = lambda: fakes.bundle()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
