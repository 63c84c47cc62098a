"""Tests for the deterministic contact and company scoring."""

import pytest

from scout.schemas.profile import Profile
from scout.services.score_engine import (
    DEFAULT_WEIGHTS,
    band_bucket,
    in_size_band,
    parse_size_band,
    score_company,
    score_contact,
    size_bucket,
    validate_weights,
)


@pytest.fixture()
def icp():
    return Profile(industries=["SaaS"], company_sizes=["51-200"], target_titles=["VP Sales"])


def _contact(**kw):
    contact = {
        "title": "VP Sales",
        "company": {"name": "Acme Cloud", "industry": "SaaS", "employee_count": 125},
        "email": "vp@acme.io",
        "linkedin_url": None,
        "phone": None,
        "location": "Denver, Colorado",
    }
    contact.update(kw)
    return contact


# ── Reference fixture ────────────────────────────────────────────────


def test_reference_contact_without_location_scores_80(icp):
    result = score_contact(_contact(), icp)
    assert result["score"] == 80
    assert result["breakdown"] == {
        "title": 25,
        "industry": 20,
        "size": 20,
        "location": 0,
        "avoid_list": 10,
        "data_completeness": 5,
    }


def test_reference_contact_nationwide_scores_95(icp):
    nationwide = icp.model_copy(update={"location_scope": ["All US"]})
    assert score_contact(_contact(), nationwide)["score"] == 95


def test_nationwide_flag_counts_as_scope(icp):
    assert score_contact(_contact(), icp.model_copy(update={"nationwide": True}))["score"] == 95


def test_location_overlap_with_target_state(icp):
    texas = icp.model_copy(update={"locations": ["Texas"]})
    result = score_contact(_contact(location="Austin, Texas"), texas)
    assert result["breakdown"]["location"] == 15


# ── Individual criteria ──────────────────────────────────────────────


def test_title_exact_is_case_insensitive(icp):
    assert score_contact(_contact(title="vp sales"), icp)["breakdown"]["title"] == 25


def test_title_substring_overlap_scores_partial(icp):
    assert score_contact(_contact(title="Senior VP Sales, EMEA"), icp)["breakdown"]["title"] == 20


def test_title_no_overlap_scores_zero(icp):
    assert score_contact(_contact(title="Office Manager"), icp)["breakdown"]["title"] == 0


def test_missing_target_titles_contribute_nothing():
    profile = Profile(industries=["SaaS"], company_sizes=["51-200"])
    assert score_contact(_contact(), profile)["breakdown"]["title"] == 0


def test_size_band_bounds_are_inclusive(icp):
    for n in (51, 200):
        company = {"name": "Acme", "industry": "SaaS", "employee_count": n}
        assert score_contact(_contact(company=company), icp)["breakdown"]["size"] == 20
    company = {"name": "Acme", "industry": "SaaS", "employee_count": 201}
    assert score_contact(_contact(company=company), icp)["breakdown"]["size"] == 0


def test_avoid_list_hit_zeroes_criterion(icp):
    avoid = icp.model_copy(update={"avoid_list": "globex, acme"})
    result = score_contact(_contact(), avoid)
    assert result["breakdown"]["avoid_list"] == 0
    assert "Company in avoid list" in result["details"]


def test_data_completeness_all_channels(icp):
    result = score_contact(
        _contact(linkedin_url="https://linkedin.com/in/vp", phone="+15125550100"), icp
    )
    assert result["breakdown"]["data_completeness"] == 10


def test_company_score_passes_through(icp):
    assert score_contact(_contact(), icp, company_score=88)["company_score"] == 88


@pytest.mark.parametrize(
    "contact",
    [
        {},
        {"title": None, "company": None},
        {"title": "CEO", "company": {"name": "", "industry": "Retail", "employee_count": "n/a"}},
        {"title": "VP Sales", "email": "a@b.c", "phone": "1", "linkedin_url": "x",
         "company": {"name": "Acme", "industry": "SaaS", "employee_count": 100}},
    ],
)
def test_score_is_sum_of_breakdown_and_bounded(contact):
    profile = Profile(
        industries=["SaaS"], company_sizes=["51-200"], target_titles=["VP Sales"], nationwide=True
    )
    result = score_contact(contact, profile)
    assert result["score"] == sum(result["breakdown"].values())
    assert 0 <= result["score"] <= 100


# ── Size bands ───────────────────────────────────────────────────────


def test_parse_size_band():
    assert parse_size_band("51-200") == (51, 200)
    assert parse_size_band("1,000+") == (1000, None)
    assert parse_size_band("lots") is None


def test_open_ended_band():
    assert in_size_band(5000, "1000+")
    assert not in_size_band(None, "1-10")


def test_size_bucket_edges():
    assert size_bucket(10) == "1-10"
    assert size_bucket(11) == "11-50"
    assert size_bucket(1000) == "501-1000"
    assert size_bucket(1001) == "1000+"
    assert size_bucket(None) == "1-10"


# ── Company fit ──────────────────────────────────────────────────────


def test_company_full_match():
    profile = Profile(
        industries=["SaaS"], company_sizes=["51-200"], revenue_ranges=["$10M-$20M"], nationwide=True
    )
    company = {"industry": "SaaS", "employee_count": 120, "revenue": "$10M-$20M", "location": "Austin, TX"}
    result = score_company(company, profile)
    assert result["score"] == 100
    assert result["breakdown"] == {"industry": 50, "location": 25, "employee_size": 15, "revenue": 10}


def test_company_adjacent_size_gets_half_credit():
    profile = Profile(industries=["SaaS"], company_sizes=["51-200"])
    company = {"industry": "SaaS", "employee_count": 300, "location": "Boise, Idaho"}
    result = score_company(company, profile)
    # industry 50 + size 15 * 0.5
    assert result["score"] == 58
    assert "Near target company size" in result["reasons"]


def test_company_location_matches_state_part():
    profile = Profile(industries=["SaaS"], locations=["Texas"])
    company = {"industry": "Retail", "location": "Austin, Texas"}
    assert score_company(company, profile)["breakdown"]["location"] == 25


def test_default_weights_sum_to_100():
    assert validate_weights(DEFAULT_WEIGHTS)
    assert not validate_weights({"industry": 60, "location": 60})
    assert not validate_weights({"industry": 50, "location": 25, "employee_size": 15, "funding": 10})


def test_company_custom_weights_are_applied():
    profile = Profile(industries=["SaaS"])
    weights = {"industry": 70, "location": 10, "employee_size": 10, "revenue": 10}
    result = score_company({"industry": "SaaS"}, profile, weights)
    assert result["score"] == 70
    assert result["breakdown"]["industry"] == 70


def test_company_invalid_weights_rejected():
    with pytest.raises(ValueError):
        score_company({"industry": "SaaS"}, Profile(industries=["SaaS"]), {"industry": 100})


def test_band_bucket():
    assert band_bucket("51-200") == "51-200"
    assert band_bucket("1000+") == "1000+"
    assert band_bucket("1,000+") == "1000+"
    assert band_bucket("10+") == "1-10"
    assert band_bucket("?") is None
