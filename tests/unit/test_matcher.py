"""Tests for the filter chain: spam, value floors, dedup, and chain order."""

import pytest

from leadscout.core.config import FilterConfig
from leadscout.core.schemas import CandidateListing, QualifiedLead
from leadscout.pipeline.matcher import (
    DeduplicationFilter,
    FilterReason,
    QualityFilter,
    normalize_url,
    run_filter_chain,
)


def _lead(
    *,
    url: str = "https://cleveland.craigslist.org/lbg/d/job/1.html",
    title: str = "Plumber needed for bathroom sink",
    description: str = "",
    category: str = "plumbing",
    value: float = 1000.0,
    location: str = "",
) -> QualifiedLead:
    listing = CandidateListing(
        source="classifieds",
        listing_id=url.rsplit("/", 1)[-1],
        url=url,
        title=title,
        description=description,
        location=location,
    )
    return QualifiedLead(
        listing=listing,
        category=category,
        recency_score=8,
        estimated_value=value,
        quality_score=70.0,
    )


# ---------------------------------------------------------------------------
# QualityFilter: spam
# ---------------------------------------------------------------------------


class TestSpam:
    def test_phrase_in_title(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        assert f.check(_lead(title="Work From Home roofing leads")) is FilterReason.SPAM

    def test_phrase_in_description(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        lead = _lead(description="You are paid in cash same day, text 18337368835")
        assert f.check(lead) is FilterReason.SPAM

    def test_cash_bonus_pattern(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        assert f.check(_lead(title="Drywall helpers $200 cash same day")) is FilterReason.SPAM
        assert f.check(_lead(title="$75 bonus immediately for roofers")) is FilterReason.SPAM

    def test_spam_checked_before_floor(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        lead = _lead(title="Make money fast", value=10.0)
        assert f.check(lead) is FilterReason.SPAM

    def test_spam_removed_regardless_of_value(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        assert f([_lead(title="Bitcoin roofing investors", value=50000.0)]) == []

    def test_spam_indicator_reports_match(self) -> None:
        f = QualityFilter()
        assert f.spam_indicator("great MLM opportunity") == "mlm"
        assert f.spam_indicator("Kitchen cabinets install") is None

    def test_custom_phrases(self) -> None:
        f = QualityFilter(FilterConfig(spam_phrases=["lottery"], spam_pattern=r"(?!x)x"))
        assert f.check(_lead(title="Win the lottery")) is FilterReason.SPAM
        assert f.check(_lead(title="Work from home")) is None


# ---------------------------------------------------------------------------
# QualityFilter: value floors
# ---------------------------------------------------------------------------


class TestValueFloor:
    def test_window_screen_below_exterior_floor(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        lead = _lead(title="Window screen repair", category="exterior", value=90.0)
        assert f.check(lead) is FilterReason.BELOW_FLOOR

    def test_at_floor_passes(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        assert f.check(_lead(category="exterior", value=150.0)) is None

    def test_unknown_category_uses_default(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        assert f.category_threshold("general", "Cleveland, OH") == 100.0
        assert f.check(_lead(category="general", value=99.0)) is FilterReason.BELOW_FLOOR

    def test_high_cost_metro_raises_floor(self) -> None:
        f = QualityFilter()
        assert f.category_threshold("plumbing", "San Francisco, CA") == pytest.approx(225.0)
        assert f.category_threshold("plumbing", "Miami, FL") == pytest.approx(187.5)
        assert f.category_threshold("plumbing", "Cleveland, OH") == 150.0

    def test_run_geography_applies_when_listing_has_no_location(self) -> None:
        f = QualityFilter(geography="Oakland, CA")
        assert f.check(_lead(category="plumbing", value=200.0)) is FilterReason.BELOW_FLOOR

    def test_listing_location_wins_over_run_geography(self) -> None:
        f = QualityFilter(geography="Oakland, CA")
        lead = _lead(category="plumbing", value=200.0, location="Parma, OH")
        assert f.check(lead) is None

    def test_survivors_meet_threshold(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        leads = [
            _lead(url=f"https://x.craigslist.org/d/{i}.html", category=cat, value=value)
            for i, (cat, value) in enumerate([
                ("roofing", 450.0), ("roofing", 900.0), ("drywall", 80.0),
                ("hvac", 299.0), ("electrical", 200.0), ("flooring", 10.0),
            ])
        ]
        survivors = f(leads)
        assert len(survivors) == 3
        for lead in survivors:
            assert lead.estimated_value >= f.category_threshold(lead.category, "Cleveland, OH")


class TestRejectionCounts:
    def test_counts_by_reason(self) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        f([
            _lead(url="https://a.craigslist.org/1.html", title="Free trial roofing"),
            _lead(url="https://a.craigslist.org/2.html", category="roofing", value=100.0),
            _lead(url="https://a.craigslist.org/3.html", category="roofing", value=120.0),
            _lead(url="https://a.craigslist.org/4.html", category="roofing", value=1200.0),
        ])
        assert f.rejections[FilterReason.SPAM] == 1
        assert f.rejections[FilterReason.BELOW_FLOOR] == 2

    def test_distinct_log_messages(self, caplog: pytest.LogCaptureFixture) -> None:
        f = QualityFilter(geography="Cleveland, OH")
        with caplog.at_level("DEBUG", logger="leadscout.pipeline.matcher"):
            f.check(_lead(title="Act now roofing"))
            f.check(_lead(category="roofing", value=10.0))
        messages = [r.getMessage() for r in caplog.records]
        assert any("spam" in m for m in messages)
        assert any("below value floor" in m for m in messages)


# ---------------------------------------------------------------------------
# DeduplicationFilter
# ---------------------------------------------------------------------------


class TestDeduplicationFilter:
    def test_removes_same_url(self) -> None:
        f = DeduplicationFilter()
        a = _lead(url="https://x.craigslist.org/d/1.html", title="first")
        b = _lead(url="https://X.craigslist.org/d/1.html/", title="second")
        result = f([a, b])
        assert [r.listing.title for r in result] == ["first"]

    def test_stateful_across_calls(self) -> None:
        f = DeduplicationFilter()
        f([_lead(url="https://x.craigslist.org/d/1.html")])
        assert f([_lead(url="https://x.craigslist.org/d/1.html")]) == []

    def test_normalize_url(self) -> None:
        assert normalize_url(" https://Sam.gov/opp/1/view/ ") == "https://sam.gov/opp/1/view"


class TestFilterChain:
    def test_empty_chain_passes_everything(self) -> None:
        leads = [_lead()]
        assert run_filter_chain(leads, []) == leads

    def test_chain_applies_in_order(self) -> None:
        dup = _lead(url="https://x.craigslist.org/d/2.html", value=1000.0)
        leads = [
            _lead(url="https://x.craigslist.org/d/1.html", value=10.0),
            dup,
            dup,
        ]
        quality = QualityFilter(geography="Cleveland, OH")
        result = run_filter_chain(leads, [DeduplicationFilter(), quality])
        assert result == [dup]
        assert quality.rejections[FilterReason.BELOW_FLOOR] == 1
