"""Tests for the shared adapter layer: payload coercion, timestamps, DOM helpers."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from leadscout.core.schemas import CandidateListing, CapabilityProfile
from leadscout.platforms.base import (
    SourceAdapter,
    coerce_listing,
    find_first,
    first_attribute,
    first_text,
    parse_timestamp,
    regional_floor,
)

NOW = datetime(2025, 1, 10, 12, 0, 0)


class DummyAdapter(SourceAdapter):
    @property
    def source_id(self) -> str:
        return "dummy"

    def is_posting_url(self, url: str) -> bool:
        return True

    async def search_leads(self, geography, profile, max_results):  # type: ignore[no-untyped-def]
        return []


def _element(text: str | None = None, attrs: dict[str, str] | None = None) -> AsyncMock:
    el = AsyncMock()
    el.text_content = AsyncMock(return_value=text)
    el.get_attribute = AsyncMock(side_effect=lambda name: (attrs or {}).get(name))
    return el


def _parent(mapping: dict[str, AsyncMock | Exception]) -> AsyncMock:
    parent = AsyncMock()

    async def query_selector(selector: str) -> AsyncMock | None:
        found = mapping.get(selector)
        if isinstance(found, Exception):
            raise found
        return found

    parent.query_selector = AsyncMock(side_effect=query_selector)
    return parent


# ---------------------------------------------------------------------------
# coerce_listing
# ---------------------------------------------------------------------------


class TestCoerceListing:
    def test_full_payload(self) -> None:
        listing = coerce_listing(
            {
                "url": "https://sam.gov/opp/abc123/view",
                "id": "W91-25-R-0001",
                "title": "Roof Replacement\nBuilding 12",
                "description": "  Replace   the roof\n on building 12. ",
                "compensation": "$250,000",
                "posted_at": "2025-01-05T10:00:00Z",
                "contact": "Email: co@agency.gov",
                "location": "Columbus, OH",
                "category": "roofing",
                "estimated_value": 250000,
            },
            source="government",
            search_terms=["roofing"],
        )
        assert listing is not None
        assert listing.listing_id == "W91-25-R-0001"
        assert listing.title == "Roof Replacement"
        assert listing.description == "Replace the roof on building 12."
        assert listing.posted_at == datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc)
        assert listing.category_hint == "roofing"
        assert listing.search_terms == ["roofing"]
        assert listing.estimated_value == 250000.0

    @pytest.mark.parametrize(
        "payload",
        [
            {"title": "Roof job"},
            {"url": "https://x.craigslist.org/1.html"},
            {"url": "   ", "title": "Roof job"},
            {"url": "https://x.craigslist.org/1.html", "title": None},
        ],
    )
    def test_missing_required_fields(self, payload: dict) -> None:  # type: ignore[type-arg]
        assert coerce_listing(payload, source="classifieds") is None

    def test_optional_fields_fall_back(self) -> None:
        listing = coerce_listing(
            {"url": "https://cleveland.craigslist.org/lbg/d/roof/7712345678.html", "title": "Roof"},
            source="classifieds",
            category_hint="roofing",
        )
        assert listing is not None
        assert listing.listing_id == "7712345678.html"
        assert listing.description == ""
        assert listing.posted_at is None
        assert listing.category_hint == "roofing"
        assert listing.estimated_value is None

    @pytest.mark.parametrize("value", ["not a number", -5, 0, True, None])
    def test_unusable_value_dropped(self, value: object) -> None:
        listing = coerce_listing(
            {"url": "https://sam.gov/opp/1/view", "title": "Notice", "estimated_value": value},
            source="government",
        )
        assert listing is not None
        assert listing.estimated_value is None


class TestParseTimestamp:
    def test_passthrough(self) -> None:
        assert parse_timestamp(NOW) is NOW

    def test_zulu(self) -> None:
        assert parse_timestamp("2025-01-05T10:00:00Z") == datetime(
            2025, 1, 5, 10, 0, tzinfo=timezone.utc,
        )

    def test_offset_without_colon(self) -> None:
        parsed = parse_timestamp("2025-01-09T18:30:00-0500")
        assert parsed is not None
        assert parsed.utcoffset() == timedelta(hours=-5)

    @pytest.mark.parametrize("value", ["", "yesterday", None, 12345])
    def test_unparseable(self, value: object) -> None:
        assert parse_timestamp(value) is None


# ---------------------------------------------------------------------------
# Adapter helpers
# ---------------------------------------------------------------------------


class TestAdapterHelpers:
    def test_regional_floor_takes_lower(self) -> None:
        profile = CapabilityProfile(
            account_id="a", services=["roofing"], geography="Miami, FL",
            minimum_project_value=2500,
        )
        assert regional_floor(7000.0, profile) == 2500.0
        assert regional_floor(1000.0, profile) == 1000.0

    def test_local_sort_by_recency_times_value(self) -> None:
        adapter = DummyAdapter(MagicMock())

        def listing(lid: str, hours: float, value: float) -> CandidateListing:
            return CandidateListing(
                source="dummy", listing_id=lid, url=f"https://x.org/{lid}", title=lid,
                posted_at=NOW - timedelta(hours=hours), estimated_value=value,
            )

        listings = [
            listing("fresh-small", 1, 1000.0),     # 10 * 1000
            listing("old-big", 200, 9000.0),       # 3 * 9000
            listing("mid", 24, 2000.0),            # 8 * 2000
        ]
        ranked = adapter.local_sort(listings, 2, now=NOW)
        assert [c.listing_id for c in ranked] == ["old-big", "mid"]

    def test_listing_value_estimates_when_unstated(self) -> None:
        adapter = DummyAdapter(MagicMock())
        listing = CandidateListing(
            source="dummy", listing_id="1", url="https://x.org/1", title="Kitchen remodel",
        )
        assert adapter.listing_value(listing) == 15000.0


class TestDomHelpers:
    async def test_find_first_skips_missing_and_raising(self) -> None:
        target = _element("hit")
        parent = _parent({".broken": RuntimeError("detached"), ".ok": target})
        assert await find_first(parent, (".missing", ".broken", ".ok")) is target

    async def test_first_text_strips(self) -> None:
        parent = _parent({".title": _element("  Roof job \n")})
        assert await first_text(parent, (".title",)) == "Roof job"

    async def test_first_text_empty_when_absent(self) -> None:
        assert await first_text(_parent({}), (".title",)) == ""

    async def test_first_attribute(self) -> None:
        parent = _parent({"a": _element(attrs={"href": " /opp/1/view "})})
        assert await first_attribute(parent, ("a",), "href") == "/opp/1/view"
        assert await first_attribute(parent, ("a",), "data-pid") == ""
