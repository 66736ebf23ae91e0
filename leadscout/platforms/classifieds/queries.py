"""Classified-ads query building: service terms, sections, and regions.

Pure functions and immutable tables, no browser dependency. Tables are
module defaults; the adapter accepts replacements through its constructor.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from urllib.parse import quote_plus, urlencode

logger = logging.getLogger(__name__)

CLASSIFIEDS_DOMAIN = "craigslist.org"

# Sections: lbg = labor gigs, trd = skilled trades, ggg = general gigs
LABOR_GIGS = "lbg"
SKILLED_TRADES = "trd"
GENERAL_GIGS = "ggg"

FALLBACK_SERVICE = "general"
DEFAULT_REGION_FLOOR = 3000.0


@dataclass(frozen=True)
class ServiceQuery:
    """How one service category is searched: section, freshness window, and terms."""

    section: str
    max_age_hours: int
    terms: tuple[str, ...]


@dataclass(frozen=True)
class Region:
    """A geography cluster with its site slug and minimum project value."""

    name: str
    site: str
    floor: float
    places: tuple[str, ...]


@dataclass(frozen=True)
class SearchQuery:
    site: str
    section: str
    category: str
    max_age_hours: int
    terms: tuple[str, ...]


# Primary categories get the tighter, higher-yield labor-gigs section.
SERVICE_QUERIES: Mapping[str, ServiceQuery] = MappingProxyType({
    "roofing": ServiceQuery(LABOR_GIGS, 48, (
        "roofing contractor needed",
        "roofer wanted",
        "roof repair contractor",
        "roofing crew needed",
        "metal roofing contractor",
        "commercial roofing contractor",
    )),
    "drywall": ServiceQuery(LABOR_GIGS, 48, (
        "drywall contractor needed",
        "drywall finisher wanted",
        "drywall expert needed",
        "drywall installer required",
        "drywall repair contractor",
    )),
    "electrical": ServiceQuery(SKILLED_TRADES, 72, (
        "electrical contractor needed", "electrician wanted",
    )),
    "plumbing": ServiceQuery(SKILLED_TRADES, 72, (
        "plumbing contractor wanted", "plumber needed",
    )),
    "hvac": ServiceQuery(SKILLED_TRADES, 72, (
        "hvac contractor required", "heating cooling contractor",
    )),
    "painting": ServiceQuery(SKILLED_TRADES, 72, (
        "painting contractor needed", "painter wanted",
    )),
    "flooring": ServiceQuery(SKILLED_TRADES, 72, (
        "flooring contractor wanted", "flooring installer",
    )),
    "carpentry": ServiceQuery(SKILLED_TRADES, 72, (
        "carpenter needed", "finish carpentry",
    )),
    "concrete": ServiceQuery(GENERAL_GIGS, 96, (
        "concrete contractor needed", "concrete work",
    )),
    "exterior": ServiceQuery(GENERAL_GIGS, 96, (
        "siding contractor", "fence repair",
    )),
    "general": ServiceQuery(GENERAL_GIGS, 96, (
        "general contractor needed", "handyman services",
    )),
})

REGIONS: tuple[Region, ...] = (
    Region("cleveland", "cleveland", 3000.0, (
        "cleveland", "ohio", "akron", "canton", "elyria", "lorain", "mentor",
        "lakewood", "parma", "westlake", "medina", "cuyahoga falls",
    )),
    Region("miami", "miami", 7000.0, (
        "miami", "florida", "fort lauderdale", "hollywood", "pompano beach",
        "coral springs", "boca raton", "hialeah", "coral gables", "doral",
    )),
    Region("bay_area", "sfbay", 5000.0, (
        "san francisco", "oakland", "berkeley", "san jose", "palo alto",
        "fremont", "bay area",
    )),
)


def resolve_region(geography: str, regions: Sequence[Region] = REGIONS) -> Region:
    """Match a geography string to a region, or derive one from the city name."""
    location = geography.lower()
    for region in regions:
        if any(place in location for place in region.places):
            return region

    city = location.split(",")[0]
    site = re.sub(r"[^a-z]", "", city) or "cleveland"
    logger.info("No region cluster for '%s', using site '%s'", geography, site)
    return Region(name=site, site=site, floor=DEFAULT_REGION_FLOOR, places=(city.strip(),))


def build_queries(
    services: Sequence[str],
    site: str,
    table: Mapping[str, ServiceQuery] = SERVICE_QUERIES,
) -> list[SearchQuery]:
    """One query per distinct service category the profile offers.

    A service matches a table key when either contains the other or the
    service contains the key's stem, so "roof repair" and "roofing" both
    select the roofing query. When nothing
    matches, the general-gigs query is used.
    """
    queries: list[SearchQuery] = []
    seen: set[str] = set()
    for service in services:
        key = _match_service(service, table)
        if key is None:
            logger.warning("Unknown service '%s' - no classifieds query", service)
            continue
        if key in seen:
            continue
        seen.add(key)
        entry = table[key]
        queries.append(SearchQuery(site, entry.section, key, entry.max_age_hours, entry.terms))

    if not queries and FALLBACK_SERVICE in table:
        entry = table[FALLBACK_SERVICE]
        queries.append(
            SearchQuery(site, entry.section, FALLBACK_SERVICE, entry.max_age_hours, entry.terms),
        )
    return queries


def build_search_url(query: SearchQuery) -> str:
    """Build the section search URL; terms are OR-ed as quoted phrases."""
    expression = " | ".join(f'"{term}"' for term in query.terms)
    params = {"query": expression, "sort": "date"}
    return (
        f"https://{query.site}.{CLASSIFIEDS_DOMAIN}/search/{query.section}"
        f"?{urlencode(params, quote_via=quote_plus)}"
    )


def _match_service(service: str, table: Mapping[str, ServiceQuery]) -> str | None:
    s = service.lower().strip()
    if s in table:
        return s
    for key in table:
        if key in s or s in key or key.removesuffix("ing") in s:
            return key
    return None
