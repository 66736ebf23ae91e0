"""Government-contract query building: NAICS codes, set-asides, and states.

Pure functions and immutable tables, no browser dependency.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

OPPORTUNITIES_BASE = "https://sam.gov"
SEARCH_PATH = "/search/"

# Always searched: other building finishing contractors.
BASE_NAICS = "238390"
FEDERAL_DEFAULT_FLOOR = 10000.0

# Service keyword -> NAICS codes. Matched as substrings of profile services.
SERVICE_NAICS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "roof": ("238160",),
    "drywall": ("238310",),
    "paint": ("238320",),
    "floor": ("238330",),
    "electric": ("238210",),
    "plumb": ("238220",),
    "hvac": ("238220",),
    "commercial": ("236220",),
})

# NAICS -> service category, in priority order for multi-code notices.
NAICS_CATEGORIES: Mapping[str, str] = MappingProxyType({
    "238160": "roofing",
    "238310": "drywall",
    "238210": "electrical",
    "238220": "plumbing",
    "238320": "painting",
    "238330": "flooring",
})

SET_ASIDE_CODES: tuple[str, ...] = ("SBA", "8A", "HUBZONE", "SDVOSB", "WOSB")


@dataclass(frozen=True)
class StateRegion:
    code: str
    floor: float
    places: tuple[str, ...]


STATE_REGIONS: tuple[StateRegion, ...] = (
    StateRegion("OH", 3000.0, ("ohio", "cleveland", "akron", "columbus", "cincinnati", ", oh")),
    StateRegion("FL", 7000.0, ("florida", "miami", "fort lauderdale", "tampa", "orlando", ", fl")),
    StateRegion("CA", FEDERAL_DEFAULT_FLOOR, (
        "california", "san francisco", "oakland", "san jose", "los angeles", ", ca",
    )),
)
DEFAULT_STATES: tuple[str, ...] = ("OH", "FL")

_POSTING_PATH = re.compile(r"^/opp/[A-Za-z0-9]+/view/?$")


def naics_codes(
    services: Sequence[str],
    table: Mapping[str, tuple[str, ...]] = SERVICE_NAICS,
) -> list[str]:
    """NAICS codes for the profile's services, deduplicated, base code last."""
    codes: list[str] = []
    for service in services:
        s = service.lower()
        for keyword, mapped in table.items():
            if keyword in s:
                codes.extend(c for c in mapped if c not in codes)
    if BASE_NAICS not in codes:
        codes.append(BASE_NAICS)
    return codes


def matched_services(
    services: Sequence[str],
    table: Mapping[str, tuple[str, ...]] = SERVICE_NAICS,
) -> list[str]:
    """Profile services that map to at least one NAICS code."""
    return [s for s in services if any(keyword in s.lower() for keyword in table)]


def resolve_states(
    geography: str,
    regions: Sequence[StateRegion] = STATE_REGIONS,
) -> tuple[list[str], float]:
    """State codes and minimum value for a geography.

    Falls back to the default states with the federal floor.
    """
    location = geography.lower()
    matched = [r for r in regions if any(place in location for place in r.places)]
    if not matched:
        return list(DEFAULT_STATES), FEDERAL_DEFAULT_FLOOR
    return [r.code for r in matched], min(r.floor for r in matched)


def category_for_naics(
    codes: Sequence[str],
    table: Mapping[str, str] = NAICS_CATEGORIES,
) -> str:
    for code, category in table.items():
        if code in codes:
            return category
    return ""


def build_search_url(
    codes: Sequence[str],
    states: Sequence[str],
    set_asides: Sequence[str] = SET_ASIDE_CODES,
) -> str:
    """Active-opportunity search filtered by NAICS, set-aside, and state."""
    params: list[tuple[str, str]] = [
        ("index", "opp"),
        ("sort", "-modifiedDate"),
        ("sfm[status][is_active]", "true"),
    ]
    params += [
        (f"sfm[serviceClassificationWrapper][naics][{i}][key]", code)
        for i, code in enumerate(codes)
    ]
    params += [
        (f"sfm[typeOfSetAsideWrapper][typeOfSetAside][{i}][key]", code)
        for i, code in enumerate(set_asides)
    ]
    params += [
        (f"sfm[placeOfPerformance][state][{i}][key]", state)
        for i, state in enumerate(states)
    ]
    return f"{OPPORTUNITIES_BASE}{SEARCH_PATH}?{urlencode(params)}"


def notice_url(path_or_url: str) -> str:
    """Absolute opportunity URL for a relative ``/opp/<id>/view`` link."""
    if path_or_url.startswith("/"):
        return f"{OPPORTUNITIES_BASE}{path_or_url}"
    return path_or_url


def is_posting_path(path: str) -> bool:
    return bool(_POSTING_PATH.match(path))
