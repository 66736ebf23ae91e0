"""Abstract base class and shared helpers for source adapters.

Everything read off a page is untrusted: adapters collect plain dicts and
pass them through coerce_listing() so nothing loosely typed leaves this layer.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from leadscout.browser.session import AutomationSession
from leadscout.core.schemas import CandidateListing, CapabilityProfile
from leadscout.pipeline.recency import recency_score
from leadscout.pipeline.valuation import ValueEstimator

logger = logging.getLogger(__name__)

_OFFSET_NO_COLON = re.compile(r"([+-]\d{2})(\d{2})$")


@runtime_checkable
class ElementLike(Protocol):
    """Minimal element interface so tests can use AsyncMock instead of patchright."""

    async def query_selector(self, selector: str) -> "ElementLike | None": ...
    async def get_attribute(self, name: str) -> str | None: ...
    async def text_content(self) -> str | None: ...


class SourceAdapter(ABC):
    """Base class that every listing source must implement.

    Adapters drive the page owned by the run's AutomationSession and return
    CandidateListings; they never score or persist.
    """

    def __init__(
        self,
        session: AutomationSession,
        estimator: ValueEstimator | None = None,
    ) -> None:
        self._session = session
        self._estimator = estimator or ValueEstimator()

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Unique identifier for this source (e.g. 'classifieds')."""

    @abstractmethod
    def is_posting_url(self, url: str) -> bool:
        """True only for an individual posting, never a search/listing page."""

    @abstractmethod
    async def search_leads(
        self,
        geography: str,
        profile: CapabilityProfile,
        max_results: int,
    ) -> list[CandidateListing]:
        """Query the source and return at most ``max_results`` raw candidates."""

    def listing_value(self, listing: CandidateListing) -> float:
        """Confident source value when present, otherwise the heuristic estimate."""
        if listing.estimated_value is not None:
            return listing.estimated_value
        return self._estimator.estimate(
            f"{listing.title} {listing.description}", listing.raw_compensation,
        )

    def local_sort(
        self,
        listings: list[CandidateListing],
        max_results: int,
        now: datetime | None = None,
    ) -> list[CandidateListing]:
        """Order by recency x value, highest first, and cap to ``max_results``."""
        ranked = sorted(
            listings,
            key=lambda c: recency_score(c.posted_at, now) * self.listing_value(c),
            reverse=True,
        )
        return ranked[:max_results]


def regional_floor(region_floor: float, profile: CapabilityProfile) -> float:
    """Adapter-local minimum value: the lower of the region's floor and the profile's."""
    return min(region_floor, profile.minimum_project_value)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce an ISO-8601 string (``Z`` and ``-0400`` offsets allowed) or datetime."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _OFFSET_NO_COLON.sub(r"\1:\2", text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def coerce_listing(
    payload: Mapping[str, Any],
    *,
    source: str,
    search_terms: Sequence[str] = (),
    category_hint: str = "",
) -> CandidateListing | None:
    """Validate an extraction payload into a CandidateListing.

    Returns None when the URL or title is missing or the payload is unusable.
    Every optional field falls back to an empty value rather than failing.
    """
    url = _text(payload.get("url"))
    title = _text(payload.get("title")).split("\n")[0].strip()
    if not url or not title:
        logger.debug("Payload missing url/title, skipping: %r", dict(payload))
        return None

    try:
        return CandidateListing(
            source=source,
            listing_id=_text(payload.get("id")) or url.rstrip("/").rsplit("/", 1)[-1],
            url=url,
            title=title,
            description=" ".join(_text(payload.get("description")).split()),
            raw_compensation=_text(payload.get("compensation")),
            posted_at=parse_timestamp(payload.get("posted_at")),
            contact=_text(payload.get("contact")),
            location=_text(payload.get("location")),
            category_hint=_text(payload.get("category")) or category_hint,
            search_terms=list(search_terms),
            estimated_value=_positive_float(payload.get("estimated_value")),
        )
    except ValidationError:
        logger.debug("Payload failed validation for %s", url, exc_info=True)
        return None


# --- DOM helpers ---


async def find_first(parent: Any, selectors: tuple[str, ...]) -> Any | None:
    """Return the first element matching any selector in order."""
    for selector in selectors:
        try:
            el = await parent.query_selector(selector)
            if el is not None:
                return el
        except Exception:
            logger.debug("Selector '%s' raised, trying next", selector, exc_info=True)
    return None


async def first_text(parent: Any, selectors: tuple[str, ...]) -> str:
    """Try selectors in order, return first non-empty text or ""."""
    el = await find_first(parent, selectors)
    if el is None:
        return ""
    try:
        text = await el.text_content()
    except Exception:
        logger.debug("text_content failed", exc_info=True)
        return ""
    return text.strip() if text else ""


async def first_attribute(parent: Any, selectors: tuple[str, ...], name: str) -> str:
    el = await find_first(parent, selectors)
    if el is None:
        return ""
    try:
        value = await el.get_attribute(name)
    except Exception:
        logger.debug("get_attribute(%s) failed", name, exc_info=True)
        return ""
    return value.strip() if value else ""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _positive_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
