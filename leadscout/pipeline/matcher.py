"""Filter chain for qualified leads.

Filter order:
  1. DeduplicationFilter - in-memory within a run, by listing URL
  2. QualityFilter       - spam indicators first, then the category value floor

The two QualityFilter rejection causes are logged and counted separately so
callers can tell why a lead was dropped, not only that it was.
"""

import logging
import re
from collections import Counter
from collections.abc import Callable
from enum import Enum

from leadscout.core.config import FilterConfig
from leadscout.core.schemas import QualifiedLead

logger = logging.getLogger(__name__)

# A filter is a callable that takes leads and returns a subset.
Filter = Callable[[list[QualifiedLead]], list[QualifiedLead]]


class FilterReason(str, Enum):
    SPAM = "spam"
    BELOW_FLOOR = "below_floor"


class QualityFilter:
    """Reject spam and leads whose value is under the category/geography floor."""

    def __init__(self, config: FilterConfig | None = None, geography: str = "") -> None:
        self._config = config or FilterConfig()
        self._geography = geography
        self._phrases = [p.lower().strip() for p in self._config.spam_phrases if p.strip()]
        self._pattern = re.compile(self._config.spam_pattern, re.IGNORECASE)
        self.rejections: Counter[FilterReason] = Counter()

    def __call__(self, leads: list[QualifiedLead]) -> list[QualifiedLead]:
        return [lead for lead in leads if self.passes(lead)]

    def passes(self, lead: QualifiedLead) -> bool:
        reason = self.check(lead)
        if reason is not None:
            self.rejections[reason] += 1
        return reason is None

    def check(self, lead: QualifiedLead) -> FilterReason | None:
        """Return why ``lead`` is rejected, or None if it passes."""
        listing = lead.listing
        text = f"{listing.title} {listing.description}"
        spam_hit = self.spam_indicator(text)
        if spam_hit is not None:
            logger.debug("Rejected as spam (%r): %s", spam_hit, listing.url)
            return FilterReason.SPAM

        floor = self.category_threshold(lead.category, listing.location or self._geography)
        if lead.estimated_value < floor:
            logger.debug(
                "Rejected below value floor (%.0f < %.0f, %s): %s",
                lead.estimated_value, floor, lead.category, listing.url,
            )
            return FilterReason.BELOW_FLOOR
        return None

    def spam_indicator(self, text: str) -> str | None:
        """Return the spam phrase or pattern match found in ``text``, if any."""
        lowered = text.lower()
        for phrase in self._phrases:
            if phrase in lowered:
                return phrase
        match = self._pattern.search(text)
        if match is not None:
            return match.group(0)
        return None

    def category_threshold(self, category: str, geography: str) -> float:
        """Minimum value for a category, scaled for high-cost metro clusters."""
        base = self._config.category_thresholds.get(
            category.lower(), self._config.default_threshold,
        )
        return base * self.geography_multiplier(geography)

    def geography_multiplier(self, geography: str) -> float:
        location = geography.lower()
        for cluster in self._config.geography_clusters:
            if any(city.lower() in location for city in cluster.cities):
                return cluster.multiplier
        return 1.0


class DeduplicationFilter:
    """Remove duplicate listing URLs within a single run, keeping the first seen.

    Stateful: tracks seen URLs across calls within the same filter instance.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __call__(self, leads: list[QualifiedLead]) -> list[QualifiedLead]:
        result: list[QualifiedLead] = []
        for lead in leads:
            key = normalize_url(lead.url)
            if key not in self._seen:
                self._seen.add(key)
                result.append(lead)
        deduped = len(leads) - len(result)
        if deduped:
            logger.debug("DeduplicationFilter: removed %d duplicates", deduped)
        return result


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/").lower()


def run_filter_chain(
    leads: list[QualifiedLead],
    filters: list[Filter],
) -> list[QualifiedLead]:
    """Apply filters in order, returning the surviving leads."""
    result = leads
    for f in filters:
        result = f(result)
    return result
