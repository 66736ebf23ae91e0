"""Government-contracts adapter: NAICS-targeted opportunity search."""

import functools
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from leadscout.browser.session import AutomationSession
from leadscout.core.errors import ExtractionError
from leadscout.core.schemas import CandidateListing, CapabilityProfile
from leadscout.pipeline.valuation import ValueEstimator
from leadscout.platforms.base import SourceAdapter, coerce_listing, regional_floor
from leadscout.platforms.government.parser import GovernmentParser, is_posting_url
from leadscout.platforms.government.queries import (
    SERVICE_NAICS,
    SET_ASIDE_CODES,
    STATE_REGIONS,
    StateRegion,
    build_search_url,
    matched_services,
    naics_codes,
    resolve_states,
)
from leadscout.platforms.government.selectors import RESULT_SELECTORS

logger = logging.getLogger(__name__)

SOURCE_ID = "government"


class GovernmentContractsAdapter(SourceAdapter):
    """Searches active federal opportunities for the profile's trades.

    Award ceilings stated on a notice are passed through as confident values,
    so the pipeline does not re-estimate them.
    """

    def __init__(
        self,
        session: AutomationSession,
        estimator: ValueEstimator | None = None,
        *,
        service_naics: Mapping[str, tuple[str, ...]] = SERVICE_NAICS,
        state_regions: Sequence[StateRegion] = STATE_REGIONS,
        set_asides: Sequence[str] = SET_ASIDE_CODES,
        now: datetime | None = None,
    ) -> None:
        super().__init__(session, estimator)
        self._service_naics = service_naics
        self._state_regions = state_regions
        self._set_asides = set_asides
        self._now = now

    @property
    def source_id(self) -> str:
        return SOURCE_ID

    def is_posting_url(self, url: str) -> bool:
        return is_posting_url(url)

    async def search_leads(
        self,
        geography: str,
        profile: CapabilityProfile,
        max_results: int,
    ) -> list[CandidateListing]:
        """Run one filtered opportunity search and open each notice.

        Raises:
            SourceUnavailable: The search exhausted its retries.
        """
        codes = naics_codes(profile.services, self._service_naics)
        states, region_floor = resolve_states(geography, self._state_regions)
        floor = regional_floor(region_floor, profile)
        terms = matched_services(profile.services, self._service_naics)
        url = build_search_url(codes, states, self._set_asides)
        parser = GovernmentParser()

        logger.info("Searching opportunities: NAICS %s, states %s", ",".join(codes), ",".join(states))
        rows = await self._session.execute_with_retry(
            functools.partial(self._fetch_results, parser, url),
            "government opportunity search",
        )
        logger.info("Opportunity search returned %d notices", len(rows))

        results: list[CandidateListing] = []
        seen: set[str] = set()
        for row in rows:
            row_url = str(row.get("url", ""))
            if not self.is_posting_url(row_url):
                logger.warning("Rejected non-posting URL: %s", row_url)
                continue
            if row_url in seen:
                continue
            seen.add(row_url)

            try:
                listing = await self._fetch_detail(parser, row, terms)
            except ExtractionError as e:
                logger.warning("Skipping %s: %s", e.url, e)
                continue
            if listing is None:
                continue

            value = self.listing_value(listing)
            if value < floor:
                logger.debug("Dropping %s: value %.0f under floor %.0f", listing.url, value, floor)
                continue
            results.append(listing)

        return self.local_sort(results, max_results, self._now)

    async def _fetch_results(self, parser: GovernmentParser, url: str) -> list[dict[str, Any]]:
        page = self._session.page
        await page.goto(url, wait_until="domcontentloaded")
        for selector in RESULT_SELECTORS:
            cards = await page.query_selector_all(selector)
            if cards:
                logger.debug("Found %d notices with selector '%s'", len(cards), selector)
                return await parser.parse_results(cards)
        logger.warning("No opportunity results found")
        return []

    async def _fetch_detail(
        self,
        parser: GovernmentParser,
        row: dict[str, Any],
        terms: list[str],
    ) -> CandidateListing | None:
        url = str(row["url"])
        page = self._session.page
        try:
            await page.goto(url, wait_until="domcontentloaded")
            payload = await parser.parse_detail(page, row)
        except Exception as e:
            msg = f"notice extraction failed: {e}"
            raise ExtractionError(url, msg) from e
        return coerce_listing(payload, source=SOURCE_ID, search_terms=terms)
