"""Classified-ads adapter: wires query tables, parser, and the session page."""

import functools
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from leadscout.browser.session import AutomationSession
from leadscout.core.errors import ExtractionError
from leadscout.core.schemas import CandidateListing, CapabilityProfile
from leadscout.pipeline.recency import hours_since
from leadscout.pipeline.valuation import ValueEstimator
from leadscout.platforms.base import SourceAdapter, coerce_listing, regional_floor
from leadscout.platforms.classifieds.parser import ClassifiedsParser, is_posting_url
from leadscout.platforms.classifieds.queries import (
    FALLBACK_SERVICE,
    REGIONS,
    SERVICE_QUERIES,
    Region,
    SearchQuery,
    ServiceQuery,
    build_queries,
    build_search_url,
    resolve_region,
)
from leadscout.platforms.classifieds.selectors import ROW_SELECTORS

logger = logging.getLogger(__name__)

SOURCE_ID = "classifieds"


class ClassifiedsAdapter(SourceAdapter):
    """Searches local classified-ads sections for contractor gigs.

    Requires an initialized AutomationSession; the page is taken from it on
    every call so the adapter never holds a stale page.
    """

    def __init__(
        self,
        session: AutomationSession,
        estimator: ValueEstimator | None = None,
        *,
        service_queries: Mapping[str, ServiceQuery] = SERVICE_QUERIES,
        regions: Sequence[Region] = REGIONS,
        now: datetime | None = None,
    ) -> None:
        super().__init__(session, estimator)
        self._service_queries = service_queries
        self._regions = regions
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
        """Run one query per offered service and return the best postings.

        Raises:
            SourceUnavailable: A section search exhausted its retries.
        """
        region = resolve_region(geography, self._regions)
        floor = regional_floor(region.floor, profile)
        parser = ClassifiedsParser(region.site, self._now)
        queries = build_queries(profile.services, region.site, self._service_queries)

        results: list[CandidateListing] = []
        seen: set[str] = set()

        for query in queries:
            url = build_search_url(query)
            logger.info("Searching %s/%s for %s", region.site, query.section, query.category)
            rows = await self._session.execute_with_retry(
                functools.partial(self._fetch_rows, parser, url),
                f"classifieds search: {region.site} {query.section}",
            )
            logger.info("%s/%s: %d rows", region.site, query.section, len(rows))

            for row in rows:
                row_url = str(row.get("url", ""))
                if not self.is_posting_url(row_url):
                    logger.warning("Rejected non-posting URL: %s", row_url)
                    continue
                if row_url in seen:
                    continue
                seen.add(row_url)

                try:
                    listing = await self._fetch_detail(parser, row, query)
                except ExtractionError as e:
                    logger.warning("Skipping %s: %s", e.url, e)
                    continue
                if listing is None or not self._keep(listing, query, floor):
                    continue
                results.append(listing)

            if len(results) >= max_results:
                break

        return self.local_sort(results, max_results, self._now)

    def _keep(self, listing: CandidateListing, query: SearchQuery, floor: float) -> bool:
        if listing.posted_at is not None:
            age = hours_since(listing.posted_at, self._now)
            if age > query.max_age_hours:
                logger.debug(
                    "Dropping %s: %.0fh old (max %dh)", listing.url, age, query.max_age_hours,
                )
                return False
        value = self.listing_value(listing)
        if value < floor:
            logger.debug("Dropping %s: value %.0f under region floor %.0f", listing.url, value, floor)
            return False
        return True

    async def _fetch_rows(self, parser: ClassifiedsParser, url: str) -> list[dict[str, Any]]:
        page = self._session.page
        await page.goto(url, wait_until="domcontentloaded")
        for selector in ROW_SELECTORS:
            rows = await page.query_selector_all(selector)
            if rows:
                logger.debug("Found %d rows with selector '%s'", len(rows), selector)
                return await parser.parse_rows(rows)
        logger.warning("No result rows found at %s", url)
        return []

    async def _fetch_detail(
        self,
        parser: ClassifiedsParser,
        row: dict[str, Any],
        query: SearchQuery,
    ) -> CandidateListing | None:
        """Open the posting page and build a listing from row + detail fields.

        Raises:
            ExtractionError: Navigation or extraction failed for this posting.
        """
        url = str(row["url"])
        page = self._session.page
        try:
            await page.goto(url, wait_until="domcontentloaded")
            payload = await parser.parse_detail(page, row)
        except Exception as e:
            msg = f"detail extraction failed: {e}"
            raise ExtractionError(url, msg) from e

        return coerce_listing(
            payload,
            source=SOURCE_ID,
            search_terms=query.terms,
            category_hint="" if query.category == FALLBACK_SERVICE else query.category,
        )
