"""Government-contract DOM parser: result cards and notice pages into payloads."""

import logging
import re
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

from leadscout.pipeline.valuation import parse_dollar_amount
from leadscout.platforms.base import (
    ElementLike,
    first_attribute,
    first_text,
    parse_timestamp,
)
from leadscout.platforms.government.queries import (
    category_for_naics,
    is_posting_path,
    notice_url,
)
from leadscout.platforms.government.selectors import (
    DETAIL_DESCRIPTION_SELECTORS,
    DETAIL_NAICS_SELECTORS,
    DETAIL_OFFICER_EMAIL_SELECTORS,
    DETAIL_PLACE_SELECTORS,
    DETAIL_POSTED_SELECTORS,
    DETAIL_TITLE_SELECTORS,
    DETAIL_VALUE_SELECTORS,
    RESULT_LINK_SELECTORS,
    RESULT_NOTICE_ID_SELECTORS,
)

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%b %d, %Y %I:%M %p", "%b %d, %Y", "%B %d, %Y", "%m/%d/%Y")
_NAICS_CODE = re.compile(r"\b(\d{6})\b")
# Zone names are dropped; the published time is already local to the notice.
_ZONE_SUFFIX = re.compile(r"\s+(?:[ECMP][SD]T|UTC|GMT)$")


def is_posting_url(url: str) -> bool:
    """Only ``/opp/<id>/view`` notice pages count as individual postings."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.netloc.lower().endswith("sam.gov") and is_posting_path(parsed.path)


def parse_posted_date(text: str) -> datetime | None:
    """Parse the published date shown on a notice ("Jan 05, 2025" and friends)."""
    if not text or not text.strip():
        return None
    cleaned = " ".join(text.split())
    cleaned = _ZONE_SUFFIX.sub("", cleaned)
    absolute = parse_timestamp(cleaned)
    if absolute is not None:
        return absolute
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    logger.debug("Unrecognized posted date '%s'", text)
    return None


class GovernmentParser:
    """Parses opportunity search cards and notice detail pages."""

    async def parse_results(self, cards: list[ElementLike]) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for card in cards:
            try:
                payload = await self.parse_result(card)
            except Exception:
                logger.debug("Failed to parse result card, skipping", exc_info=True)
                continue
            if payload is not None:
                results.append(payload)
        return results

    async def parse_result(self, card: ElementLike) -> dict[str, Any] | None:
        href = await first_attribute(card, RESULT_LINK_SELECTORS, "href")
        if not href:
            return None
        url = notice_url(href.split("?")[0])
        notice_id = await first_text(card, RESULT_NOTICE_ID_SELECTORS)
        if not notice_id:
            parts = urlparse(url).path.strip("/").split("/")
            notice_id = parts[1] if len(parts) >= 2 else ""
        return {
            "id": notice_id,
            "url": url,
            "title": await first_text(card, RESULT_LINK_SELECTORS),
        }

    async def parse_detail(self, page: Any, row: dict[str, Any]) -> dict[str, Any]:
        """Merge the notice page's fields over the result-card payload.

        The award ceiling, when present, is a stated value and is passed
        through as ``estimated_value``.
        """
        value_text = await first_text(page, DETAIL_VALUE_SELECTORS)
        email = await first_text(page, DETAIL_OFFICER_EMAIL_SELECTORS)
        naics_text = await first_text(page, DETAIL_NAICS_SELECTORS)
        codes = _NAICS_CODE.findall(naics_text)

        return {
            **row,
            "title": await first_text(page, DETAIL_TITLE_SELECTORS) or row.get("title", ""),
            "description": await first_text(page, DETAIL_DESCRIPTION_SELECTORS),
            "compensation": value_text,
            "estimated_value": parse_dollar_amount(value_text),
            "contact": f"Email: {email}" if email else "",
            "location": await first_text(page, DETAIL_PLACE_SELECTORS),
            "posted_at": parse_posted_date(await first_text(page, DETAIL_POSTED_SELECTORS)),
            "category": category_for_naics(codes),
        }
