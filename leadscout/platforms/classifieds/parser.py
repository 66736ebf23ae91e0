"""Classified-ads DOM parser: search rows and posting pages into raw payloads.

Payloads are plain dicts handed to coerce_listing(); missing optional fields
come back as "" (never crash). Relative posting times are resolved here, so
downstream scoring only ever sees absolute timestamps.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlparse, urlunparse

from leadscout.platforms.base import (
    ElementLike,
    find_first,
    first_attribute,
    first_text,
    parse_timestamp,
)
from leadscout.platforms.classifieds.queries import CLASSIFIEDS_DOMAIN
from leadscout.platforms.classifieds.selectors import (
    DETAIL_BODY_SELECTORS,
    DETAIL_COMPENSATION_SELECTORS,
    DETAIL_CONTACT_SELECTORS,
    DETAIL_LOCATION_SELECTORS,
    DETAIL_TIME_SELECTORS,
    DETAIL_TITLE_SELECTORS,
    ROW_ID_ATTR,
    ROW_LINK_SELECTORS,
    ROW_LOCATION_SELECTORS,
    ROW_PRICE_SELECTORS,
    ROW_TIME_SELECTORS,
    ROW_TITLE_SELECTORS,
)

logger = logging.getLogger(__name__)

REPLY_BUTTON_CONTACT = "Craigslist reply button"

_RELATIVE_TIME = re.compile(r"(\d+)\s*(minute|min|hour|hr|day)s?\b", re.IGNORECASE)
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
_COMPENSATION_LABEL = re.compile(r"^\s*compensation\s*:\s*", re.IGNORECASE)
_POSTING_ID = re.compile(r"/(\d{6,})\.html")


def is_posting_url(url: str) -> bool:
    """Individual postings live on the classifieds domain and are never /search/ pages."""
    if not url:
        return False
    host = urlparse(url).netloc.lower()
    return host.endswith(CLASSIFIEDS_DOMAIN) and "/search/" not in url


def parse_posting_time(text: str, now: datetime | None = None) -> datetime | None:
    """Resolve an absolute or relative ("2 hours ago") posting time.

    Unparseable input returns None rather than guessing.
    """
    if not text or not text.strip():
        return None
    absolute = parse_timestamp(text)
    if absolute is not None:
        return absolute

    match = _RELATIVE_TIME.search(text)
    if match is None or "ago" not in text.lower():
        return None
    amount = int(match.group(1))
    unit = match.group(2).lower()
    if unit in ("minute", "min"):
        delta = timedelta(minutes=amount)
    elif unit in ("hour", "hr"):
        delta = timedelta(hours=amount)
    else:
        delta = timedelta(days=amount)
    return (now or datetime.now()) - delta


def contact_method(contact: str, body: str = "") -> str:
    """Normalize contact info to ``Email: ...``, ``Phone: ...`` or the reply button."""
    for text in (contact, body):
        if not text:
            continue
        email = _EMAIL.search(text)
        if email:
            return f"Email: {email.group(0)}"
        phone = _PHONE.search(text)
        if phone:
            return f"Phone: {phone.group(0)}"
    return REPLY_BUTTON_CONTACT


def clean_url(href: str, site: str) -> str:
    """Make a row href absolute and drop query/fragment."""
    if href.startswith("/"):
        href = f"https://{site}.{CLASSIFIEDS_DOMAIN}{href}"
    parsed = urlparse(href)
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))


class ClassifiedsParser:
    """Parses search rows and posting pages for one site."""

    def __init__(self, site: str, now: datetime | None = None) -> None:
        self._site = site
        self._now = now

    async def parse_rows(self, rows: list[ElementLike]) -> list[dict[str, Any]]:
        """Parse multiple rows, skipping any that fail."""
        results: list[dict[str, Any]] = []
        for row in rows:
            try:
                payload = await self.parse_row(row)
            except Exception:
                logger.debug("Failed to parse row, skipping", exc_info=True)
                continue
            if payload is not None:
                results.append(payload)
        return results

    async def parse_row(self, row: ElementLike) -> dict[str, Any] | None:
        """Parse one search row. Returns None when it has no link."""
        href = await first_attribute(row, ROW_LINK_SELECTORS, "href")
        if not href:
            logger.debug("Row missing link - skipping")
            return None
        url = clean_url(href, self._site)

        posting_id = (await row.get_attribute(ROW_ID_ATTR) or "").strip()
        if not posting_id:
            match = _POSTING_ID.search(url)
            posting_id = match.group(1) if match else ""

        time_el = await find_first(row, ROW_TIME_SELECTORS)
        posted_text = ""
        if time_el is not None:
            posted_text = (
                await time_el.get_attribute("datetime")
                or await time_el.get_attribute("title")
                or await time_el.text_content()
                or ""
            ).strip()

        return {
            "id": posting_id,
            "url": url,
            "title": await first_text(row, ROW_TITLE_SELECTORS),
            "compensation": await first_text(row, ROW_PRICE_SELECTORS),
            "location": await first_text(row, ROW_LOCATION_SELECTORS),
            "posted_at": parse_posting_time(posted_text, self._now),
        }

    async def parse_detail(self, page: Any, row: dict[str, Any]) -> dict[str, Any]:
        """Merge the posting page's fields over the row payload."""
        body = await first_text(page, DETAIL_BODY_SELECTORS)
        body = body.replace("QR Code Link to This Post", "").strip()

        compensation = _COMPENSATION_LABEL.sub(
            "", await first_text(page, DETAIL_COMPENSATION_SELECTORS),
        )
        posted_text = await first_attribute(page, DETAIL_TIME_SELECTORS, "datetime")
        posted_at = parse_posting_time(posted_text, self._now) or row.get("posted_at")
        contact = await first_text(page, DETAIL_CONTACT_SELECTORS)

        return {
            **row,
            "title": await first_text(page, DETAIL_TITLE_SELECTORS) or row.get("title", ""),
            "description": body,
            "compensation": compensation.strip() or row.get("compensation", ""),
            "location": await first_text(page, DETAIL_LOCATION_SELECTORS) or row.get("location", ""),
            "posted_at": posted_at,
            "contact": contact_method(contact, body),
        }
