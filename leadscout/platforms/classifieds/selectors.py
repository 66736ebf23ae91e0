"""Classified-ads DOM selector constants with fallbacks.

Ordered by stability: data-* > semantic tags > class names.
Each constant is a tuple so callers iterate until a match is found.
"""

# --- Search result rows ---
ROW_SELECTORS: tuple[str, ...] = (
    "li.cl-static-search-result",
    "div.cl-search-result",
    "li.result-row",
)

ROW_ID_ATTR: str = "data-pid"

ROW_LINK_SELECTORS: tuple[str, ...] = (
    "a.posting-title",
    "a.result-title",
    "a[href*='.html']",
)

ROW_TITLE_SELECTORS: tuple[str, ...] = (
    ".title",
    "a.posting-title .label",
    "a.result-title",
)

ROW_PRICE_SELECTORS: tuple[str, ...] = (
    ".price",
    ".priceinfo",
    ".result-price",
)

ROW_LOCATION_SELECTORS: tuple[str, ...] = (
    ".location",
    ".meta .separator + span",
    ".result-hood",
)

ROW_TIME_SELECTORS: tuple[str, ...] = (
    "time[datetime]",
    ".meta span[title]",
    ".result-date",
)

# --- Posting detail page ---
DETAIL_TITLE_SELECTORS: tuple[str, ...] = (
    "#titletextonly",
    "span.postingtitletext",
    "h1",
)

DETAIL_BODY_SELECTORS: tuple[str, ...] = (
    "#postingbody",
    "section.userbody",
)

DETAIL_COMPENSATION_SELECTORS: tuple[str, ...] = (
    ".attrgroup .attr.remuneration .valu",
    ".attrgroup span:has-text('compensation')",
    ".attrgroup",
)

DETAIL_TIME_SELECTORS: tuple[str, ...] = (
    ".postinginfos time[datetime]",
    "time.date.timeago",
    "time[datetime]",
)

DETAIL_LOCATION_SELECTORS: tuple[str, ...] = (
    ".mapaddress",
    "div.mapbox .mapaddress",
    ".postingtitletext small",
)

DETAIL_CONTACT_SELECTORS: tuple[str, ...] = (
    ".reply-email-address a",
    ".reply-tel-number",
    "a[href^='mailto:']",
    "a[href^='tel:']",
)
