"""Government-contract DOM selector constants with fallbacks.

Ordered by stability: id / data-* > component tags > class names.
"""

# --- Search results ---
RESULT_SELECTORS: tuple[str, ...] = (
    "app-opportunity-result",
    "div[data-testid='opportunity-result']",
    ".sds-card.opportunity",
)

RESULT_LINK_SELECTORS: tuple[str, ...] = (
    "h3 a[href*='/opp/']",
    "a[href*='/opp/'][href$='/view']",
    "a.usa-link",
)

RESULT_NOTICE_ID_SELECTORS: tuple[str, ...] = (
    "[data-testid='notice-id']",
    ".notice-id .sds-field__value",
)

# --- Opportunity detail page ---
DETAIL_TITLE_SELECTORS: tuple[str, ...] = (
    "h1[data-testid='opportunity-title']",
    "#opportunity-title",
    "h1",
)

DETAIL_DESCRIPTION_SELECTORS: tuple[str, ...] = (
    "#description",
    "[data-testid='description']",
    ".opportunity-description",
)

DETAIL_OFFICER_EMAIL_SELECTORS: tuple[str, ...] = (
    "#contact-primary-poc a[href^='mailto:']",
    "[data-testid='primary-contact'] a[href^='mailto:']",
    "a[href^='mailto:']",
)

DETAIL_PLACE_SELECTORS: tuple[str, ...] = (
    "#placeOfPerformance",
    "[data-testid='place-of-performance']",
)

DETAIL_VALUE_SELECTORS: tuple[str, ...] = (
    "#award-ceiling",
    "[data-testid='estimated-value']",
    "#general-award-amount",
)

DETAIL_POSTED_SELECTORS: tuple[str, ...] = (
    "#general-original-published-date",
    "[data-testid='published-date']",
)

DETAIL_NAICS_SELECTORS: tuple[str, ...] = (
    "#classification-naics-code",
    "[data-testid='naics-code']",
)
