"""Lead qualification and composite relevance ranking.

relevance = quality * 0.4
          + recency * 0.3
          + (estimated_value / 10) * 0.2
          + (urgency_count * 10) * 0.1

clamped to 0-100. The ``/ 10`` keeps the value term commensurate with the
other terms; weights, divisor and urgency unit come from ScoringConfig.
Ties: recency desc, then estimated_value desc, then URL asc.
"""

import logging
import re
from collections.abc import Mapping
from datetime import datetime

from leadscout.core.config import DEFAULT_CATEGORY_KEYWORDS, ScoringConfig
from leadscout.core.schemas import CandidateListing, QualifiedLead
from leadscout.pipeline.matcher import normalize_url
from leadscout.pipeline.recency import recency_score
from leadscout.pipeline.valuation import ValueEstimator

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "general"

_EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_PATTERN = re.compile(r"\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")


def categorize(
    text: str,
    categories: Mapping[str, list[str]] = DEFAULT_CATEGORY_KEYWORDS,
    hint: str = "",
) -> str:
    """Assign a service category by keyword; the adapter's hint wins if known."""
    if hint and hint.lower() in categories:
        return hint.lower()
    lowered = text.lower()
    for category, keywords in categories.items():
        if any(kw in lowered for kw in keywords):
            return category
    return GENERAL_CATEGORY


def urgency_indicators(text: str, phrases: list[str]) -> list[str]:
    """Return urgency phrases present in ``text``, in configured order."""
    lowered = text.lower()
    return [p for p in phrases if p.lower() in lowered]


def matched_terms(listing: CandidateListing) -> list[str]:
    """Search terms from the listing's queries that appear in its text."""
    text = f"{listing.title} {listing.description}".lower()
    return [t for t in listing.search_terms if t.lower() in text]


def has_direct_contact(contact: str) -> bool:
    return bool(_EMAIL_PATTERN.search(contact) or _PHONE_PATTERN.search(contact))


def quality_score(
    listing: CandidateListing,
    terms: list[str],
    config: ScoringConfig,
) -> float:
    """Deterministic 0-100 quality heuristic for a listing."""
    score = config.source_quality_base.get(listing.source, config.default_quality_base)

    if terms:
        score += config.matched_term_bonus
    if has_direct_contact(listing.contact):
        score += config.direct_contact_bonus
    if len(listing.description) >= config.detailed_description_chars:
        score += config.detailed_description_bonus
    if listing.raw_compensation.strip():
        score += config.stated_compensation_bonus

    return max(0.0, min(100.0, score))


def relevance_score(
    quality: float,
    recency: int,
    estimated_value: float,
    urgency_count: int,
    config: ScoringConfig,
) -> float:
    """Composite relevance, clamped to 0-100."""
    score = (
        quality * config.quality_weight
        + recency * config.recency_weight
        + (estimated_value / config.value_divisor) * config.value_weight
        + (urgency_count * config.urgency_unit) * config.urgency_weight
    )
    return max(0.0, min(100.0, score))


def qualify(
    listing: CandidateListing,
    config: ScoringConfig,
    estimator: ValueEstimator,
    categories: Mapping[str, list[str]] = DEFAULT_CATEGORY_KEYWORDS,
    now: datetime | None = None,
) -> QualifiedLead:
    """Derive every scored field for a listing in one pass.

    A value stated confidently by the source is kept; anything else is
    estimated from the listing text.
    """
    text = f"{listing.title} {listing.description}"
    if listing.estimated_value is not None:
        value = listing.estimated_value
    else:
        value = estimator.estimate(text, listing.raw_compensation)

    terms = matched_terms(listing)
    urgency = urgency_indicators(text, config.urgency_phrases)
    recency = recency_score(listing.posted_at, now)
    quality = quality_score(listing, terms, config)

    return QualifiedLead(
        listing=listing,
        category=categorize(text, categories, listing.category_hint),
        recency_score=recency,
        estimated_value=value,
        quality_score=quality,
        urgency_indicators=urgency,
        matched_terms=terms,
        relevance_score=relevance_score(quality, recency, value, len(urgency), config),
    )


def rank_key(lead: QualifiedLead) -> tuple[float, int, float, str]:
    return (-lead.relevance_score, -lead.recency_score, -lead.estimated_value, lead.url)


def rank(leads: list[QualifiedLead], max_results: int) -> list[QualifiedLead]:
    """Sort by relevance with deterministic tie-breaks, dedupe by URL, take top N."""
    ordered = sorted(leads, key=rank_key)
    seen: set[str] = set()
    result: list[QualifiedLead] = []
    for lead in ordered:
        key = normalize_url(lead.url)
        if key in seen:
            continue
        seen.add(key)
        result.append(lead)
        if len(result) >= max_results:
            break
    logger.debug("Ranked %d leads, kept %d (max %d)", len(leads), len(result), max_results)
    return result
