"""Heuristic project value estimation.

A stated dollar figure above the sanity floor wins outright. Otherwise a
category baseline is picked from the text and scaled by scope and urgency
multipliers; the multipliers never touch a stated figure.
"""

import logging
import re

from leadscout.core.config import ValuationConfig

logger = logging.getLogger(__name__)

# "$12,500", "$ 900", "$12.5k", "$3K"
_DOLLAR_PATTERN = re.compile(r"\$\s*(\d[\d,]*(?:\.\d+)?)\s*([kK])?\b")


def parse_dollar_amount(text: str) -> float | None:
    """Return the first dollar figure in ``text``, or None."""
    if not text:
        return None
    match = _DOLLAR_PATTERN.search(text)
    if match is None:
        return None
    try:
        amount = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    if match.group(2):
        amount *= 1000
    return amount


class ValueEstimator:
    """Estimates a dollar value for a posting from free text."""

    def __init__(self, config: ValuationConfig | None = None) -> None:
        self._config = config or ValuationConfig()

    def estimate(self, description: str, raw_compensation: str = "") -> float:
        """Estimate the project value in dollars.

        Args:
            description: Title and body text of the posting.
            raw_compensation: Compensation text as written by the poster.

        Returns:
            A stated amount when one above the sanity floor is present,
            otherwise a rounded baseline estimate.
        """
        stated = parse_dollar_amount(raw_compensation)
        if stated is not None and stated > self._config.sanity_floor:
            return stated

        text = f"{description} {raw_compensation}".lower()
        value = self.baseline(text)

        if _contains_any(text, self._config.large_scope_terms):
            value *= self._config.large_multiplier
        if _contains_any(text, self._config.small_scope_terms):
            value *= self._config.small_multiplier
        if _contains_any(text, self._config.urgency_terms):
            value *= self._config.urgency_multiplier

        logger.debug("Estimated value %.0f from baseline path", value)
        return float(round(value))

    def baseline(self, text: str) -> float:
        """Category baseline for lowercase ``text``: first matching keyword wins."""
        for keyword, amount in self._config.baselines:
            if keyword in text:
                return amount
        return self._config.default_baseline


def _contains_any(text: str, terms: list[str]) -> bool:
    return any(term.lower() in text for term in terms)
