"""Recency scoring: a step function of hours since posting.

  <= 12h  -> 10  (urgent)
  <= 48h  -> 8   (hot)
  <= 168h -> 6   (warm, 7 days)
  <= 720h -> 3   (cold, 30 days)
  older   -> 1   (stale)

Only absolute timestamps are accepted. Parsing relative strings such as
"2 hours ago" belongs to the source adapter that produced them.
"""

from datetime import datetime, timezone

RECENCY_STEPS: tuple[tuple[float, int], ...] = (
    (12.0, 10),
    (48.0, 8),
    (168.0, 6),
    (720.0, 3),
)
STALE_SCORE = 1


def hours_since(posted_at: datetime, now: datetime | None = None) -> float:
    """Elapsed hours between ``posted_at`` and ``now``, never negative."""
    if now is None:
        now = datetime.now(timezone.utc) if posted_at.tzinfo else datetime.now()
    elif (now.tzinfo is None) != (posted_at.tzinfo is None):
        # Mixed naive/aware: treat the naive side as UTC.
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        else:
            posted_at = posted_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - posted_at).total_seconds() / 3600.0)


def score_hours(hours: float) -> int:
    for ceiling, score in RECENCY_STEPS:
        if hours <= ceiling:
            return score
    return STALE_SCORE


def recency_score(posted_at: datetime | None, now: datetime | None = None) -> int:
    """Score a posting timestamp. Unknown timestamps score as stale."""
    if posted_at is None:
        return STALE_SCORE
    return score_hours(hours_since(posted_at, now))
