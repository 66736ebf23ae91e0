"""Error taxonomy for the lead pipeline.

Every error carries a stable ``code`` so the orchestrator can turn it into a
structured ``RunError`` instead of letting it escape to the caller.
"""


class LeadScoutError(Exception):
    """Base class for all pipeline errors."""

    code = "internal_error"


class SessionInitError(LeadScoutError):
    """The automation engine could not start. Fatal for the run."""

    code = "session_init_failed"


class SourceUnavailable(LeadScoutError):
    """A source operation exhausted its retries."""

    code = "source_unavailable"

    def __init__(self, label: str, message: str) -> None:
        super().__init__(message)
        self.label = label


class ExtractionError(LeadScoutError):
    """Detail extraction failed for a single listing."""

    code = "extraction_failed"

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class GovernorRejection(LeadScoutError):
    """A governor check refused to start a session. Nothing was charged."""

    code = "governor_rejected"


class SessionQuotaExceeded(GovernorRejection):
    code = "session_quota_exceeded"

    def __init__(self, message: str, *, scope: str, used: int, limit: int) -> None:
        super().__init__(message)
        self.scope = scope
        self.used = used
        self.limit = limit


class AgentConflict(GovernorRejection):
    code = "agent_conflict"


class ConcurrencyCapReached(GovernorRejection):
    code = "concurrency_cap_reached"


class PersistenceError(LeadScoutError):
    """The final write of the ranked result set failed."""

    code = "persistence_failed"


class InvalidTransition(LeadScoutError):
    """A run tried to leave a terminal state."""

    code = "invalid_transition"
