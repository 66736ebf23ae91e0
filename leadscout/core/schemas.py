"""Core data models for the lead pipeline."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

ALLOWED_TIERS = {"growth", "scale"}


class AgentType(str, Enum):
    """Premium automated agents governed per account."""

    LEAD_DISCOVERY = "lead_discovery"
    COST_ANALYSIS = "cost_analysis"


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (RunStatus.QUEUED, RunStatus.RUNNING)


class CapabilityProfile(BaseModel):
    """A contractor's declared services, service area, and tier.

    Frozen: one immutable snapshot per pipeline run.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str
    contractor_name: str = ""
    services: list[str]
    geography: str
    radius_miles: int = Field(default=25, ge=0)
    tier: str = "growth"
    minimum_project_value: float = Field(default=0.0, ge=0.0)

    @field_validator("services")
    @classmethod
    def services_normalized(cls, v: list[str]) -> list[str]:
        cleaned = [s.lower().strip() for s in v if s.strip()]
        if not cleaned:
            msg = "services must not be empty"
            raise ValueError(msg)
        return cleaned

    @field_validator("tier")
    @classmethod
    def tier_in_allowed(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_TIERS:
            msg = f"tier must be one of {sorted(ALLOWED_TIERS)}, got '{v}'"
            raise ValueError(msg)
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CapabilityProfile":
        """Load a profile from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Profile file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


class CandidateListing(BaseModel):
    """A raw posting extracted by a source adapter.

    ``estimated_value`` is only set when the source states a value it can be
    trusted on (e.g. a contract award ceiling); otherwise the pipeline estimates.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    listing_id: str
    url: str
    title: str
    description: str = ""
    raw_compensation: str = ""
    posted_at: datetime | None = None
    contact: str = ""
    location: str = ""
    category_hint: str = ""
    search_terms: list[str] = Field(default_factory=list)
    estimated_value: float | None = None


class QualifiedLead(BaseModel):
    """A candidate that received derived scores. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    listing: CandidateListing
    category: str
    recency_score: int = Field(ge=1, le=10)
    estimated_value: float = Field(ge=0.0)
    quality_score: float = Field(ge=0.0, le=100.0)
    urgency_indicators: list[str] = Field(default_factory=list)
    matched_terms: list[str] = Field(default_factory=list)
    relevance_score: float = Field(default=0.0, ge=0.0, le=100.0)

    @property
    def url(self) -> str:
        return self.listing.url


class SearchSession(BaseModel):
    """One governed unit of work, finalized exactly once."""

    id: str
    account_id: str
    agent_type: AgentType
    tier: str = "growth"
    categories: list[str] = Field(default_factory=list)
    geography: str = ""
    quota_charge: int = 1
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    status: RunStatus = RunStatus.RUNNING


class ExecutionSession(BaseModel):
    """Progress record polled by external consumers."""

    id: str
    agent_type: AgentType
    status: RunStatus
    percent: int = Field(default=0, ge=0, le=100)
    stage: str = ""
    started_at: datetime
    updated_at: datetime


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: str
    percent: int = Field(ge=0, le=100)
    status: RunStatus = RunStatus.RUNNING
    leads_found: int = 0
    emitted_at: datetime = Field(default_factory=datetime.now)


class SearchRequest(BaseModel):
    """Trigger payload from the presentation layer."""

    geography: str | None = None
    categories: list[str] = Field(default_factory=list)
    max_results: int = Field(default=10, ge=1, le=100)
    session_tracking_id: str | None = None


class RunError(BaseModel):
    code: str
    message: str


class UsageSummary(BaseModel):
    tier: str
    monthly_used: int
    monthly_limit: int
    monthly_remaining: int
    daily_used: int
    daily_limit: int


class QualityMetrics(BaseModel):
    avg_quality_score: float = 0.0
    avg_estimated_value: float = 0.0
    urgent_leads: int = 0
    candidates_found: int = 0
    rejected_spam: int = 0
    rejected_below_floor: int = 0
    sources_failed: list[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """Terminal outcome of a pipeline run, success or structured failure."""

    status: RunStatus
    session_id: str | None = None
    leads: list[QualifiedLead] = Field(default_factory=list)
    search_terms: list[str] = Field(default_factory=list)
    session_summary: UsageSummary | None = None
    quality_metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    error: RunError | None = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.error is None
