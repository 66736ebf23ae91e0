"""Configuration models and YAML loader for the lead pipeline."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_SPAM_PHRASES = [
    "work from home",
    "make money fast",
    "guaranteed income",
    "no experience needed",
    "pyramid scheme",
    "mlm",
    "multi-level marketing",
    "get rich quick",
    "bitcoin",
    "cryptocurrency",
    "forex",
    "trading opportunity",
    "free trial",
    "limited time offer",
    "act now",
    "call immediately",
    "$500 bonus",
    "same day cash",
    "www.rentatech.org",
    "you are paid in cash same day",
    "18337368835",
]

DEFAULT_SPAM_PATTERN = r"\$\d+\s+(bonus|cash)\s+(same\s+day|immediately)"

DEFAULT_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "roofing": ["roof", "shingle", "gutter", "skylight"],
    "drywall": ["drywall", "sheetrock", "plaster", "mud and tape"],
    "electrical": ["electric", "outlet", "breaker", "wiring", "light fixture", "ceiling fan"],
    "plumbing": ["plumb", "toilet", "faucet", "drain", "water heater", "pipe"],
    "hvac": ["hvac", "heating", "furnace", "air conditioning", "ac repair", "thermostat"],
    "painting": ["paint"],
    "flooring": ["floor", "tile", "hardwood", "carpet", "grout"],
    "carpentry": ["cabinet", "deck", "trim", "carpent", "handrail", "door"],
    "exterior": ["siding", "fence", "pressure wash", "window screen", "patio", "driveway"],
    "concrete": ["concrete"],
}


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/leads.db"


class BrowserConfig(BaseModel):
    """Automation session configuration."""

    headless: bool = True
    timeout_ms: int = Field(default=30000, ge=1000)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )


class GovernorConfig(BaseModel):
    """Quota and concurrency policy for premium automated agents."""

    monthly_sessions_by_tier: dict[str, int] = Field(
        default_factory=lambda: {"growth": 5, "scale": 10},
    )
    daily_sessions_by_agent: dict[str, int] = Field(
        default_factory=lambda: {"lead_discovery": 3, "cost_analysis": 5},
    )
    conflicting_agents: list[tuple[str, str]] = Field(
        default_factory=lambda: [("lead_discovery", "cost_analysis")],
    )
    max_concurrent: int = Field(default=2, ge=1)

    @field_validator("monthly_sessions_by_tier", "daily_sessions_by_agent")
    @classmethod
    def limits_not_negative(cls, v: dict[str, int]) -> dict[str, int]:
        for key, limit in v.items():
            if limit < 0:
                msg = f"limit for '{key}' must be >= 0, got {limit}"
                raise ValueError(msg)
        return v


class GeographyCluster(BaseModel):
    """A metro cluster whose value floors are scaled by ``multiplier``."""

    name: str
    cities: list[str]
    multiplier: float = Field(default=1.0, gt=0.0)


class FilterConfig(BaseModel):
    """Spam indicators and category value floors."""

    spam_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_SPAM_PHRASES))
    spam_pattern: str = DEFAULT_SPAM_PATTERN
    category_thresholds: dict[str, float] = Field(
        default_factory=lambda: {
            "plumbing": 150.0,
            "electrical": 200.0,
            "hvac": 300.0,
            "carpentry": 100.0,
            "roofing": 500.0,
            "drywall": 75.0,
            "flooring": 200.0,
            "exterior": 150.0,
        },
    )
    default_threshold: float = Field(default=100.0, ge=0.0)
    geography_clusters: list[GeographyCluster] = Field(
        default_factory=lambda: [
            GeographyCluster(
                name="bay_area",
                cities=["San Francisco", "Oakland", "Berkeley", "San Jose", "Palo Alto"],
                multiplier=1.5,
            ),
            GeographyCluster(
                name="miami",
                cities=["Miami", "Fort Lauderdale", "Miami Beach", "Coral Gables", "Boca Raton"],
                multiplier=1.25,
            ),
        ],
    )


class ValuationConfig(BaseModel):
    """Heuristic project value estimation."""

    sanity_floor: float = Field(default=500.0, ge=0.0)
    default_baseline: float = Field(default=5000.0, gt=0.0)
    # Ordered: the first keyword found in the text selects the baseline.
    baselines: list[tuple[str, float]] = Field(
        default_factory=lambda: [
            ("roof", 12000.0),
            ("kitchen", 15000.0),
            ("bathroom", 8000.0),
            ("drywall", 4000.0),
            ("commercial", 25000.0),
        ],
    )
    large_scope_terms: list[str] = Field(default_factory=lambda: ["large", "big", "commercial"])
    small_scope_terms: list[str] = Field(default_factory=lambda: ["small", "minor"])
    urgency_terms: list[str] = Field(default_factory=lambda: ["emergency", "urgent", "asap"])
    large_multiplier: float = 1.5
    small_multiplier: float = 0.6
    urgency_multiplier: float = 1.2


class ScoringConfig(BaseModel):
    """Weights for quality and composite relevance scoring."""

    quality_weight: float = Field(default=0.4, ge=0.0)
    recency_weight: float = Field(default=0.3, ge=0.0)
    value_weight: float = Field(default=0.2, ge=0.0)
    urgency_weight: float = Field(default=0.1, ge=0.0)
    value_divisor: float = Field(default=10.0, gt=0.0)
    urgency_unit: float = Field(default=10.0, ge=0.0)

    source_quality_base: dict[str, float] = Field(
        default_factory=lambda: {"classifieds": 70.0, "government": 85.0},
    )
    default_quality_base: float = 65.0
    matched_term_bonus: float = 10.0
    direct_contact_bonus: float = 5.0
    detailed_description_bonus: float = 5.0
    stated_compensation_bonus: float = 5.0
    detailed_description_chars: int = Field(default=80, ge=0)

    urgency_phrases: list[str] = Field(
        default_factory=lambda: [
            "emergency",
            "urgent",
            "asap",
            "immediately",
            "rush",
            "storm damage",
            "leak",
            "this week",
            "today",
        ],
    )


class PipelineConfig(BaseModel):
    """Run-level limits for the orchestrator."""

    timeout_seconds: float = Field(default=600.0, gt=0.0)
    default_max_results: int = Field(default=10, ge=1, le=100)
    adapter_max_results: int = Field(default=20, ge=1)
    sources: list[str] = Field(default_factory=lambda: ["classifieds", "government"])

    @field_validator("sources")
    @classmethod
    def at_least_one_source(cls, v: list[str]) -> list[str]:
        if not v:
            msg = "at least one source must be enabled"
            raise ValueError(msg)
        return v


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    governor: GovernorConfig = Field(default_factory=GovernorConfig)
    filtering: FilterConfig = Field(default_factory=FilterConfig)
    valuation: ValuationConfig = Field(default_factory=ValuationConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    categories: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CATEGORY_KEYWORDS.items()},
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
