"""Orchestrator: wires governor, adapters, qualification, filter chain, ranker, and DB write.

Data flow for one run:
  1. Governor start (rejection -> structured error, nothing charged)
  2. Automation session opened, owned by this run only
  3. Adapters in fixed order; after each: qualify -> filter chain -> rank
  4. Cancellation flag checked between adapters
  5. Ranked leads persisted in one transaction
  6. Governor finish (charged exactly once), progress 100

The whole search phase runs under one wall-clock timeout; on expiry the
leads ranked so far are returned with status ``timed_out``.
"""

import asyncio
import json
import logging
import sqlite3
from collections import Counter
from collections.abc import Callable, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from leadscout.browser.session import AutomationSession
from leadscout.core.config import Settings
from leadscout.core.db import insert_leads
from leadscout.core.errors import (
    GovernorRejection,
    InvalidTransition,
    PersistenceError,
    SessionInitError,
    SourceUnavailable,
)
from leadscout.core.schemas import (
    AgentType,
    CandidateListing,
    CapabilityProfile,
    QualifiedLead,
    QualityMetrics,
    RunError,
    RunResult,
    RunStatus,
    SearchRequest,
    SearchSession,
)
from leadscout.pipeline.governor import SessionGovernor
from leadscout.pipeline.matcher import (
    DeduplicationFilter,
    FilterReason,
    QualityFilter,
    run_filter_chain,
)
from leadscout.pipeline.progress import ExecutionSessionRecorder, ProgressChannel, Subscriber
from leadscout.pipeline.scorer import qualify, rank
from leadscout.pipeline.valuation import ValueEstimator
from leadscout.platforms.base import SourceAdapter
from leadscout.platforms.classifieds.adapter import ClassifiedsAdapter
from leadscout.platforms.government.adapter import GovernmentContractsAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[AutomationSession, ValueEstimator], SourceAdapter]
SessionFactory = Callable[[], AutomationSession]

DEFAULT_ADAPTERS: Mapping[str, AdapterFactory] = MappingProxyType({
    "classifieds": ClassifiedsAdapter,
    "government": GovernmentContractsAdapter,
})

_ALLOWED: Mapping[RunStatus, frozenset[RunStatus]] = MappingProxyType({
    RunStatus.QUEUED: frozenset({RunStatus.RUNNING, RunStatus.FAILED, RunStatus.CANCELLED}),
    RunStatus.RUNNING: frozenset({
        RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.TIMED_OUT, RunStatus.CANCELLED,
    }),
})


class RunState:
    """queued -> running -> {completed | failed | timed_out | cancelled}. Terminal is final."""

    def __init__(self) -> None:
        self.status = RunStatus.QUEUED

    def transition(self, target: RunStatus) -> None:
        if target not in _ALLOWED.get(self.status, frozenset()):
            msg = f"Invalid run transition {self.status.value} -> {target.value}"
            raise InvalidTransition(msg)
        logger.debug("Run state %s -> %s", self.status.value, target.value)
        self.status = target


class RunCollector:
    """Accumulates candidates across adapters and keeps the current ranked top-N."""

    def __init__(self, settings: Settings, geography: str, max_results: int) -> None:
        self._settings = settings
        self._geography = geography
        self._max_results = max_results
        self._estimator = ValueEstimator(settings.valuation)
        self.candidates: list[CandidateListing] = []
        self.search_terms: list[str] = []
        self.sources_failed: list[str] = []
        self.rejections: Counter[FilterReason] = Counter()
        self.ranked: list[QualifiedLead] = []

    def add(self, listings: list[CandidateListing]) -> None:
        self.candidates.extend(listings)
        for listing in listings:
            for term in listing.search_terms:
                if term not in self.search_terms:
                    self.search_terms.append(term)
        self.rerank()

    def rerank(self) -> None:
        """Re-qualify the full aggregate, filter it, and rank it."""
        qualified = [
            qualify(c, self._settings.scoring, self._estimator, self._settings.categories)
            for c in self.candidates
        ]
        quality_filter = QualityFilter(self._settings.filtering, self._geography)
        survivors = run_filter_chain(qualified, [DeduplicationFilter(), quality_filter])
        self.rejections = quality_filter.rejections
        self.ranked = rank(survivors, self._max_results)
        logger.info(
            "Aggregate: %d candidates, %d survivors, %d ranked",
            len(self.candidates), len(survivors), len(self.ranked),
        )

    def metrics(self) -> QualityMetrics:
        leads = self.ranked
        avg_quality = avg_value = 0.0
        if leads:
            avg_quality = round(sum(lead.quality_score for lead in leads) / len(leads), 2)
            avg_value = round(sum(lead.estimated_value for lead in leads) / len(leads), 2)
        return QualityMetrics(
            avg_quality_score=avg_quality,
            avg_estimated_value=avg_value,
            urgent_leads=sum(1 for lead in leads if lead.urgency_indicators),
            candidates_found=len(self.candidates),
            rejected_spam=self.rejections[FilterReason.SPAM],
            rejected_below_floor=self.rejections[FilterReason.BELOW_FLOOR],
            sources_failed=list(self.sources_failed),
        )


class LeadPipeline:
    """Runs governed lead discovery for one account at a time per call.

    Usage::

        pipeline = LeadPipeline(settings, conn)
        result = await pipeline.run(SearchRequest(max_results=10), profile)
    """

    def __init__(
        self,
        settings: Settings,
        conn: sqlite3.Connection,
        *,
        governor: SessionGovernor | None = None,
        session_factory: SessionFactory | None = None,
        adapter_factories: Mapping[str, AdapterFactory] = DEFAULT_ADAPTERS,
    ) -> None:
        self._settings = settings
        self._conn = conn
        self._governor = governor or SessionGovernor(conn, settings.governor)
        self._session_factory = session_factory or (lambda: AutomationSession(settings.browser))
        self._adapter_factories = adapter_factories
        self._estimator = ValueEstimator(settings.valuation)
        self._cancel_flags: dict[str, asyncio.Event] = {}

    @property
    def governor(self) -> SessionGovernor:
        return self._governor

    def cancel(self, run_key: str) -> bool:
        """Request cancellation by tracking id or session id.

        Takes effect at the next adapter boundary. Returns False if no
        running run matches.
        """
        flag = self._cancel_flags.get(run_key)
        if flag is None:
            return False
        logger.info("Cancellation requested for run %s", run_key)
        flag.set()
        return True

    async def run(
        self,
        request: SearchRequest,
        profile: CapabilityProfile,
        *,
        subscribers: list[Subscriber] | None = None,
    ) -> RunResult:
        """Execute one discovery run. Never raises for run-level failures."""
        state = RunState()
        geography = request.geography or profile.geography
        run_profile = _narrow_profile(profile, request.categories)

        channel = ProgressChannel()
        if request.session_tracking_id:
            channel.subscribe(ExecutionSessionRecorder(self._conn, request.session_tracking_id))
        for callback in subscribers or []:
            channel.subscribe(callback)

        try:
            session = await self._governor.start_session(
                profile.account_id,
                AgentType.LEAD_DISCOVERY,
                profile.tier,
                categories=run_profile.services,
                geography=geography,
            )
        except GovernorRejection as e:
            logger.warning("Run rejected for account %s: %s", profile.account_id, e)
            state.transition(RunStatus.FAILED)
            channel.emit("rejected", 0, status=RunStatus.FAILED)
            return RunResult(
                status=state.status,
                session_summary=self._governor.usage_summary(profile.account_id, profile.tier),
                error=RunError(code=e.code, message=str(e)),
            )

        state.transition(RunStatus.RUNNING)
        channel.emit("started", 5)

        flag = asyncio.Event()
        run_keys = [session.id]
        if request.session_tracking_id:
            run_keys.append(request.session_tracking_id)
        for key in run_keys:
            self._cancel_flags[key] = flag

        collector = RunCollector(self._settings, geography, request.max_results)
        outcome: RunStatus | None = None
        error: RunError | None = None
        leads: list[QualifiedLead] = []

        try:
            try:
                cancelled = await asyncio.wait_for(
                    self._search(run_profile, geography, collector, channel, flag),
                    timeout=self._settings.pipeline.timeout_seconds,
                )
                outcome = RunStatus.COMPLETED
                if cancelled:
                    outcome = RunStatus.CANCELLED
                    error = RunError(code="cancelled", message="Run cancelled by caller")
            except asyncio.TimeoutError:
                logger.warning(
                    "Run %s hit the %.0fs ceiling with %d leads ranked",
                    session.id, self._settings.pipeline.timeout_seconds, len(collector.ranked),
                )
                outcome = RunStatus.TIMED_OUT
                error = RunError(
                    code="timeout",
                    message=f"Run exceeded {self._settings.pipeline.timeout_seconds:.0f}s",
                )
            except SessionInitError as e:
                outcome = RunStatus.FAILED
                error = RunError(code=e.code, message=str(e))
            except Exception as e:
                logger.exception("Run %s failed unexpectedly", session.id)
                outcome = RunStatus.FAILED
                error = RunError(code="internal_error", message=str(e))

            leads = collector.ranked
            try:
                self._persist(session, leads, collector, run_profile, geography)
            except PersistenceError as e:
                logger.error("Persisting run %s failed: %s", session.id, e)
                outcome = RunStatus.FAILED
                error = RunError(code=e.code, message=str(e))
        finally:
            for key in run_keys:
                self._cancel_flags.pop(key, None)
            # Interrupted from outside (task cancelled) before an outcome was set
            if outcome is None:
                outcome = RunStatus.CANCELLED
            try:
                await self._governor.finish_session(session, outcome)
            except PersistenceError as e:
                logger.error("Charging run %s failed: %s", session.id, e)
                outcome = RunStatus.FAILED
                error = RunError(code=e.code, message=str(e))
            state.transition(outcome)

        channel.emit("finished", 100, status=state.status, leads_found=len(leads))
        logger.info(
            "Run %s finished: %s, %d leads", session.id, state.status.value, len(leads),
        )
        return RunResult(
            status=state.status,
            session_id=session.id,
            leads=leads,
            search_terms=list(collector.search_terms),
            session_summary=self._governor.usage_summary(profile.account_id, profile.tier),
            quality_metrics=collector.metrics(),
            error=error,
        )

    async def _search(
        self,
        profile: CapabilityProfile,
        geography: str,
        collector: RunCollector,
        channel: ProgressChannel,
        cancel_flag: asyncio.Event,
    ) -> bool:
        """Invoke adapters in order. Returns True if cancelled between adapters."""
        sources = [s for s in self._settings.pipeline.sources if s in self._adapter_factories]
        for missing in set(self._settings.pipeline.sources) - set(sources):
            logger.warning("No adapter registered for source '%s'", missing)

        async with self._session_factory() as core:
            for i, source in enumerate(sources):
                if cancel_flag.is_set():
                    logger.info("Run cancelled before %s", source)
                    return True

                adapter = self._adapter_factories[source](core, self._estimator)
                try:
                    listings = await adapter.search_leads(
                        geography, profile, self._settings.pipeline.adapter_max_results,
                    )
                except SourceUnavailable as e:
                    logger.warning("Source %s unavailable: %s", source, e)
                    collector.sources_failed.append(source)
                except Exception:
                    logger.exception("Source %s failed, continuing with remaining sources", source)
                    collector.sources_failed.append(source)
                else:
                    logger.info("Source %s returned %d listings", source, len(listings))
                    collector.add(listings)

                channel.emit(
                    f"{source} complete",
                    10 + (80 * (i + 1)) // len(sources),
                    leads_found=len(collector.ranked),
                )
        return False

    def _persist(
        self,
        session: SearchSession,
        leads: list[QualifiedLead],
        collector: RunCollector,
        profile: CapabilityProfile,
        geography: str,
    ) -> None:
        if not leads:
            return
        metadata: dict[str, Any] = {
            "search_terms": list(collector.search_terms),
            "categories": list(profile.services),
            "geography": geography,
            "timestamp": datetime.now().isoformat(),
        }
        inserted = insert_leads(self._conn, session, leads, metadata)
        logger.info("Persisted %d leads for session %s", inserted, session.id)


def _narrow_profile(profile: CapabilityProfile, categories: list[str]) -> CapabilityProfile:
    """Restrict the profile's services to the requested categories, if any."""
    requested = [c.lower().strip() for c in categories if c.strip()]
    if not requested:
        return profile
    return profile.model_copy(update={"services": requested})


def export_results_json(result: RunResult) -> str:
    """Export a run's ranked leads as a JSON string."""
    data = {
        "status": result.status.value,
        "session_id": result.session_id,
        "error": result.error.model_dump() if result.error else None,
        "quality_metrics": result.quality_metrics.model_dump(),
        "leads": [],
    }
    for lead in result.leads:
        c = lead.listing
        data["leads"].append({
            "source": c.source,
            "listing_id": c.listing_id,
            "url": c.url,
            "title": c.title,
            "location": c.location,
            "contact": c.contact,
            "compensation": c.raw_compensation,
            "posted_at": c.posted_at.isoformat() if c.posted_at else None,
            "category": lead.category,
            "recency_score": lead.recency_score,
            "estimated_value": lead.estimated_value,
            "quality_score": lead.quality_score,
            "urgency_indicators": lead.urgency_indicators,
            "matched_terms": lead.matched_terms,
            "relevance_score": lead.relevance_score,
        })
    return json.dumps(data, indent=2)
