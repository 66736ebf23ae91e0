"""Session governor: quota and concurrency policy per account.

Quota counters live in SQLite and roll over by calendar month / local day,
with no explicit reset. Running sessions are tracked in memory; every check
for an account happens under that account's lock, so a rejected start never
touches a counter and two starts cannot both take the last slot.
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime

from leadscout.core.config import GovernorConfig
from leadscout.core.db import (
    DAILY_SCOPE,
    MONTHLY_SCOPE,
    charge_session,
    get_usage,
    insert_search_session,
)
from leadscout.core.errors import (
    AgentConflict,
    ConcurrencyCapReached,
    GovernorRejection,
    SessionQuotaExceeded,
)
from leadscout.core.schemas import AgentType, RunStatus, SearchSession, UsageSummary

logger = logging.getLogger(__name__)


class SessionGovernor:
    """Enforces monthly tier quotas, daily per-agent quotas, conflicts, and a concurrency cap.

    Usage::

        governor = SessionGovernor(conn, settings.governor)
        session = await governor.start_session("acct-1", AgentType.LEAD_DISCOVERY, "scale")
        try:
            ...  # do work
        finally:
            await governor.finish_session(session, RunStatus.COMPLETED)
    """

    def __init__(self, conn: sqlite3.Connection, config: GovernorConfig | None = None) -> None:
        self._conn = conn
        self._config = config or GovernorConfig()
        self._running: dict[str, dict[str, SearchSession]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, account_id: str) -> asyncio.Lock:
        return self._locks.setdefault(account_id, asyncio.Lock())

    def running(self, account_id: str) -> list[SearchSession]:
        return list(self._running.get(account_id, {}).values())

    def monthly_limit(self, tier: str) -> int:
        return self._config.monthly_sessions_by_tier.get(tier.lower(), 0)

    def daily_limit(self, agent_type: AgentType) -> int | None:
        return self._config.daily_sessions_by_agent.get(agent_type.value)

    def conflicts_with(self, agent_type: AgentType) -> set[str]:
        result: set[str] = set()
        for a, b in self._config.conflicting_agents:
            if a == agent_type.value:
                result.add(b)
            elif b == agent_type.value:
                result.add(a)
        return result

    def check(self, account_id: str, agent_type: AgentType, tier: str) -> None:
        """Raise the first policy violation for starting a session now.

        Order: conflict, concurrency cap, monthly quota, daily quota.
        Both quotas are per agent type; running sessions of the same type
        count against them since they will be charged.
        """
        running = self.running(account_id)

        conflicting = self.conflicts_with(agent_type)
        for other in running:
            if other.agent_type.value in conflicting:
                msg = (
                    f"{agent_type.value} cannot start while {other.agent_type.value} "
                    f"is running for account {account_id}"
                )
                raise AgentConflict(msg)

        if len(running) >= self._config.max_concurrent:
            msg = (
                f"Account {account_id} already has {len(running)} premium sessions "
                f"running (max {self._config.max_concurrent})"
            )
            raise ConcurrencyCapReached(msg)

        same_type = sum(1 for s in running if s.agent_type == agent_type)

        monthly_limit = self.monthly_limit(tier)
        monthly_used = (
            get_usage(self._conn, account_id, MONTHLY_SCOPE, agent_type.value) + same_type
        )
        if monthly_used >= monthly_limit:
            msg = (
                f"Monthly session quota reached for account {account_id}: "
                f"{monthly_used}/{monthly_limit} ({tier} tier)"
            )
            raise SessionQuotaExceeded(msg, scope="monthly", used=monthly_used, limit=monthly_limit)

        daily_limit = self.daily_limit(agent_type)
        if daily_limit is not None:
            daily_used = (
                get_usage(self._conn, account_id, DAILY_SCOPE, agent_type.value) + same_type
            )
            if daily_used >= daily_limit:
                msg = (
                    f"Daily {agent_type.value} quota reached for account {account_id}: "
                    f"{daily_used}/{daily_limit}"
                )
                raise SessionQuotaExceeded(msg, scope="daily", used=daily_used, limit=daily_limit)

    async def can_start_session(self, account_id: str, agent_type: AgentType, tier: str) -> bool:
        """Dry-run of start_session: True if every check currently passes."""
        async with self._lock(account_id):
            try:
                self.check(account_id, agent_type, tier)
            except GovernorRejection as e:
                logger.info("Session would be rejected: %s", e)
                return False
        return True

    async def start_session(
        self,
        account_id: str,
        agent_type: AgentType,
        tier: str,
        *,
        categories: list[str] | None = None,
        geography: str = "",
    ) -> SearchSession:
        """Atomically check policy and register a running session.

        Raises:
            AgentConflict, ConcurrencyCapReached, SessionQuotaExceeded:
                The session was not started and nothing was charged.
        """
        async with self._lock(account_id):
            self.check(account_id, agent_type, tier)
            session = SearchSession(
                id=uuid.uuid4().hex,
                account_id=account_id,
                agent_type=agent_type,
                tier=tier,
                categories=list(categories or []),
                geography=geography,
            )
            insert_search_session(self._conn, session)
            self._running.setdefault(account_id, {})[session.id] = session

        logger.info(
            "Started %s session %s for account %s", agent_type.value, session.id, account_id,
        )
        return session

    async def finish_session(self, session: SearchSession, status: RunStatus) -> SearchSession:
        """Finalize a session and charge its quota exactly once.

        Completed, failed, timed-out and cancelled sessions are all charged.
        Finishing an already-finished session is a no-op.

        Raises:
            PersistenceError: The charge did not commit. The session stays
                running, so a later finish can still charge it.
        """
        async with self._lock(session.account_id):
            running = self._running.get(session.account_id, {})
            current = running.get(session.id)
            if current is None:
                logger.debug("Session %s already finalized", session.id)
                return session

            final = current.model_copy(update={"status": status, "finished_at": datetime.now()})
            charge_session(self._conn, final)
            del running[session.id]

        logger.info(
            "Finished session %s (%s), charged %d", final.id, status.value, final.quota_charge,
        )
        return final

    def usage_summary(
        self, account_id: str, tier: str, agent_type: AgentType = AgentType.LEAD_DISCOVERY,
    ) -> UsageSummary:
        monthly_limit = self.monthly_limit(tier)
        monthly_used = get_usage(self._conn, account_id, MONTHLY_SCOPE, agent_type.value)
        return UsageSummary(
            tier=tier,
            monthly_used=monthly_used,
            monthly_limit=monthly_limit,
            monthly_remaining=max(0, monthly_limit - monthly_used),
            daily_used=get_usage(self._conn, account_id, DAILY_SCOPE, agent_type.value),
            daily_limit=self.daily_limit(agent_type) or 0,
        )
