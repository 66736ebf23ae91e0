"""Progress reporting: an append-only event channel plus the execution record sink."""

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime

from leadscout.core.db import upsert_execution_session
from leadscout.core.schemas import AgentType, ExecutionSession, ProgressEvent, RunStatus

logger = logging.getLogger(__name__)

Subscriber = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Append-only log of progress events with synchronous subscribers.

    Percents never go backwards: an event below the last emitted percent is
    raised to it. A failing subscriber is logged and does not stop delivery.
    """

    def __init__(self) -> None:
        self._events: list[ProgressEvent] = []
        self._subscribers: list[Subscriber] = []

    @property
    def events(self) -> tuple[ProgressEvent, ...]:
        return tuple(self._events)

    @property
    def percent(self) -> int:
        return self._events[-1].percent if self._events else 0

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def emit(
        self,
        stage: str,
        percent: int,
        *,
        status: RunStatus = RunStatus.RUNNING,
        leads_found: int = 0,
    ) -> ProgressEvent:
        event = ProgressEvent(
            stage=stage,
            percent=max(self.percent, min(percent, 100)),
            status=status,
            leads_found=leads_found,
        )
        self._events.append(event)
        logger.info("Progress %d%% - %s (%d leads)", event.percent, stage, leads_found)

        for callback in self._subscribers:
            try:
                callback(event)
            except Exception:
                logger.warning("Progress subscriber failed for stage '%s'", stage, exc_info=True)
        return event


class ExecutionSessionRecorder:
    """Mirrors progress events into the ``execution_sessions`` row for a tracking id."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        tracking_id: str,
        agent_type: AgentType = AgentType.LEAD_DISCOVERY,
    ) -> None:
        self._conn = conn
        self._tracking_id = tracking_id
        self._agent_type = agent_type
        self._started_at = datetime.now()

    def __call__(self, event: ProgressEvent) -> None:
        upsert_execution_session(
            self._conn,
            ExecutionSession(
                id=self._tracking_id,
                agent_type=self._agent_type,
                status=event.status,
                percent=event.percent,
                stage=event.stage,
                started_at=self._started_at,
                updated_at=event.emitted_at,
            ),
        )
