"""SQLite database layer for leads, governed sessions, usage counters, and progress."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any

from leadscout.core.errors import PersistenceError
from leadscout.core.schemas import ExecutionSession, QualifiedLead, RunStatus, SearchSession

MONTHLY_SCOPE = "month"
DAILY_SCOPE = "day"

_LEADS_TABLE = """
CREATE TABLE IF NOT EXISTS qualified_leads (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          TEXT    NOT NULL,
    account_id          TEXT    NOT NULL,
    source              TEXT    NOT NULL,
    listing_id          TEXT    NOT NULL,
    listing_url         TEXT    NOT NULL,
    title               TEXT    NOT NULL,
    description         TEXT    NOT NULL DEFAULT '',
    raw_compensation    TEXT    NOT NULL DEFAULT '',
    posted_at           TEXT,
    contact             TEXT    NOT NULL DEFAULT '',
    location            TEXT    NOT NULL DEFAULT '',
    category            TEXT    NOT NULL,
    recency_score       INTEGER NOT NULL,
    estimated_value     REAL    NOT NULL,
    quality_score       REAL    NOT NULL,
    urgency_indicators  TEXT    NOT NULL DEFAULT '[]',
    matched_terms       TEXT    NOT NULL DEFAULT '[]',
    relevance_score     REAL    NOT NULL,
    search_metadata     TEXT    NOT NULL DEFAULT '{}',
    created_at          TEXT    NOT NULL,
    UNIQUE(session_id, listing_url)
);
"""

_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS search_sessions (
    id              TEXT PRIMARY KEY,
    account_id      TEXT NOT NULL,
    agent_type      TEXT NOT NULL,
    categories_json TEXT NOT NULL DEFAULT '[]',
    geography       TEXT NOT NULL DEFAULT '',
    quota_charge    INTEGER NOT NULL DEFAULT 1,
    started_at      TEXT NOT NULL,
    finished_at     TEXT,
    status          TEXT NOT NULL
);
"""

_USAGE_TABLE = """
CREATE TABLE IF NOT EXISTS usage_counters (
    account_id  TEXT NOT NULL,
    scope       TEXT NOT NULL,
    period      TEXT NOT NULL,
    agent_type  TEXT NOT NULL,
    used        INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (account_id, scope, period, agent_type)
);
"""

_EXECUTION_TABLE = """
CREATE TABLE IF NOT EXISTS execution_sessions (
    id          TEXT PRIMARY KEY,
    agent_type  TEXT NOT NULL,
    status      TEXT NOT NULL,
    percent     INTEGER NOT NULL DEFAULT 0,
    stage       TEXT NOT NULL DEFAULT '',
    started_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_LEADS_TABLE)
    conn.execute(_SESSIONS_TABLE)
    conn.execute(_USAGE_TABLE)
    conn.execute(_EXECUTION_TABLE)
    conn.commit()
    return conn


def period_key(scope: str, target_date: date | None = None) -> str:
    """Return the counter period for a scope: ``YYYY-MM`` or ``YYYY-MM-DD``."""
    d = target_date or date.today()
    if scope == MONTHLY_SCOPE:
        return d.strftime("%Y-%m")
    return d.isoformat()


# --- Usage counters ---


def get_usage(
    conn: sqlite3.Connection,
    account_id: str,
    scope: str,
    agent_type: str,
    target_date: date | None = None,
) -> int:
    """Return one agent type's used count for an account in the current (or given) period."""
    row = conn.execute(
        """
        SELECT used FROM usage_counters
        WHERE account_id = ? AND scope = ? AND period = ? AND agent_type = ?
        """,
        (account_id, scope, period_key(scope, target_date), agent_type),
    ).fetchone()
    return 0 if row is None else int(row["used"])


def add_usage(
    conn: sqlite3.Connection,
    account_id: str,
    scope: str,
    delta: int,
    agent_type: str,
    target_date: date | None = None,
) -> None:
    """Increment a usage counter, creating the row if needed.

    Runs inside the caller's transaction; does not commit.
    """
    conn.execute(
        """
        INSERT INTO usage_counters (account_id, scope, period, agent_type, used)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(account_id, scope, period, agent_type)
        DO UPDATE SET used = used + excluded.used
        """,
        (account_id, scope, period_key(scope, target_date), agent_type, delta),
    )


def charge_session(conn: sqlite3.Connection, session: SearchSession) -> None:
    """Record a finalized session and charge its monthly + daily counters in one transaction.

    Both counters are keyed by the session's agent type and by the period the
    session started in. Raises PersistenceError if the transaction fails
    (nothing is written).
    """
    started = session.started_at.date()
    try:
        with conn:
            conn.execute(
                """
                UPDATE search_sessions SET finished_at = ?, status = ?
                WHERE id = ?
                """,
                (
                    session.finished_at.isoformat() if session.finished_at else None,
                    session.status.value,
                    session.id,
                ),
            )
            for scope in (MONTHLY_SCOPE, DAILY_SCOPE):
                add_usage(
                    conn,
                    session.account_id,
                    scope,
                    session.quota_charge,
                    session.agent_type.value,
                    target_date=started,
                )
    except sqlite3.Error as e:
        msg = f"Failed to charge session {session.id}: {e}"
        raise PersistenceError(msg) from e


# --- Search sessions ---


def insert_search_session(conn: sqlite3.Connection, session: SearchSession) -> None:
    conn.execute(
        """
        INSERT INTO search_sessions
            (id, account_id, agent_type, categories_json, geography,
             quota_charge, started_at, status)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            session.id,
            session.account_id,
            session.agent_type.value,
            json.dumps(session.categories),
            session.geography,
            session.quota_charge,
            session.started_at.isoformat(),
            session.status.value,
        ),
    )
    conn.commit()


def get_search_session(conn: sqlite3.Connection, session_id: str) -> sqlite3.Row | None:
    return conn.execute(  # type: ignore[no-any-return]
        "SELECT * FROM search_sessions WHERE id = ?", (session_id,),
    ).fetchone()


# --- Qualified leads ---


def insert_leads(
    conn: sqlite3.Connection,
    session: SearchSession,
    leads: list[QualifiedLead],
    metadata: dict[str, Any],
) -> int:
    """Persist a run's ranked leads in one transaction.

    Duplicate URLs within the session are ignored. Returns rows inserted.
    Raises PersistenceError if the transaction fails (nothing is written).
    """
    created_at = datetime.now().isoformat()
    inserted = 0
    try:
        with conn:
            for lead in leads:
                c = lead.listing
                lead_metadata = {
                    **metadata,
                    "search_terms_matched": lead.matched_terms,
                    "relevance_score": lead.relevance_score,
                }
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO qualified_leads
                        (session_id, account_id, source, listing_id, listing_url,
                         title, description, raw_compensation, posted_at, contact,
                         location, category, recency_score, estimated_value,
                         quality_score, urgency_indicators, matched_terms,
                         relevance_score, search_metadata, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        session.id,
                        session.account_id,
                        c.source,
                        c.listing_id,
                        c.url,
                        c.title,
                        c.description,
                        c.raw_compensation,
                        c.posted_at.isoformat() if c.posted_at else None,
                        c.contact,
                        c.location,
                        lead.category,
                        lead.recency_score,
                        lead.estimated_value,
                        lead.quality_score,
                        json.dumps(lead.urgency_indicators),
                        json.dumps(lead.matched_terms),
                        lead.relevance_score,
                        json.dumps(lead_metadata),
                        created_at,
                    ),
                )
                inserted += cursor.rowcount
    except sqlite3.Error as e:
        msg = f"Failed to persist {len(leads)} leads for session {session.id}: {e}"
        raise PersistenceError(msg) from e
    return inserted


# --- Execution sessions (progress) ---


def upsert_execution_session(conn: sqlite3.Connection, record: ExecutionSession) -> None:
    conn.execute(
        """
        INSERT INTO execution_sessions
            (id, agent_type, status, percent, stage, started_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            status = excluded.status,
            percent = excluded.percent,
            stage = excluded.stage,
            updated_at = excluded.updated_at
        """,
        (
            record.id,
            record.agent_type.value,
            record.status.value,
            record.percent,
            record.stage,
            record.started_at.isoformat(),
            record.updated_at.isoformat(),
        ),
    )
    conn.commit()


def get_execution_session(conn: sqlite3.Connection, session_id: str) -> ExecutionSession | None:
    row = conn.execute(
        "SELECT * FROM execution_sessions WHERE id = ?", (session_id,),
    ).fetchone()
    if row is None:
        return None
    return ExecutionSession(
        id=row["id"],
        agent_type=row["agent_type"],
        status=RunStatus(row["status"]),
        percent=row["percent"],
        stage=row["stage"],
        started_at=datetime.fromisoformat(row["started_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
