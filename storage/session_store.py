"""SQLite-backed, TTL-bounded storage for interview sessions."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from interview_session.models import Session

from .sqlite import get_conn

logger = logging.getLogger(__name__)


class StaleWrite(RuntimeError):  # Conditional update lost against a concurrent writer
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


class SessionStore:
    """Key-value store of ``Session`` payloads keyed by session id.

    Every write is conditional on the version the caller read, so two
    handlers racing on the same session cannot both succeed. Rows past
    ``expires_at`` behave as if they did not exist.
    """

    def __init__(self, db_path: Optional[str] = None, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._db_path = db_path
        self._clock = clock

    def create(self, session: Session) -> Session:
        now = iso(self._clock())
        stored = session.model_copy(update={"version": 1})
        with get_conn(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO mock_sessions
                  (session_id, user_id, status, version, payload, created_at, updated_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.session_id,
                    stored.user_id,
                    stored.status,
                    stored.version,
                    _payload(stored),
                    stored.created_at,
                    now,
                    stored.expires_at,
                ),
            )
        return stored

    def get(self, session_id: str) -> Optional[Session]:
        """Return the live session or ``None`` when unknown or expired."""

        now = iso(self._clock())
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT version, payload, expires_at FROM mock_sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            if row["expires_at"] <= now:
                conn.execute(
                    "DELETE FROM mock_sessions WHERE session_id = ? AND expires_at <= ?",
                    (session_id, now),
                )
                logger.info("Dropped expired session %s", session_id)
                return None
        session = Session.model_validate_json(row["payload"])
        return session.model_copy(update={"version": int(row["version"])})

    def save(self, session: Session) -> Session:
        """Write ``session`` if the stored version still equals ``session.version``.

        Raises:
            StaleWrite: when another writer got there first or the row expired.
        """

        now = iso(self._clock())
        updated = session.model_copy(update={"version": session.version + 1})
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE mock_sessions
                   SET status = ?, version = ?, payload = ?, updated_at = ?, expires_at = ?
                 WHERE session_id = ? AND version = ? AND expires_at > ?
                """,
                (
                    updated.status,
                    updated.version,
                    _payload(updated),
                    now,
                    updated.expires_at,
                    session.session_id,
                    session.version,
                    now,
                ),
            )
            if cur.rowcount != 1:
                raise StaleWrite(f"session {session.session_id} changed since version {session.version}")
        return updated

    def purge_expired(self) -> int:
        now = iso(self._clock())
        with get_conn(self._db_path) as conn:
            cur = conn.execute("DELETE FROM mock_sessions WHERE expires_at <= ?", (now,))
            return int(cur.rowcount)

    def recent(self, limit: int = 20) -> List[dict]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT session_id, user_id, status, version, created_at, updated_at, expires_at
                FROM mock_sessions
                ORDER BY updated_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]


def _payload(session: Session) -> str:
    return session.model_dump_json(exclude={"version"})


__all__ = ["SessionStore", "StaleWrite", "iso", "utcnow"]
