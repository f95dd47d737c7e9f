"""Persistence helpers for monthly quota counters."""
from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, Field

from .sqlite import get_conn


class ReservationPayload(BaseModel):
    user_id: str = Field(min_length=1)
    period: str = Field(pattern=r"^\d{4}-\d{2}$")
    allotment: int = Field(ge=0)
    session_id: Optional[str] = None
    recorded_at: str


def used_units(user_id: str, period: str, *, db_path: Optional[str] = None) -> int:
    """Return how many units ``user_id`` consumed in ``period``."""

    with get_conn(db_path) as conn:
        return _used(conn, user_id, period)


def reserve_unit(*, db_path: Optional[str] = None, **data) -> Tuple[bool, int]:
    """Atomically consume one unit if any remain; return ``(allowed, remaining)``.

    When ``session_id`` is given the outcome is recorded in the ledger and a
    repeated call for the same session returns that outcome unchanged.
    """

    payload = ReservationPayload(**data)
    with get_conn(db_path, immediate=True) as conn:
        if payload.session_id is not None:
            prior = conn.execute(
                "SELECT allowed, user_id, period FROM quota_ledger WHERE session_id = ?",
                (payload.session_id,),
            ).fetchone()
            if prior is not None:
                used = _used(conn, prior["user_id"], prior["period"])
                return bool(prior["allowed"]), max(0, payload.allotment - used)

        used = _used(conn, payload.user_id, payload.period)
        allowed = used < payload.allotment
        if allowed:
            conn.execute(
                """
                INSERT INTO quota_usage (user_id, period, used, updated_at)
                VALUES (?, ?, 1, ?)
                ON CONFLICT(user_id, period) DO UPDATE SET used = used + 1, updated_at = excluded.updated_at
                """,
                (payload.user_id, payload.period, payload.recorded_at),
            )
            used += 1
        remaining = max(0, payload.allotment - used)

        if payload.session_id is not None:
            conn.execute(
                """
                INSERT INTO quota_ledger (session_id, user_id, period, allowed, remaining, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    payload.session_id,
                    payload.user_id,
                    payload.period,
                    int(allowed),
                    remaining,
                    payload.recorded_at,
                ),
            )
        return allowed, remaining


def _used(conn, user_id: str, period: str) -> int:
    row = conn.execute(
        "SELECT used FROM quota_usage WHERE user_id = ? AND period = ?",
        (user_id, period),
    ).fetchone()
    return int(row["used"]) if row else 0
