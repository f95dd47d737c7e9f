"""Monthly session quota per user."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from config.settings import settings
from observability import log_event
from storage.quota import reserve_unit, used_units
from storage.session_store import iso


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    remaining: int
    period: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaManager:
    """Counts finalized sessions per ``(user_id, YYYY-MM)`` window.

    The window is the calendar month in ``tz``; a new month starts with the
    full allotment again because it is simply a new counter row.
    """

    def __init__(
        self,
        *,
        allotment: Optional[int] = None,
        tz: Optional[str] = None,
        db_path: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.allotment = settings.MONTHLY_SESSION_ALLOTMENT if allotment is None else allotment
        self._tz = ZoneInfo(tz or settings.QUOTA_TIMEZONE)
        self._db_path = db_path
        self._clock = clock

    def period_for(self, now: Optional[datetime] = None) -> str:
        current = now or self._clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(self._tz).strftime("%Y-%m")

    def remaining_for(self, user_id: str, now: Optional[datetime] = None) -> int:
        used = used_units(user_id, self.period_for(now), db_path=self._db_path)
        return max(0, self.allotment - used)

    def check_and_reserve(
        self,
        user_id: str,
        session_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> QuotaDecision:
        """Consume one unit for ``user_id`` if available.

        Passing ``session_id`` makes the call idempotent per session.
        """

        current = now or self._clock()
        period = self.period_for(current)
        allowed, remaining = reserve_unit(
            db_path=self._db_path,
            user_id=user_id,
            period=period,
            allotment=self.allotment,
            session_id=session_id,
            recorded_at=iso(current),
        )
        log_event(
            "quota",
            session_id or "-",
            user=user_id,
            outcome="reserved" if allowed else "exhausted",
            remaining=remaining,
            period=period,
        )
        return QuotaDecision(allowed=allowed, remaining=remaining, period=period)


__all__ = ["QuotaDecision", "QuotaManager"]
