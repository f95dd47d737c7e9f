"""Lightweight CLI helpers for inspecting sessions and quota counters."""
from __future__ import annotations

import argparse
from typing import List, Optional

from services.quota import QuotaManager
from storage.migrate import migrate
from storage.session_store import SessionStore


def tail_sessions(limit: int = 20) -> None:
    for row in SessionStore().recent(limit):
        print(
            f"[{row['updated_at']}] {row['session_id']} user={row['user_id']} "
            f"{row['status']} v{row['version']} expires={row['expires_at']}"
        )


def show_quota(user_id: str) -> None:
    manager = QuotaManager()
    period = manager.period_for()
    remaining = manager.remaining_for(user_id)
    print(f"{user_id} {period}: {remaining}/{manager.allotment} remaining")


def purge_expired() -> int:
    removed = SessionStore().purge_expired()
    print(f"purged {removed} expired session(s)")
    return removed


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--purge-expired", action="store_true", help="Delete sessions past their expiry")
    parser.add_argument("--quota", metavar="USER", help="Show this month's remaining sessions for USER")
    parser.add_argument("--tail-sessions", type=int, help="Show the most recently updated sessions")
    args = parser.parse_args(argv)

    migrate()
    if args.purge_expired:
        purge_expired()
    if args.quota:
        show_quota(args.quota)
    if args.tail_sessions:
        tail_sessions(args.tail_sessions)


if __name__ == "__main__":
    main()
