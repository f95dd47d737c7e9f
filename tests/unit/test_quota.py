import threading
from datetime import datetime, timezone

from services.quota import QuotaManager
from storage.quota import used_units

JAN = datetime(2026, 1, 15, 3, 0, tzinfo=timezone.utc)
FEB = datetime(2026, 2, 10, 3, 0, tzinfo=timezone.utc)


def test_fresh_user_has_full_allotment():
    manager = QuotaManager(allotment=1, clock=lambda: JAN)
    assert manager.remaining_for("u1") == 1


def test_reserve_until_exhausted():
    manager = QuotaManager(allotment=1, clock=lambda: JAN)
    first = manager.check_and_reserve("u1", "s1")
    assert first.allowed and first.remaining == 0
    assert first.period == "2026-01"

    second = manager.check_and_reserve("u1", "s2")
    assert not second.allowed
    assert second.remaining == 0
    assert used_units("u1", "2026-01") == 1


def test_same_session_is_charged_once():
    manager = QuotaManager(allotment=2, clock=lambda: JAN)
    first = manager.check_and_reserve("u1", "s1")
    again = manager.check_and_reserve("u1", "s1")
    assert first.allowed and again.allowed
    assert first.remaining == again.remaining == 1
    assert used_units("u1", "2026-01") == 1


def test_users_are_independent():
    manager = QuotaManager(allotment=1, clock=lambda: JAN)
    assert manager.check_and_reserve("u1", "s1").allowed
    assert manager.check_and_reserve("u2", "s2").allowed


def test_month_is_computed_in_tokyo_time():
    manager = QuotaManager(allotment=1, tz="Asia/Tokyo")
    # 2026-01-31 16:00 UTC is already February 1st in Tokyo
    assert manager.period_for(datetime(2026, 1, 31, 16, 0, tzinfo=timezone.utc)) == "2026-02"
    assert manager.period_for(datetime(2026, 1, 31, 14, 59, tzinfo=timezone.utc)) == "2026-01"


def test_allotment_resets_next_month():
    now = {"value": JAN}
    manager = QuotaManager(allotment=1, clock=lambda: now["value"])
    manager.check_and_reserve("u1", "s1")
    assert manager.remaining_for("u1") == 0

    now["value"] = FEB
    assert manager.remaining_for("u1") == 1
    assert manager.check_and_reserve("u1", "s2").allowed


def test_concurrent_reservations_never_overdraw():
    manager = QuotaManager(allotment=1, clock=lambda: JAN)
    results = []
    lock = threading.Lock()

    def worker(n):
        decision = manager.check_and_reserve("u1", f"s{n}")
        with lock:
            results.append(decision.allowed)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert used_units("u1", "2026-01") == 1
