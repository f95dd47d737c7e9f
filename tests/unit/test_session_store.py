from datetime import datetime, timedelta, timezone

import pytest

from interview_session.models import InterviewerProfile, InterviewSettings, Question, Session
from storage.session_store import SessionStore, StaleWrite, iso

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _session(session_id="s1", ttl=timedelta(hours=24)):
    return Session(
        session_id=session_id,
        user_id="u1",
        settings=InterviewSettings(industry="IT", position="Engineer"),
        interviewer_profile=InterviewerProfile(name="Sato", role="HR"),
        opening_message="Hello",
        questions=[Question(id=i + 1, question=f"Q{i}") for i in range(5)],
        created_at=iso(NOW),
        expires_at=iso(NOW + ttl),
    )


def test_create_and_get_round_trip():
    store = SessionStore(clock=lambda: NOW)
    stored = store.create(_session())
    assert stored.version == 1

    loaded = store.get("s1")
    assert loaded is not None
    assert loaded.version == 1
    assert loaded.questions[0].question == "Q0"
    assert store.get("missing") is None


def test_save_bumps_version_and_rejects_stale_writes():
    store = SessionStore(clock=lambda: NOW)
    store.create(_session())
    first = store.get("s1")
    second = store.get("s1")

    saved = store.save(first.model_copy(update={"current_index": 1}))
    assert saved.version == 2
    with pytest.raises(StaleWrite):
        store.save(second.model_copy(update={"current_index": 1}))

    assert store.get("s1").current_index == 1


def test_expired_sessions_disappear():
    now = {"value": NOW}
    store = SessionStore(clock=lambda: now["value"])
    store.create(_session(ttl=timedelta(hours=1)))
    live = store.get("s1")

    now["value"] = NOW + timedelta(hours=2)
    assert store.get("s1") is None
    with pytest.raises(StaleWrite):
        store.save(live)


def test_purge_expired_and_recent():
    now = {"value": NOW}
    store = SessionStore(clock=lambda: now["value"])
    store.create(_session("old", ttl=timedelta(minutes=5)))
    store.create(_session("new", ttl=timedelta(days=1)))

    now["value"] = NOW + timedelta(hours=1)
    assert store.purge_expired() == 1
    assert [row["session_id"] for row in store.recent()] == ["new"]
