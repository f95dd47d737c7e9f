from datetime import datetime

import pytest

from config.settings import settings
from services.errors import EmptyAnswer, InvalidState, NotFound, QuotaExceeded, UpstreamFailure
from services.sessions import SessionController
from storage.quota import used_units


@pytest.fixture
def controller():
    return SessionController()


def _answer(controller, sid, index, text="React と Python で社内ツールを開発しました。", duration=60):
    session = controller.store.get(sid)
    return controller.evaluate(sid, index, session.questions[index].question, text, duration)


def test_start_plans_exactly_question_count(controller, fake_ai, interview_settings):
    result = controller.start("u1", interview_settings)

    assert result.question_count == 5
    assert result.first_question.id == 1
    assert result.interviewer_profile.name == "佐藤"
    assert result.quota_remaining == 1

    session = controller.store.get(result.session_id)
    assert [q.id for q in session.questions] == [1, 2, 3, 4, 5]
    assert session.current_index == 0
    assert session.answers == []
    assert session.status == "in-progress"


def test_start_rejects_short_plan(controller, fake_ai, interview_settings):
    fake_ai.planned = 3
    with pytest.raises(UpstreamFailure):
        controller.start("u1", interview_settings)
    assert controller.store.recent() == []


def test_start_surfaces_ai_failure(controller, fake_ai, interview_settings):
    fake_ai.fail.add("opening")
    with pytest.raises(UpstreamFailure):
        controller.start("u1", interview_settings)


def test_start_without_quota_skips_ai(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "MONTHLY_SESSION_ALLOTMENT", 0)
    with pytest.raises(QuotaExceeded):
        SessionController().start("u1", interview_settings)
    assert fake_ai.calls["opening"] == 0


def test_full_cycle_keeps_pointer_and_answers_aligned(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id

    for index in range(5):
        evaluation = _answer(controller, sid, index)
        assert evaluation.score == 80
        result = controller.next(sid, index)
        session = controller.store.get(sid)
        assert len(session.answers) == session.current_index
        if index < 4:
            assert not result.is_complete
            assert result.question_index == index + 1
            assert result.transition == "ありがとうございます。"
        else:
            assert result.is_complete
            assert session.current_index == 5

    assert fake_ai.calls["evaluate"] == 5
    assert fake_ai.calls["next_question"] == 4


def test_follow_up_replaces_planned_question(controller, fake_ai, interview_settings):
    fake_ai.follow_up = True
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)

    result = controller.next(sid, 0)
    assert result.question == "そのプロジェクトで具体的に何を担当しましたか。"
    stored = controller.store.get(sid)
    assert stored.questions[1].question == result.question
    assert stored.questions[1].transition == "なるほど、ありがとうございます。"


def test_skip_records_marker_without_ai(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id

    result = controller.next(sid, 0)
    assert result.question_index == 1
    assert result.transition is None
    assert fake_ai.calls["next_question"] == 0

    session = controller.store.get(sid)
    assert session.answers[0].skipped
    assert session.answers[0].evaluation is None


def test_followups_disabled_uses_planned_question(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "FOLLOWUPS_ENABLED", False)
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)
    result = controller.next(sid, 0)
    assert fake_ai.calls["next_question"] == 0
    assert result.question == controller.store.get(sid).questions[1].question


def test_stale_index_is_rejected(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    controller.next(sid, 0)
    with pytest.raises(InvalidState):
        controller.next(sid, 0)
    with pytest.raises(InvalidState):
        controller.next(sid, 3)


def test_concurrent_next_during_ai_call(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)
    inner = []
    fake_ai.on_next = lambda: inner.append(controller.next(sid, 0))

    with pytest.raises(InvalidState):
        controller.next(sid, 0)

    assert inner[0].question_index == 1
    session = controller.store.get(sid)
    assert session.current_index == 1
    assert len(session.answers) == 1


def test_next_failure_leaves_state_untouched(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)
    before = controller.store.get(sid)
    fake_ai.fail.add("next_question")

    with pytest.raises(UpstreamFailure):
        controller.next(sid, 0)
    after = controller.store.get(sid)
    assert after.version == before.version
    assert after.current_index == 0


def test_empty_answer_never_reaches_ai(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    with pytest.raises(EmptyAnswer):
        controller.evaluate(sid, 0, "Q", "   ", 10)
    with pytest.raises(EmptyAnswer):
        controller.evaluate("unknown", 0, "Q", "", 10)
    assert fake_ai.calls["evaluate"] == 0


def test_evaluate_checks_index(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    with pytest.raises(InvalidState):
        controller.evaluate(sid, 1, "Q", "answer", 10)
    _answer(controller, sid, 0)
    with pytest.raises(InvalidState):
        _answer(controller, sid, 0)


def test_evaluate_failure_records_nothing(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    fake_ai.fail.add("evaluate")
    with pytest.raises(UpstreamFailure):
        _answer(controller, sid, 0)
    assert controller.store.get(sid).answers == []


def test_unknown_session_is_not_found(controller, fake_ai):
    with pytest.raises(NotFound):
        controller.next("nope", 0)
    with pytest.raises(NotFound):
        controller.summarize("nope")
    with pytest.raises(NotFound):
        controller.fetch("nope")


def test_summarize_is_idempotent_and_charges_once(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    for index in range(2):
        _answer(controller, sid, index)
        controller.next(sid, index)

    first = controller.summarize(sid)
    second = controller.summarize(sid)

    assert first.summary == second.summary
    assert first.summary.answered_count == 2
    assert first.status == "completed"
    assert first.quota_remaining == 0
    assert second.quota_remaining == 0
    period = controller.quota.period_for()
    assert used_units("u1", period) == 1

    with pytest.raises(InvalidState):
        controller.next(sid, 2)
    with pytest.raises(InvalidState):
        _answer(controller, sid, 2)
    with pytest.raises(QuotaExceeded):
        controller.start("u1", interview_settings)


def test_summarize_extends_retention(controller, fake_ai, interview_settings):
    sid = controller.start("u1", interview_settings).session_id
    created = controller.store.get(sid)
    view = controller.summarize(sid)
    sealed = controller.store.get(sid)

    assert view.completed_at is not None
    assert datetime.fromisoformat(sealed.expires_at) > datetime.fromisoformat(created.expires_at)


def test_quota_consumed_at_start(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_CONSUME_AT", "start")
    result = controller.start("u1", interview_settings)
    assert result.quota_remaining == 0

    view = controller.summarize(result.session_id)
    assert view.quota_remaining == 0
    assert used_units("u1", controller.quota.period_for()) == 1
    with pytest.raises(QuotaExceeded):
        controller.start("u1", interview_settings)


def test_quota_refused_at_start_leaves_no_session(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_CONSUME_AT", "start")
    inner = []
    fake_ai.on_opening = lambda: inner.append(controller.start("u1", interview_settings))

    with pytest.raises(QuotaExceeded):
        controller.start("u1", interview_settings)

    rows = controller.store.recent()
    assert [row["session_id"] for row in rows] == [inner[0].session_id]
    assert used_units("u1", controller.quota.period_for()) == 1


def test_concurrent_summarize_seals_once(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "SUMMARY_NARRATIVE_ENABLED", True)
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)
    inner = []
    fake_ai.on_narrative = lambda: inner.append(controller.summarize(sid))

    outer = controller.summarize(sid)

    assert outer.summary == inner[0].summary
    assert outer.completed_at == inner[0].completed_at
    assert outer.quota_remaining == 0
    assert used_units("u1", controller.quota.period_for()) == 1
    assert controller.store.get(sid).summary == outer.summary


def test_narrative_enabled_rewrites_text_only(controller, fake_ai, interview_settings, monkeypatch):
    monkeypatch.setattr(settings, "SUMMARY_NARRATIVE_ENABLED", True)
    sid = controller.start("u1", interview_settings).session_id
    _answer(controller, sid, 0)

    summary = controller.summarize(sid).summary
    assert fake_ai.calls["narrative"] == 1
    assert summary.overall_feedback == "全体として落ち着いた受け答えでした。"
    assert summary.total_score == 80
