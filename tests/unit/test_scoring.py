import pytest

import services.scoring as scoring
from agents.types import NarrativePlan
from config.scoring import DEFAULT_POLICY, policy_from_dict
from interview_session.models import (
    Answer,
    DetailScores,
    Evaluation,
    InterviewerProfile,
    InterviewSettings,
    Question,
    Session,
)
from services.errors import UpstreamFailure

POLICY = policy_from_dict(DEFAULT_POLICY)


def _answer(index, score=80, *, detail=None, duration=60, good=(), improve=(), skipped=False):
    evaluation = None
    if not skipped:
        evaluation = Evaluation(
            score=score,
            good_points=list(good),
            improvement_points=list(improve),
            short_feedback="ok",
            detail_scores=DetailScores(**detail) if detail else None,
        )
    return Answer(
        question_index=index,
        question=f"Q{index}",
        answer_text="" if skipped else "answer",
        answer_duration_seconds=duration,
        evaluation=evaluation,
        skipped=skipped,
        answered_at="2026-01-01T00:00:00+00:00",
    )


def _session(answers, count=5):
    return Session(
        session_id="s1",
        user_id="u1",
        settings=InterviewSettings(industry="IT", position="Engineer", question_count=count),
        interviewer_profile=InterviewerProfile(name="Sato", role="HR"),
        opening_message="Hello",
        questions=[Question(id=i + 1, question=f"Q{i}") for i in range(count)],
        answers=answers,
        created_at="2026-01-01T00:00:00+00:00",
        expires_at="2026-01-02T00:00:00+00:00",
    )


def test_no_answers_scores_zero():
    summary = scoring.aggregate([], 5, POLICY)
    assert summary.total_score == 0
    assert summary.grade == "D"
    assert summary.pass_likelihood == "Significant preparation needed"
    assert summary.overall_scores.model_dump() == {
        "content": 0,
        "logic": 0,
        "communication": 0,
        "understanding": 0,
        "enthusiasm": 0,
    }
    assert summary.answered_count == 0


def test_uniform_answers_keep_their_score():
    detail = {"relevance": 80, "specificity": 80, "logic": 80, "enthusiasm": 80}
    summary = scoring.aggregate([_answer(0, 80, detail=detail), _answer(1, 80, detail=detail)], 5, POLICY)
    assert summary.total_score == 80
    assert summary.grade == "A"
    assert summary.answered_count == 2


def test_duration_outside_window_reduces_communication():
    summary = scoring.aggregate([_answer(0, 80, duration=10)], 5, POLICY)
    assert summary.overall_scores.communication == 72
    assert summary.overall_scores.content == 80
    assert summary.total_score == 78
    assert summary.grade == "B+"

    long_answer = scoring.aggregate([_answer(0, 80, duration=200)], 5, POLICY)
    assert long_answer.overall_scores.communication == 72


def test_detail_scores_map_to_categories():
    detail = {"relevance": 90, "specificity": 70, "logic": 60, "enthusiasm": 50}
    summary = scoring.aggregate([_answer(0, 50, detail=detail)], 5, POLICY)
    assert summary.overall_scores.model_dump() == {
        "content": 70,
        "logic": 60,
        "communication": 50,
        "understanding": 90,
        "enthusiasm": 50,
    }
    assert summary.total_score == 65
    assert summary.grade == "C+"


def test_round_half_up():
    assert scoring.round_half_up(84.5) == 85
    assert scoring.round_half_up(2.5) == 3
    assert scoring.round_half_up(2.4) == 2


def test_skips_are_counted_not_scored():
    answers = [_answer(0, 92, detail={"relevance": 92, "specificity": 92, "logic": 92, "enthusiasm": 92}), _answer(1, skipped=True)]
    summary = scoring.aggregate(answers, 5, POLICY)
    assert summary.total_score == 92
    assert summary.grade == "S"
    assert summary.answered_count == 1
    assert summary.skipped_count == 1
    assert "skipped" in summary.next_steps[0]


def test_category_values_needs_an_evaluation():
    with pytest.raises(ValueError):
        scoring.category_values(_answer(2, skipped=True), POLICY)


def test_most_frequent_points_win():
    answers = [
        _answer(0, good=["A", "B"], improve=["x"]),
        _answer(1, good=["B", "C"], improve=["y", "x"]),
        _answer(2, good=["B", "A", "D"], improve=["z"]),
    ]
    summary = scoring.aggregate(answers, 5, POLICY)
    assert summary.strengths == ["B", "A", "C"]
    assert summary.improvements[0] == "x"
    assert len(summary.improvements) == 3


def test_custom_weights_are_used():
    policy = policy_from_dict({"weights": {"content": 1, "logic": 0, "communication": 0, "understanding": 0, "enthusiasm": 0}})
    detail = {"relevance": 10, "specificity": 70, "logic": 10, "enthusiasm": 10}
    summary = scoring.aggregate([_answer(0, 10, detail=detail)], 5, policy)
    assert summary.total_score == 70


def test_narrator_retries_once_then_succeeds():
    calls = []

    def narrator(session, draft):
        calls.append(1)
        if len(calls) == 1:
            raise UpstreamFailure("busy")
        return NarrativePlan(strengths=["calm"], improvements=["numbers"], overall_feedback="Well done.", next_steps=["practise"])

    session = _session([_answer(0, 80)])
    summary = scoring.compose_summary(session, policy=POLICY, narrator=narrator)
    assert len(calls) == 2
    assert summary.overall_feedback == "Well done."
    assert summary.strengths == ["calm"]
    assert summary.total_score == scoring.aggregate(session.answers, 5, POLICY).total_score


def test_narrator_failure_falls_back_to_mechanical_text():
    calls = []

    def narrator(session, draft):
        calls.append(1)
        raise UpstreamFailure("down")

    session = _session([_answer(0, 80, good=["clear"])])
    summary = scoring.compose_summary(session, policy=POLICY, narrator=narrator)
    assert len(calls) == scoring.NARRATIVE_ATTEMPTS
    assert summary == scoring.aggregate(session.answers, 5, POLICY)
    assert summary.strengths == ["clear"]


@pytest.mark.parametrize("seconds,factor", [(29, 0.9), (30, 1.0), (180, 1.0), (181, 0.9)])
def test_duration_factor_boundaries(seconds, factor):
    assert scoring.duration_factor(seconds, POLICY) == factor
