"""Summary aggregation over the evaluated answers of a session."""
from __future__ import annotations

import logging
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from agents.types import NarrativePlan
from config.scoring import CATEGORIES, ScoringPolicy, scoring_policy
from interview_session.models import Answer, OverallScores, Session, Summary
from services.errors import UpstreamFailure

logger = logging.getLogger(__name__)

Narrator = Callable[[Session, Summary], NarrativePlan]

NARRATIVE_ATTEMPTS = 2


def round_half_up(value: float) -> int:
    """Round .5 away from zero (Python's ``round`` uses banker's rounding)."""

    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def duration_factor(seconds: float, policy: ScoringPolicy) -> float:
    if seconds < policy.min_answer_seconds or seconds > policy.max_answer_seconds:
        return policy.duration_penalty
    return 1.0


def category_values(answer: Answer, policy: ScoringPolicy) -> Dict[str, float]:
    """Per-answer contribution to each summary category."""

    ev = answer.evaluation
    if ev is None:
        raise ValueError(f"answer {answer.question_index} has no evaluation")
    detail = ev.detail_scores
    score = float(ev.score)
    return {
        "content": float(detail.specificity) if detail else score,
        "logic": float(detail.logic) if detail else score,
        "communication": score * duration_factor(answer.answer_duration_seconds, policy),
        "understanding": float(detail.relevance) if detail else score,
        "enthusiasm": float(detail.enthusiasm) if detail else score,
    }


def _top_points(groups: Iterable[List[str]], limit: int) -> List[str]:
    # most_common keeps first-seen order among equal counts
    counts: Counter = Counter()
    for points in groups:
        for point in points:
            text = point.strip()
            if text:
                counts[text] += 1
    return [text for text, _ in counts.most_common(limit)]


def _overall_feedback(total: int, grade: str, likelihood: str, answered: int, question_count: int) -> str:
    if answered == 0:
        return "No answers were evaluated, so no score could be given. Try the interview again from the start."
    return (
        f"You answered {answered} of {question_count} questions for an overall score of "
        f"{total}/100 (grade {grade}). {likelihood}."
    )


def _next_steps(improvements: List[str], skipped: int, limit: int) -> List[str]:
    steps: List[str] = []
    if skipped:
        plural = "question" if skipped == 1 else "questions"
        steps.append(f"Prepare answers for the {skipped} {plural} you skipped.")
    for point in improvements:
        if len(steps) >= limit:
            break
        steps.append(f"Practise: {point}")
    if not steps:
        steps.append("Keep practising with a different interview type or position.")
    return steps[:limit]


def aggregate(answers: Sequence[Answer], question_count: int, policy: Optional[ScoringPolicy] = None) -> Summary:
    """Score a session from its recorded answers.

    Skip markers and unevaluated answers do not contribute to any score;
    skip markers are reported in ``skipped_count``.
    """

    policy = policy or scoring_policy()
    evaluated = [answer for answer in answers if answer.evaluation is not None and not answer.skipped]
    skipped = sum(1 for answer in answers if answer.skipped)

    per_category: Dict[str, List[float]] = {name: [] for name in CATEGORIES}
    for answer in evaluated:
        for name, value in category_values(answer, policy).items():
            per_category[name].append(value)
    means = {name: _mean(values) for name, values in per_category.items()}

    weight_sum = sum(policy.weights.values())
    weighted = sum(means[name] * policy.weights[name] for name in CATEGORIES) / weight_sum
    total = _clamp(round_half_up(weighted))
    band = policy.band_for(total)

    strengths = _top_points((a.evaluation.good_points for a in evaluated), policy.max_points)
    improvements = _top_points((a.evaluation.improvement_points for a in evaluated), policy.max_points)

    return Summary(
        total_score=total,
        overall_scores=OverallScores(**{name: _clamp(round_half_up(means[name])) for name in CATEGORIES}),
        grade=band.grade,
        pass_likelihood=band.pass_likelihood,
        strengths=strengths,
        improvements=improvements,
        overall_feedback=_overall_feedback(total, band.grade, band.pass_likelihood, len(evaluated), question_count),
        next_steps=_next_steps(improvements, skipped, policy.max_points),
        answered_count=len(evaluated),
        skipped_count=skipped,
    )


def compose_summary(
    session: Session,
    *,
    policy: Optional[ScoringPolicy] = None,
    narrator: Optional[Narrator] = None,
) -> Summary:
    """Aggregate ``session`` and optionally let ``narrator`` reword the text.

    The narrator only replaces the narrative fields; a narrator that keeps
    failing leaves the mechanical narrative in place.
    """

    policy = policy or scoring_policy()
    draft = aggregate(session.answers, session.question_count, policy)
    if narrator is None or draft.answered_count == 0:
        return draft

    for attempt in range(1, NARRATIVE_ATTEMPTS + 1):
        try:
            plan = narrator(session, draft)
        except UpstreamFailure as exc:
            logger.warning("Narrative attempt %d failed for %s: %s", attempt, session.session_id, exc)
            continue
        limit = policy.max_points
        return draft.model_copy(
            update={
                "strengths": plan.strengths[:limit] or draft.strengths,
                "improvements": plan.improvements[:limit] or draft.improvements,
                "overall_feedback": plan.overall_feedback.strip() or draft.overall_feedback,
                "next_steps": plan.next_steps[:limit] or draft.next_steps,
            }
        )
    return draft


__all__ = ["aggregate", "category_values", "compose_summary", "duration_factor", "round_half_up"]
