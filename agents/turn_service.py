"""AI turn service: opening plan, next-question decision, evaluation, narrative.

Each operation looks up its callable in the model registry and calls it as
``fn(prompt=..., schema=...)``. Whatever comes back (a model instance, a
dict or a JSON string) is validated against the schema. Any failure along
the way surfaces as ``UpstreamFailure`` so callers can leave session state
untouched and let the client retry.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from agents import prompts
from agents.types import EvaluationPlan, NarrativePlan, NextQuestionPlan, OpeningPlan
from config.registry import EVALUATION_KEY, NARRATIVE_KEY, NEXT_QUESTION_KEY, OPENING_KEY, get_model
from interview_session.models import Answer, Evaluation, InterviewSettings, Session, Summary
from llm_gateway import LlmGatewayError
from services.errors import UpstreamFailure

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _coerce(schema: Type[T], raw: Any) -> T:
    if isinstance(raw, schema):
        return raw
    if isinstance(raw, BaseModel):
        return schema.model_validate(raw.model_dump(by_alias=True))
    if isinstance(raw, (str, bytes)):
        return schema.model_validate_json(raw)
    return schema.model_validate(raw)


def _invoke(key: str, prompt: str, schema: Type[T]) -> T:
    try:
        llm = get_model(key)
        raw = llm(prompt=prompt, schema=schema)
        return _coerce(schema, raw)
    except (KeyError, LlmGatewayError, ValidationError, ValueError, json.JSONDecodeError, TypeError) as exc:
        logger.warning("AI call %s failed: %s", key, exc)
        raise UpstreamFailure(f"AI service failed for {key.rsplit('.', 1)[-1]}") from exc


def generate_opening(
    settings: InterviewSettings,
    resume: Optional[Dict[str, Any]] = None,
    diagnosis: Optional[Dict[str, Any]] = None,
) -> OpeningPlan:
    """Interviewer persona, opening line and the planned question list."""

    plan = _invoke(OPENING_KEY, prompts.opening_prompt(settings, resume, diagnosis), OpeningPlan)
    if not plan.opening_message.strip():
        raise UpstreamFailure("AI service returned an empty opening message")
    return plan


def plan_next_question(session: Session, previous: Answer, planned_question: str) -> NextQuestionPlan:
    """Decide between the planned question and a follow-up.

    A follow-up without text falls back to the planned question; the
    transition is kept either way.
    """

    plan = _invoke(
        NEXT_QUESTION_KEY,
        prompts.next_question_prompt(session, previous, planned_question),
        NextQuestionPlan,
    )
    question = plan.question.strip() if plan.use_follow_up else ""
    return NextQuestionPlan(
        use_follow_up=bool(question),
        question=question or planned_question,
        transition=plan.transition.strip(),
    )


def evaluate_answer(session: Session, question: str, answer_text: str, duration_seconds: int) -> Evaluation:
    plan = _invoke(
        EVALUATION_KEY,
        prompts.evaluation_prompt(session, question, answer_text, duration_seconds),
        EvaluationPlan,
    )
    return plan.to_evaluation()


def narrate_summary(session: Session, draft: Summary) -> NarrativePlan:
    return _invoke(NARRATIVE_KEY, prompts.narrative_prompt(session, draft), NarrativePlan)


__all__ = ["evaluate_answer", "generate_opening", "narrate_summary", "plan_next_question"]
