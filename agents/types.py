"""Structured outputs expected from the AI turn service."""
from typing import Any, List, Optional

from pydantic import Field, field_validator

from interview_session.models import CamelModel, DetailScores, Evaluation, InterviewerProfile, Question


def clamp_score(value: Any) -> int:
    """Round a model-supplied score into 0..100; non-numbers are rejected."""

    if isinstance(value, bool):
        raise ValueError("score must be a number")
    number = float(value)
    return int(max(0, min(100, round(number))))


class PlannedQuestion(CamelModel):
    id: int = 0
    question: str
    category: str = ""
    intent: str = ""
    follow_up_hints: List[str] = Field(default_factory=list)

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question text is empty")
        return value.strip()

    def to_question(self, number: int) -> Question:
        return Question(
            id=number,
            question=self.question,
            category=self.category,
            intent=self.intent,
            follow_up_hints=list(self.follow_up_hints),
        )


class OpeningPlan(CamelModel):
    interviewer_profile: InterviewerProfile
    opening_message: str
    questions: List[PlannedQuestion] = Field(min_length=1)


class NextQuestionPlan(CamelModel):
    use_follow_up: bool = False
    question: str = ""
    transition: str = ""


class DetailScoresPlan(CamelModel):
    relevance: int
    specificity: int
    logic: int
    enthusiasm: int

    @field_validator("relevance", "specificity", "logic", "enthusiasm", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)


class EvaluationPlan(CamelModel):
    score: int
    good_points: List[str] = Field(default_factory=list)
    improvement_points: List[str] = Field(default_factory=list)
    short_feedback: str = ""
    detail_scores: Optional[DetailScoresPlan] = None

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)

    def to_evaluation(self) -> Evaluation:
        detail = None
        if self.detail_scores is not None:
            detail = DetailScores(**self.detail_scores.model_dump())
        return Evaluation(
            score=self.score,
            good_points=[point.strip() for point in self.good_points if point.strip()],
            improvement_points=[point.strip() for point in self.improvement_points if point.strip()],
            short_feedback=self.short_feedback.strip(),
            detail_scores=detail,
        )


class NarrativePlan(CamelModel):
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    overall_feedback: str
    next_steps: List[str] = Field(default_factory=list)
