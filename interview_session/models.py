"""Session entity and the value types stored inside it."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

InterviewType = Literal["first", "second", "final"]
SessionStatus = Literal["in-progress", "completed"]

INTERVIEW_TYPE_LABELS: Dict[str, str] = {
    "first": "first-round interview (HR screening: introduction, motivation, basic skills)",
    "second": "second-round interview (hiring manager: deep dives, problem solving, management)",
    "final": "final interview (executive: commitment, long-term vision, values and fit)",
}


class CamelModel(BaseModel):  # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InterviewSettings(CamelModel):
    industry: str
    position: str
    interview_type: InterviewType = "first"
    question_count: Literal[5, 8] = 5

    @field_validator("industry", "position")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def interview_type_label(self) -> str:
        return INTERVIEW_TYPE_LABELS.get(self.interview_type, self.interview_type)


class InterviewerProfile(CamelModel):
    name: str
    role: str


class Question(CamelModel):
    id: int
    question: str
    category: str = ""
    intent: str = ""
    follow_up_hints: List[str] = Field(default_factory=list)
    transition: Optional[str] = None


class DetailScores(CamelModel):
    relevance: int = Field(ge=0, le=100)
    specificity: int = Field(ge=0, le=100)
    logic: int = Field(ge=0, le=100)
    enthusiasm: int = Field(ge=0, le=100)


class Evaluation(CamelModel):
    score: int = Field(ge=0, le=100)
    good_points: List[str] = Field(default_factory=list)
    improvement_points: List[str] = Field(default_factory=list)
    short_feedback: str = ""
    detail_scores: Optional[DetailScores] = None


class Answer(CamelModel):
    """One recorded turn; ``skipped`` turns carry no evaluation."""

    question_index: int = Field(ge=0)
    question: str
    answer_text: str = ""
    answer_duration_seconds: int = Field(default=0, ge=0)
    evaluation: Optional[Evaluation] = None
    skipped: bool = False
    answered_at: str


class OverallScores(CamelModel):
    content: int = Field(ge=0, le=100)
    logic: int = Field(ge=0, le=100)
    communication: int = Field(ge=0, le=100)
    understanding: int = Field(ge=0, le=100)
    enthusiasm: int = Field(ge=0, le=100)


class Summary(CamelModel):
    total_score: int = Field(ge=0, le=100)
    overall_scores: OverallScores
    grade: str
    pass_likelihood: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    overall_feedback: str = ""
    next_steps: List[str] = Field(default_factory=list)
    answered_count: int = 0
    skipped_count: int = 0


class Session(CamelModel):
    """Persisted state of one interview attempt.

    ``answers`` holds one entry per question index up to ``current_index``
    (plus the just-evaluated turn before ``next`` is called). ``version`` is
    owned by the session store and bumps on every write.
    """

    session_id: str
    user_id: str
    settings: InterviewSettings
    interviewer_profile: InterviewerProfile
    opening_message: str
    questions: List[Question]
    answers: List[Answer] = Field(default_factory=list)
    current_index: int = Field(default=0, ge=0)
    status: SessionStatus = "in-progress"
    summary: Optional[Summary] = None
    created_at: str
    expires_at: str
    completed_at: Optional[str] = None
    version: int = 0

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def is_sealed(self) -> bool:
        return self.summary is not None

    def answer_for(self, index: int) -> Optional[Answer]:
        if 0 <= index < len(self.answers):
            return self.answers[index]
        return None


class SessionView(CamelModel):
    """Public projection of a session for result viewers and resync."""

    session_id: str
    settings: InterviewSettings
    interviewer_profile: InterviewerProfile
    opening_message: str
    questions: List[Question]
    answers: List[Answer]
    current_index: int
    status: SessionStatus
    summary: Optional[Summary] = None
    created_at: str
    completed_at: Optional[str] = None
    quota_remaining: Optional[int] = None

    @classmethod
    def from_session(cls, session: Session, quota_remaining: Optional[int] = None) -> "SessionView":
        return cls(
            session_id=session.session_id,
            settings=session.settings,
            interviewer_profile=session.interviewer_profile,
            opening_message=session.opening_message,
            questions=session.questions,
            answers=session.answers,
            current_index=session.current_index,
            status=session.status,
            summary=session.summary,
            created_at=session.created_at,
            completed_at=session.completed_at,
            quota_remaining=quota_remaining,
        )


class StartResult(CamelModel):
    session_id: str
    interviewer_profile: InterviewerProfile
    opening_message: str
    first_question: Question
    question_count: int
    quota_remaining: Optional[int] = None


class NextResult(CamelModel):
    """Either the next question or ``is_complete=True`` with nothing else."""

    is_complete: bool = False
    question_index: Optional[int] = None
    question: Optional[str] = None
    transition: Optional[str] = None
