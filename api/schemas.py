"""Request and response bodies for the mock interview API."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field

from interview_session.models import CamelModel, InterviewSettings


class StartReq(CamelModel):
    settings: InterviewSettings
    resume_data: Optional[Dict[str, Any]] = None
    diagnosis_result: Optional[Dict[str, Any]] = None


class NextReq(CamelModel):
    session_id: str
    current_question_index: int = Field(ge=0)


class EvaluateReq(CamelModel):
    session_id: str
    question_index: int = Field(ge=0)
    question: str = ""
    # empty text is a domain error (400), not a validation error
    answer: str = ""
    answer_duration: int = Field(default=0, ge=0)


class SummaryReq(CamelModel):
    session_id: str


class QuotaResp(CamelModel):
    remaining: int
    allotment: int
    period: str


class ErrorDetail(CamelModel):
    error: str
    message: str
