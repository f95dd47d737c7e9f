from .models import (
    INTERVIEW_TYPE_LABELS,
    Answer,
    DetailScores,
    Evaluation,
    InterviewerProfile,
    InterviewSettings,
    NextResult,
    OverallScores,
    Question,
    Session,
    SessionView,
    StartResult,
    Summary,
)

__all__ = [
    "INTERVIEW_TYPE_LABELS",
    "Answer",
    "DetailScores",
    "Evaluation",
    "InterviewerProfile",
    "InterviewSettings",
    "NextResult",
    "OverallScores",
    "Question",
    "Session",
    "SessionView",
    "StartResult",
    "Summary",
]
