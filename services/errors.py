"""Typed failures raised by the session controller and its collaborators."""
from __future__ import annotations


class InterviewError(RuntimeError):
    """Base class; ``code`` and ``status_code`` travel to the HTTP layer."""

    code = "interview_error"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFound(InterviewError):
    code = "not_found"
    status_code = 404


class InvalidState(InterviewError):
    """Out-of-order or duplicate turn operation; clients should resync."""

    code = "invalid_state"
    status_code = 409


class EmptyAnswer(InterviewError):
    code = "empty_answer"
    status_code = 400


class QuotaExceeded(InterviewError):
    code = "quota_exceeded"
    status_code = 429


class UpstreamFailure(InterviewError):
    """The AI turn service failed or returned unusable content. Retryable."""

    code = "upstream_failure"
    status_code = 502


__all__ = [
    "EmptyAnswer",
    "InterviewError",
    "InvalidState",
    "NotFound",
    "QuotaExceeded",
    "UpstreamFailure",
]
