"""Client-side state machine that drives one interview through the API."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from config.settings import settings
from interview_session.models import Evaluation, SessionView, StartResult

from .api_client import ApiError, SessionApi
from .speech import NoSpeech, SpeechCapability, split_for_speech
from .timer import AnswerTimer

logger = logging.getLogger(__name__)

QUOTA_NOTICE = "You have no remaining free sessions this month."
CLOSING_LINE = "Thank you for your time. Your results are being compiled."
EMPTY_ANSWER_MESSAGE = "Please enter an answer before submitting."
SKIPPED_MESSAGE = "Question skipped."


class TurnPhase(str, Enum):
    INIT = "init"
    SPEAKING_AI = "speaking-ai"
    READY_TO_ANSWER = "ready-to-answer"
    LISTENING = "listening"
    EVALUATING = "evaluating"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


class InvalidTransition(RuntimeError):
    pass


@dataclass
class TranscriptEntry:
    role: Literal["interviewer", "user", "system"]
    text: str
    evaluation: Optional[Evaluation] = None


class TurnExecutor:
    """Drives speaking, answering, evaluation and advancing for one session.

    Only one network call is in flight at a time. Once the machine reaches
    ``COMPLETE`` any late result from an earlier call is dropped.
    """

    def __init__(
        self,
        api: SessionApi,
        speech: Optional[SpeechCapability] = None,
        *,
        time_limit: Optional[float] = None,
        timer: Optional[AnswerTimer] = None,
    ) -> None:
        self.api = api
        self.speech: SpeechCapability = speech or NoSpeech()
        self.time_limit = float(settings.ANSWER_TIME_LIMIT if time_limit is None else time_limit)
        self.timer = timer or AnswerTimer()
        self._lock = asyncio.Lock()

        self.phase = TurnPhase.INIT
        self.session_id: Optional[str] = None
        self.question_count = 0
        self.question_index = 0
        self.question_text = ""
        self.answer_text = ""
        self.evaluation: Optional[Evaluation] = None
        self.error: Optional[ApiError] = None
        self.validation_message: Optional[str] = None
        self.summary: Optional[SessionView] = None
        self.quota_notice: Optional[str] = None
        self.transcript: List[TranscriptEntry] = []
        self._pending: Optional[tuple] = None

    @classmethod
    async def start(
        cls,
        api: SessionApi,
        interview_settings: Dict[str, Any],
        *,
        resume_data: Optional[Dict[str, Any]] = None,
        diagnosis_result: Optional[Dict[str, Any]] = None,
        speech: Optional[SpeechCapability] = None,
        **kwargs: Any,
    ) -> "TurnExecutor":
        """Create the session and speak the opening. ``ApiError`` propagates."""

        result = await api.start(interview_settings, resume_data, diagnosis_result)
        executor = cls(api, speech, **kwargs)
        await executor.load(result)
        return executor

    @property
    def can_retry_evaluation(self) -> bool:
        return self.phase is TurnPhase.FEEDBACK and self.evaluation is None and self._pending is not None

    @property
    def can_retry_summary(self) -> bool:
        return self.phase is TurnPhase.COMPLETE and self.summary is None and self.session_id is not None

    @property
    def is_complete(self) -> bool:
        return self.phase is TurnPhase.COMPLETE

    async def load(self, start: StartResult) -> None:
        self._require(TurnPhase.INIT)
        self.session_id = start.session_id
        self.question_count = start.question_count
        self.question_index = 0
        self.question_text = start.first_question.question
        self.phase = TurnPhase.SPEAKING_AI
        await self._say(start.opening_message)
        await self._say(self.question_text)
        if self.phase is TurnPhase.SPEAKING_AI:
            self._enter_ready()

    async def begin_answer(self) -> None:
        self._require(TurnPhase.READY_TO_ANSWER)
        self.phase = TurnPhase.LISTENING
        self.validation_message = None
        if not self.speech.is_supported():
            return
        heard = await self.speech.listen()
        if self.phase is TurnPhase.LISTENING and heard.strip():
            self.answer_text = f"{self.answer_text} {heard.strip()}".strip()

    async def submit(self, typed_text: Optional[str] = None) -> None:
        self._require(TurnPhase.LISTENING)
        text = (typed_text if typed_text is not None else self.answer_text).strip()
        if not text:
            self.validation_message = EMPTY_ANSWER_MESSAGE
            return
        self.speech.stop()
        self.timer.stop()
        self.answer_text = text
        self.validation_message = None
        self._pending = (self.question_index, self.question_text, text, self.timer.elapsed_seconds())
        self.transcript.append(TranscriptEntry("user", text))
        self.phase = TurnPhase.EVALUATING
        await self._evaluate()

    async def retry_evaluation(self) -> None:
        if not self.can_retry_evaluation:
            raise InvalidTransition(f"cannot retry evaluation from {self.phase.value}")
        self.phase = TurnPhase.EVALUATING
        await self._evaluate()

    async def next_question(self) -> None:
        self._require(TurnPhase.FEEDBACK)
        await self._advance()

    async def skip(self) -> None:
        self._require(TurnPhase.READY_TO_ANSWER, TurnPhase.LISTENING)
        self.speech.stop()
        self.timer.stop()
        self.answer_text = ""
        self.evaluation = None
        self._pending = None
        self.transcript.append(TranscriptEntry("system", SKIPPED_MESSAGE))
        # a failed advance leaves the user in feedback with a retry
        self.phase = TurnPhase.FEEDBACK
        await self._advance()

    async def end_interview(self) -> None:
        if self.phase in (TurnPhase.INIT, TurnPhase.EVALUATING, TurnPhase.COMPLETE):
            raise InvalidTransition(f"cannot end the interview from {self.phase.value}")
        self.speech.stop()
        await self._finish()

    async def retry_summary(self) -> None:
        if not self.can_retry_summary:
            raise InvalidTransition(f"cannot retry the summary from {self.phase.value}")
        await self._summarize()

    async def check_time_limit(self) -> bool:
        """Auto-submit (or skip, with nothing typed) once the answer time is up."""

        if self.phase not in (TurnPhase.READY_TO_ANSWER, TurnPhase.LISTENING):
            return False
        if self.timer.elapsed() < self.time_limit:
            return False
        if self.answer_text.strip():
            if self.phase is TurnPhase.READY_TO_ANSWER:
                self.phase = TurnPhase.LISTENING
            await self.submit()
        else:
            await self.skip()
        return True

    def remaining_time(self) -> float:
        return self.timer.remaining(self.time_limit)

    async def _evaluate(self) -> None:
        session_id = self._session_id()
        if self._pending is None:
            raise InvalidTransition("no answer is waiting for evaluation")
        index, question, text, duration = self._pending
        self.error = None
        try:
            async with self._lock:
                evaluation = await self.api.evaluate(session_id, index, question, text, duration)
        except ApiError as exc:
            if self.is_complete:
                return
            if exc.code == "invalid_state":
                await self._resync()
                return
            self._fail(exc)
            self.phase = TurnPhase.FEEDBACK
            return
        if self.is_complete:
            return
        self.evaluation = evaluation
        self._pending = None
        self.transcript.append(TranscriptEntry("system", evaluation.short_feedback, evaluation))
        self.phase = TurnPhase.FEEDBACK

    async def _advance(self) -> None:
        session_id = self._session_id()
        self.error = None
        try:
            async with self._lock:
                result = await self.api.next(session_id, self.question_index)
        except ApiError as exc:
            if self.is_complete:
                return
            if exc.code == "invalid_state":
                await self._resync()
                return
            self._fail(exc)
            return
        if self.is_complete:
            return
        if result.is_complete:
            await self._finish()
            return

        self.question_index = result.question_index or 0
        self.question_text = result.question or ""
        self.evaluation = None
        self._pending = None
        self.phase = TurnPhase.SPEAKING_AI
        if result.transition:
            await self._say(result.transition)
        await self._say(self.question_text)
        if self.phase is TurnPhase.SPEAKING_AI:
            self._enter_ready()

    async def _finish(self) -> None:
        self._session_id()
        self.phase = TurnPhase.COMPLETE
        self.timer.stop()
        self.transcript.append(TranscriptEntry("interviewer", CLOSING_LINE))
        await self._summarize()

    async def _summarize(self) -> None:
        session_id = self._session_id()
        self.error = None
        try:
            async with self._lock:
                view = await self.api.summarize(session_id)
        except ApiError as exc:
            self._fail(exc)
            return
        self.summary = view
        if view.quota_remaining == 0:
            self.quota_notice = QUOTA_NOTICE

    async def _resync(self) -> None:
        """Adopt the server's view after an out-of-order rejection."""

        session_id = self._session_id()
        try:
            async with self._lock:
                view = await self.api.fetch(session_id)
        except ApiError as exc:
            self._fail(exc)
            return
        if self.is_complete:
            return
        logger.info("Resynced session %s at question %d", self.session_id, view.current_index)
        if view.summary is not None:
            self.phase = TurnPhase.COMPLETE
            self.summary = view
            return
        if view.current_index >= len(view.questions):
            await self._finish()
            return
        self.question_index = view.current_index
        self.question_text = view.questions[view.current_index].question
        self._pending = None
        if len(view.answers) > view.current_index:
            self.evaluation = view.answers[view.current_index].evaluation
            self.phase = TurnPhase.FEEDBACK
        else:
            self._enter_ready()

    async def _say(self, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        self.transcript.append(TranscriptEntry("interviewer", text))
        if not self.speech.is_supported():
            return
        for chunk in split_for_speech(text):
            if self.phase is not TurnPhase.SPEAKING_AI:
                break
            await self.speech.speak(chunk)

    def _enter_ready(self) -> None:
        self.phase = TurnPhase.READY_TO_ANSWER
        self.answer_text = ""
        self.validation_message = None
        self.timer.start()

    def _fail(self, exc: ApiError) -> None:
        logger.warning("Session %s call failed: %s", self.session_id, exc)
        self.error = exc
        self.transcript.append(TranscriptEntry("system", exc.message))

    def _session_id(self) -> str:
        if self.session_id is None:
            raise InvalidTransition("no session has been loaded")
        return self.session_id

    def _require(self, *phases: TurnPhase) -> None:
        if self.phase not in phases:
            expected = ", ".join(phase.value for phase in phases)
            raise InvalidTransition(f"expected {expected}, current phase is {self.phase.value}")


__all__ = [
    "InvalidTransition",
    "QUOTA_NOTICE",
    "TranscriptEntry",
    "TurnExecutor",
    "TurnPhase",
]
