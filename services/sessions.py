"""Session controller: the server-side state machine of one mock interview."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from agents import turn_service
from config.settings import settings
from interview_session.models import (
    Answer,
    Evaluation,
    InterviewSettings,
    NextResult,
    Session,
    SessionView,
    StartResult,
)
from observability import log_event, span
from services.errors import EmptyAnswer, InvalidState, NotFound, QuotaExceeded, UpstreamFailure
from services.quota import QuotaManager
from services.scoring import compose_summary
from storage.session_store import SessionStore, StaleWrite, iso, utcnow


class SessionController:
    """Runs start / next / evaluate / summarize against the session store.

    Handlers are stateless: each call loads the session, checks that the
    caller's view of it is current, and writes back conditionally. A write
    that loses against a concurrent one is reported as ``InvalidState``.
    Nothing is written when an operation fails.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        quota: Optional[QuotaManager] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._clock = clock
        self.store = store or SessionStore(clock=clock)
        self.quota = quota or QuotaManager(clock=clock)

    def start(
        self,
        user_id: str,
        interview_settings: InterviewSettings,
        resume_data: Optional[Dict[str, Any]] = None,
        diagnosis_result: Optional[Dict[str, Any]] = None,
    ) -> StartResult:
        session_id = uuid.uuid4().hex
        with span(session_id, "start", user=user_id) as extra:
            remaining = self.quota.remaining_for(user_id)
            if remaining <= 0:
                raise QuotaExceeded("No remaining free sessions this month")

            plan = turn_service.generate_opening(interview_settings, resume_data, diagnosis_result)
            count = interview_settings.question_count
            if len(plan.questions) < count:
                raise UpstreamFailure(f"AI service planned {len(plan.questions)} of {count} questions")
            questions = [item.to_question(number) for number, item in enumerate(plan.questions[:count], start=1)]

            now = self._clock()
            if settings.QUOTA_CONSUME_AT == "start":
                decision = self.quota.check_and_reserve(user_id, session_id, now)
                if not decision.allowed:
                    raise QuotaExceeded("No remaining free sessions this month")
                remaining = decision.remaining

            session = Session(
                session_id=session_id,
                user_id=user_id,
                settings=interview_settings,
                interviewer_profile=plan.interviewer_profile,
                opening_message=plan.opening_message.strip(),
                questions=questions,
                created_at=iso(now),
                expires_at=iso(now + timedelta(seconds=settings.SESSION_TTL_SECONDS)),
            )
            self.store.create(session)
            extra["questions"] = count

        return StartResult(
            session_id=session_id,
            interviewer_profile=session.interviewer_profile,
            opening_message=session.opening_message,
            first_question=questions[0],
            question_count=count,
            quota_remaining=remaining,
        )

    def next(self, session_id: str, current_index: int) -> NextResult:
        """Advance past ``current_index``.

        An unanswered current question is recorded as skipped. After the
        last question the pointer moves to ``question_count`` and the result
        only says ``is_complete``.
        """

        with span(session_id, "next", question_index=current_index):
            session = self._load(session_id)
            if session.is_sealed:
                raise InvalidState("Session is already summarized")
            if current_index != session.current_index or current_index >= session.question_count:
                raise InvalidState(
                    f"Expected question index {session.current_index}, got {current_index}"
                )

            answers: List[Answer] = list(session.answers)
            prior = session.answer_for(current_index)
            if prior is None:
                if len(answers) != current_index:
                    raise InvalidState("Recorded answers do not match the question pointer")
                prior = Answer(
                    question_index=current_index,
                    question=session.questions[current_index].question,
                    skipped=True,
                    answered_at=iso(self._clock()),
                )
                answers.append(prior)
                log_event("skip", session_id, question_index=current_index)

            next_index = current_index + 1
            if next_index >= session.question_count:
                self._write(session.model_copy(update={"answers": answers, "current_index": session.question_count}))
                return NextResult(is_complete=True)

            planned = session.questions[next_index]
            question = planned
            if settings.FOLLOWUPS_ENABLED and not prior.skipped and prior.evaluation is not None:
                decision = turn_service.plan_next_question(session, prior, planned.question)
                question = planned.model_copy(
                    update={"question": decision.question, "transition": decision.transition or None}
                )
                if decision.use_follow_up:
                    log_event("follow_up", session_id, question_index=next_index)

            questions = list(session.questions)
            questions[next_index] = question
            self._write(
                session.model_copy(
                    update={"answers": answers, "questions": questions, "current_index": next_index}
                )
            )
        return NextResult(
            is_complete=False,
            question_index=next_index,
            question=question.question,
            transition=question.transition,
        )

    def evaluate(
        self,
        session_id: str,
        question_index: int,
        question: str,
        answer_text: str,
        answer_duration_seconds: int,
    ) -> Evaluation:
        if not (answer_text or "").strip():
            raise EmptyAnswer("Answer text is empty")

        with span(session_id, "evaluate", question_index=question_index) as extra:
            session = self._load(session_id)
            if session.is_sealed:
                raise InvalidState("Session is already summarized")
            if question_index != len(session.answers) or question_index >= session.question_count:
                raise InvalidState(f"Question {question_index} cannot be answered now")

            question_text = (question or "").strip() or session.questions[question_index].question
            duration = max(0, int(answer_duration_seconds))
            evaluation = turn_service.evaluate_answer(session, question_text, answer_text.strip(), duration)
            answer = Answer(
                question_index=question_index,
                question=question_text,
                answer_text=answer_text.strip(),
                answer_duration_seconds=duration,
                evaluation=evaluation,
                answered_at=iso(self._clock()),
            )
            self._write(session.model_copy(update={"answers": [*session.answers, answer]}))
            extra["score"] = evaluation.score
        return evaluation

    def summarize(self, session_id: str) -> SessionView:
        """Seal the session with its summary; repeated calls return the same one.

        Quota is charged once, by whichever caller's write sealed the session.
        """

        with span(session_id, "summarize") as extra:
            session = self._load(session_id)
            if session.summary is not None:
                extra["outcome"] = "cached"
                return SessionView.from_session(session, self.quota.remaining_for(session.user_id))

            narrator = turn_service.narrate_summary if settings.SUMMARY_NARRATIVE_ENABLED else None
            summary = compose_summary(session, narrator=narrator)
            now = self._clock()
            sealed = session.model_copy(
                update={
                    "summary": summary,
                    "status": "completed",
                    "completed_at": iso(now),
                    "expires_at": iso(now + timedelta(seconds=settings.COMPLETED_TTL_SECONDS)),
                }
            )
            try:
                saved = self.store.save(sealed)
            except StaleWrite:
                latest = self.store.get(session_id)
                if latest is not None and latest.summary is not None:
                    extra["outcome"] = "cached"
                    return SessionView.from_session(latest, self.quota.remaining_for(latest.user_id))
                raise InvalidState("Session changed while summarizing") from None

            decision = self.quota.check_and_reserve(saved.user_id, saved.session_id, now)
            extra["score"] = summary.total_score
        return SessionView.from_session(saved, decision.remaining)

    def fetch(self, session_id: str) -> SessionView:
        session = self._load(session_id)
        return SessionView.from_session(session, self.quota.remaining_for(session.user_id))

    def _load(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found or expired")
        return session

    def _write(self, session: Session) -> Session:
        try:
            return self.store.save(session)
        except StaleWrite as exc:
            raise InvalidState("Session was updated by another request; reload and retry") from exc


def default_controller() -> SessionController:
    return SessionController()


__all__ = ["SessionController", "default_controller"]
