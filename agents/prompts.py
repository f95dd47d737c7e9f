"""Prompt builders for the AI turn service."""
from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict, List, Optional

from interview_session.models import Answer, InterviewSettings, Session, Summary

MAX_CONTEXT_CHARS = 1500


def _compact(value: Any, limit: int = MAX_CONTEXT_CHARS) -> str:
    if value in (None, "", [], {}):
        return "unknown"
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _resume_lines(resume: Optional[Dict[str, Any]]) -> str:
    resume = resume or {}
    skills = resume.get("skills")
    if isinstance(skills, list):
        skills = ", ".join(str(item) for item in skills)
    return "\n".join(
        [
            f"- Work history: {_compact(resume.get('workHistory'))}",
            f"- Skills: {_compact(skills)}",
            f"- Self PR: {_compact(resume.get('selfPR'))}",
        ]
    )


def opening_prompt(
    settings: InterviewSettings,
    resume: Optional[Dict[str, Any]] = None,
    diagnosis: Optional[Dict[str, Any]] = None,
) -> str:
    return dedent(
        f"""
        You are an interviewer for a {settings.position} role in the {settings.industry} industry.
        Interview type: {settings.interview_type_label}.

        Write exactly {settings.question_count} interview questions tailored to the candidate below,
        an interviewer persona (name and role) and a short, polite opening message.

        Candidate:
        {_resume_lines(resume)}
        - Career diagnosis: {_compact(diagnosis) if diagnosis else "none"}

        Focus by interview type:
        - first: self-introduction, reasons for changing jobs, motivation, basic skills
        - second: deep dives into past work, problem solving, management, technical depth
        - final: commitment, long-term vision, understanding of the company, values

        Start with a self-introduction question. Keep each question to one or two sentences.
        """
    ).strip()


def next_question_prompt(session: Session, previous: Answer, planned_question: str) -> str:
    return dedent(
        f"""
        Previous question: {previous.question}
        Candidate answer: {previous.answer_text}
        Planned next question: {planned_question}

        Decide how to continue the interview:
        A) ask the planned question (useFollowUp = false)
        B) replace it with a follow-up that digs into the answer (useFollowUp = true)

        Keep the balance of the whole {session.question_count}-question interview in mind.
        Always write a short spoken transition that acknowledges the answer, in the voice of
        {session.interviewer_profile.name} ({session.interviewer_profile.role}).
        """
    ).strip()


def evaluation_prompt(session: Session, question: str, answer_text: str, duration_seconds: int) -> str:
    history = "\n\n".join(
        f"Q: {item.question}\nA: {item.answer_text}" for item in session.answers if not item.skipped
    )
    settings = session.settings
    history_block = f"Earlier questions and answers:\n{history}" if history else ""
    return dedent(
        f"""
        You are the interviewer for a {settings.position} role in the {settings.industry} industry
        ({settings.interview_type_label}).
        Interviewer: {session.interviewer_profile.name} ({session.interviewer_profile.role}).

        Evaluate the candidate's answer.

        Question: {question}
        Answer: {answer_text}
        Answer duration: {duration_seconds} seconds

        Scoring guide for "score" and each of "detailScores" (0-100):
        - 90-100: excellent, would be rated highly in a real interview
        - 75-89: good, a few improvements would make it stronger
        - 60-74: average, clear room for improvement
        - 0-59: needs work, lacks specifics or structure

        Duration guide: under 30 seconds is likely too thin, 1-2 minutes is appropriate,
        over 3 minutes risks losing the point.
        Give two or three good points, two or three improvement points and a one or two
        sentence shortFeedback addressed to the candidate.
        """
    ).strip() + ("\n\n" + history_block if history_block else "")


def narrative_prompt(session: Session, draft: Summary) -> str:
    qa_lines: List[str] = []
    for item in session.answers:
        if item.skipped or item.evaluation is None:
            qa_lines.append(f"Q{item.question_index + 1}: {item.question}\n(skipped)")
            continue
        ev = item.evaluation
        qa_lines.append(
            f"Q{item.question_index + 1}: {item.question}\nA: {item.answer_text}\n"
            f"Score: {ev.score}/100\nGood: {'; '.join(ev.good_points)}\n"
            f"Improve: {'; '.join(ev.improvement_points)}"
        )
    qa_block = "\n\n---\n\n".join(qa_lines) or "(no answers recorded)"
    settings = session.settings
    return dedent(
        f"""
        Summarise this mock interview for the candidate.

        Industry: {settings.industry}
        Position: {settings.position}
        Interview type: {settings.interview_type_label}
        Total score: {draft.total_score}/100 (grade {draft.grade})

        Questions, answers and evaluations:
        """
    ).strip() + "\n" + qa_block + "\n\n" + dedent(
        """
        Write up to three strengths, up to three improvements, an encouraging overallFeedback
        paragraph and up to three concrete nextSteps. Do not restate the scores.
        """
    ).strip()
