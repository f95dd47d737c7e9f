"""FastAPI routes for the mock interview session engine."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from api.schemas import EvaluateReq, NextReq, QuotaResp, StartReq, SummaryReq
from interview_session.models import Evaluation, NextResult, SessionView, StartResult
from services.errors import InterviewError
from services.sessions import SessionController, default_controller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mock-interview")


def get_controller() -> SessionController:
    return default_controller()


def caller_id(request: Request, x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity: the ``X-User-Id`` header, else the client address."""

    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return request.client.host if request.client else "anonymous"


@contextmanager
def _translated(op: str) -> Iterator[None]:
    try:
        yield
    except InterviewError as exc:
        logger.info("%s rejected: %s (%s)", op, exc.code, exc.message)
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.code, "message": exc.message},
        ) from exc
    except HTTPException:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error during %s", op)
        raise HTTPException(
            status_code=500,
            detail={"error": "internal_error", "message": f"Unable to {op}"},
        ) from exc


@router.post("/start", response_model=StartResult)
def start(
    req: StartReq,
    user_id: str = Depends(caller_id),
    controller: SessionController = Depends(get_controller),
) -> StartResult:
    with _translated("start session"):
        return controller.start(user_id, req.settings, req.resume_data, req.diagnosis_result)


@router.post("/next", response_model=NextResult, response_model_exclude_none=True)
def next_question(req: NextReq, controller: SessionController = Depends(get_controller)) -> NextResult:
    with _translated("advance session"):
        return controller.next(req.session_id, req.current_question_index)


@router.post("/evaluate", response_model=Evaluation)
def evaluate(req: EvaluateReq, controller: SessionController = Depends(get_controller)) -> Evaluation:
    with _translated("evaluate answer"):
        return controller.evaluate(
            req.session_id,
            req.question_index,
            req.question,
            req.answer,
            req.answer_duration,
        )


@router.post("/summary", response_model=SessionView)
def summarize(req: SummaryReq, controller: SessionController = Depends(get_controller)) -> SessionView:
    with _translated("summarize session"):
        return controller.summarize(req.session_id)


@router.get("/summary", response_model=SessionView)
def fetch_summary(
    session_id: str = Query(alias="id"),
    controller: SessionController = Depends(get_controller),
) -> SessionView:
    with _translated("fetch session"):
        return controller.fetch(session_id)


@router.get("/quota", response_model=QuotaResp)
def quota(
    user_id: str = Depends(caller_id),
    controller: SessionController = Depends(get_controller),
) -> QuotaResp:
    with _translated("read quota"):
        manager = controller.quota
        return QuotaResp(
            remaining=manager.remaining_for(user_id),
            allotment=manager.allotment,
            period=manager.period_for(),
        )
