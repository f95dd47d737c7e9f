"""Async HTTP client for the mock interview API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from interview_session.models import Evaluation, NextResult, SessionView, StartResult

logger = logging.getLogger(__name__)

API_PREFIX = "/api/mock-interview"
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_RETRIES = 2
BACKOFF_S = 1.0

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiError(RuntimeError):
    """Decoded error response; ``status`` is 0 when the server was unreachable."""

    def __init__(self, code: str, status: int, message: str = "") -> None:
        super().__init__(f"{code} ({status}): {message}" if message else f"{code} ({status})")
        self.code = code
        self.status = status
        self.message = message or code


def _decode_error(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        return ApiError("http_error", response.status_code, response.text[:200])
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return ApiError(str(detail.get("error", "http_error")), response.status_code, str(detail.get("message", "")))
    if isinstance(detail, list):
        return ApiError("validation_error", response.status_code, "Request was rejected as invalid")
    return ApiError("http_error", response.status_code, str(detail or ""))


def _parse(model: Type[ModelT], body: Any) -> ModelT:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise ApiError("bad_response", 200, f"Unexpected {model.__name__} response") from exc


class SessionApi:
    """Typed wrapper over the session endpoints.

    Transport failures (connect errors, timeouts) are retried with a linear
    back-off; HTTP error responses are raised as ``ApiError`` immediately.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        user_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        retries: int = DEFAULT_RETRIES,
        backoff_s: float = BACKOFF_S,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)
        self._owns_client = client is None
        self._headers = {"X-User-Id": user_id} if user_id else {}
        self._retries = retries
        self._backoff_s = backoff_s
        self._timeout_s = timeout_s
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def start(
        self,
        settings: Dict[str, Any],
        resume_data: Optional[Dict[str, Any]] = None,
        diagnosis_result: Optional[Dict[str, Any]] = None,
    ) -> StartResult:
        body: Dict[str, Any] = {"settings": settings}
        if resume_data is not None:
            body["resumeData"] = resume_data
        if diagnosis_result is not None:
            body["diagnosisResult"] = diagnosis_result
        return _parse(StartResult, await self._request("POST", "/start", json=body))

    async def next(self, session_id: str, current_index: int) -> NextResult:
        body = {"sessionId": session_id, "currentQuestionIndex": current_index}
        return _parse(NextResult, await self._request("POST", "/next", json=body))

    async def evaluate(
        self,
        session_id: str,
        question_index: int,
        question: str,
        answer: str,
        answer_duration: int,
    ) -> Evaluation:
        body = {
            "sessionId": session_id,
            "questionIndex": question_index,
            "question": question,
            "answer": answer,
            "answerDuration": answer_duration,
        }
        return _parse(Evaluation, await self._request("POST", "/evaluate", json=body))

    async def summarize(self, session_id: str) -> SessionView:
        return _parse(SessionView, await self._request("POST", "/summary", json={"sessionId": session_id}))

    async def fetch(self, session_id: str) -> SessionView:
        return _parse(SessionView, await self._request("GET", "/summary", params={"id": session_id}))

    async def quota(self) -> Dict[str, Any]:
        return await self._request("GET", "/quota")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = API_PREFIX + path
        for attempt in range(self._retries + 1):
            try:
                response = await self._client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers,
                    timeout=self._timeout_s,
                )
            except httpx.TransportError as exc:
                if attempt >= self._retries:
                    logger.error("%s %s failed after %d attempts: %s", method, url, attempt + 1, exc)
                    raise ApiError("network_error", 0, str(exc)) from exc
                delay = self._backoff_s * (attempt + 1)
                logger.warning("%s %s transport error (%s); retrying in %.1fs", method, url, exc, delay)
                await self._sleep(delay)
                continue
            if response.status_code >= 400:
                raise _decode_error(response)
            try:
                return response.json()
            except ValueError as exc:
                logger.error("%s %s returned a non-JSON body", method, url)
                raise ApiError("bad_response", response.status_code, "Response body was not JSON") from exc
        raise ApiError("network_error", 0, "request was not sent")


__all__ = ["API_PREFIX", "ApiError", "SessionApi"]
