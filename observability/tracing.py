"""Span helper that logs how long a session operation took."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from .logger import log_event


@contextmanager
def span(session_id: str, op: str, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Time the block and log a ``span`` event when it exits.

    The yielded dict can be filled with extra fields (``outcome`` etc.)
    while the block runs. Exceptions are logged as ``outcome=error`` and
    re-raised.
    """

    extra: Dict[str, Any] = dict(fields)
    start = time.perf_counter()
    level = logging.INFO
    try:
        yield extra
    except Exception as exc:
        extra.setdefault("outcome", "error")
        extra.setdefault("error", type(exc).__name__)
        level = logging.WARNING
        raise
    finally:
        extra.setdefault("outcome", "ok")
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_event("span", session_id, level=level, op=op, ms=elapsed_ms, **extra)


__all__ = ["span"]
