"""Answer timer on a monotonic clock."""
from __future__ import annotations

import time
from typing import Callable, Optional


class AnswerTimer:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started is not None and self._stopped is None

    def start(self) -> None:
        self._started = self._clock()
        self._stopped = None

    def stop(self) -> None:
        if self.running:
            self._stopped = self._clock()

    def reset(self) -> None:
        self._started = None
        self._stopped = None

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else self._clock()
        return max(0.0, end - self._started)

    def elapsed_seconds(self) -> int:
        return int(round(self.elapsed()))

    def remaining(self, limit: float) -> float:
        return max(0.0, limit - self.elapsed())


__all__ = ["AnswerTimer"]
