from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = ["RetryDecision", "RetryPolicy", "RetryState"]


class RetryState(str, Enum):
    IDLE = "idle"
    RETRYING = "retrying"
    ESCALATED = "escalated"


@dataclass(slots=True, frozen=True)
class RetryDecision:
    state: RetryState
    failures: int
    delay: float
    escalate: bool = False


class RetryPolicy:
    """Track consecutive fetch failures and pick the wait before the next attempt.

    Failures up to ``threshold`` are retried after ``backoff_seconds``. The
    failure that pushes the count past the threshold escalates once; after that
    the loop falls back to ``interval_seconds`` until a fetch succeeds again.
    """

    def __init__(
        self,
        *,
        threshold: int = 10,
        backoff_seconds: float = 10.0,
        interval_seconds: float = 30 * 60.0,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._threshold = threshold
        self._backoff = max(0.0, backoff_seconds)
        self._interval = max(self._backoff, interval_seconds)
        self._failures = 0
        self._state = RetryState.IDLE

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def state(self) -> RetryState:
        return self._state

    @property
    def threshold(self) -> int:
        return self._threshold

    def record_success(self) -> RetryDecision:
        self._failures = 0
        self._state = RetryState.IDLE
        return RetryDecision(state=self._state, failures=0, delay=self._interval)

    def record_failure(self) -> RetryDecision:
        self._failures += 1
        if self._state is RetryState.ESCALATED:
            return RetryDecision(state=self._state, failures=self._failures, delay=self._interval)

        if self._failures > self._threshold:
            self._state = RetryState.ESCALATED
            return RetryDecision(
                state=self._state,
                failures=self._failures,
                delay=self._interval,
                escalate=True,
            )

        self._state = RetryState.RETRYING
        return RetryDecision(state=self._state, failures=self._failures, delay=self._backoff)
