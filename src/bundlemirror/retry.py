from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")


@dataclass(slots=True)
class FileAttempts:
    """Attempt bookkeeping for a single file: ATTEMPTING(n) -> SUCCEEDED | FAILED."""

    policy: RetryPolicy
    attempt: int = 1
    failures: int = 0
    state: AttemptState = AttemptState.ATTEMPTING
    last_error: BaseException | None = None

    def fail(self, error: BaseException) -> AttemptState:
        if self.state is not AttemptState.ATTEMPTING:
            raise RuntimeError(f"Cannot record a failure in state {self.state.value}")
        self.failures += 1
        self.last_error = error
        if self.attempt >= self.policy.max_attempts:
            self.state = AttemptState.FAILED
        else:
            self.attempt += 1
        return self.state

    def succeed(self) -> AttemptState:
        if self.state is not AttemptState.ATTEMPTING:
            raise RuntimeError(f"Cannot record a success in state {self.state.value}")
        self.state = AttemptState.SUCCEEDED
        return self.state

    @property
    def recovered(self) -> bool:
        return self.state is AttemptState.SUCCEEDED and self.failures > 0
