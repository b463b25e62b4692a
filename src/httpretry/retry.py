"""Retry/backoff orchestration for a single HTTP request."""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from httpretry.classifier import RetryDecision, classify
from httpretry.errors import ExitCode, HttpRetryError
from httpretry.progress import ProgressLog
from httpretry.transport import AttemptResult, Transport, describe_result

logger = py_logging.getLogger(__name__)


class FinalReason(str, Enum):
    TERMINAL = "terminal"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise HttpRetryError(
                "Invalid retry policy",
                code=ExitCode.CONFIG_ERROR,
                hint="max_attempts must be at least 1.",
            )
        if self.initial_backoff_seconds < 0 or self.multiplier < 0:
            raise HttpRetryError(
                "Invalid retry policy",
                code=ExitCode.CONFIG_ERROR,
                hint="Backoff delay and multiplier cannot be negative.",
            )


@dataclass
class BackoffState:
    attempt: int
    delay_seconds: float
    multiplier: float
    delays: list[float] = field(default_factory=list)

    @classmethod
    def start(cls, policy: RetryPolicy) -> BackoffState:
        return cls(
            attempt=1,
            delay_seconds=policy.initial_backoff_seconds,
            multiplier=policy.multiplier,
        )

    def advance(self, sleep: Callable[[float], None]) -> None:
        self.attempt += 1
        sleep(self.delay_seconds)
        self.delays.append(self.delay_seconds)
        self.delay_seconds *= self.multiplier


@dataclass(frozen=True)
class Outcome:
    result: AttemptResult
    attempts: int
    reason: FinalReason
    delays: tuple[float, ...] = ()

    @property
    def exhausted(self) -> bool:
        return self.reason is FinalReason.EXHAUSTED


class RetryExecutor:
    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        progress: ProgressLog | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.progress = progress

    def execute(self, target: str, transport: Transport) -> Outcome:
        state = BackoffState.start(self.policy)
        while True:
            logger.debug(
                "Performing request attempt=%s/%s target=%s",
                state.attempt,
                self.policy.max_attempts,
                target,
            )
            result = transport.perform(target)
            decision = classify(result)

            if decision is RetryDecision.RETRY and state.attempt < self.policy.max_attempts:
                logger.info(
                    "Retrying target=%s attempt=%s delay=%.3fs result=%s",
                    target,
                    state.attempt,
                    state.delay_seconds,
                    describe_result(result),
                )
                if self.progress is not None:
                    self.progress.record_retry(state.attempt, result, state.delay_seconds)
                state.advance(self.sleep)
                continue

            reason = FinalReason.EXHAUSTED if decision is RetryDecision.RETRY else FinalReason.TERMINAL
            outcome = Outcome(
                result=result,
                attempts=state.attempt,
                reason=reason,
                delays=tuple(state.delays),
            )
            logger.info(
                "Final result target=%s attempts=%s reason=%s result=%s",
                target,
                outcome.attempts,
                outcome.reason.value,
                describe_result(result),
            )
            if self.progress is not None:
                self.progress.record_final(outcome)
            return outcome


def execute(
    target: str,
    transport: Transport,
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    progress: ProgressLog | None = None,
) -> Outcome:
    return RetryExecutor(policy, sleep=sleep, progress=progress).execute(target, transport)
