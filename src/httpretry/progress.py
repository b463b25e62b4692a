"""Human-readable progress events for a retry run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TextIO

from httpretry.transport import AttemptResult, Response, describe_result

if TYPE_CHECKING:
    from httpretry.retry import Outcome


@dataclass(frozen=True)
class AttemptEvent:
    attempt: int
    state: str
    message: str
    delay_seconds: float = 0.0


class ProgressLog:
    def __init__(self, *, stream: TextIO | None = None) -> None:
        self.events: list[AttemptEvent] = []
        self.stream = stream

    def record_retry(self, attempt: int, result: AttemptResult, delay_seconds: float) -> None:
        if isinstance(result, Response):
            message = f"retry on response code: {result.status}, round #{attempt}"
        else:
            message = f"retry on client error: {result}, round #{attempt}"
        self._record(
            AttemptEvent(attempt=attempt, state="retry", message=message, delay_seconds=delay_seconds)
        )

    def record_final(self, outcome: Outcome) -> None:
        result = outcome.result
        if isinstance(result, Response):
            detail = f"Got response: {describe_result(result)}"
        else:
            detail = f"Got Err: {result}"
        self._record(AttemptEvent(attempt=outcome.attempts, state="final", message="Got final result"))
        self._record(AttemptEvent(attempt=outcome.attempts, state="final", message=detail))

    def lines(self) -> list[str]:
        return [event.message for event in self.events]

    def _record(self, event: AttemptEvent) -> None:
        self.events.append(event)
        if self.stream is not None:
            print(event.message, file=self.stream)
