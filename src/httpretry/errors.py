"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    HTTP_ERROR = 5
    TRANSPORT_ERROR = 6


@dataclass
class HttpRetryError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."


def exit_code_for_status(status: int | None) -> ExitCode:
    """Map a final result to an exit code; ``None`` means no response arrived."""
    if status is None:
        return ExitCode.TRANSPORT_ERROR
    if status >= 400:
        return ExitCode.HTTP_ERROR
    return ExitCode.SUCCESS
