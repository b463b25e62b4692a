"""Decide whether a single request attempt is worth repeating."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from http import HTTPStatus

from httpretry.causes import (
    CauseCategory,
    ErrorCause,
    OsErrorKind,
    ProtocolFault,
    find_cause,
)
from httpretry.transport import AttemptResult, Response


class RetryDecision(str, Enum):
    RETRY = "retry"
    TERMINAL = "terminal"


_TRANSIENT_PROTOCOL_FAULTS = frozenset({ProtocolFault.INCOMPLETE_MESSAGE, ProtocolFault.CANCELED})
_TRANSIENT_OS_KINDS = frozenset({OsErrorKind.CONNECTION_RESET, OsErrorKind.CONNECTION_ABORTED})


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status == HTTPStatus.TOO_MANY_REQUESTS


def _is_transient_chain(causes: Iterable[ErrorCause]) -> bool:
    for cause in causes:
        if cause.category is not CauseCategory.PROTOCOL:
            continue
        # A response that started and was cut off, or a stream the peer closed.
        if cause.protocol_fault in _TRANSIENT_PROTOCOL_FAULTS:
            return True
        os_cause = find_cause(cause.source, CauseCategory.OS)
        if os_cause is not None and os_cause.os_kind in _TRANSIENT_OS_KINDS:
            return True
    return False


def classify(result: AttemptResult) -> RetryDecision:
    """Classify one attempt result.

    Responses are retried on 5xx and 429. Transport errors are retried when the
    transport flags a connect failure or timeout directly, or when the cause
    chain holds an incomplete or cancelled protocol exchange, or a protocol
    error over a reset/aborted connection. Everything else is final.
    """
    if isinstance(result, Response):
        if is_retryable_status(result.status):
            return RetryDecision.RETRY
        return RetryDecision.TERMINAL

    if result.is_connect or result.is_timeout:
        return RetryDecision.RETRY
    if _is_transient_chain(result.causes()):
        return RetryDecision.RETRY
    return RetryDecision.TERMINAL


def should_retry(result: AttemptResult) -> bool:
    return classify(result) is RetryDecision.RETRY
