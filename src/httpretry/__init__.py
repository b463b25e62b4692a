"""Single-request HTTP GET with bounded automatic retry."""

from .classifier import RetryDecision, classify, should_retry
from .retry import FinalReason, Outcome, RetryExecutor, RetryPolicy, execute
from .transport import AttemptResult, Response, Transport, TransportError, UrllibTransport

__all__ = [
    "AttemptResult",
    "classify",
    "execute",
    "FinalReason",
    "Outcome",
    "Response",
    "RetryDecision",
    "RetryExecutor",
    "RetryPolicy",
    "should_retry",
    "Transport",
    "TransportError",
    "UrllibTransport",
]
