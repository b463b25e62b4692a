"""Tagged cause chains describing why a request attempt failed.

Every entry carries its own category tag and an optional reference to the
entry that caused it. Consumers match on tags instead of exception types, so
the classifier never needs to know which HTTP stack produced the failure.
"""

from __future__ import annotations

import errno
import http.client
import socket
import ssl
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from urllib.error import URLError

MAX_CAUSE_DEPTH = 32


class CauseCategory(str, Enum):
    URL = "url"
    PROTOCOL = "protocol"
    OS = "os"
    TLS = "tls"
    DNS = "dns"
    INVALID_INPUT = "invalid_input"
    OTHER = "other"


class ProtocolFault(str, Enum):
    INCOMPLETE_MESSAGE = "incomplete_message"
    CANCELED = "canceled"
    OTHER = "other"


class OsErrorKind(str, Enum):
    CONNECTION_RESET = "connection_reset"
    CONNECTION_ABORTED = "connection_aborted"
    CONNECTION_REFUSED = "connection_refused"
    BROKEN_PIPE = "broken_pipe"
    PERMISSION_DENIED = "permission_denied"
    TIMED_OUT = "timed_out"
    OTHER = "other"


_OS_KIND_BY_TYPE: tuple[tuple[type[OSError], OsErrorKind], ...] = (
    (ConnectionResetError, OsErrorKind.CONNECTION_RESET),
    (ConnectionAbortedError, OsErrorKind.CONNECTION_ABORTED),
    (ConnectionRefusedError, OsErrorKind.CONNECTION_REFUSED),
    (BrokenPipeError, OsErrorKind.BROKEN_PIPE),
    (PermissionError, OsErrorKind.PERMISSION_DENIED),
    (TimeoutError, OsErrorKind.TIMED_OUT),
)

_OS_KIND_BY_ERRNO = {
    errno.ECONNRESET: OsErrorKind.CONNECTION_RESET,
    errno.ECONNABORTED: OsErrorKind.CONNECTION_ABORTED,
    errno.ECONNREFUSED: OsErrorKind.CONNECTION_REFUSED,
    errno.EPIPE: OsErrorKind.BROKEN_PIPE,
    errno.EACCES: OsErrorKind.PERMISSION_DENIED,
    errno.EPERM: OsErrorKind.PERMISSION_DENIED,
    errno.ETIMEDOUT: OsErrorKind.TIMED_OUT,
}


@dataclass(frozen=True)
class ErrorCause:
    category: CauseCategory
    message: str
    protocol_fault: ProtocolFault | None = None
    os_kind: OsErrorKind | None = None
    source: ErrorCause | None = None

    def __str__(self) -> str:
        return self.message


def iter_causes(
    root: ErrorCause | None,
    *,
    max_depth: int = MAX_CAUSE_DEPTH,
) -> Iterator[ErrorCause]:
    """Yield ``root`` and each underlying cause, leaf last.

    Stops after ``max_depth`` entries or when an entry repeats, so a chain
    assembled incorrectly by a transport cannot loop forever.
    """
    seen: set[int] = set()
    current = root
    depth = 0
    while current is not None and depth < max_depth:
        if id(current) in seen:
            return
        seen.add(id(current))
        yield current
        current = current.source
        depth += 1


def find_cause(root: ErrorCause | None, category: CauseCategory) -> ErrorCause | None:
    for cause in iter_causes(root):
        if cause.category is category:
            return cause
    return None


def _next_exception(exc: BaseException) -> BaseException | None:
    if isinstance(exc, URLError) and isinstance(exc.reason, BaseException):
        return exc.reason
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__context__ is not None and not exc.__suppress_context__:
        return exc.__context__
    return None


def _os_kind(exc: OSError) -> OsErrorKind:
    for exc_type, kind in _OS_KIND_BY_TYPE:
        if isinstance(exc, exc_type):
            return kind
    return _OS_KIND_BY_ERRNO.get(exc.errno or 0, OsErrorKind.OTHER)


def _message(exc: BaseException) -> str:
    text = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


def _describe(exc: BaseException) -> ErrorCause:
    message = _message(exc)
    # RemoteDisconnected is also a ConnectionResetError; protocol wins.
    if isinstance(exc, (http.client.IncompleteRead, http.client.RemoteDisconnected)):
        return ErrorCause(
            CauseCategory.PROTOCOL,
            message,
            protocol_fault=ProtocolFault.INCOMPLETE_MESSAGE,
        )
    if isinstance(exc, http.client.HTTPException):
        return ErrorCause(CauseCategory.PROTOCOL, message, protocol_fault=ProtocolFault.OTHER)
    if isinstance(exc, URLError):
        return ErrorCause(CauseCategory.URL, message)
    if isinstance(exc, ssl.SSLError):
        return ErrorCause(CauseCategory.TLS, message)
    if isinstance(exc, socket.gaierror):
        return ErrorCause(CauseCategory.DNS, message)
    if isinstance(exc, OSError):
        return ErrorCause(CauseCategory.OS, message, os_kind=_os_kind(exc))
    if isinstance(exc, ValueError):
        return ErrorCause(CauseCategory.INVALID_INPUT, message)
    return ErrorCause(CauseCategory.OTHER, message)


def _with_source(cause: ErrorCause, source: ErrorCause | None) -> ErrorCause:
    return ErrorCause(
        cause.category,
        cause.message,
        protocol_fault=cause.protocol_fault,
        os_kind=cause.os_kind,
        source=source,
    )


def cause_from_exception(
    exc: BaseException,
    *,
    max_depth: int = MAX_CAUSE_DEPTH,
) -> ErrorCause:
    """Convert a Python exception and everything it wraps into a cause chain.

    An OS-level entry that is not already beneath a protocol entry gets a
    protocol entry inserted above it: the HTTP exchange observed the I/O
    failure, which is how the classifier expects resets to be reported.
    """
    flattened: list[ErrorCause] = []
    seen: set[int] = set()
    under_protocol = False
    current: BaseException | None = exc
    while current is not None and len(flattened) < max_depth and id(current) not in seen:
        seen.add(id(current))
        described = _describe(current)
        if described.category is CauseCategory.OS and not under_protocol:
            flattened.append(
                ErrorCause(
                    CauseCategory.PROTOCOL,
                    "connection error",
                    protocol_fault=ProtocolFault.OTHER,
                )
            )
            under_protocol = True
        elif described.category is CauseCategory.PROTOCOL:
            under_protocol = True
        flattened.append(described)
        current = _next_exception(current)

    chain: ErrorCause | None = None
    for cause in reversed(flattened):
        chain = _with_source(cause, chain)
    if chain is None:
        return _describe(exc)
    return chain
