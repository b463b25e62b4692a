"""Blocking HTTP GET transport and the attempt result types it produces."""

from __future__ import annotations

import errno
import http.client
import logging as py_logging
import socket
import ssl
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from httpretry.causes import ErrorCause, cause_from_exception, iter_causes

logger = py_logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_USER_AGENT = "httpretry/0.1"

_CONNECT_ERRNOS = frozenset({errno.ENETUNREACH, errno.EHOSTUNREACH})


@dataclass(frozen=True)
class Response:
    status: int
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def reason(self) -> str:
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""


@dataclass(frozen=True)
class TransportError:
    message: str
    is_connect: bool = False
    is_timeout: bool = False
    source: ErrorCause | None = None

    def causes(self) -> Iterator[ErrorCause]:
        return iter_causes(self.source)

    def __str__(self) -> str:
        return self.message


AttemptResult = Response | TransportError


class Transport(Protocol):
    def perform(self, target: str) -> AttemptResult: ...


Opener = Callable[..., Any]


def _connect_failure(reason: BaseException) -> bool:
    if isinstance(reason, ConnectionRefusedError):
        return True
    if isinstance(reason, (ssl.SSLError, socket.gaierror)) or not isinstance(reason, OSError):
        return False
    return reason.errno in _CONNECT_ERRNOS


def transport_error_from_exception(exc: BaseException, *, target: str = "") -> TransportError:
    reason: BaseException = exc
    if isinstance(exc, URLError) and isinstance(exc.reason, BaseException):
        reason = exc.reason
    prefix = f"error sending request for url ({target})" if target else "error sending request"
    return TransportError(
        message=f"{prefix}: {exc}",
        is_connect=_connect_failure(reason),
        is_timeout=isinstance(exc, TimeoutError) or isinstance(reason, TimeoutError),
        source=cause_from_exception(exc),
    )


class UrllibTransport:
    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        opener: Opener = urlopen,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.opener = opener

    def perform(self, target: str) -> AttemptResult:
        logger.debug("GET %s timeout=%ss", target, self.timeout_seconds)
        try:
            request = Request(target, headers={"User-Agent": self.user_agent}, method="GET")
            with self.opener(request, timeout=self.timeout_seconds) as response:  # nosec B310
                status = int(getattr(response, "status", response.getcode()))
                body = response.read()
                headers = {key.lower(): value for key, value in response.headers.items()}
                return Response(
                    status=status,
                    url=response.geturl() or target,
                    headers=headers,
                    body=body,
                )
        except HTTPError as exc:
            return self._error_response(exc, target)
        except (OSError, http.client.HTTPException, ValueError) as exc:
            logger.debug("GET %s failed: %r", target, exc)
            return transport_error_from_exception(exc, target=target)

    def _error_response(self, exc: HTTPError, target: str) -> Response:
        payload = b""
        if exc.fp is not None:
            try:
                payload = exc.read()
            except (OSError, http.client.HTTPException) as read_exc:
                logger.debug("Discarding unreadable error body from %s: %r", target, read_exc)
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return Response(status=exc.code, url=exc.geturl() or target, headers=response_headers, body=payload)


def describe_result(result: AttemptResult) -> str:
    if isinstance(result, Response):
        parts = [str(result.status)]
        if result.reason:
            parts.append(result.reason)
        if result.url:
            parts.append(result.url)
        return " ".join(parts)
    return result.message
