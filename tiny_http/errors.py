"""Exception taxonomy for tiny-http.

Callers tell "never reached the server" (ConnectionFailedError) apart from
"server answered with an error" (ProtocolError) by type. Both carry the
correlation id, URI, and method of the call.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Mapping


class TinyHttpError(Exception):
    """Base class for tiny-http errors."""


class ConnectionFailedError(TinyHttpError):
    """Raised when no HTTP response was obtained (DNS, TCP, TLS, timeout, cancellation)."""

    def __init__(
        self,
        message: str,
        uri: str,
        method: str,
        elapsed: timedelta,
        cause: BaseException,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.uri = uri
        self.method = method
        self.elapsed = elapsed
        self.cause = cause
        self.request_id = request_id

    def __str__(self) -> str:
        return f"{self.args[0]} ({self.method} {self.uri}): {self.cause!r}"


class ProtocolError(TinyHttpError):
    """Raised when the server answered with a non-success status code."""

    def __init__(
        self,
        message: str,
        status_code: int,
        reason_phrase: str,
        uri: str,
        method: str,
        request_headers: Mapping[str, str],
        body: str | None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self.uri = uri
        self.method = method
        self.request_headers = dict(request_headers)
        self.body = body
        self.request_id = request_id

    def __str__(self) -> str:
        return f"{self.args[0]}: {self.status_code} {self.reason_phrase}"


class RequestCancelledError(TinyHttpError):
    """Cause attached to ConnectionFailedError when the cancel event fired."""


class UnsupportedContentKindError(TinyHttpError):
    """Raised when a content kind / payload combination cannot be encoded."""


class InvalidUriError(TinyHttpError):
    """Raised when base address + route + query do not form an absolute URI."""


class SerializationError(TinyHttpError):
    """Raised by the bundled serializers when a value cannot be (de)serialized."""


class ConfigError(TinyHttpError):
    """Raised when configuration loading fails."""
