"""Request Dispatcher - sends one request through the httpx transport.

Attaches negotiation headers, default headers and per-call headers, times the
transport call, and fires the telemetry hooks around it. Any failure to obtain
the response, a broken body read or cancellation included, becomes
ConnectionFailedError. HTTP error statuses are left to the classifier.
"""

from __future__ import annotations

import asyncio
import locale
import logging
import os
import time
from datetime import timedelta
from typing import Mapping

import httpx

from tiny_http.cancellation import run_cancellable
from tiny_http.content import OutboundContent
from tiny_http.errors import ConnectionFailedError
from tiny_http.models import (
    ClientConfig,
    FailedToGetResponseEvent,
    ReceivedResponseEvent,
    SendingRequestEvent,
)
from tiny_http.serialization import Deserializer
from tiny_http.telemetry import TelemetryHook

logger = logging.getLogger(__name__)


_LOCALE_ENV_VARS = ("LC_ALL", "LC_MESSAGES", "LANG")


def _locale_candidates() -> list[str | None]:
    categories = [locale.LC_CTYPE]
    if hasattr(locale, "LC_MESSAGES"):
        categories.append(locale.LC_MESSAGES)

    candidates: list[str | None] = []
    for category in categories:
        try:
            candidates.append(locale.getlocale(category)[0])
        except ValueError:
            continue
    # The process locale stays "C" until setlocale() is called
    candidates.extend(os.environ.get(name) for name in _LOCALE_ENV_VARS)
    return candidates


def _current_language() -> str | None:
    """Two-letter language of the active locale, or None when unset.

    Falls back from the process locale to LC_ALL, LC_MESSAGES and LANG.
    """
    for code in _locale_candidates():
        if not code:
            continue
        language = code.split(".")[0].split("_")[0].lower()
        if language and language not in ("c", "posix"):
            return language
    return None


def _elapsed_since(start: float) -> timedelta:
    return timedelta(seconds=time.perf_counter() - start)


class RequestDispatcher:
    """Sends requests and reports their lifecycle to the telemetry hooks.

    default_headers are read from the shared ClientConfig on every send, so
    changes made between calls take effect on the next call.
    """

    def __init__(self, http_client: httpx.AsyncClient, config: ClientConfig) -> None:
        self._http_client = http_client
        self._config = config
        self.sending_request: TelemetryHook[SendingRequestEvent] = TelemetryHook(
            "sending_request"
        )
        self.received_response: TelemetryHook[ReceivedResponseEvent] = TelemetryHook(
            "received_response"
        )
        self.failed_to_get_response: TelemetryHook[FailedToGetResponseEvent] = TelemetryHook(
            "failed_to_get_response"
        )

    def build_headers(
        self,
        deserializer: Deserializer,
        headers: Mapping[str, str],
        content: OutboundContent | None,
    ) -> httpx.Headers:
        """Merge negotiation, default and per-call headers (later entries win)."""
        merged = httpx.Headers()
        if deserializer.has_media_type and deserializer.media_type:
            merged["Accept"] = deserializer.media_type
        language = _current_language()
        if language:
            merged["Accept-Language"] = language
        merged["Accept-Charset"] = "utf-8"
        for key, value in self._config.default_headers.items():
            merged[key] = value
        for key, value in headers.items():
            merged[key] = value
        if content is not None:
            merged.update(content.headers)
        return merged

    async def send(
        self,
        request_id: str,
        method: str,
        uri: httpx.URL,
        content: OutboundContent | None,
        deserializer: Deserializer,
        headers: Mapping[str, str],
        cancel_event: asyncio.Event | None = None,
        read_body: bool = True,
    ) -> httpx.Response:
        """Send the request and return the response.

        With read_body the whole body is read before the response counts as
        received, so a failure while reading it is a transport failure. Without
        it only the headers are awaited and the body is left to the caller.

        Raises:
            ConnectionFailedError: If no (complete) response was obtained. The
                cause is the transport error, or RequestCancelledError when
                cancel_event fired.
        """
        request = self._http_client.build_request(
            method,
            uri,
            headers=self.build_headers(deserializer, headers, content),
            content=content.body if content is not None else None,
        )
        uri_text = str(uri)

        start_time = time.perf_counter()
        self.sending_request.emit(
            SendingRequestEvent(request_id=request_id, uri=uri_text, method=method)
        )
        logger.debug(f"Request {request_id}: {method} {uri_text}")

        try:
            response = await run_cancellable(self._transmit(request, read_body), cancel_event)
        except asyncio.CancelledError as e:
            # Task cancellation is not converted, but the event pair stays complete
            self._emit_failed(request_id, uri_text, method, e, _elapsed_since(start_time))
            raise
        except Exception as e:
            elapsed = _elapsed_since(start_time)
            self._emit_failed(request_id, uri_text, method, e, elapsed)
            raise ConnectionFailedError(
                "Failed to get a response from server",
                uri_text,
                method,
                elapsed,
                e,
                request_id,
            ) from e

        elapsed = _elapsed_since(start_time)
        self.received_response.emit(
            ReceivedResponseEvent(
                request_id=request_id,
                uri=uri_text,
                method=method,
                status_code=response.status_code,
                reason_phrase=response.reason_phrase,
                elapsed=elapsed,
            )
        )
        logger.debug(
            f"Response {request_id}: {response.status_code} {response.reason_phrase} "
            f"in {elapsed.total_seconds() * 1000:.1f} ms"
        )
        return response

    async def _transmit(self, request: httpx.Request, read_body: bool) -> httpx.Response:
        response = await self._http_client.send(request, stream=True)
        if read_body:
            try:
                await response.aread()
            except BaseException:
                await response.aclose()
                raise
        return response

    def _emit_failed(
        self,
        request_id: str,
        uri: str,
        method: str,
        error: BaseException,
        elapsed: timedelta,
    ) -> None:
        logger.debug(f"Request {request_id} failed after {elapsed}: {error!r}")
        self.failed_to_get_response.emit(
            FailedToGetResponseEvent(
                request_id=request_id,
                uri=uri,
                method=method,
                error=error,
                elapsed=elapsed,
            )
        )
