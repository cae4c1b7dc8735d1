"""Response Classifier - success body stream or ProtocolError, never both."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx

from tiny_http.cancellation import run_cancellable
from tiny_http.errors import ProtocolError

logger = logging.getLogger(__name__)


class ResponseStream:
    """Readable body of a successful response.

    Whoever holds the stream closes it, exactly once; ``aclose`` is idempotent
    and ``async with`` does it automatically.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    async def __aenter__(self) -> "ResponseStream":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def is_closed(self) -> bool:
        return self._response.is_closed

    async def read(self) -> bytes:
        """Read the whole body."""
        return await self._response.aread()

    async def iter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """Iterate over the body in chunks."""
        async for chunk in self._response.aiter_bytes(chunk_size):
            yield chunk

    async def aclose(self) -> None:
        await self._response.aclose()


async def classify(
    response: httpx.Response,
    request_id: str | None = None,
    cancel_event: asyncio.Event | None = None,
) -> ResponseStream:
    """Return the body stream of a 2xx response, or raise ProtocolError.

    On failure the body is drained to text before the response is closed. A
    read error is not propagated: the ProtocolError is raised with body=None
    and the read error as its cause. Setting cancel_event stops the drain the
    same way, with RequestCancelledError as the cause.

    Raises:
        ProtocolError: If the status code is not 2xx.
    """
    if response.is_success:
        return ResponseStream(response)

    body: str | None = None
    read_error: Exception | None = None
    try:
        await run_cancellable(response.aread(), cancel_event)
        body = response.text
    except Exception as e:
        read_error = e
        logger.debug(f"Could not read error body of {response.status_code} response: {e!r}")
    finally:
        await response.aclose()

    request = response.request
    raise ProtocolError(
        f"URL : {request.url}",
        response.status_code,
        response.reason_phrase,
        str(request.url),
        request.method,
        request.headers,
        body,
        request_id,
    ) from read_error
