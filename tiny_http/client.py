"""Execution core - the public TinyHttpClient.

Every call runs the same pipeline:

    negotiate content -> build URI -> dispatch -> classify

and the four entry points differ only in how the success body is consumed:

    execute         body is read and discarded
    execute_typed   body is deserialized into the requested type
    execute_bytes   body is returned as bytes
    execute_stream  the live ResponseStream is handed to the caller

No retries are performed. ConnectionFailedError, ProtocolError,
UnsupportedContentKindError and InvalidUriError propagate unchanged.

Usage:
    async with TinyHttpClient("http://api.test") as client:
        item = await client.new_request(HttpVerb.GET, "items/5").execute_as(Item)
"""

from __future__ import annotations

import io
import uuid
from contextlib import ExitStack
from typing import Any, Self

import httpx

from tiny_http.classifier import ResponseStream, classify
from tiny_http.content import OutboundContent, build_content
from tiny_http.dispatcher import RequestDispatcher
from tiny_http.models import (
    ClientConfig,
    FailedToGetResponseEvent,
    HttpVerb,
    ReceivedResponseEvent,
    RequestDescriptor,
    SendingRequestEvent,
)
from tiny_http.request import Request
from tiny_http.serialization import Deserializer, Serializer
from tiny_http.telemetry import TelemetryHook
from tiny_http.uri import build_request_uri


class TinyHttpClient:
    """Asynchronous HTTP client façade.

    The client is safe for concurrent calls as long as default_headers is not
    mutated while a call is in flight.
    """

    def __init__(
        self,
        server_address: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        serializer: Serializer | None = None,
        deserializer: Deserializer | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            server_address: Base address every route is appended to.
            http_client: httpx client to use. When omitted the client creates and
                owns one, and closes it in aclose().
            transport: httpx transport for the owned client (ignored when
                http_client is given).
            serializer: Default serializer (JSON if omitted).
            deserializer: Default deserializer (JSON if omitted).
            timeout: Timeout in seconds for an owned transport.
        """
        config_kwargs: dict[str, Any] = {"base_address": server_address, "timeout": timeout}
        if serializer is not None:
            config_kwargs["serializer"] = serializer
        if deserializer is not None:
            config_kwargs["deserializer"] = deserializer
        self._init(ClientConfig(**config_kwargs), http_client, transport)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TinyHttpClient":
        """Create a client from an existing ClientConfig (e.g. from config_loader)."""
        client = cls.__new__(cls)
        client._init(config, http_client, transport)
        return client

    def _init(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None,
        transport: httpx.AsyncBaseTransport | None,
    ) -> None:
        self._config = config
        self._owns_http_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=config.timeout, transport=transport)
        self._http_client = http_client
        self._dispatcher = RequestDispatcher(self._http_client, config)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def server_address(self) -> str:
        return self._config.base_address

    @property
    def default_headers(self) -> dict[str, str]:
        """Headers sent with every request. Mutate between calls only."""
        return self._config.default_headers

    @property
    def encoding(self) -> str:
        return self._config.encoding

    @encoding.setter
    def encoding(self, value: str) -> None:
        # Validated by ClientConfig: None and unknown codecs are rejected
        self._config.encoding = value

    @property
    def sending_request(self) -> TelemetryHook[SendingRequestEvent]:
        return self._dispatcher.sending_request

    @property
    def received_response(self) -> TelemetryHook[ReceivedResponseEvent]:
        return self._dispatcher.received_response

    @property
    def failed_to_get_response(self) -> TelemetryHook[FailedToGetResponseEvent]:
        return self._dispatcher.failed_to_get_response

    def new_request(self, verb: HttpVerb, route: str | None = None) -> Request:
        """Start building a request against this client."""
        return Request(self, verb, route)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def execute(self, descriptor: RequestDescriptor) -> None:
        """Execute a call whose response body is not needed."""
        stream = await self._execute_request(descriptor)
        try:
            await stream.read()
        finally:
            await stream.aclose()

    async def execute_typed(self, descriptor: RequestDescriptor, result_type: Any = Any) -> Any:
        """Execute a call and deserialize the body into *result_type*.

        An empty body yields None.
        """
        deserializer = descriptor.deserializer or self._config.deserializer
        stream = await self._execute_request(descriptor, deserializer)
        try:
            body = await stream.read()
        finally:
            await stream.aclose()

        if not body:
            return None
        return deserializer.deserialize(io.BytesIO(body), result_type)

    async def execute_bytes(self, descriptor: RequestDescriptor) -> bytes:
        """Execute a call and return the whole body."""
        stream = await self._execute_request(descriptor)
        try:
            return await stream.read()
        finally:
            await stream.aclose()

    async def execute_stream(self, descriptor: RequestDescriptor) -> ResponseStream:
        """Execute a call and hand over the live body stream.

        The caller must close the returned stream (``async with`` or aclose()).
        """
        return await self._execute_request(descriptor, read_body=False)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def _execute_request(
        self,
        descriptor: RequestDescriptor,
        deserializer: Deserializer | None = None,
        *,
        read_body: bool = True,
    ) -> ResponseStream:
        """Negotiate, dispatch and classify one call.

        Serializer and deserializer are resolved once here (override, else the
        configured default) and used for the whole call. With read_body the
        body is already in memory when the ResponseStream is returned.
        """
        serializer = descriptor.serializer or self._config.serializer
        if deserializer is None:
            deserializer = descriptor.deserializer or self._config.deserializer
        request_id = str(uuid.uuid4())

        with ExitStack() as stack:
            content: OutboundContent | None = build_content(
                descriptor.content_kind,
                serializer,
                descriptor.payload,
                descriptor.forms_parameters,
                self._config.encoding,
            )
            if content is not None:
                stack.enter_context(content)

            uri = build_request_uri(
                self._config.base_address, descriptor.route, descriptor.query_parameters
            )
            response = await self._dispatcher.send(
                request_id,
                descriptor.verb.value,
                uri,
                content,
                deserializer,
                descriptor.headers,
                descriptor.cancel_event,
                read_body,
            )

        # Only a streamed error body is still unread at this point
        drain_cancel_event = None if read_body else descriptor.cancel_event
        return await classify(response, request_id, drain_cancel_event)
