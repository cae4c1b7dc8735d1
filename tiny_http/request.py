"""Fluent request builder.

Accumulates verb, route, headers, parameters and content, then hands a
RequestDescriptor to one of the client's execution entry points:

    await client.new_request(HttpVerb.PUT, "items/42") \\
        .with_header("X-Trace", "abc") \\
        .add_content(item) \\
        .execute_as(ItemResponse)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Iterable, Self

from tiny_http.models import ContentKind, HttpVerb, RequestDescriptor
from tiny_http.serialization import Deserializer, Serializer

if TYPE_CHECKING:
    from tiny_http.classifier import ResponseStream
    from tiny_http.client import TinyHttpClient


class Request:
    """Builder for one request. Create it with TinyHttpClient.new_request()."""

    def __init__(self, client: TinyHttpClient, verb: HttpVerb, route: str | None = None) -> None:
        self._client = client
        self._verb = verb
        self._route = route
        self._headers: dict[str, str] = {}
        self._query_parameters: dict[str, str] = {}
        self._forms_parameters: list[tuple[str, str]] | None = None
        self._content_kind = ContentKind.NONE
        self._payload: Any = None
        self._serializer: Serializer | None = None
        self._deserializer: Deserializer | None = None
        self._cancel_event: asyncio.Event | None = None

    def with_header(self, key: str, value: str) -> Self:
        """Set a per-call header. Setting the same key again replaces it."""
        self._headers[key] = value
        return self

    def add_query_parameter(self, key: str, value: Any) -> Self:
        """Set a query parameter. The value is sent as str(value), not escaped."""
        self._query_parameters[key] = str(value)
        return self

    def add_form_parameter(self, key: str, value: str) -> Self:
        """Append a form field and switch the body to form encoding."""
        if self._forms_parameters is None:
            self._forms_parameters = []
        self._forms_parameters.append((key, value))
        self._content_kind = ContentKind.FORMS
        return self

    def add_form_parameters(self, parameters: Iterable[tuple[str, str]]) -> Self:
        for key, value in parameters:
            self.add_form_parameter(key, value)
        return self

    def add_content(self, payload: Any) -> Self:
        """Send *payload* serialized with the effective serializer."""
        self._payload = payload
        self._content_kind = ContentKind.STRING
        return self

    def add_stream_content(self, payload: Any) -> Self:
        self._payload = payload
        self._content_kind = ContentKind.STREAM
        return self

    def add_byte_array_content(self, payload: bytes) -> Self:
        """Send *payload* as-is with application/octet-stream."""
        self._payload = payload
        self._content_kind = ContentKind.BYTE_ARRAY
        return self

    def serialize_with(self, serializer: Serializer) -> Self:
        self._serializer = serializer
        return self

    def deserialize_with(self, deserializer: Deserializer) -> Self:
        self._deserializer = deserializer
        return self

    def with_cancellation(self, cancel_event: asyncio.Event) -> Self:
        """Abort the call when *cancel_event* is set while waiting on the server."""
        self._cancel_event = cancel_event
        return self

    def to_descriptor(self) -> RequestDescriptor:
        """Snapshot the builder state. Later builder calls do not affect it."""
        return RequestDescriptor(
            verb=self._verb,
            route=self._route,
            headers=dict(self._headers),
            query_parameters=dict(self._query_parameters),
            forms_parameters=list(self._forms_parameters)
            if self._forms_parameters is not None
            else None,
            content_kind=self._content_kind,
            serializer=self._serializer,
            deserializer=self._deserializer,
            payload=self._payload,
            cancel_event=self._cancel_event,
        )

    async def execute(self) -> None:
        await self._client.execute(self.to_descriptor())

    async def execute_as(self, result_type: Any = Any) -> Any:
        return await self._client.execute_typed(self.to_descriptor(), result_type)

    async def execute_as_bytes(self) -> bytes:
        return await self._client.execute_bytes(self.to_descriptor())

    async def execute_as_stream(self) -> ResponseStream:
        return await self._client.execute_stream(self.to_descriptor())
