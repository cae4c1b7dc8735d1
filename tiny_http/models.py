"""Internal data models for tiny-http.

All models use Pydantic v2. See DESIGN.md "Data Model" for the mapping to
the request execution pipeline.
"""

from __future__ import annotations

import asyncio
import codecs
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tiny_http.serialization import (
    Deserializer,
    JsonDeserializer,
    JsonSerializer,
    Serializer,
)


# =============================================================================
# Request Models
# =============================================================================


class HttpVerb(str, Enum):
    """HTTP verbs supported by the client. The value is the wire method."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    PATCH = "PATCH"
    COPY = "COPY"


class ContentKind(str, Enum):
    """How the request payload is turned into a body."""

    NONE = "none"
    STRING = "string"  # Serialized with the effective serializer
    FORMS = "forms"  # application/x-www-form-urlencoded from forms_parameters
    BYTE_ARRAY = "byte_array"  # Raw bytes, application/octet-stream
    STREAM = "stream"  # Serialized like STRING


class RequestDescriptor(BaseModel):
    """Everything the execution core needs to perform one call.

    Built once by the request builder and treated as read-only afterwards.
    query_parameters keeps insertion order, which is the wire order.
    forms_parameters is a sequence of pairs so a key may repeat.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    verb: HttpVerb = Field(description="HTTP verb")
    route: str | None = Field(
        default=None, description="Route relative to the base address (None or '' = base only)"
    )
    headers: dict[str, str] = Field(default_factory=dict, description="Per-call headers")
    query_parameters: dict[str, str] = Field(
        default_factory=dict, description="Query parameters in wire order"
    )
    forms_parameters: list[tuple[str, str]] | None = Field(
        default=None, description="Form fields in wire order (duplicate keys allowed)"
    )
    content_kind: ContentKind = Field(default=ContentKind.NONE, description="Body kind")
    serializer: Serializer | None = Field(default=None, description="Serializer override")
    deserializer: Deserializer | None = Field(default=None, description="Deserializer override")
    payload: Any = Field(default=None, description="Object to send as the body")
    cancel_event: asyncio.Event | None = Field(
        default=None, description="Set to cancel the call while it waits on the transport"
    )


# =============================================================================
# Client Configuration
# =============================================================================


class ClientConfig(BaseModel):
    """Process-scoped client configuration.

    default_headers is the one field callers mutate between calls. Mutating it
    while a call is in flight is not synchronized.
    """

    model_config = ConfigDict(
        extra="forbid", validate_assignment=True, arbitrary_types_allowed=True
    )

    base_address: str = Field(description="Server address, always ends with '/'")
    default_headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request"
    )
    serializer: Serializer = Field(
        default_factory=JsonSerializer, description="Default request body serializer"
    )
    deserializer: Deserializer = Field(
        default_factory=JsonDeserializer, description="Default response body deserializer"
    )
    encoding: str = Field(default="utf-8", description="Text encoding for serialized bodies")
    timeout: float = Field(
        default=30.0, gt=0, description="Transport timeout in seconds (owned transport only)"
    )

    @field_validator("base_address")
    @classmethod
    def normalize_base_address(cls, v: str) -> str:
        if not v:
            raise ValueError("base_address must not be empty")
        if not v.endswith("/"):
            v += "/"
        return v

    @field_validator("encoding")
    @classmethod
    def check_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f"Unknown encoding: {v!r}") from e
        return v


# =============================================================================
# Telemetry Events
# =============================================================================


class SendingRequestEvent(BaseModel):
    """Fired right before the request is handed to the transport."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    request_id: str = Field(description="Correlation id shared by all events of one call")
    uri: str = Field(description="Absolute request URI")
    method: str = Field(description="HTTP method")


class ReceivedResponseEvent(BaseModel):
    """Fired when the transport returned a response (any status)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    request_id: str = Field(description="Correlation id shared by all events of one call")
    uri: str = Field(description="Absolute request URI")
    method: str = Field(description="HTTP method")
    status_code: int = Field(description="HTTP status code")
    reason_phrase: str = Field(description="HTTP reason phrase")
    elapsed: timedelta = Field(description="Time spent in the transport")


class FailedToGetResponseEvent(BaseModel):
    """Fired when no response was obtained (network error, timeout, cancellation)."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    request_id: str = Field(description="Correlation id shared by all events of one call")
    uri: str = Field(description="Absolute request URI")
    method: str = Field(description="HTTP method")
    error: BaseException = Field(description="The originating failure")
    elapsed: timedelta = Field(description="Time spent in the transport")
