"""Serializer / deserializer capabilities and the default JSON pair.

A serializer turns a payload into text; a deserializer turns a response body
stream into a value of the requested type. Both optionally declare a media
type, used for Content-Type (serializer) and Accept (deserializer).
"""

from __future__ import annotations

import codecs
import json
from functools import lru_cache
from typing import IO, Any, Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from tiny_http.errors import SerializationError


@runtime_checkable
class Serializer(Protocol):
    """Turns a payload into request body text."""

    @property
    def has_media_type(self) -> bool: ...

    @property
    def media_type(self) -> str | None: ...

    def serialize(self, value: Any, encoding: str) -> str: ...


@runtime_checkable
class Deserializer(Protocol):
    """Turns a response body stream into a value of the requested type."""

    @property
    def has_media_type(self) -> bool: ...

    @property
    def media_type(self) -> str | None: ...

    def deserialize(self, stream: IO[bytes], result_type: Any = Any) -> Any: ...


_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@lru_cache(maxsize=256)
def _adapter_for(result_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(result_type)


def to_jsonable(value: Any) -> Any:
    """Convert models, dataclasses and plain values into JSON-compatible data.

    Field aliases are honored so wire names can differ from attribute names.

    Raises:
        SerializationError: If the value has no JSON representation.
    """
    try:
        return _ANY_ADAPTER.dump_python(value, mode="json", by_alias=True)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Cannot serialize value of type {type(value).__name__}: {e}"
        ) from e


def validate_as(data: Any, result_type: Any) -> Any:
    """Validate parsed body data into result_type. Any returns data unchanged."""
    if result_type is Any:
        return data
    try:
        return _adapter_for(result_type).validate_python(data)
    except ValidationError as e:
        raise SerializationError(f"Response body does not match {result_type!r}: {e}") from e


def _is_unicode_encoding(encoding: str) -> bool:
    return codecs.lookup(encoding).name.startswith("utf")


class JsonSerializer:
    """Serializes payloads as JSON. Default serializer of the client."""

    has_media_type = True
    media_type = "application/json"

    def serialize(self, value: Any, encoding: str) -> str:
        # Non-UTF encodings get \u escapes so any text survives the encode step
        return json.dumps(to_jsonable(value), ensure_ascii=not _is_unicode_encoding(encoding))


class JsonDeserializer:
    """Deserializes JSON bodies. Default deserializer of the client."""

    has_media_type = True
    media_type = "application/json"

    def deserialize(self, stream: IO[bytes], result_type: Any = Any) -> Any:
        try:
            data = json.load(stream)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SerializationError(f"Invalid JSON in response body: {e}") from e
        return validate_as(data, result_type)
