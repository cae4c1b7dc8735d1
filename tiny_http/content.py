"""Content negotiation - turns a payload into a transport-ready body.

The returned OutboundContent is owned by one call. The execution core closes
it once the transport is done with it, on success and on failure.
"""

from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import urlencode

from tiny_http.errors import UnsupportedContentKindError
from tiny_http.models import ContentKind
from tiny_http.serialization import Serializer

FORM_URLENCODED = "application/x-www-form-urlencoded"
OCTET_STREAM = "application/octet-stream"


class OutboundContent:
    """Request body bytes plus their media type."""

    def __init__(self, body: bytes, media_type: str) -> None:
        self._body = body
        self.media_type = media_type
        self._closed = False

    def __enter__(self) -> "OutboundContent":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def body(self) -> bytes:
        if self._closed:
            raise ValueError("OutboundContent is closed")
        return self._body

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": self.media_type}

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the payload. Safe to call more than once."""
        if not self._closed:
            self._body = b""
            self._closed = True

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._body)} bytes"
        return f"OutboundContent({self.media_type!r}, {state})"


def build_content(
    content_kind: ContentKind,
    serializer: Serializer,
    payload: Any,
    forms_parameters: Iterable[tuple[str, str]] | None,
    encoding: str,
) -> OutboundContent | None:
    """Build the request body for *content_kind*.

    Returns:
        OutboundContent, or None when the request has no body.

    Raises:
        UnsupportedContentKindError: If the kind/payload combination has no encoding.
    """
    if content_kind == ContentKind.NONE:
        return None

    if content_kind in (ContentKind.STRING, ContentKind.STREAM):
        if payload is None:
            return None
        text = serializer.serialize(payload, encoding)
        if serializer.has_media_type and serializer.media_type:
            media_type = serializer.media_type
        else:
            media_type = f"text/plain; charset={encoding}"
        return OutboundContent(text.encode(encoding), media_type)

    if content_kind == ContentKind.FORMS:
        # Sequence order is wire order; repeated keys are kept
        encoded = urlencode(list(forms_parameters or []))
        return OutboundContent(encoded.encode("ascii"), FORM_URLENCODED)

    if content_kind == ContentKind.BYTE_ARRAY:
        if payload is None:
            return None
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise UnsupportedContentKindError(
                f"ByteArray content requires bytes, got {type(payload).__name__}"
            )
        return OutboundContent(bytes(payload), OCTET_STREAM)

    raise UnsupportedContentKindError(f"Unsupported content kind: {content_kind!r}")
