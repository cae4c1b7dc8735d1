"""Request URI construction.

Query values are written as given. Callers must percent-encode values that
contain reserved characters (``&``, ``=``, ``#``, ...) themselves.
"""

from __future__ import annotations

from typing import Mapping

import httpx

from tiny_http.errors import InvalidUriError


def build_request_uri(
    base_address: str,
    route: str | None,
    query_parameters: Mapping[str, str],
) -> httpx.URL:
    """Join base address, route and query parameters into an absolute URI.

    Args:
        base_address: Server address ending with '/'.
        route: Route relative to the base address. None or '' means the base itself.
        query_parameters: Query parameters, emitted in iteration order.

    Raises:
        InvalidUriError: If the result is not an absolute URI with a host.
    """
    raw = f"{base_address}{route or ''}"

    if query_parameters:
        raw += "?" + "&".join(f"{key}={value}" for key, value in query_parameters.items())

    try:
        uri = httpx.URL(raw)
    except httpx.InvalidURL as e:
        raise InvalidUriError(f"Invalid request URI {raw!r}: {e}") from e

    if not uri.is_absolute_url or not uri.host:
        raise InvalidUriError(f"Request URI is not absolute: {raw!r}")

    return uri
