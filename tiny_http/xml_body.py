"""XML serializer / deserializer pair.

Payloads are converted to JSON-compatible data first (see
serialization.to_jsonable) and then mapped onto elements:

- The root element is the single key of a dict payload, or the class name of
  a model / dataclass payload.
- Nested dicts become child elements, lists become repeated siblings with
  the same tag, None becomes an empty element, scalars become text.

Responses are parsed the other way round. Leaf values come back as strings;
pydantic's lax mode converts them when validating into the result type.
Namespaces are stripped from tag names, attributes are exposed as ``@name``
keys. XML attributes are never emitted on the request side.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import IO, Any

from tiny_http.errors import SerializationError
from tiny_http.serialization import to_jsonable, validate_as

TEXT_KEY = "#text"
ATTRIBUTE_PREFIX = "@"
LIST_ITEM_TAG = "item"


# =============================================================================
# Parsing
# =============================================================================


def xml_to_dict(xml_bytes: bytes, force_list: set[str] | None = None) -> dict[str, Any]:
    """Parse an XML document into ``{root_tag: content}``.

    Repeated child tags, and tags named in *force_list*, become lists. An
    element with no children, attributes or text becomes None.

    Raises:
        ET.ParseError: If the document is not well-formed.
    """
    root = ET.fromstring(xml_bytes)
    return {_local_name(root.tag): _parse_element(root, frozenset(force_list or ()))}


def _local_name(tag: str) -> str:
    # ElementTree spells namespaced tags as {uri}name
    return tag.rpartition("}")[2]


def _parse_element(element: ET.Element, force_list: frozenset[str]) -> Any:
    node: dict[str, Any] = {
        ATTRIBUTE_PREFIX + name: value
        for name, value in element.attrib.items()
        if not name.startswith(("xmlns", "{"))
    }

    for child in element:
        tag = _local_name(child.tag)
        parsed = _parse_element(child, force_list)
        # Parsed values are never lists, so a list here is one we built
        existing = node.get(tag)
        if isinstance(existing, list):
            existing.append(parsed)
        elif tag in node:
            node[tag] = [existing, parsed]
        else:
            node[tag] = [parsed] if tag in force_list else parsed

    text = element.text.strip() if element.text else ""
    if not node:
        return text or None
    if text:
        node[TEXT_KEY] = text
    return node


# =============================================================================
# Rendering
# =============================================================================


def dict_to_xml(data: dict[str, Any], encoding: str = "utf-8") -> str:
    """Render ``{root_tag: content}`` as an indented XML document.

    The declaration names *encoding*; the caller encodes the text with it.

    Raises:
        ValueError: If *data* is not a dict with exactly one key.
    """
    if not isinstance(data, dict) or len(data) != 1:
        shape = f"dict with {len(data)} keys" if isinstance(data, dict) else type(data).__name__
        raise ValueError(f"XML document needs exactly one root element, got {shape}")

    [(root_tag, content)] = data.items()
    root = ET.Element(root_tag)
    _fill_element(root, content)
    ET.indent(root)
    return f"<?xml version='1.0' encoding='{encoding}'?>\n" + ET.tostring(root, encoding="unicode")


def _fill_element(element: ET.Element, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, list):
        for item in value:
            _fill_element(ET.SubElement(element, LIST_ITEM_TAG), item)
        return
    if not isinstance(value, dict):
        element.text = _scalar_text(value)
        return

    for key, child in value.items():
        if key == TEXT_KEY:
            element.text = _scalar_text(child)
        elif key.startswith(ATTRIBUTE_PREFIX):
            continue
        else:
            for item in child if isinstance(child, list) else [child]:
                _fill_element(ET.SubElement(element, key), item)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


# =============================================================================
# Serializer / deserializer
# =============================================================================


class XmlSerializer:
    """Serializes payloads as XML."""

    has_media_type = True
    media_type = "application/xml"

    def serialize(self, value: Any, encoding: str) -> str:
        if isinstance(value, dict):
            data = to_jsonable(value)
        else:
            data = {type(value).__name__: to_jsonable(value)}
        try:
            return dict_to_xml(data, encoding)
        except ValueError as e:
            raise SerializationError(f"Cannot serialize {type(value).__name__} as XML: {e}") from e


class XmlDeserializer:
    """Deserializes XML bodies.

    With ``result_type=Any`` the whole document is returned as
    ``{root_tag: content}``; otherwise the root element's content is validated
    into ``result_type``.
    """

    has_media_type = True
    media_type = "application/xml"

    def __init__(self, force_list: set[str] | None = None) -> None:
        self._force_list = force_list or set()

    def deserialize(self, stream: IO[bytes], result_type: Any = Any) -> Any:
        try:
            document = xml_to_dict(stream.read(), self._force_list)
        except ET.ParseError as e:
            raise SerializationError(f"Invalid XML in response body: {e}") from e
        if result_type is Any:
            return document
        return validate_as(next(iter(document.values())), result_type)
