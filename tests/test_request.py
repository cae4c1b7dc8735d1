"""Tests for the fluent Request builder."""

from __future__ import annotations

import asyncio

import pytest

from tiny_http.client import TinyHttpClient
from tiny_http.models import ContentKind, HttpVerb
from tiny_http.xml_body import XmlDeserializer, XmlSerializer

from tests.conftest import BASE_ADDRESS, RecordingHandler


@pytest.fixture
def offline_client() -> TinyHttpClient:
    """Client used only for building descriptors; never sends."""
    return TinyHttpClient(BASE_ADDRESS)


class TestToDescriptor:
    def test_bare_request(self, offline_client: TinyHttpClient) -> None:
        descriptor = offline_client.new_request(HttpVerb.GET).to_descriptor()
        assert descriptor.verb is HttpVerb.GET
        assert descriptor.route is None
        assert descriptor.content_kind is ContentKind.NONE
        assert descriptor.headers == {}
        assert descriptor.query_parameters == {}
        assert descriptor.forms_parameters is None

    def test_header_set_twice_keeps_last(self, offline_client: TinyHttpClient) -> None:
        descriptor = (
            offline_client.new_request(HttpVerb.GET, "x")
            .with_header("X-A", "1")
            .with_header("X-A", "2")
            .to_descriptor()
        )
        assert descriptor.headers == {"X-A": "2"}

    def test_query_parameters_keep_order_and_stringify(self, offline_client: TinyHttpClient) -> None:
        descriptor = (
            offline_client.new_request(HttpVerb.GET, "x")
            .add_query_parameter("b", 2)
            .add_query_parameter("a", True)
            .to_descriptor()
        )
        assert list(descriptor.query_parameters.items()) == [("b", "2"), ("a", "True")]

    def test_form_parameters_allow_duplicates(self, offline_client: TinyHttpClient) -> None:
        descriptor = (
            offline_client.new_request(HttpVerb.POST, "x")
            .add_form_parameter("tag", "a")
            .add_form_parameters([("tag", "b"), ("name", "n")])
            .to_descriptor()
        )
        assert descriptor.content_kind is ContentKind.FORMS
        assert descriptor.forms_parameters == [("tag", "a"), ("tag", "b"), ("name", "n")]

    @pytest.mark.parametrize(
        "method, kind",
        [
            ("add_content", ContentKind.STRING),
            ("add_stream_content", ContentKind.STREAM),
            ("add_byte_array_content", ContentKind.BYTE_ARRAY),
        ],
    )
    def test_content_kinds(self, offline_client: TinyHttpClient, method: str, kind: ContentKind) -> None:
        request = offline_client.new_request(HttpVerb.POST, "x")
        descriptor = getattr(request, method)(b"payload").to_descriptor()
        assert descriptor.content_kind is kind
        assert descriptor.payload == b"payload"

    def test_overrides_and_cancellation(self, offline_client: TinyHttpClient) -> None:
        serializer = XmlSerializer()
        deserializer = XmlDeserializer()
        cancel_event = asyncio.Event()

        descriptor = (
            offline_client.new_request(HttpVerb.PUT, "x")
            .serialize_with(serializer)
            .deserialize_with(deserializer)
            .with_cancellation(cancel_event)
            .to_descriptor()
        )

        assert descriptor.serializer is serializer
        assert descriptor.deserializer is deserializer
        assert descriptor.cancel_event is cancel_event

    def test_descriptor_is_a_snapshot(self, offline_client: TinyHttpClient) -> None:
        request = offline_client.new_request(HttpVerb.GET, "x").with_header("X-A", "1")
        descriptor = request.to_descriptor()

        request.with_header("X-B", "2").add_query_parameter("q", "1")

        assert descriptor.headers == {"X-A": "1"}
        assert descriptor.query_parameters == {}


@pytest.mark.anyio
class TestExecute:
    """Builder entry points forward to the client."""

    async def test_execute_as_bytes(self, client: TinyHttpClient, handler: RecordingHandler) -> None:
        handler.respond_with(200, content=b"\x00\x01")
        assert await client.new_request(HttpVerb.GET, "blob").execute_as_bytes() == b"\x00\x01"

    async def test_form_post(self, client: TinyHttpClient, handler: RecordingHandler) -> None:
        await (
            client.new_request(HttpVerb.POST, "login")
            .add_form_parameter("user", "a b")
            .add_form_parameter("pass", "x&y")
            .execute()
        )
        sent = handler.last_request
        assert sent.headers["content-type"] == "application/x-www-form-urlencoded"
        assert sent.content == b"user=a+b&pass=x%26y"

    async def test_byte_array_post(self, client: TinyHttpClient, handler: RecordingHandler) -> None:
        await client.new_request(HttpVerb.POST, "upload").add_byte_array_content(b"\xff\xfe").execute()
        sent = handler.last_request
        assert sent.headers["content-type"] == "application/octet-stream"
        assert sent.content == b"\xff\xfe"

    async def test_query_in_url(self, client: TinyHttpClient, handler: RecordingHandler) -> None:
        await (
            client.new_request(HttpVerb.GET, "items")
            .add_query_parameter("page", 2)
            .add_query_parameter("size", 10)
            .execute()
        )
        assert str(handler.last_request.url) == "http://api.test/items?page=2&size=10"
