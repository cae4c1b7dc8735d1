"""Pytest configuration and fixtures for tiny-http tests.

This file provides:
- RecordingHandler: in-process server for httpx.MockTransport that records
  every request it receives
- PostRequest / PostResponse: payload models shared by the client tests
- FailingStream / StallingStream: response bodies that break or hang mid-read
- Fixtures: anyio backend, base address, recording handler, client
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Callable

import httpx
import pytest
from pydantic import BaseModel, ConfigDict, Field

from tiny_http.client import TinyHttpClient

BASE_ADDRESS = "http://api.test/"


class PostRequest(BaseModel):
    id: int
    data: str


class PostResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    response_data: str = Field(alias="responseData")


Responder = Callable[[httpx.Request], httpx.Response]


class RecordingHandler:
    """MockTransport handler that records requests and answers via a responder.

    The default responder returns 200 with an empty body. Tests swap it with
    ``handler.respond_with(...)`` or ``handler.responder = ...``.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Responder = responder or (lambda request: httpx.Response(200))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def respond_with(self, status_code: int = 200, **kwargs: Any) -> None:
        """Answer every request with the same canned response."""
        self.responder = lambda request: httpx.Response(status_code, **kwargs)

    @property
    def last_request(self) -> httpx.Request:
        assert self.requests, "No request was sent"
        return self.requests[-1]


class FailingStream(httpx.AsyncByteStream):
    """Response body that breaks after the first chunk."""

    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"partial"
        raise httpx.ReadError("connection reset")

    async def aclose(self) -> None:
        self.closed = True


class StallingStream(httpx.AsyncByteStream):
    """Response body that sends one chunk and then never another."""

    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"partial"
        await asyncio.Event().wait()
        yield b"never"

    async def aclose(self) -> None:
        self.closed = True


def echo_post_response(request: httpx.Request) -> httpx.Response:
    """Echo a PostRequest JSON body back as a PostResponse."""
    body = json.loads(request.content)
    return httpx.Response(200, json={"id": body["id"], "responseData": body["data"]})


def make_client(handler: Responder, base_address: str = BASE_ADDRESS, **kwargs: Any) -> TinyHttpClient:
    """Create a client whose owned httpx client talks to *handler* in-process."""
    return TinyHttpClient(base_address, transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def base_address() -> str:
    return BASE_ADDRESS


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
async def client(handler: RecordingHandler) -> AsyncIterator[TinyHttpClient]:
    async with make_client(handler) as tiny_client:
        yield tiny_client
