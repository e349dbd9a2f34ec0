# Shared fixtures: settings, a recording fake of the chat-completions API,
# and helpers for building streaming bodies.
# Created: 2026-10-10

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from fincoach.config import Settings
from fincoach.llm.frames import DONE_FRAME
from fincoach.llm.streaming import StreamingChatClient
from fincoach.llm.transport import ChatTransport
from fincoach.services import build_services

API_BASE = "https://api.test"


def delta_line(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": text}}]})


def sse_body(*lines: str) -> bytes:
    return ("\n\n".join(lines) + "\n\n").encode()


def sse_response(*deltas: str, done: bool = True) -> httpx.Response:
    lines = [delta_line(d) for d in deltas]
    if done:
        lines.append(DONE_FRAME)
    return httpx.Response(200, content=sse_body(*lines))


def completion_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"index": 0, "message": {"content": content}}]})


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that yields *chunks*, then optionally hangs or raises."""

    def __init__(self, chunks: list[bytes], *, hang: bool = False, error: Exception | None = None):
        self.chunks = chunks
        self.hang = hang
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class FakeAPI:
    """Records every request and answers with ``responder(request)``."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response] | None = None):
        self.requests: list[httpx.Request] = []
        self.responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responder is None:
            raise AssertionError(f"Unexpected request to {request.url}")
        return self.responder(request)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, api_key="sk-test-1234567890", api_base_url=API_BASE)


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def transport(settings, api) -> ChatTransport:
    return ChatTransport(settings, client=api.client())


@pytest.fixture
def chat_client(settings, transport) -> StreamingChatClient:
    return StreamingChatClient(transport, settings)


@pytest.fixture
def services(settings, api):
    return build_services(settings, http_client=api.client())
