"""Tests for StreamingChatClient and ChatStream."""

import asyncio
import logging

import httpx
import pytest

from fincoach.errors import ConversationBusyError
from fincoach.llm.frames import DONE_FRAME, TERMINAL_MARKER
from fincoach.llm.history import ConversationHistory, Message, Role
from fincoach.llm.streaming import StreamOutcome

from .conftest import ScriptedStream, delta_line, sse_body, sse_response

# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestSend:
    async def test_single_delta_then_done(self, api, chat_client):
        api.responder = lambda r: sse_response("Save more.")
        history = ConversationHistory("You are helpful.")
        received = []

        stream = chat_client.send(history, "How do I save?", on_delta=received.append)
        outcome = await stream.wait()

        assert outcome is StreamOutcome.COMPLETED
        assert received == ["Save more.", TERMINAL_MARKER]
        assert history.messages[-1] == Message(Role.ASSISTANT, "Save more.")
        assert not history.in_flight

    async def test_request_payload(self, api, chat_client, settings):
        api.responder = lambda r: sse_response("ok")
        history = ConversationHistory("sys")

        await chat_client.send(history, "hello").wait()

        request = api.requests[0]
        assert str(request.url) == "https://api.test/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test-1234567890"
        assert request.headers["Content-Type"] == "application/json"
        payload = api.payload()
        assert payload["model"] == "deepseek-chat"
        assert payload["stream"] is True
        assert payload["temperature"] == settings.chat_temperature
        assert payload["max_tokens"] == settings.chat_max_tokens
        assert payload["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hello"},
        ]

    async def test_deltas_concatenate_losslessly(self, api, chat_client):
        pieces = ["Spend ", "less ", "than ", "you ", "earn", ".\n", "• Track it"]
        api.responder = lambda r: sse_response(*pieces)
        history = ConversationHistory()
        received = []

        stream = chat_client.send(history, "tip?", on_delta=received.append)
        await stream.wait()

        assert received[:-1] == pieces
        assert received[-1] == TERMINAL_MARKER
        assert stream.text == "".join(pieces)
        assert history.messages[-1].content == "".join(pieces)

    async def test_terminal_marker_delivered_exactly_once(self, api, chat_client):
        api.responder = lambda r: sse_response("a", "b")
        received = []

        await chat_client.send(ConversationHistory(), "x", on_delta=received.append).wait()

        assert received.count(TERMINAL_MARKER) == 1
        assert received[-1] == TERMINAL_MARKER

    async def test_body_without_done_frame_completes(self, api, chat_client):
        api.responder = lambda r: sse_response("partial", done=False)
        history = ConversationHistory()
        received = []

        stream = chat_client.send(history, "x", on_delta=received.append)

        assert await stream.wait() is StreamOutcome.COMPLETED
        assert received == ["partial", TERMINAL_MARKER]
        assert history.messages[-1].content == "partial"

    async def test_frames_without_content_are_skipped(self, api, chat_client):
        role_only = 'data: {"choices":[{"delta":{"role":"assistant"}}]}'
        api.responder = lambda r: httpx.Response(
            200, content=sse_body(role_only, delta_line("Hi"), delta_line(""), DONE_FRAME)
        )
        received = []

        await chat_client.send(ConversationHistory(), "x", on_delta=received.append).wait()

        assert received == ["Hi", TERMINAL_MARKER]

    async def test_async_on_delta_is_awaited_in_order(self, api, chat_client):
        api.responder = lambda r: sse_response("one", "two", "three")
        received = []

        async def slow_consumer(chunk):
            await asyncio.sleep(0)
            received.append(chunk)

        await chat_client.send(ConversationHistory(), "x", on_delta=slow_consumer).wait()

        assert received == ["one", "two", "three", TERMINAL_MARKER]

    async def test_iterating_the_stream(self, api, chat_client):
        api.responder = lambda r: sse_response("Budget ", "weekly.")

        stream = chat_client.send(ConversationHistory(), "x")
        deltas = [d async for d in stream]

        assert deltas == ["Budget ", "weekly."]
        assert stream.outcome is StreamOutcome.COMPLETED

    async def test_on_delta_exception_does_not_stop_stream(self, api, chat_client, caplog):
        api.responder = lambda r: sse_response("a", "b")
        seen = []

        def flaky(chunk):
            seen.append(chunk)
            if chunk == "a":
                raise ValueError("consumer bug")

        with caplog.at_level(logging.ERROR):
            stream = chat_client.send(ConversationHistory(), "x", on_delta=flaky)
            outcome = await stream.wait()

        assert outcome is StreamOutcome.COMPLETED
        assert seen == ["a", "b", TERMINAL_MARKER]
        assert "on_delta callback raised" in caplog.text


# ---------------------------------------------------------------------------
# Malformed frames
# ---------------------------------------------------------------------------


class TestMalformedFrames:
    async def test_malformed_frame_is_dropped(self, api, chat_client):
        api.responder = lambda r: httpx.Response(
            200,
            content=sse_body(delta_line("Before"), "data: {not json", delta_line(" after"), DONE_FRAME),
        )
        received = []

        stream = chat_client.send(ConversationHistory(), "x", on_delta=received.append)
        await stream.wait()

        assert received == ["Before", " after", TERMINAL_MARKER]
        assert stream.text == "Before after"

    async def test_doubled_prefix_is_salvaged_as_text(self, api, chat_client):
        api.responder = lambda r: httpx.Response(
            200, content=sse_body(delta_line("A"), "data: data: plain words", DONE_FRAME)
        )
        received = []

        await chat_client.send(ConversationHistory(), "x", on_delta=received.append).wait()

        assert received == ["A", "plain words", TERMINAL_MARKER]

    async def test_unrecognized_lines_are_ignored(self, api, chat_client):
        api.responder = lambda r: httpx.Response(
            200, content=sse_body(": keep-alive", "event: ping", delta_line("ok"), DONE_FRAME)
        )
        received = []

        await chat_client.send(ConversationHistory(), "x", on_delta=received.append).wait()

        assert received == ["ok", TERMINAL_MARKER]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_non_2xx_yields_error_delta(self, api, chat_client):
        api.responder = lambda r: httpx.Response(401, text="Unauthorized")
        history = ConversationHistory("sys")
        received = []

        stream = chat_client.send(history, "x", on_delta=received.append)
        outcome = await stream.wait()

        assert outcome is StreamOutcome.FAILED
        assert received == ["Error: 401 - Unauthorized", TERMINAL_MARKER]
        assert stream.error == "Error: 401 - Unauthorized"
        # user turn kept, no assistant turn
        assert [m.role for m in history] == [Role.SYSTEM, Role.USER]
        assert not history.in_flight

    async def test_connect_error_yields_error_delta(self, api, chat_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        api.responder = refuse
        received = []

        stream = chat_client.send(ConversationHistory(), "x", on_delta=received.append)

        assert await stream.wait() is StreamOutcome.FAILED
        assert len(received) == 2
        assert received[0].startswith("Error communicating with AI service:")
        assert "connection refused" in received[0]
        assert received[1] == TERMINAL_MARKER

    async def test_read_timeout_mid_stream(self, api, chat_client):
        body = ScriptedStream(
            [(delta_line("Hi") + "\n\n").encode()],
            error=httpx.ReadTimeout("Read timed out"),
        )
        api.responder = lambda r: httpx.Response(200, stream=body)
        history = ConversationHistory()
        received = []

        stream = chat_client.send(history, "x", on_delta=received.append)
        outcome = await stream.wait()

        assert outcome is StreamOutcome.FAILED
        assert received == ["Hi", "Error communicating with AI service: Read timed out", TERMINAL_MARKER]
        assert stream.text == "Hi"
        assert history.messages[-1].role is Role.USER
        assert body.closed


# ---------------------------------------------------------------------------
# Cancellation and the in-flight guard
# ---------------------------------------------------------------------------


class TestCancel:
    async def test_cancel_mid_stream(self, api, chat_client):
        body = ScriptedStream([(delta_line("Hello") + "\n\n").encode()], hang=True)
        api.responder = lambda r: httpx.Response(200, stream=body)
        history = ConversationHistory()
        received = []
        first = asyncio.Event()

        def on_delta(chunk):
            received.append(chunk)
            first.set()

        stream = chat_client.send(history, "x", on_delta=on_delta)
        await asyncio.wait_for(first.wait(), timeout=5)

        assert stream.cancel() is True
        outcome = await asyncio.wait_for(stream.wait(), timeout=5)

        assert outcome is StreamOutcome.CANCELLED
        assert stream.cancelled
        assert received == ["Hello", TERMINAL_MARKER]
        assert body.closed
        assert history.messages[-1].role is Role.USER
        assert not history.in_flight

    async def test_cancel_before_start(self, api, chat_client):
        api.responder = lambda r: sse_response("never")
        received = []

        stream = chat_client.send(ConversationHistory(), "x", on_delta=received.append)
        stream.cancel()

        assert await stream.wait() is StreamOutcome.CANCELLED
        assert received == [TERMINAL_MARKER]
        assert api.requests == []

    async def test_cancel_after_finish_is_noop(self, api, chat_client):
        api.responder = lambda r: sse_response("done")
        received = []

        stream = chat_client.send(ConversationHistory(), "x", on_delta=received.append)
        await stream.wait()

        assert stream.cancel() is False
        assert stream.outcome is StreamOutcome.COMPLETED
        assert received.count(TERMINAL_MARKER) == 1

    async def test_second_send_rejected_while_in_flight(self, api, chat_client):
        api.responder = lambda r: sse_response("first")
        history = ConversationHistory()

        stream = chat_client.send(history, "one")
        with pytest.raises(ConversationBusyError):
            chat_client.send(history, "two")
        await stream.wait()

        assert [m.content for m in history] == ["one", "first"]

    async def test_send_allowed_again_after_finish(self, api, chat_client):
        api.responder = lambda r: sse_response("reply")
        history = ConversationHistory()

        await chat_client.send(history, "one").wait()
        await chat_client.send(history, "two").wait()

        assert [m.content for m in history] == ["one", "reply", "two", "reply"]
        assert len(api.payload(1)["messages"]) == 3

    async def test_send_from_terminal_callback(self, api, chat_client):
        api.responder = lambda r: sse_response("reply")
        history = ConversationHistory()
        followups = []

        def on_delta(chunk):
            if chunk == TERMINAL_MARKER and not followups:
                followups.append(chat_client.send(history, "follow-up"))

        await chat_client.send(history, "first", on_delta=on_delta).wait()
        await followups[0].wait()

        assert [m.content for m in history] == ["first", "reply", "follow-up", "reply"]


class TestTermination:
    """The stream always ends, and ends only after on_delta saw the marker."""

    async def test_cancel_while_error_delta_is_delivered(self, api, chat_client):
        api.responder = lambda r: httpx.Response(500, text="boom")
        history = ConversationHistory()
        received = []
        error_seen = asyncio.Event()

        async def slow_on_error(chunk):
            received.append(chunk)
            if chunk.startswith("Error"):
                error_seen.set()
                await asyncio.Event().wait()

        stream = chat_client.send(history, "x", on_delta=slow_on_error)
        await asyncio.wait_for(error_seen.wait(), timeout=5)

        assert stream.cancel() is True
        outcome = await asyncio.wait_for(stream.wait(), timeout=5)

        assert outcome is StreamOutcome.CANCELLED
        assert received == ["Error: 500 - boom", TERMINAL_MARKER]
        assert stream.error == "Error: 500 - boom"
        assert not history.in_flight
        assert [d async for d in stream] == ["Error: 500 - boom"]

        api.responder = lambda r: sse_response("recovered")
        assert await chat_client.send(history, "again").wait() is StreamOutcome.COMPLETED

    async def test_wait_returns_after_async_marker_callback(self, api, chat_client):
        api.responder = lambda r: sse_response("hi")
        received = []
        cancel_results = []
        holder = []

        async def on_delta(chunk):
            if chunk == TERMINAL_MARKER:
                cancel_results.append(holder[0].cancel())
                await asyncio.sleep(0.01)
            received.append(chunk)

        stream = chat_client.send(ConversationHistory(), "x", on_delta=on_delta)
        holder.append(stream)
        outcome = await stream.wait()

        assert outcome is StreamOutcome.COMPLETED
        assert received == ["hi", TERMINAL_MARKER]
        assert cancel_results == [False]

    async def test_iteration_waits_for_marker_callback(self, api, chat_client):
        api.responder = lambda r: sse_response("a")
        marker_done = []

        async def on_delta(chunk):
            if chunk == TERMINAL_MARKER:
                await asyncio.sleep(0.01)
                marker_done.append(True)

        stream = chat_client.send(ConversationHistory(), "x", on_delta=on_delta)
        assert [d async for d in stream] == ["a"]
        assert marker_done == [True]

    async def test_second_iteration_of_drained_stream_ends(self, api, chat_client):
        api.responder = lambda r: sse_response("a", "b")

        stream = chat_client.send(ConversationHistory(), "x")
        assert [d async for d in stream] == ["a", "b"]

        async def drain():
            return [d async for d in stream]

        assert await asyncio.wait_for(drain(), timeout=1) == []


class TestModel:
    def test_unknown_model_warns(self, chat_client, caplog):
        with caplog.at_level(logging.WARNING):
            chat_client.model = "gpt-x"
        assert chat_client.model == "gpt-x"
        assert "not one of" in caplog.text

    async def test_reasoner_model_used_in_payload(self, api, chat_client):
        api.responder = lambda r: sse_response("ok")
        chat_client.model = "deepseek-reasoner"

        await chat_client.send(ConversationHistory(), "x").wait()

        assert api.payload()["model"] == "deepseek-reasoner"
