"""Streaming chat client.

Created: 2026-10-03
Changes:
  2026-10-06 - ChatStream doubles as an async iterator of deltas with an
               out-of-band outcome, alongside the on_delta callback.
  2026-10-07 - Added cancel(): closes the response and still delivers the
               terminal marker.
  2026-10-14 - Termination is unconditional: a cancel that lands while the
               error delta is being delivered still ends the stream. wait()
               and iteration finish only after on_delta has seen the marker.

``StreamingChatClient.send()`` appends the user turn, starts the request on a
worker task and returns a ``ChatStream`` handle right away. Deltas reach the
caller two ways:

- ``on_delta(text)``: called from the worker task for every content delta,
  then exactly once with ``TERMINAL_MARKER``. It is invoked (and awaited, if
  it returns an awaitable) before the next line is read, so a slow consumer
  slows the network read. Callers that need in-order, rate-matched delivery
  rely on this.
- ``async for delta in stream``: the same deltas without the marker; the
  iteration simply ends, and ``stream.outcome`` says how. The deltas are
  consumed as they are read, so a stream has a single consumer; iterating a
  finished, drained stream ends immediately.

Transport failures never raise out of the stream. They become one error delta
followed by the marker.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum

import httpx

from fincoach.config import MODEL_CHAT, MODEL_REASONER, Settings
from fincoach.errors import TransportError, format_transport_error
from fincoach.llm.dispatch import WorkerPool
from fincoach.llm.frames import TERMINAL_MARKER, FrameKind, parse_frame
from fincoach.llm.history import ConversationHistory
from fincoach.llm.transport import ChatTransport

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], "Awaitable[None] | None"]

SUPPORTED_MODELS = (MODEL_CHAT, MODEL_REASONER)


class StreamOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ChatStream:
    """Handle for one in-flight ``send()``.

    Call ``cancel()`` from the loop that owns the stream.
    """

    def __init__(self, history: ConversationHistory, on_delta: DeltaCallback | None = None):
        self.history = history
        self._on_delta = on_delta
        self._parts: list[str] = []
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._finished = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._started = False
        self._cancel_requested = False
        self.outcome: StreamOutcome | None = None
        self.error: str | None = None

    # -- public API --

    @property
    def text(self) -> str:
        """Concatenation of every ordinary delta received so far."""
        return "".join(self._parts)

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    @property
    def cancelled(self) -> bool:
        return self.outcome is StreamOutcome.CANCELLED

    def cancel(self) -> bool:
        """Stop the stream. Returns False if it had already finished."""
        # once an outcome is recorded only the marker delivery is left
        if self.outcome is not None or self._cancel_requested:
            return False
        self._cancel_requested = True
        # A task that hasn't started yet sees the flag on its first step
        if self._task is not None and self._started:
            self._task.cancel()
        logger.info("Stream cancelled by caller")
        return True

    async def wait(self) -> StreamOutcome:
        await self._finished.wait()
        assert self.outcome is not None
        return self.outcome

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_deltas()

    async def _iter_deltas(self) -> AsyncIterator[str]:
        while True:
            if self.done and self._queue.empty():
                return
            item = await self._queue.get()
            if item is None:
                return
            yield item

    # -- delivery, used by the client --

    async def _call(self, text: str) -> None:
        if self._on_delta is None:
            return
        try:
            result = self._on_delta(text)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("on_delta callback raised")

    async def _deliver(self, text: str) -> None:
        if self._cancel_requested or not text:
            return
        self._parts.append(text)
        self._queue.put_nowait(text)
        await self._call(text)

    async def _deliver_error(self, message: str) -> None:
        self.error = message
        self._queue.put_nowait(message)
        await self._call(message)

    async def _terminate(self, outcome: StreamOutcome) -> None:
        """Record the outcome, update history and deliver the marker exactly once."""
        if self.outcome is not None:
            return
        self.outcome = outcome
        if outcome is StreamOutcome.COMPLETED:
            self.history.add_assistant(self.text)
        # released first so the marker callback may start the next send
        self.history.release()
        try:
            await self._call(TERMINAL_MARKER)
        finally:
            self._queue.put_nowait(None)
            self._finished.set()


class StreamingChatClient:
    """Sends conversation turns and streams the assistant's reply."""

    def __init__(
        self,
        transport: ChatTransport,
        settings: Settings,
        *,
        pool: WorkerPool | None = None,
        model: str | None = None,
    ):
        self.transport = transport
        self.settings = settings
        self.pool = pool or WorkerPool(settings.max_concurrent_requests)
        self._model = model or settings.model

    @property
    def model(self) -> str:
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        if value not in SUPPORTED_MODELS:
            logger.warning("Model %s is not one of %s", value, ", ".join(SUPPORTED_MODELS))
        self._model = value

    def send(
        self,
        history: ConversationHistory,
        user_text: str,
        on_delta: DeltaCallback | None = None,
    ) -> ChatStream:
        """Append *user_text* to *history* and start streaming the reply.

        Must be called with a running event loop. Raises
        ``ConversationBusyError`` (before touching the history) if another
        send on the same history has not finished.
        """
        history.acquire()
        try:
            history.add_user(user_text)
            logger.info("Sending message with model %s: %s", self._model, user_text[:100])
            stream = ChatStream(history, on_delta)
            stream._task = self.pool.spawn(self._run(stream), name="chat-stream")
        except BaseException:
            history.release()
            raise
        return stream

    async def _run(self, stream: ChatStream) -> None:
        stream._started = True
        external_cancel = False
        try:
            outcome = await self._attempt(stream)
        except asyncio.CancelledError:
            # may land during the read or while the error delta is delivered
            outcome = StreamOutcome.CANCELLED
            external_cancel = not stream._cancel_requested
            if not external_cancel:
                asyncio.current_task().uncancel()
        await stream._terminate(outcome)
        if external_cancel:
            raise asyncio.CancelledError

    async def _attempt(self, stream: ChatStream) -> StreamOutcome:
        if stream._cancel_requested:
            return StreamOutcome.CANCELLED
        try:
            async with self.pool.slot():
                await self._read_stream(stream)
        except (TransportError, httpx.HTTPError) as e:
            logger.error("Error during streaming API call: %s", e)
            await stream._deliver_error(format_transport_error(e))
            return StreamOutcome.FAILED
        except Exception as e:
            logger.exception("Unexpected error while streaming")
            await stream._deliver_error(format_transport_error(e))
            return StreamOutcome.FAILED
        return StreamOutcome.COMPLETED

    async def _read_stream(self, stream: ChatStream) -> None:
        async with self.transport.open_stream(
            stream.history.to_payload(),
            temperature=self.settings.chat_temperature,
            max_tokens=self.settings.chat_max_tokens,
            model=self._model,
        ) as response:
            async for line in response.aiter_lines():
                frame = parse_frame(line)
                if frame is None:
                    continue
                if frame.kind is FrameKind.DONE:
                    logger.debug("Stream completed, [DONE] received")
                    return
                if frame.has_content:
                    await stream._deliver(frame.content)
        logger.debug("Stream body ended without [DONE]")
