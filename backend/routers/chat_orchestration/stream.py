"""
Parley Stream Consumer - SSE parsing and rate-limited partial persistence

States: AWAITING_RESPONSE -> STREAMING -> FLUSHING -> DONE, or ERROR.

While deltas arrive the accumulated text is written to the outgoing message
at most once per flush interval. When the stream ends (sentinel, end of body
or cancellation) a final flush makes the stored body equal the full text.
Any other exit path still attempts that final flush before the error
propagates, so already-generated text is never lost.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from errors import StreamDecodeError, log_error
from logging_config import log_llm, log_stream
from services.llm_client import CompletionClient
from services.store import MessageStore, AUTHOR_AI

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

Clock = Callable[[], float]
DeltaCallback = Callable[[str], Awaitable[None]]


class StreamState(str, Enum):
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class SSEEvent:
    delta: str = ""
    done: bool = False


def parse_sse_line(line: str) -> Optional[SSEEvent]:
    """Decode one event-stream line.

    Returns:
        None for lines that carry no data (blank, comments, other fields),
        SSEEvent(done=True) for the terminator, else the text delta

    Raises:
        StreamDecodeError: data payload is not JSON or has no usable delta
    """
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return SSEEvent(done=True)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StreamDecodeError("Malformed event payload", details=str(e), line=line) from e

    if not isinstance(data, dict):
        raise StreamDecodeError("Event payload is not an object", line=line)

    choices = data.get("choices") or []
    if not choices:
        return SSEEvent()
    try:
        content = (choices[0].get("delta") or {}).get("content") or ""
    except AttributeError as e:
        raise StreamDecodeError("Unexpected event shape", line=line) from e
    if not isinstance(content, str):
        raise StreamDecodeError("Delta content is not text", line=line)
    return SSEEvent(delta=content)


class MessageFlusher:
    """Writes accumulated text to one StreamedMessage.

    Intermediate flushes are gated on more than ``interval_s`` since the last
    one; the first delta flushes immediately. A write whose body equals what
    is already stored is skipped. With no message id every flush is a no-op
    (guest sessions).
    """

    def __init__(
        self,
        store: Optional[MessageStore],
        message_id: Optional[str],
        interval_s: float,
        clock: Clock,
        persisted_body: Optional[str] = None,
    ):
        self.store = store
        self.message_id = message_id
        self.interval_s = interval_s
        self.clock = clock
        self.persisted_body = persisted_body
        self.last_flush_time: Optional[float] = None
        self.writes = 0

    @property
    def active(self) -> bool:
        return self.store is not None and self.message_id is not None

    async def _write(self, text: str, now: float) -> None:
        await self.store.update_message(self.message_id, text)
        self.persisted_body = text
        self.last_flush_time = now
        self.writes += 1

    async def maybe_flush(self, text: str) -> bool:
        if not self.active:
            return False
        now = self.clock()
        if self.last_flush_time is not None and now - self.last_flush_time <= self.interval_s:
            return False
        if text == self.persisted_body:
            return False
        await self._write(text, now)
        return True

    async def final_flush(self, text: str) -> bool:
        """Last write of the stream; skipped when the stored body already equals ``text``."""
        if not self.active or text == self.persisted_body:
            return False
        await self._write(text, self.clock())
        return True


_END = object()
_CANCELLED = object()


async def _next_or_end(lines: AsyncIterator[str]):
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return _END


class _LineReader:
    """Reads provider lines while watching a cancel event.

    A pending read is abandoned as soon as the event fires, so a stalled
    provider cannot hold the loop open. Returns ``_END`` when the body is
    exhausted and ``_CANCELLED`` once cancellation wins.
    """

    def __init__(self, lines: AsyncIterator[str], cancel: Optional[asyncio.Event]):
        self.lines = lines.__aiter__()
        self.cancel = cancel
        self._waiter: Optional[asyncio.Task] = None

    async def next(self):
        if self.cancel is None:
            return await _next_or_end(self.lines)
        if self.cancel.is_set():
            return _CANCELLED
        if self._waiter is None:
            self._waiter = asyncio.ensure_future(self.cancel.wait())

        read = asyncio.ensure_future(_next_or_end(self.lines))
        try:
            await asyncio.wait({read, self._waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            read.cancel()
            raise
        if self.cancel.is_set():
            read.cancel()
            await asyncio.wait({read})
            if not read.cancelled() and read.exception() is not None:
                logger.debug(f"Stream read failed after cancellation: {read.exception()}")
            return _CANCELLED
        return read.result()

    def close(self) -> None:
        if self._waiter is not None:
            self._waiter.cancel()


@dataclass
class StreamResult:
    text: str
    message_id: Optional[str]
    state: StreamState
    flushes: int = 0
    cancelled: bool = False


class StreamConsumer:
    """Opens the streaming completion and drives the read loop."""

    def __init__(
        self,
        client: CompletionClient,
        message_store: Optional[MessageStore],
        flush_interval_s: float = 0.1,
        clock: Clock = time.monotonic,
    ):
        self.client = client
        self.message_store = message_store
        self.flush_interval_s = flush_interval_s
        self.clock = clock
        self.state = StreamState.AWAITING_RESPONSE

    async def consume(
        self,
        api_key: str,
        model: str,
        messages: List[Dict[str, str]],
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
        persisted_body: Optional[str] = None,
        on_stream_open: Optional[Callable[[], None]] = None,
        on_delta: Optional[DeltaCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> StreamResult:
        """Stream one completion to the end.

        Args:
            api_key: Credential picked for this request
            model: Model name
            messages: Fully assembled context
            conversation_id: Durable conversation; None for guests (no writes)
            message_id: Outgoing message created earlier (search placeholder)
            persisted_body: Body currently stored under ``message_id``
            on_stream_open: Called once the provider accepted the request,
                right before the read loop
            on_delta: Awaited with every non-empty delta
            cancel: When set, the read loop stops and the final flush runs

        Raises:
            UpstreamError: non-success initial response or mid-stream transport failure
        """
        self.state = StreamState.AWAITING_RESPONSE
        accumulated = ""
        cancelled = False
        flusher: Optional[MessageFlusher] = None
        start = time.time()
        log_llm(logger, "start", model=model)

        try:
            async with self.client.stream(api_key, model, messages) as lines:
                if message_id is None and conversation_id and self.message_store is not None:
                    message_id = await self.message_store.create_message(
                        conversation_id, AUTHOR_AI, "", model=model
                    )
                    persisted_body = ""
                flusher = MessageFlusher(
                    self.message_store,
                    message_id,
                    self.flush_interval_s,
                    self.clock,
                    persisted_body=persisted_body,
                )

                if on_stream_open is not None:
                    on_stream_open()

                self.state = StreamState.STREAMING
                reader = _LineReader(lines, cancel)
                try:
                    while True:
                        line = await reader.next()
                        if line is _CANCELLED:
                            cancelled = True
                            break
                        if line is _END:
                            break
                        try:
                            event = parse_sse_line(line)
                        except StreamDecodeError as e:
                            logger.debug(f"Skipping undecodable stream line: {e}")
                            continue
                        if event is None:
                            continue
                        if event.done:
                            break
                        if not event.delta:
                            continue

                        accumulated += event.delta
                        if on_delta is not None:
                            await on_delta(event.delta)
                        await flusher.maybe_flush(accumulated)
                finally:
                    reader.close()

            self.state = StreamState.FLUSHING
            await flusher.final_flush(accumulated)
            self.state = StreamState.DONE
        except BaseException as e:
            failed_state = self.state
            self.state = StreamState.ERROR
            if flusher is not None and failed_state != StreamState.FLUSHING:
                try:
                    await flusher.final_flush(accumulated)
                except Exception as flush_error:
                    log_error(logger, flush_error, context="stream final flush", include_traceback=False)
            if isinstance(e, Exception):
                log_error(logger, e, context="stream", include_traceback=False)
            raise

        duration = time.time() - start
        log_llm(logger, "end", model=model, duration=duration)
        log_stream(logger, len(accumulated), flusher.writes, duration, cancelled=cancelled)
        return StreamResult(
            text=accumulated,
            message_id=message_id,
            state=self.state,
            flushes=flusher.writes,
            cancelled=cancelled,
        )
