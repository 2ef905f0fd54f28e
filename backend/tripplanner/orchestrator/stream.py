"""
Stream emitter: run a generation coroutine in the background and expose its progress as
a cancellable sequence of StreamEvents.

The run gets an emit(type, payload) callback. Sends go into a bounded queue:
  - cancelled: dropped immediately
  - room in the queue: enqueued without waiting
  - queue full: wait up to send_timeout (or until cancelled), then drop with a warning
The final event is never dropped: if the queue stays full it replaces the oldest queued event.
The last event of every run is `complete` (payload = run result) or `error`, with
is_final set; events() stops after it. After cancel() the consumer sees nothing more.
"""
import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from tripplanner.core.constants import STREAM_EVENT_QUEUE_SIZE, STREAM_SEND_TIMEOUT_SECONDS
from tripplanner.core.errors import public_message
from tripplanner.schemas import EventType, StreamEvent

logger = logging.getLogger(__name__)

Emit = Callable[[str, Any], Awaitable[bool]]
StreamRun = Callable[[Emit], Awaitable[Any]]


class StreamEmitter:
    def __init__(
        self,
        run: StreamRun,
        *,
        queue_size: int = STREAM_EVENT_QUEUE_SIZE,
        send_timeout: float = STREAM_SEND_TIMEOUT_SECONDS,
    ) -> None:
        self._run = run
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=queue_size)
        self._send_timeout = send_timeout
        self._cancelled = asyncio.Event()
        self._closed = False
        self._task: asyncio.Task | None = None
        self.dropped = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> "StreamEmitter":
        if self._task is None:
            self._task = asyncio.create_task(self._drive(), name="stream-emitter")
        return self

    async def emit(self, event_type: str, payload: Any = None) -> bool:
        """Queue one event for the consumer. Returns False if it was not delivered."""
        return await self._send(StreamEvent(type=event_type, payload=payload))

    def _stamp(self, event: StreamEvent) -> StreamEvent:
        event.id = event.id or uuid.uuid4().hex
        event.timestamp = event.timestamp or datetime.now(timezone.utc)
        return event

    async def _put(self, event: StreamEvent) -> bool:
        """Enqueue, waiting up to send_timeout for room. False on timeout or cancel."""
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            pass

        put = asyncio.ensure_future(self._queue.put(event))
        cancel_wait = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {put, cancel_wait}, timeout=self._send_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_wait.cancel()
            if not put.done():
                put.cancel()
        return put in done and not put.cancelled()

    async def _send(self, event: StreamEvent) -> bool:
        if self._cancelled.is_set():
            return False
        if await self._put(self._stamp(event)):
            return True
        if not self._cancelled.is_set():
            self.dropped += 1
            logger.warning(
                "Dropped %s event: consumer did not read within %.1fs", event.type, self._send_timeout
            )
        return False

    async def _send_final(self, event: StreamEvent) -> None:
        """Like _send, but a full queue gives up its oldest event so the sequence still terminates."""
        if self._cancelled.is_set():
            return
        if await self._put(self._stamp(event)) or self._cancelled.is_set():
            return
        try:
            stale = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            stale = None
        if stale is not None:
            self.dropped += 1
            logger.warning("Dropped %s event to make room for %s", stale.type, event.type)
        self._queue.put_nowait(event)

    async def _drive(self) -> None:
        try:
            result = await self._run(self.emit)
        except asyncio.CancelledError:
            logger.debug("Stream run cancelled")
            raise
        except Exception as e:
            logger.exception("Stream run failed")
            await self._send_final(
                StreamEvent(type=EventType.ERROR.value, error=public_message(e), is_final=True)
            )
        else:
            await self._send_final(StreamEvent(type=EventType.COMPLETE.value, payload=result, is_final=True))
        finally:
            self._closed = True

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Events in send order, ending after the final event, on cancel() or when the run ends."""
        if self._task is None:
            self.start()
        cancel_wait = asyncio.ensure_future(self._cancelled.wait())
        try:
            while not self._cancelled.is_set():
                if not self._queue.empty():
                    event = self._queue.get_nowait()
                elif self._task.done():
                    # Run ended (possibly without a final event) and nothing is left
                    return
                else:
                    get = asyncio.ensure_future(self._queue.get())
                    done, _ = await asyncio.wait(
                        {get, cancel_wait, self._task}, return_when=asyncio.FIRST_COMPLETED
                    )
                    if get not in done:
                        get.cancel()
                        continue
                    event = get.result()
                if self._cancelled.is_set():
                    return
                yield event
                if event.is_final:
                    return
        finally:
            cancel_wait.cancel()

    async def cancel(self) -> None:
        """Stop the run and the event sequence. Safe to call more than once."""
        self._cancelled.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._closed = True
