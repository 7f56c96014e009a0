# src/recipecore/generation/stream_tap.py
"""
Single-producer, two-consumer stream duplication.

A live text stream is read exactly once by a pump task and fanned out to
two unbounded queues. Cursor A is the caller's response body; cursor B is
drained in the background into the full text, which is handed to an
``on_complete`` callback (history persistence). Cursor A can go away at
any time without affecting cursor B.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from ..exceptions import StreamTapError
from ..observability.metrics import stream_failures_total

logger = logging.getLogger(__name__)

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class StreamTap:
    """
    Duplicates ``source`` into a caller cursor and a background accumulator.

    Usage:
        tap = StreamTap(deltas, on_complete=persist)
        await tap.prime()              # raises StreamTapError before any output
        async for chunk in tap.caller_stream():
            ...
        await tap.completion           # accumulated text, or None on failure
    """

    def __init__(
        self,
        source: AsyncIterator[str],
        on_complete: Optional[Callable[[str], Awaitable[Any]]] = None,
    ):
        self._source = source
        self._on_complete = on_complete
        self._caller_queue: asyncio.Queue = asyncio.Queue()
        self._drain_queue: asyncio.Queue = asyncio.Queue()
        self._caller_attached = True
        self._pump_task: Optional[asyncio.Task] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._text: Optional[str] = None
        self._error: Optional[BaseException] = None

    @property
    def text(self) -> Optional[str]:
        """The full text seen by cursor B, once the stream completed successfully."""
        return self._text

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def completion(self) -> "asyncio.Task":
        if self._drain_task is None:
            raise StreamTapError("StreamTap has not been primed.")
        return self._drain_task

    async def prime(self) -> str:
        """
        Pulls the first non-empty chunk and starts the pump.

        Returns:
            The first chunk (already queued for both cursors).

        Raises:
            StreamTapError: If the source fails or ends before yielding content.
        """
        iterator = self._source.__aiter__()
        while True:
            try:
                first = await iterator.__anext__()
            except StopAsyncIteration:
                raise StreamTapError("Stream ended before producing any content.")
            except Exception as e:
                raise StreamTapError(f"Stream failed before producing any content: {e}", cause=e) from e
            if first:
                break

        self._fan_out(first)
        self._pump_task = asyncio.create_task(self._pump(iterator))
        self._drain_task = asyncio.create_task(self._drain())
        return first

    def _fan_out(self, item: Any) -> None:
        if self._caller_attached:
            self._caller_queue.put_nowait(item)
        self._drain_queue.put_nowait(item)

    async def _pump(self, iterator: AsyncIterator[str]) -> None:
        try:
            async for chunk in iterator:
                if chunk:
                    self._fan_out(chunk)
        except asyncio.CancelledError:
            # Truncated text must never reach on_complete.
            self._fail(StreamTapError("Stream was cancelled before it finished."))
            raise
        except Exception as e:
            self._fail(e)
        else:
            self._fan_out(_END)

    def _fail(self, error: BaseException) -> None:
        self._error = error
        self._fan_out(_Failure(error))

    async def caller_stream(self) -> AsyncIterator[str]:
        """
        Cursor A. Yields chunks in source order and re-raises a mid-stream
        failure. Closing it early leaves the pump and cursor B running.
        """
        try:
            while True:
                item = await self._caller_queue.get()
                if item is _END:
                    return
                if isinstance(item, _Failure):
                    raise item.error
                yield item
        finally:
            if self._caller_attached:
                self._caller_attached = False
                logger.debug("Caller cursor detached; background drain continues.")

    async def _drain(self) -> Optional[str]:
        """Cursor B: accumulates the text and hands it to ``on_complete``."""
        pieces = []
        while True:
            item = await self._drain_queue.get()
            if item is _END:
                break
            if isinstance(item, _Failure):
                stream_failures_total.inc()
                logger.error(f"Stream failed after content was forwarded; discarding partial text: {item.error}")
                return None
            pieces.append(item)

        self._text = "".join(pieces)
        if self._on_complete is not None:
            try:
                await self._on_complete(self._text)
            except Exception as e:
                logger.error(f"Stream completion callback failed: {e}", exc_info=True)
        return self._text

    async def aclose(self) -> None:
        """Waits for the pump and the background drain to finish."""
        tasks = [t for t in (self._pump_task, self._drain_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
