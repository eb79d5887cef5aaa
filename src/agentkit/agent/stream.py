"""Asynchronous pipe between a streaming agent turn and its reader."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from agentkit.errors import ProviderError


class ChatStream:
    """Read end of a streamed chat turn.

    A background task writes text chunks into a bounded queue and closes the
    stream when the turn ends. Closing is the only completion signal: a
    reader sees the remaining buffered chunks, then either end-of-stream
    (``read`` returns ``""``) or the error the writer closed with. The writer
    blocks while the buffer is full, so a slow reader throttles the turn.
    """

    def __init__(self, max_buffer: int = 64):
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_buffer)
        self._closed = asyncio.Event()
        self._error: BaseException | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def write(self, data: str) -> None:
        """Queue a chunk, waiting while the buffer is full.

        Raises:
            BrokenPipeError: If the stream has already been closed
        """
        if self._closed.is_set():
            msg = "write to closed stream"
            raise BrokenPipeError(msg)
        if not data:
            return
        await self._queue.put(data)

    def close(self, error: BaseException | None = None) -> None:
        """Close the stream, optionally with an error for the reader.

        Only the first close counts.
        """
        if self._closed.is_set():
            return
        self._error = error
        self._closed.set()

    async def read(self) -> str:
        """Return the next chunk, or ``""`` once the stream is exhausted.

        Raises:
            BaseException: The error the writer closed the stream with, after
                all buffered chunks have been read
        """
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed.is_set():
                if self._error is not None:
                    raise self._error
                return ""

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for fut in (getter, closer):
                    if not fut.done():
                        fut.cancel()
            if getter in done and not getter.cancelled():
                return getter.result()
            # Closed while waiting; loop to drain anything still buffered

    async def read_all(self) -> str:
        """Drain the stream and return the concatenated text."""
        parts: list[str] = []
        while True:
            chunk = await self.read()
            if not chunk:
                return "".join(parts)
            parts.append(chunk)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk

    def attach(self, task: asyncio.Task[None]) -> None:
        """Tie the writer task to this stream.

        If the task finishes without closing the stream (for example because
        it was cancelled), the stream is closed with an error.
        """
        self._task = task
        task.add_done_callback(self._on_writer_done)

    def _on_writer_done(self, task: asyncio.Task[None]) -> None:
        if self._closed.is_set():
            return
        if task.cancelled():
            self.close(ProviderError("stream was cancelled"))
        elif task.exception() is not None:
            self.close(task.exception())
        else:
            self.close()

    async def aclose(self) -> None:
        """Stop reading: close the stream and cancel the writer task."""
        self.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
