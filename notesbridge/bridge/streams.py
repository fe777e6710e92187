"""
Byte stream plumbing between the sandbox and the host.

`ByteStream` is the sandbox side: an async iterator of chunks fed by a
producer, possibly running in a worker thread. `pump` moves chunks from any
async iterable to any writable sink as they arrive, so long-running scripts
show their output live and stdout/stderr keep their interleaving.
"""

import asyncio
import inspect
import threading
from pathlib import Path
from typing import AsyncIterable, Callable

CHUNK_SIZE = 64 * 1024
POLL_INTERVAL = 0.05

_EOF = object()


class ByteStream:
    """Async iterator over byte chunks, terminated by an end-of-stream marker."""

    def __init__(self):
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False

    def feed(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def close(self) -> None:
        self._queue.put_nowait(_EOF)

    def fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    def feed_threadsafe(self, chunk: bytes) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, chunk)

    def close_threadsafe(self) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _EOF)

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        return item


async def pump(source: AsyncIterable[bytes], sink) -> int:
    """
    Copy every chunk of `source` into `sink` until end-of-stream.

    The sink only needs a `write` method; it may be synchronous (a binary
    file, `sys.stdout.buffer`) or return an awaitable. It is flushed after
    each chunk when it supports it. Errors raised by either side propagate
    to the caller.

    Returns:
        int: Number of bytes relayed.
    """
    total = 0
    async for chunk in source:
        if not chunk:
            continue
        result = sink.write(chunk)
        if inspect.isawaitable(result):
            await result
        flush = getattr(sink, "flush", None) or getattr(sink, "drain", None)
        if flush is not None:
            result = flush()
            if inspect.isawaitable(result):
                await result
        total += len(chunk)
    return total


def follow_file(path: Path, finished: threading.Event, emit: Callable[[bytes], None]) -> None:
    """
    Emit the content of a file that another thread keeps appending to.

    Blocking; meant to run in a worker thread. Returns once `finished` is set
    and everything written before that has been emitted.
    """
    with open(path, "rb") as handle:
        while True:
            chunk = handle.read(CHUNK_SIZE)
            if chunk:
                emit(chunk)
                continue
            if finished.is_set():
                rest = handle.read()
                while rest:
                    emit(rest)
                    rest = handle.read()
                return
            finished.wait(POLL_INTERVAL)
