"""
Streams for pipeline stages.

BytePipe is the bounded in-memory connection between two adjacent stages.
Its buffer never holds more than ``capacity`` bytes: a writer suspends while
the buffer is full and a reader suspends while it is empty. Both poll the
pipeline's CancellationToken while suspended.

InputStream, OutputStream and ErrorStream are the stage-facing wrappers.
Command handlers only ever see these; the same handler works whether it is
fed by another handler, an external process, a byte buffer or the terminal.
"""

import io
import sys
import threading
from typing import IO, Iterator, List, Optional, Union

from .control_flow import POLL_INTERVAL, CancellationToken, PipelineCancelled

DEFAULT_BUFFER_SIZE = 64 * 1024
CHUNK_SIZE = 8192


class DownstreamClosedError(BrokenPipeError):
    """Raised when writing to a connection whose reader has gone away."""

    def __init__(self, message: str = "downstream stage closed its input"):
        super().__init__(message)


class BytePipe:
    """
    A bounded, thread-safe byte channel between two stages.

    Attributes:
        capacity: Maximum number of buffered bytes
        high_water: Largest number of bytes ever buffered at once
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE,
                 token: Optional[CancellationToken] = None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.token = token
        self.high_water = 0
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._writer_closed = False
        self._reader_closed = False

    @property
    def buffered(self) -> int:
        with self._cond:
            return len(self._buffer)

    @property
    def writer_closed(self) -> bool:
        return self._writer_closed

    @property
    def reader_closed(self) -> bool:
        return self._reader_closed

    def _wait(self):
        """Suspend briefly; called with the condition held"""
        if self.token is not None:
            self.token.raise_if_cancelled()
        self._cond.wait(POLL_INTERVAL)
        if self.token is not None:
            self.token.raise_if_cancelled()

    def write(self, data: bytes) -> int:
        """
        Write all of ``data``, suspending while the buffer is full.

        Raises:
            DownstreamClosedError: the reader closed its end
            PipelineCancelled: the pipeline was cancelled while suspended
            ValueError: the writer end is already closed
        """
        view = memoryview(data)
        written = 0
        with self._cond:
            while written < len(view):
                if self._writer_closed:
                    raise ValueError("write to closed pipe")
                if self._reader_closed:
                    raise DownstreamClosedError()
                space = self.capacity - len(self._buffer)
                if space <= 0:
                    self._wait()
                    continue
                chunk = view[written:written + space]
                self._buffer += chunk
                written += len(chunk)
                self.high_water = max(self.high_water, len(self._buffer))
                self._cond.notify_all()
        return written

    def read(self, size: int = -1) -> bytes:
        """
        Read bytes, suspending while the buffer is empty.

        With ``size < 0`` reads until the writer closes. Otherwise returns
        between 1 and ``size`` bytes as soon as any are available, or b''
        at end of stream.
        """
        if size < 0:
            chunks = []
            while True:
                chunk = self.read(self.capacity)
                if not chunk:
                    return b''.join(chunks)
                chunks.append(chunk)

        with self._cond:
            while not self._buffer:
                if self._writer_closed or self._reader_closed:
                    return b''
                self._wait()
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return data

    def readline(self) -> bytes:
        """Read up to and including the next newline, or to end of stream"""
        line = bytearray()
        with self._cond:
            while True:
                index = self._buffer.find(b'\n')
                if index >= 0:
                    line += self._buffer[:index + 1]
                    del self._buffer[:index + 1]
                    self._cond.notify_all()
                    return bytes(line)
                if self._buffer:
                    line += self._buffer
                    self._buffer.clear()
                    self._cond.notify_all()
                if self._writer_closed or self._reader_closed:
                    return bytes(line)
                self._wait()

    def close_writer(self):
        """Signal end of stream to the reader"""
        with self._cond:
            self._writer_closed = True
            self._cond.notify_all()

    def close_reader(self):
        """Stop reading; pending and future writes fail with DownstreamClosedError"""
        with self._cond:
            self._reader_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    def close(self):
        self.close_writer()
        self.close_reader()

    def __repr__(self):
        return (f"BytePipe(buffered={self.buffered}, capacity={self.capacity}, "
                f"writer_closed={self._writer_closed}, reader_closed={self._reader_closed})")


class InputStream:
    """
    Stage input.

    Wraps a BytePipe, an in-memory buffer or a binary file such as the
    terminal's stdin.
    """

    def __init__(self, source: Union[BytePipe, IO[bytes]]):
        self._source = source

    @classmethod
    def from_bytes(cls, data: Union[bytes, str]) -> 'InputStream':
        if isinstance(data, str):
            data = data.encode('utf-8')
        return cls(io.BytesIO(data))

    @classmethod
    def from_pipe(cls, pipe: BytePipe) -> 'InputStream':
        return cls(pipe)

    @classmethod
    def from_terminal(cls) -> 'InputStream':
        return cls(sys.stdin.buffer)

    @property
    def pipe(self) -> Optional[BytePipe]:
        return self._source if isinstance(self._source, BytePipe) else None

    def read(self, size: int = -1) -> bytes:
        return self._source.read(size)

    def readline(self) -> bytes:
        return self._source.readline()

    def readlines(self) -> List[bytes]:
        return list(self)

    def read_text(self, encoding: str = 'utf-8') -> str:
        """Read everything and decode it"""
        return self.read().decode(encoding, errors='replace')

    def __iter__(self) -> Iterator[bytes]:
        while True:
            line = self.readline()
            if not line:
                return
            yield line

    def fileno(self) -> int:
        """OS file descriptor of a real file source"""
        if isinstance(self._source, BytePipe):
            raise io.UnsupportedOperation("pipe stream has no file descriptor")
        return self._source.fileno()

    def close(self):
        """Stop reading; an upstream writer sees its downstream go away"""
        if isinstance(self._source, BytePipe):
            self._source.close_reader()


class OutputStream:
    """
    Stage output.

    Accepts both str (encoded as UTF-8) and bytes. Closing a pipe-backed
    stream signals end of stream downstream; closing a buffer or file backed
    stream only flushes it, since those belong to the caller.
    """

    def __init__(self, sink: Union[BytePipe, IO[bytes]]):
        self._sink = sink
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def to_buffer(cls) -> 'OutputStream':
        return cls(io.BytesIO())

    @classmethod
    def to_pipe(cls, pipe: BytePipe) -> 'OutputStream':
        return cls(pipe)

    @classmethod
    def to_terminal(cls) -> 'OutputStream':
        return cls(sys.stdout.buffer)

    @property
    def pipe(self) -> Optional[BytePipe]:
        return self._sink if isinstance(self._sink, BytePipe) else None

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: Union[str, bytes]) -> int:
        if isinstance(data, str):
            data = data.encode('utf-8')
        if self._closed:
            raise ValueError("write to closed stream")
        if isinstance(self._sink, BytePipe):
            return self._sink.write(data)
        with self._lock:
            return self._sink.write(data)

    def writelines(self, lines):
        for line in lines:
            self.write(line)

    def flush(self):
        if not isinstance(self._sink, BytePipe):
            with self._lock:
                self._sink.flush()

    def fileno(self) -> int:
        if isinstance(self._sink, BytePipe):
            raise io.UnsupportedOperation("pipe stream has no file descriptor")
        return self._sink.fileno()

    def get_value(self) -> bytes:
        """Contents written so far (buffer-backed streams only)"""
        if isinstance(self._sink, io.BytesIO):
            return self._sink.getvalue()
        return b''

    def close(self):
        if not isinstance(self._sink, BytePipe):
            # caller-owned buffer or file; stays usable for the next run
            self.flush()
            return
        if self._closed:
            return
        self._closed = True
        self._sink.close_writer()


class ErrorStream(OutputStream):
    """Stage error output; defaults to the terminal's stderr"""

    @classmethod
    def to_terminal(cls) -> 'ErrorStream':
        return cls(sys.stderr.buffer)

    def close(self):
        # shared by every stage of a pipeline; only ever flushed
        self.flush()


__all__ = [
    'BytePipe',
    'InputStream',
    'OutputStream',
    'ErrorStream',
    'DownstreamClosedError',
    'PipelineCancelled',
    'DEFAULT_BUFFER_SIZE',
    'CHUNK_SIZE',
]
