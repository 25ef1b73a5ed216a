"""
Streaming copies between files and sockets.

- serve_range : file span -> response sink
- save_stream : request body -> file, at a validated offset
- BoundedReader / ChunkedReader : present a request body as a plain byte
  source that ends where the body ends
"""

import os
from typing import NamedTuple, Optional

from range_file_server.errors import OffsetMismatchError, TransientIOError
from range_file_server.ranges import ByteRange, parse_bounds

CHUNK_SIZE = 4096


class TransferResult(NamedTuple):
    bytes_transferred: int
    error: Optional[TransientIOError] = None

    @property
    def ok(self):
        return self.error is None


class FileSpan(NamedTuple):
    """Response body: ``byte_range`` of the file at ``path``."""

    path: str
    byte_range: ByteRange

    def stream_to(self, sink, chunk_size=CHUNK_SIZE):
        return serve_range(self.path, self.byte_range, sink, chunk_size)


def serve_range(file_path, byte_range, sink, chunk_size=CHUNK_SIZE):
    """
    Copy exactly ``byte_range.length`` bytes starting at ``byte_range.start``.

    A file that turns out shorter than the range gives a short copy, not an
    error. A failing sink (client gone) stops the copy; the failure comes
    back in the result instead of being raised.
    """
    sent = 0
    with open(file_path, "rb") as f:
        f.seek(byte_range.start)
        remaining = byte_range.length
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            try:
                sink.write(chunk)
            except OSError as err:
                return TransferResult(sent, TransientIOError(
                    f"sink closed after {sent} of {byte_range.length} bytes", cause=err))
            sent += len(chunk)
            remaining -= len(chunk)
    return TransferResult(sent)


def save_stream(file_path, content_range, source, chunk_size=CHUNK_SIZE):
    """
    Write ``source`` into ``file_path``.

    Without ``content_range`` the file is truncated and rewritten. With one,
    its start must equal the current file length and the data is appended
    there; anything else raises OffsetMismatchError before a byte is
    written. The expected total length is not enforced.
    """
    parent = os.path.dirname(file_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    # O_CREAT without O_TRUNC: existing content survives until we decide
    fd = os.open(file_path, os.O_WRONLY | os.O_CREAT, 0o644)
    with os.fdopen(fd, "wb") as f:
        if content_range:
            current_length = os.fstat(f.fileno()).st_size
            start, _ = parse_bounds(content_range)
            if start != current_length:
                raise OffsetMismatchError(current_length, start)
            f.seek(start)
        else:
            f.truncate(0)

        written = 0
        while True:
            try:
                chunk = source.read(chunk_size)
            except TransientIOError as err:
                return TransferResult(written, err)
            except OSError as err:
                return TransferResult(written, TransientIOError(
                    f"request body failed after {written} bytes", cause=err))
            if not chunk:
                break
            f.write(chunk)
            written += len(chunk)
    return TransferResult(written)


class BoundedReader:
    """Reads at most ``length`` bytes from ``stream`` (Content-Length framing)."""

    def __init__(self, stream, length):
        self.stream = stream
        self.remaining = length

    def read(self, size=-1):
        if self.remaining <= 0:
            return b""
        if size < 0 or size > self.remaining:
            size = self.remaining
        data = self.stream.read(size)
        if not data:
            raise TransientIOError(f"request body ended with {self.remaining} bytes missing")
        self.remaining -= len(data)
        return data


class ChunkedReader:
    """Decodes a ``Transfer-Encoding: chunked`` request body."""

    def __init__(self, stream):
        self.stream = stream
        self.chunk_left = 0
        self.done = False

    def _next_chunk_size(self):
        line = self.stream.readline(65537)
        if not line:
            raise TransientIOError("request body ended inside chunk framing")
        size_text = line.split(b";", 1)[0].strip()
        try:
            size = int(size_text, 16)
        except ValueError:
            raise TransientIOError(f"bad chunk size line {line!r}") from None
        if size < 0:
            raise TransientIOError(f"bad chunk size line {line!r}")
        return size

    def _skip_trailers(self):
        while True:
            line = self.stream.readline(65537)
            if line in (b"\r\n", b"\n", b""):
                return

    def read(self, size=-1):
        if self.done:
            return b""
        if self.chunk_left == 0:
            self.chunk_left = self._next_chunk_size()
            if self.chunk_left == 0:
                self._skip_trailers()
                self.done = True
                return b""
        if size < 0 or size > self.chunk_left:
            size = self.chunk_left
        data = self.stream.read(size)
        if not data:
            raise TransientIOError("request body ended inside a chunk")
        self.chunk_left -= len(data)
        if self.chunk_left == 0:
            # CRLF after chunk data
            self.stream.readline(3)
        return data
