"""A bounded in-memory byte stream with separate writer and reader views."""

from __future__ import annotations


class ByteStream:
    """A reliable byte stream of fixed capacity."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must be non-negative")
        self.capacity = capacity
        self._error = False
        self._buffer = bytearray()
        self._closed = False
        self._bytes_popped = 0
        self._bytes_pushed = 0
        self._reader = Reader(self)
        self._writer = Writer(self)

    def reader(self) -> Reader:
        """The reading side of the stream."""
        return self._reader

    def writer(self) -> Writer:
        """The writing side of the stream."""
        return self._writer

    def set_error(self) -> None:
        """Signal that the stream suffered an error."""
        self._error = True

    def has_error(self) -> bool:
        """Has the stream had an error?"""
        return self._error


class Writer:
    """The writing interface of a ByteStream."""

    __slots__ = ("_stream",)

    def __init__(self, stream: ByteStream) -> None:
        self._stream = stream

    def push(self, data: bytes) -> None:
        """Push as much of ``data`` as the available capacity allows."""
        stream = self._stream
        if stream._closed:
            return
        size = min(self.available_capacity(), len(data))
        stream._buffer += data[:size]
        stream._bytes_pushed += size

    def close(self) -> None:
        """Signal that nothing more will be written."""
        self._stream._closed = True

    def is_closed(self) -> bool:
        return self._stream._closed

    def available_capacity(self) -> int:
        """How many bytes can be pushed right now."""
        return self._stream.capacity - len(self._stream._buffer)

    def bytes_pushed(self) -> int:
        """Total number of bytes pushed so far."""
        return self._stream._bytes_pushed


class Reader:
    """The reading interface of a ByteStream."""

    __slots__ = ("_stream",)

    def __init__(self, stream: ByteStream) -> None:
        self._stream = stream

    def peek(self) -> bytes:
        """The bytes currently buffered."""
        return bytes(self._stream._buffer)

    def pop(self, length: int) -> None:
        """Remove ``length`` bytes from the front of the buffer."""
        stream = self._stream
        if length < 0 or length > len(stream._buffer):
            raise ValueError(
                f"cannot pop {length} bytes with {len(stream._buffer)} buffered"
            )
        del stream._buffer[:length]
        stream._bytes_popped += length

    def is_finished(self) -> bool:
        """Is the stream closed and fully popped?"""
        return self._stream._closed and not self._stream._buffer

    def bytes_buffered(self) -> int:
        return len(self._stream._buffer)

    def bytes_popped(self) -> int:
        return self._stream._bytes_popped


def read(reader: Reader, max_len: int) -> bytes:
    """Peek and pop up to ``max_len`` bytes from ``reader``."""
    out = bytearray()
    while reader.bytes_buffered() and len(out) < max_len:
        view = reader.peek()
        if not view:
            raise RuntimeError("Reader.peek() returned empty bytes")
        view = view[: max_len - len(out)]
        out += view
        reader.pop(len(view))
    return bytes(out)