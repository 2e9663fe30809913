"""A reference-counted handle on a kernel file descriptor."""

from __future__ import annotations

import errno
import os
import sys
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

from minnow.errors import UnixError

T = TypeVar("T")

READ_BUFFER_SIZE = 16384
"""Number of bytes requested by a read when no limit is given."""

_WOULD_BLOCK = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.EINPROGRESS})


class _FDWrapper:
    """State shared by every handle on one kernel file descriptor."""

    __slots__ = ("fd", "eof", "closed", "non_blocking", "read_count", "write_count")

    def __init__(self, fd: int) -> None:
        # Marked closed until validated, so a failed construction never closes fd.
        self.closed = True
        self.eof = False
        self.non_blocking = False
        self.read_count = 0
        self.write_count = 0
        if fd < 0:
            raise RuntimeError(f"invalid fd number:{fd}")
        self.fd = fd
        try:
            self.non_blocking = not os.get_blocking(fd)
        except OSError as exc:
            raise UnixError("fcntl", exc.errno or 0) from exc
        self.closed = False

    def call(
        self,
        attempt: str,
        func: Callable[..., T],
        *args: Any,
        would_block: Any = 0,
    ) -> T:
        """Run a system call, turning OSError into UnixError.

        On a non-blocking descriptor, a call that would block returns
        ``would_block`` instead of raising.
        """
        try:
            return func(*args)
        except OSError as exc:
            if self.non_blocking and exc.errno in _WOULD_BLOCK:
                return would_block
            raise UnixError(attempt, exc.errno or 0) from exc

    def close(self) -> None:
        self.call("close", os.close, self.fd)
        self.eof = True
        self.closed = True

    def __del__(self) -> None:
        try:
            if not self.closed:
                self.close()
        except Exception as exc:  # never raise from a finaliser
            sys.stderr.write(f"Exception destructing FDWrapper: {exc}\n")


class FileDescriptor:
    """A handle on a file descriptor, closed when the last handle goes away."""

    def __init__(self, fd: int) -> None:
        self._internal = _FDWrapper(fd)

    @classmethod
    def _from_wrapper(cls, wrapper: _FDWrapper) -> FileDescriptor:
        handle = FileDescriptor.__new__(FileDescriptor)
        handle._internal = wrapper
        return handle

    # shared-state bookkeeping used by subclasses

    def _set_eof(self) -> None:
        self._internal.eof = True

    def _register_read(self) -> None:
        self._internal.read_count += 1

    def _register_write(self) -> None:
        self._internal.write_count += 1

    def _call(
        self,
        attempt: str,
        func: Callable[..., T],
        *args: Any,
        would_block: Any = 0,
    ) -> T:
        return self._internal.call(attempt, func, *args, would_block=would_block)

    # I/O

    def read(self, limit: int | None = None) -> bytes:
        """Read up to ``limit`` bytes (READ_BUFFER_SIZE if not given).

        Returns empty bytes at end of file, or when a non-blocking descriptor
        has nothing to read; only the former sets the EOF flag.
        """
        if limit is not None and limit < 0:
            raise ValueError("read limit must be non-negative")
        size = limit or READ_BUFFER_SIZE
        wrapper = self._internal
        try:
            data = os.read(wrapper.fd, size)
        except OSError as exc:
            if wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return b""
            raise UnixError("read", exc.errno or 0) from exc

        self._register_read()
        if not data:
            wrapper.eof = True
        if len(data) > size:
            raise RuntimeError("read() read more than requested")
        return data

    def readv(self, sizes: Iterable[int]) -> list[bytes]:
        """Scatter one read across buffers of the given sizes.

        The last buffer is always READ_BUFFER_SIZE bytes long. Returns one
        bytes object per buffer, each holding what was read into it; returns
        an empty list if ``sizes`` is empty or a non-blocking read would block.
        """
        sizes = list(sizes)
        if not sizes:
            return []
        if any(size < 0 for size in sizes):
            raise ValueError("buffer sizes must be non-negative")
        sizes[-1] = READ_BUFFER_SIZE
        buffers = [bytearray(size) for size in sizes]
        wrapper = self._internal
        try:
            count = os.readv(wrapper.fd, buffers)
        except OSError as exc:
            if wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return []
            raise UnixError("read", exc.errno or 0) from exc

        self._register_read()
        if count > sum(sizes):
            raise RuntimeError("read() read more than requested")

        result = []
        remaining = count
        for buffer in buffers:
            taken = min(len(buffer), remaining)
            result.append(bytes(buffer[:taken]))
            remaining -= taken
        return result

    def write(self, data: bytes) -> int:
        """Write ``data``; returns the number of bytes written."""
        return self.writev([data])

    def writev(self, buffers: Sequence[bytes]) -> int:
        """Gather-write ``buffers``; returns the number of bytes written."""
        buffers = list(buffers)
        total = sum(len(buffer) for buffer in buffers)
        written = self._call("writev", os.writev, self._internal.fd, buffers)
        self._register_write()
        if written == 0 and total != 0:
            raise RuntimeError("write returned 0 given non-empty input buffer")
        if written > total:
            raise RuntimeError("write wrote more than length of input buffer")
        return written

    def close(self) -> None:
        """Close the underlying descriptor for every handle sharing it."""
        self._internal.close()

    def duplicate(self) -> FileDescriptor:
        """Another handle on the same descriptor and the same state."""
        return FileDescriptor._from_wrapper(self._internal)

    def set_blocking(self, blocking: bool) -> None:
        """Put the descriptor into blocking or non-blocking mode."""
        self._call("fcntl", os.set_blocking, self._internal.fd, blocking)
        self._internal.non_blocking = not blocking

    # state

    def fd_num(self) -> int:
        return self._internal.fd

    def eof(self) -> bool:
        return self._internal.eof

    def closed(self) -> bool:
        return self._internal.closed

    def read_count(self) -> int:
        return self._internal.read_count

    def write_count(self) -> int:
        return self._internal.write_count

    def __enter__(self) -> FileDescriptor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._internal.closed:
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed() else "open"
        return f"{type(self).__name__}(fd={self.fd_num()}, {state})"