"""Copy between a socket and standard input/output until both directions finish."""

from __future__ import annotations

import socket
import sys

from minnow.byte_stream import ByteStream
from minnow.eventloop import Direction, EventLoop, Result
from minnow.file_descriptor import FileDescriptor
from minnow.sockets import Socket

BUFFER_SIZE = 1048576

_STDIN_FILENO = 0
_STDOUT_FILENO = 1


def bidirectional_stream_copy(sock: Socket, peer_name: str) -> None:
    """Copy stdin to ``sock`` and ``sock`` to stdout until both directions finish."""
    source = FileDescriptor(_STDIN_FILENO)
    sink = FileDescriptor(_STDOUT_FILENO)
    outbound = ByteStream(BUFFER_SIZE)
    inbound = ByteStream(BUFFER_SIZE)
    outbound_shutdown = False
    inbound_shutdown = False

    sock.set_blocking(False)
    source.set_blocking(False)
    sink.set_blocking(False)

    def fail_both(message: str) -> None:
        sys.stderr.write(f"DEBUG: {message}\n")
        outbound.set_error()
        inbound.set_error()

    def read_input() -> None:
        outbound.writer().push(source.read(outbound.writer().available_capacity()))
        if source.eof():
            outbound.writer().close()

    def input_interest() -> bool:
        return (
            not outbound.has_error()
            and not inbound.has_error()
            and outbound.writer().available_capacity() > 0
            and not outbound.writer().is_closed()
        )

    def write_socket() -> None:
        nonlocal outbound_shutdown
        reader = outbound.reader()
        if reader.bytes_buffered():
            reader.pop(sock.write(reader.peek()))
        if reader.is_finished():
            sock.shutdown(socket.SHUT_WR)
            outbound_shutdown = True
            sys.stderr.write(f"DEBUG: Outbound stream to {peer_name} finished.\n")

    def socket_out_interest() -> bool:
        reader = outbound.reader()
        return bool(reader.bytes_buffered()) or (reader.is_finished() and not outbound_shutdown)

    def read_socket() -> None:
        inbound.writer().push(sock.read(inbound.writer().available_capacity()))
        if sock.eof():
            inbound.writer().close()

    def socket_in_interest() -> bool:
        return (
            not inbound.has_error()
            and not outbound.has_error()
            and inbound.writer().available_capacity() > 0
            and not inbound.writer().is_closed()
        )

    def write_output() -> None:
        nonlocal inbound_shutdown
        reader = inbound.reader()
        if reader.bytes_buffered():
            reader.pop(sink.write(reader.peek()))
        if reader.is_finished():
            sink.close()
            inbound_shutdown = True
            ending = " uncleanly.\n" if inbound.has_error() else ".\n"
            sys.stderr.write(f"DEBUG: Inbound stream from {peer_name} finished{ending}")

    def output_interest() -> bool:
        reader = inbound.reader()
        return bool(reader.bytes_buffered()) or (reader.is_finished() and not inbound_shutdown)

    loop = EventLoop()
    loop.add_rule(
        "read from stdin into outbound byte stream",
        source,
        Direction.IN,
        read_input,
        input_interest,
        outbound.writer().close,
        lambda: fail_both("Outbound stream had error from source."),
    )
    loop.add_rule(
        "read from outbound byte stream into socket",
        sock,
        Direction.OUT,
        write_socket,
        socket_out_interest,
        outbound.writer().close,
        lambda: fail_both("Outbound stream had error from destination."),
    )
    loop.add_rule(
        "read from socket into inbound byte stream",
        sock,
        Direction.IN,
        read_socket,
        socket_in_interest,
        inbound.writer().close,
        lambda: fail_both("Inbound stream had error from source."),
    )
    loop.add_rule(
        "read from inbound byte stream into stdout",
        sink,
        Direction.OUT,
        write_output,
        output_interest,
        inbound.writer().close,
        lambda: fail_both("Inbound stream had error from destination."),
    )

    while loop.wait_next_event(-1) is not Result.EXIT:
        pass