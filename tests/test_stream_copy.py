import contextlib
import os
import socket

import pytest

from minnow.file_descriptor import FileDescriptor
from minnow.sockets import LocalStreamSocket
from minnow.stream_copy import bidirectional_stream_copy


@contextlib.contextmanager
def redirected_stdio(stdin_fd, stdout_fd):
    """Temporarily place the given descriptors at fd 0 and fd 1."""
    saved_in = os.dup(0)
    saved_out = os.dup(1)
    try:
        os.dup2(stdin_fd, 0)
        os.dup2(stdout_fd, 1)
        os.close(stdin_fd)
        os.close(stdout_fd)
        yield
    finally:
        os.dup2(saved_in, 0)
        os.dup2(saved_out, 1)
        os.close(saved_in)
        os.close(saved_out)


@pytest.fixture
def setup():
    ours, peer = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    sock = LocalStreamSocket(FileDescriptor(ours.detach()))
    in_read, in_write = os.pipe()
    out_read, out_write = os.pipe()
    yield sock, peer, in_read, in_write, out_read, out_write
    peer.close()
    os.close(out_read)
    with contextlib.suppress(OSError):
        os.close(in_write)
    if not sock.closed():
        sock.close()


def run_copy(sock, in_read, out_write):
    with redirected_stdio(in_read, out_write):
        bidirectional_stream_copy(sock, "peer")


def drain(fd):
    chunks = []
    while True:
        chunk = os.read(fd, 65536)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def test_copies_both_directions(setup, capsys):
    sock, peer, in_read, in_write, out_read, out_write = setup
    os.write(in_write, b"hello")
    os.close(in_write)
    peer.sendall(b"reply")
    peer.shutdown(socket.SHUT_WR)

    run_copy(sock, in_read, out_write)

    assert drain(out_read) == b"reply"
    peer.settimeout(5)
    received = b""
    while chunk := peer.recv(65536):
        received += chunk
    assert received == b"hello"
    err = capsys.readouterr().err
    assert "DEBUG: Outbound stream to peer finished.\n" in err
    assert "DEBUG: Inbound stream from peer finished.\n" in err


def test_empty_streams(setup):
    sock, peer, in_read, in_write, out_read, out_write = setup
    os.close(in_write)
    peer.shutdown(socket.SHUT_WR)

    run_copy(sock, in_read, out_write)

    assert drain(out_read) == b""
    peer.settimeout(5)
    assert peer.recv(16) == b""


def test_large_inbound_payload(setup):
    sock, peer, in_read, in_write, out_read, out_write = setup
    os.close(in_write)
    payload = bytes(range(256)) * 200
    peer.sendall(payload)
    peer.shutdown(socket.SHUT_WR)

    # the output pipe may fill up, so the reading end is drained afterwards;
    # pipe capacity on common systems exceeds this payload
    run_copy(sock, in_read, out_write)

    assert drain(out_read) == payload