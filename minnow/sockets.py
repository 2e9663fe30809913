"""Network sockets built on reference-counted file descriptors."""

from __future__ import annotations

import os
import socket
import struct
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from minnow.address import Address
from minnow.errors import UnixError
from minnow.file_descriptor import READ_BUFFER_SIZE, FileDescriptor

_AF_PACKET = getattr(socket, "AF_PACKET", 17)
_SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1
_SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)
_SO_DOMAIN = getattr(socket, "SO_DOMAIN", 39)
_SO_PROTOCOL = getattr(socket, "SO_PROTOCOL", 38)
_MSG_TRUNC = getattr(socket, "MSG_TRUNC", 0x20)


class Socket(FileDescriptor):
    """Base class for network sockets; normally used through a subclass."""

    def __init__(self, domain: int, sock_type: int, protocol: int = 0) -> None:
        try:
            fd = socket.socket(domain, sock_type, protocol).detach()
        except OSError as exc:
            raise UnixError("socket", exc.errno or 0) from exc
        super().__init__(fd)

    def _adopt(
        self, fd: FileDescriptor, domain: int, sock_type: int, protocol: int = 0
    ) -> None:
        """Take over ``fd``, checking that it is a socket of the expected kind."""
        self._internal = fd._internal
        if self._getsockopt(socket.SOL_SOCKET, _SO_DOMAIN) != domain:
            raise RuntimeError("socket domain mismatch")
        if self._getsockopt(socket.SOL_SOCKET, socket.SO_TYPE) != sock_type:
            raise RuntimeError("socket type mismatch")
        if self._getsockopt(socket.SOL_SOCKET, _SO_PROTOCOL) != protocol:
            raise RuntimeError("socket protocol mismatch")

    @contextmanager
    def _borrowed(self) -> Iterator[socket.socket]:
        """A socket-module view of the descriptor that never closes it."""
        fd = self.fd_num()
        try:
            sock = socket.socket(fileno=fd)
        except OSError as exc:
            raise UnixError("getsockopt", exc.errno or 0) from exc
        try:
            sock.setblocking(os.get_blocking(fd))
            yield sock
        finally:
            sock.detach()

    def _getsockopt(self, level: int, option: int) -> int:
        with self._borrowed() as sock:
            return self._call("getsockopt", sock.getsockopt, level, option)

    def _setsockopt(self, level: int, option: int, value: int | bytes) -> None:
        with self._borrowed() as sock:
            self._call("setsockopt", sock.setsockopt, level, option, value)

    def _get_address(
        self, attempt: str, fetch: Callable[[socket.socket], Any]
    ) -> Address:
        with self._borrowed() as sock:
            family = int(sock.family)
            sockaddr = self._call(attempt, fetch, sock)
        return Address.from_sockaddr(family, sockaddr)

    def bind(self, address: Address) -> None:
        """Bind to a local address, usually before listen/accept."""
        with self._borrowed() as sock:
            self._call("bind", sock.bind, address.sockaddr)

    def bind_to_device(self, device_name: str) -> None:
        """Bind the socket to a named network device."""
        self._setsockopt(socket.SOL_SOCKET, _SO_BINDTODEVICE, device_name.encode())

    def connect(self, address: Address) -> None:
        """Connect to a peer; on a non-blocking socket this may still be in progress."""
        with self._borrowed() as sock:
            self._call("connect", sock.connect, address.sockaddr)

    def shutdown(self, how: int) -> None:
        """Shut down reading (SHUT_RD), writing (SHUT_WR) or both (SHUT_RDWR)."""
        with self._borrowed() as sock:
            self._call("shutdown", sock.shutdown, how)
        if how == socket.SHUT_RD:
            self._register_read()
        elif how == socket.SHUT_WR:
            self._register_write()
        elif how == socket.SHUT_RDWR:
            self._register_read()
            self._register_write()
        else:
            raise RuntimeError("Socket.shutdown() called with invalid `how`")

    def local_address(self) -> Address:
        """The address the socket is bound to."""
        return self._get_address("getsockname", lambda sock: sock.getsockname())

    def peer_address(self) -> Address:
        """The address of the connected peer."""
        return self._get_address("getpeername", lambda sock: sock.getpeername())

    def set_reuseaddr(self) -> None:
        """Allow the local address to be reused sooner."""
        self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    def throw_if_error(self) -> None:
        """Raise UnixError if the socket has a pending error."""
        socket_error = self._getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if socket_error:
            raise UnixError("socket error", socket_error)


class DatagramSocket(Socket):
    """A socket that sends and receives whole datagrams."""

    def recv(self) -> tuple[Address, bytes]:
        """Receive one datagram; returns its sender and its payload.

        Raises RuntimeError if the datagram does not fit in READ_BUFFER_SIZE bytes.
        """
        buffer = bytearray(READ_BUFFER_SIZE)
        with self._borrowed() as sock:
            family = int(sock.family)
            result = self._call(
                "recvfrom",
                sock.recvfrom_into,
                buffer,
                len(buffer),
                _MSG_TRUNC,
                would_block=None,
            )
        if result is None:
            length, source, family = 0, None, int(socket.AF_UNSPEC)
        else:
            length, source = result
        if length > len(buffer):
            raise RuntimeError("recvfrom (oversized datagram)")
        self._register_read()
        return Address.from_sockaddr(family, source), bytes(buffer[:length])

    def sendto(self, destination: Address, payload: bytes) -> None:
        """Send a datagram to ``destination``."""
        with self._borrowed() as sock:
            self._call("sendto", sock.sendto, payload, destination.sockaddr)
        self._register_write()

    def send(self, payload: bytes) -> None:
        """Send a datagram to the connected peer."""
        with self._borrowed() as sock:
            self._call("send", sock.send, payload)
        self._register_write()


class UDPSocket(DatagramSocket):
    """An unbound, unconnected UDP socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_INET, socket.SOCK_DGRAM)


class TCPSocket(Socket):
    """A TCP socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_INET, socket.SOCK_STREAM)

    @classmethod
    def _from_descriptor(cls, fd: FileDescriptor) -> TCPSocket:
        connected = cls.__new__(cls)
        connected._adopt(fd, socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
        return connected

    def listen(self, backlog: int = 16) -> None:
        """Mark the socket as listening for incoming connections."""
        with self._borrowed() as sock:
            self._call("listen", sock.listen, backlog)

    def accept(self) -> TCPSocket:
        """Accept a connection and return a socket connected to the peer."""
        self._register_read()
        with self._borrowed() as sock:
            try:
                connection, _ = sock.accept()
            except OSError as exc:
                raise UnixError("accept", exc.errno or 0) from exc
        return TCPSocket._from_descriptor(FileDescriptor(connection.detach()))


class PacketSocket(DatagramSocket):
    """A packet socket at the link layer."""

    def __init__(self, sock_type: int, protocol: int) -> None:
        super().__init__(_AF_PACKET, sock_type, protocol)

    def set_promiscuous(self) -> None:
        """Put the bound interface into promiscuous mode."""
        address = self.local_address()
        if address.family != _AF_PACKET:
            raise RuntimeError("Address.as() conversion failure")
        interface_name = address.sockaddr[0]
        try:
            interface_index = socket.if_nametoindex(interface_name)
        except OSError as exc:
            raise UnixError("if_nametoindex", exc.errno or 0) from exc
        request = struct.pack("iHH8s", interface_index, _PACKET_MR_PROMISC, 0, b"")
        self._setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, request)


class LocalStreamSocket(Socket):
    """A Unix-domain stream socket taken over from an existing descriptor."""

    def __init__(self, fd: FileDescriptor) -> None:  # pylint: disable=super-init-not-called
        self._adopt(fd, socket.AF_UNIX, socket.SOCK_STREAM)


class LocalDatagramSocket(DatagramSocket):
    """An unbound, unconnected Unix-domain datagram socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_UNIX, socket.SOCK_DGRAM)