"""Socket addresses and name resolution."""

from __future__ import annotations

import ipaddress
import socket
from typing import Any

from minnow.errors import TaggedError

_AI_ALL = getattr(socket, "AI_ALL", 0)
_AI_NUMERICSERV = getattr(socket, "AI_NUMERICSERV", 0)
_INTERNET_FAMILIES = (socket.AF_INET, socket.AF_INET6)


def _gai_error(attempt: str, exc: socket.gaierror) -> TaggedError:
    code = exc.errno if exc.errno is not None else 0
    return TaggedError(attempt, code, exc.strerror or str(exc))


def _resolve(node: str, service: str, family: int, flags: int) -> tuple[int, Any]:
    try:
        results = socket.getaddrinfo(node, service, family, 0, 0, flags)
    except socket.gaierror as exc:
        raise _gai_error(f"getaddrinfo({node}, {service})", exc) from exc
    if not results:
        raise RuntimeError("getaddrinfo returned successfully but with no results")
    resolved_family, _, _, _, sockaddr = results[0]
    return int(resolved_family), sockaddr


class Address:
    """A socket address: an address family and a socket-module address value."""

    __slots__ = ("_family", "_sockaddr")

    def __init__(self, hostname: str, service: str) -> None:
        """Resolve ``hostname`` and ``service`` to an IPv4 address."""
        self._family, self._sockaddr = _resolve(
            hostname, service, socket.AF_INET, _AI_ALL
        )

    @classmethod
    def _make(cls, family: int, sockaddr: Any) -> Address:
        address = cls.__new__(cls)
        address._family = int(family)
        address._sockaddr = tuple(sockaddr) if isinstance(sockaddr, list) else sockaddr
        return address

    @classmethod
    def from_ip_port(cls, ip: str, port: int = 0) -> Address:
        """An IPv4 address from a dotted quad and a port, without lookup."""
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port out of range: {port}")
        family, sockaddr = _resolve(
            ip, str(port), socket.AF_INET, socket.AI_NUMERICHOST | _AI_NUMERICSERV
        )
        return cls._make(family, sockaddr)

    @classmethod
    def from_sockaddr(cls, family: int, sockaddr: Any) -> Address:
        """Wrap an address as returned by the socket module."""
        return cls._make(family, sockaddr)

    @classmethod
    def from_ipv4_numeric(cls, ip_address: int) -> Address:
        """An IPv4 address (port 0) from its 32-bit numeric value."""
        return cls._make(socket.AF_INET, (str(ipaddress.IPv4Address(ip_address)), 0))

    @property
    def family(self) -> int:
        return self._family

    @property
    def sockaddr(self) -> Any:
        """The address in the form the socket module accepts."""
        return self._sockaddr

    def ip_port(self) -> tuple[str, int]:
        """The numeric IP address string and the port."""
        if self._family not in _INTERNET_FAMILIES:
            raise RuntimeError("Address.ip_port() called on non-Internet address")
        flags = socket.NI_NUMERICHOST | socket.NI_NUMERICSERV
        try:
            host, port = socket.getnameinfo(self._sockaddr, flags)
        except socket.gaierror as exc:
            raise _gai_error("getnameinfo", exc) from exc
        return host, int(port)

    def ip(self) -> str:
        return self.ip_port()[0]

    def port(self) -> int:
        return self.ip_port()[1]

    def ipv4_numeric(self) -> int:
        """The IPv4 address as an integer in host order."""
        if (
            self._family != socket.AF_INET
            or not isinstance(self._sockaddr, tuple)
            or len(self._sockaddr) != 2
        ):
            raise RuntimeError("ipv4_numeric called on non-IPV4 address")
        return int(ipaddress.IPv4Address(self._sockaddr[0]))

    def to_string(self) -> str:
        """Human-readable form such as ``8.8.8.8:53``."""
        if self._family in _INTERNET_FAMILIES:
            host, port = self.ip_port()
            return f"{host}:{port}"
        return "(non-Internet address)"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Address(family={self._family}, sockaddr={self._sockaddr!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._family == other._family and self._sockaddr == other._sockaddr

    def __hash__(self) -> int:
        return hash((self._family, self._sockaddr))