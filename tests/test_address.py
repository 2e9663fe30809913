import socket

import pytest

from minnow.address import Address
from minnow.errors import TaggedError


def test_ip_port_to_string():
    address = Address.from_ip_port("18.243.0.1", 53)
    assert address.to_string() == "18.243.0.1:53"
    assert str(address) == "18.243.0.1:53"


def test_ip_and_port_accessors():
    address = Address.from_ip_port("8.8.8.8", 53)
    assert address.ip() == "8.8.8.8"
    assert address.port() == 53
    assert address.ip_port() == ("8.8.8.8", 53)


def test_default_port_is_zero():
    assert Address.from_ip_port("10.0.0.1").port() == 0


def test_family_is_ipv4():
    assert Address.from_ip_port("10.0.0.1", 1).family == socket.AF_INET


def test_numeric_round_trip():
    address = Address.from_ip_port("18.243.0.1", 0)
    assert Address.from_ipv4_numeric(address.ipv4_numeric()) == address


def test_from_ipv4_numeric_loopback():
    assert Address.from_ipv4_numeric(0x7F000001).ip() == "127.0.0.1"


def test_from_ipv4_numeric_out_of_range():
    with pytest.raises(ValueError):
        Address.from_ipv4_numeric(-1)
    with pytest.raises(ValueError):
        Address.from_ipv4_numeric(1 << 32)


def test_resolving_constructor_matches_numeric():
    assert Address("127.0.0.1", "8080") == Address.from_ip_port("127.0.0.1", 8080)


def test_equality_and_hash():
    first = Address.from_ip_port("1.1.1.1", 80)
    second = Address.from_ip_port("1.1.1.1", 80)
    assert first == second
    assert hash(first) == hash(second)
    assert (first == Address.from_ip_port("1.1.1.1", 81)) is False


def test_invalid_ip_raises_tagged_error():
    with pytest.raises(TaggedError) as info:
        Address.from_ip_port("not-an-ip", 80)
    assert str(info.value).startswith("getaddrinfo(not-an-ip, 80)")


def test_ipv6_literal_rejected_for_ipv4():
    with pytest.raises(TaggedError):
        Address.from_ip_port("::1", 80)


def test_port_out_of_range():
    with pytest.raises(ValueError):
        Address.from_ip_port("1.1.1.1", 70000)


def test_non_internet_address():
    address = Address.from_sockaddr(socket.AF_UNIX, "/tmp/minnow.sock")
    assert address.to_string() == "(non-Internet address)"
    with pytest.raises(RuntimeError):
        address.ip_port()
    with pytest.raises(RuntimeError):
        address.ipv4_numeric()


def test_ipv6_address():
    address = Address.from_sockaddr(socket.AF_INET6, ("::1", 80, 0, 0))
    assert address.ip_port() == ("::1", 80)
    with pytest.raises(RuntimeError):
        address.ipv4_numeric()


def test_from_sockaddr_matches_numeric():
    address = Address.from_sockaddr(socket.AF_INET, ["192.0.2.5", 9])
    assert address == Address.from_ip_port("192.0.2.5", 9)