# minnow

Building blocks for user-space networking on Linux.

- `minnow.byte_stream`: a flow-controlled, in-memory `ByteStream` of fixed
  capacity. `stream.writer()` gives a `Writer` (`push`, `close`, `is_closed`,
  `available_capacity`, `bytes_pushed`); `stream.reader()` gives a `Reader`
  (`peek`, `pop`, `is_finished`, `bytes_buffered`, `bytes_popped`). The stream
  also has `set_error` and `has_error`, and `read(reader, max_len)` peeks and
  pops up to `max_len` bytes.
- `minnow.file_descriptor`: a `FileDescriptor` handle on a kernel descriptor
  with `read`, `readv`, `write`, `writev`, `close`, `duplicate` and
  `set_blocking`, tracking EOF, closure and read/write counts. Duplicates share
  one descriptor and its state; it is closed when the last handle goes away, or
  on leaving a `with` block.
- `minnow.address`: `Address`, built by resolving a host name and service
  (`Address(hostname, service)`, IPv4), from a dotted quad and port
  (`Address.from_ip_port`), from a socket-module address
  (`Address.from_sockaddr`) or from a 32-bit number
  (`Address.from_ipv4_numeric`). It offers `ip_port`, `ip`, `port`,
  `ipv4_numeric` and `to_string` (e.g. `8.8.8.8:53`).
- `minnow.sockets`: `Socket` and its subclasses `DatagramSocket`,
  `UDPSocket`, `TCPSocket` (`listen`, `accept`), `PacketSocket`
  (`set_promiscuous`), `LocalStreamSocket` and `LocalDatagramSocket`.
- `minnow.eventloop`: `EventLoop`, which polls descriptors and serves at most
  one rule per `wait_next_event(timeout_ms)` call, returning
  `Result.SUCCESS`, `Result.TIMEOUT` or `Result.EXIT`. Rules are added with
  `add_rule` (a descriptor and a `Direction.IN` / `Direction.OUT`) or
  `add_plain_rule` (no descriptor), and can be cancelled through the returned
  `RuleHandle`. A rule that stays interested without doing any work raises
  `RuntimeError` ("busy wait detected").
- `minnow.stream_copy`: `bidirectional_stream_copy(sock, peer_name)` copies
  stdin to a socket and the socket to stdout until both directions finish.
- `minnow.errors`: `TaggedError`, `UnixError`, `check_system_call` and
  `notnull`.
- `minnow.helpers`: `pretty_print` (escapes unprintable bytes and double
  quotes), `concat` and `get_random_engine`.
- `minnow.debug`: `debug`, `debug_str`, `set_debug_handler` and
  `reset_debug_handler`; messages go to stderr with a `DEBUG:` prefix unless
  another handler is set.

## Installation

```
pip install .
```

## Using a byte stream

```python
from minnow.byte_stream import ByteStream, read

stream = ByteStream(15)
stream.writer().push(b"hello")
stream.writer().close()

print(stream.reader().peek())        # b'hello'
stream.reader().pop(4)
print(read(stream.reader(), 10))     # b'o'
print(stream.reader().is_finished()) # True
```

A push larger than the available capacity is truncated to fit, and pushes
after the writer is closed are ignored. Popping more bytes than are buffered
raises `ValueError`.

## The `tcp_native` command

Connect to a TCP server, copy stdin to it and its replies to stdout:

```
tcp_native <host> <port>
```

Listen on `<host>:<port>` and accept exactly one incoming connection instead:

```
tcp_native -l <host> <port>
```

Progress messages are written to stderr with a `DEBUG:` prefix. The command
exits with status 1 on a usage error or any failure.

## What this package does not do

It does not implement TCP itself: `tcp_native` and `TCPSocket` use the
operating system's TCP. There is no segment reassembly, no TCP sender or
receiver, and no web-fetching command.

## Running the tests

```
pip install .[test]
pytest
```