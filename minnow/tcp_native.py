"""Connect to or accept one TCP connection and relay it to standard input/output."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from minnow.address import Address
from minnow.sockets import TCPSocket
from minnow.stream_copy import bidirectional_stream_copy


def _show_usage(program: str) -> None:
    sys.stderr.write(
        f"Usage: {program} [-l] <host> <port>\n\n"
        "  -l specifies listen mode; <host>:<port> is the listening address.\n"
    )


def _open_connection(server_mode: bool, args: Sequence[str]) -> TCPSocket:
    if server_mode:
        listening = TCPSocket()
        listening.set_reuseaddr()
        listening.bind(Address(args[1], args[2]))
        listening.listen()
        sys.stderr.write("DEBUG: Listening for incoming connection...\n")
        connected = listening.accept()
        sys.stderr.write(
            f"DEBUG: New connection from {connected.peer_address().to_string()}.\n"
        )
        return connected

    connecting = TCPSocket()
    peer = Address(args[0], args[1])
    sys.stderr.write(f"DEBUG: Connecting to {peer.to_string()}... ")
    connecting.connect(peer)
    sys.stderr.write(
        f"DEBUG: Successfully connected to {connecting.peer_address().to_string()}.\n"
    )
    return connecting


def main(argv: Sequence[str] | None = None) -> int:
    """Run the relay; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    program = sys.argv[0] if sys.argv and sys.argv[0] else "tcp_native"
    try:
        server_mode = False
        if len(args) < 2:
            _show_usage(program)
            return 1
        server_mode = args[0] == "-l"
        if server_mode and len(args) < 3:
            _show_usage(program)
            return 1

        sock = _open_connection(server_mode, args)
        bidirectional_stream_copy(sock, sock.peer_address().to_string())
    except Exception as exc:  # report every failure as the exit status
        sys.stderr.write(f"Exception: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())