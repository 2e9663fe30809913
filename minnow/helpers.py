"""Small utilities: readable rendering of bytes, concatenation, random engines."""

from __future__ import annotations

import os
import random
from collections.abc import Iterable

_PRINTABLE = range(0x20, 0x7F)


def pretty_print(data: bytes | str, max_length: int = 32) -> str:
    """Render bytes readably, escaping unprintable bytes and double quotes.

    Rendering stops once the output reaches ``max_length`` characters; an
    ellipsis is appended only when the truncated output is shorter than three
    characters.
    """
    if isinstance(data, str):
        data = data.encode()
    parts: list[str] = []
    length = 0
    truncated = False
    for byte in data:
        if length >= max_length:
            truncated = True
            break
        piece = chr(byte) if byte in _PRINTABLE and byte != ord('"') else f"\\x{byte:02x}"
        parts.append(piece)
        length += len(piece)
    result = "".join(parts)
    if truncated and len(result) < 3:
        result += "..."
    return result


def concat(buffers: Iterable[bytes]) -> bytes:
    """Concatenate a sequence of byte buffers into one."""
    return b"".join(bytes(buffer) for buffer in buffers)


def get_random_engine() -> random.Random:
    """A pseudo-random generator seeded from the operating system's entropy."""
    return random.Random(int.from_bytes(os.urandom(4096), "little"))