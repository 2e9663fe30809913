"""Exceptions for failed system calls and helpers that raise them."""

from __future__ import annotations

import os
from typing import TypeVar

T = TypeVar("T")


class TaggedError(OSError):
    """An error code tagged with a description of what was being attempted."""

    def __init__(self, attempt: str, error_code: int, description: str) -> None:
        super().__init__(error_code, description)
        self.attempt = attempt
        self.error_code = error_code
        self.description = description

    def __str__(self) -> str:
        return f"{self.attempt}: {self.description}"


class UnixError(TaggedError):
    """A failed system call, described by its errno value."""

    def __init__(self, attempt: str, error_code: int) -> None:
        super().__init__(attempt, error_code, os.strerror(error_code))


def check_system_call(attempt: str, return_value: int) -> int:
    """Return a non-negative result unchanged; raise UnixError otherwise.

    A negative return value is taken to be the negated errno of the failure.
    """
    if return_value >= 0:
        return return_value
    raise UnixError(attempt, -return_value)


def notnull(context: str, value: T | None) -> T:
    """Return ``value``, or raise RuntimeError if it is None."""
    if value is None:
        raise RuntimeError(f"{context}: returned null pointer")
    return value