"""Waits for events on file descriptors and runs the matching callbacks."""

from __future__ import annotations

import errno
import os
import select
import socket
import sys
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from minnow.errors import UnixError
from minnow.file_descriptor import FileDescriptor

Callback = Callable[[], None]
Interest = Callable[[], bool]

MAX_CATEGORIES = 64
"""Most rule categories one event loop can hold."""

_PLAIN_RULE_ITERATION_LIMIT = 128


def _always() -> bool:
    return True


class Direction(Enum):
    """Whether a rule waits for its descriptor to be readable or writable."""

    IN = auto()
    OUT = auto()


class Result(Enum):
    """Outcome of one call to EventLoop.wait_next_event."""

    SUCCESS = auto()  # at least one rule was served
    TIMEOUT = auto()  # no rule was served before the timeout
    EXIT = auto()  # every rule is cancelled or uninterested


@dataclass(eq=False)
class _BasicRule:
    category_id: int
    interest: Interest
    callback: Callback
    cancel_requested: bool = False


@dataclass(eq=False)
class _FDRule:
    category_id: int
    interest: Interest
    callback: Callback
    fd: FileDescriptor
    direction: Direction
    cancel_callback: Callback | None = None
    error_callback: Callback | None = None
    cancel_requested: bool = False

    def cancel(self) -> None:
        """Run the cancellation callback, if any."""
        if self.cancel_callback is not None:
            self.cancel_callback()

    def error(self) -> None:
        """Run the error callback, if any."""
        if self.error_callback is not None:
            self.error_callback()

    def service_count(self) -> int:
        """How many times the descriptor has been read or written, per direction."""
        if self.direction is Direction.IN:
            return self.fd.read_count()
        return self.fd.write_count()

    def poll_mask(self) -> int:
        return select.POLLIN if self.direction is Direction.IN else select.POLLOUT


class RuleHandle:
    """A weak handle on a rule that can cancel it."""

    def __init__(self, rule: _BasicRule | _FDRule) -> None:
        self._rule = weakref.ref(rule)

    def cancel(self) -> None:
        """Ask for the rule to be dropped; its cancel callback is not called."""
        rule = self._rule()
        if rule is not None:
            rule.cancel_requested = True


class EventLoop:
    """Polls file descriptors and serves at most one rule per call."""

    def __init__(self) -> None:
        self._categories: list[str] = []
        self._fd_rules: list[_FDRule] = []
        self._plain_rules: list[_BasicRule] = []

    def add_category(self, name: str) -> int:
        """Register a category name; returns its id."""
        if len(self._categories) >= MAX_CATEGORIES:
            raise RuntimeError("maximum categories reached")
        self._categories.append(name)
        return len(self._categories) - 1

    def _category_id(self, category: int | str) -> int:
        if isinstance(category, str):
            return self.add_category(category)
        if not 0 <= category < len(self._categories):
            raise IndexError("bad category_id")
        return category

    def _name(self, category_id: int) -> str:
        return self._categories[category_id]

    def add_rule(
        self,
        category: int | str,
        fd: FileDescriptor,
        direction: Direction,
        callback: Callback,
        interest: Interest = _always,
        cancel: Callback | None = None,
        error: Callback | None = None,
    ) -> RuleHandle:
        """Run ``callback`` when ``fd`` is ready in ``direction`` and ``interest()`` holds.

        ``category`` is a category id, or a name for which a new category is made.
        """
        rule = _FDRule(
            category_id=self._category_id(category),
            interest=interest,
            callback=callback,
            fd=fd.duplicate(),
            direction=direction,
            cancel_callback=cancel,
            error_callback=error,
        )
        self._fd_rules.append(rule)
        return RuleHandle(rule)

    def add_plain_rule(
        self,
        category: int | str,
        callback: Callback,
        interest: Interest = _always,
    ) -> RuleHandle:
        """Run ``callback`` whenever ``interest()`` holds, with no descriptor involved."""
        rule = _BasicRule(self._category_id(category), interest, callback)
        self._plain_rules.append(rule)
        return RuleHandle(rule)

    def _drop_fd_rule(self, rule: _FDRule) -> None:
        if rule in self._fd_rules:
            self._fd_rules.remove(rule)

    def _serve_plain_rules(self) -> bool:
        for rule in list(self._plain_rules):
            if rule.cancel_requested:
                self._plain_rules.remove(rule)
                continue
            iterations = 0
            while rule.interest():
                iterations += 1
                if iterations > _PLAIN_RULE_ITERATION_LIMIT:
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule.category_id)}"'
                        f" is still interested after {iterations} iterations"
                    )
                rule.callback()
            if iterations:
                return True
        return False

    def _report_poll_error(self, rule: _FDRule) -> None:
        name = self._name(rule.category_id)
        try:
            sock = socket.socket(fileno=rule.fd.fd_num())
        except OSError as exc:
            if exc.errno == errno.ENOTSOCK:
                sys.stderr.write(f'error on polled file descriptor for rule "{name}"\n')
                return
            raise UnixError("getsockopt", exc.errno or 0) from exc
        try:
            socket_error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as exc:
            raise UnixError("getsockopt", exc.errno or 0) from exc
        finally:
            sock.detach()
        if socket_error:
            sys.stderr.write(
                f'error on polled socket for rule "{name}": {os.strerror(socket_error)}\n'
            )

    def wait_next_event(self, timeout_ms: int) -> Result:
        """Serve one ready rule, waiting up to ``timeout_ms`` (negative: forever)."""
        if self._serve_plain_rules():
            return Result.SUCCESS

        polled: list[tuple[_FDRule, int]] = []
        something_to_poll = False
        for rule in list(self._fd_rules):
            if rule.cancel_requested:
                # cancelled from outside: the cancel callback is not called
                self._drop_fd_rule(rule)
                continue
            if (rule.direction is Direction.IN and rule.fd.eof()) or rule.fd.closed():
                rule.cancel()
                self._drop_fd_rule(rule)
                continue
            if rule.interest():
                polled.append((rule, rule.poll_mask()))
                something_to_poll = True
            else:
                polled.append((rule, 0))  # still polled so errors are seen

        if not something_to_poll:
            return Result.EXIT

        masks: dict[int, int] = {}
        for rule, mask in polled:
            fd = rule.fd.fd_num()
            masks[fd] = masks.get(fd, 0) | mask
        poller = select.poll()
        for fd, mask in masks.items():
            poller.register(fd, mask)
        try:
            ready = poller.poll(timeout_ms)
        except OSError as exc:
            raise UnixError("poll", exc.errno or 0) from exc
        if not ready:
            return Result.TIMEOUT
        revents_by_fd = dict(ready)

        for rule, mask in polled:
            revents = revents_by_fd.get(rule.fd.fd_num(), 0)

            if revents & (select.POLLERR | select.POLLNVAL):
                self._report_poll_error(rule)
                rule.error()
                rule.cancel()
                self._drop_fd_rule(rule)
                continue

            poll_ready = bool(revents & mask)
            poll_hup = bool(revents & select.POLLHUP)
            if poll_hup and ((mask and not poll_ready) or rule.direction is Direction.OUT):
                # a hangup with nothing else to do: this descriptor is defunct
                rule.cancel()
                self._drop_fd_rule(rule)
                continue

            if poll_ready:
                count_before = rule.service_count()
                rule.callback()
                if (
                    count_before == rule.service_count()
                    and not rule.fd.closed()
                    and rule.interest()
                ):
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule.category_id)}"'
                        " did not read/write fd and is still interested"
                    )
                return Result.SUCCESS

        return Result.SUCCESS