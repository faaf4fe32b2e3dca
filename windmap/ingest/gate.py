"""
Process-wide throttle for outbound sampling calls.

``ConcurrencyGate`` admits at most ``limit`` callers at a time and queues
the rest strictly first-come first-served.  A task that raises releases
its slot the same way a successful one does.

Usage
-----
    gate = ConcurrencyGate(limit=10)
    summary = gate.run(sampler.fetch, tile)

    with gate:
        ...
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, TypeVar

from ..config import ConfigurationError

log = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyGate:
    """Counting FIFO gate shared by every sampler call.

    Thread-safe: waiters hold a ticket in a deque and are admitted only
    when their ticket is at the head and a slot is free.
    """

    def __init__(self, limit: int = 10):
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ConfigurationError(f"gate limit must be a positive integer, got {limit!r}")
        self._limit = limit
        self._active = 0
        self._peak = 0
        self._waiters: Deque[object] = deque()
        self._cond = threading.Condition()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        """Number of callers currently holding a slot."""
        with self._cond:
            return self._active

    @property
    def peak(self) -> int:
        """Highest concurrent occupancy seen so far."""
        with self._cond:
            return self._peak

    @property
    def waiting(self) -> int:
        with self._cond:
            return len(self._waiters)

    def acquire(self) -> None:
        ticket = object()
        with self._cond:
            self._waiters.append(ticket)
            try:
                while self._waiters[0] is not ticket or self._active >= self._limit:
                    self._cond.wait()
            except BaseException:
                self._waiters.remove(ticket)
                self._cond.notify_all()
                raise
            self._waiters.popleft()
            self._active += 1
            self._peak = max(self._peak, self._active)
            # The next ticket may also fit
            self._cond.notify_all()

    def release(self) -> None:
        with self._cond:
            if self._active <= 0:
                raise RuntimeError("ConcurrencyGate released more often than acquired")
            self._active -= 1
            self._cond.notify_all()

    def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call *fn* while holding a slot."""
        self.acquire()
        try:
            return fn(*args, **kwargs)
        finally:
            self.release()

    def __enter__(self) -> "ConcurrencyGate":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ConcurrencyGate(limit={self._limit}, active={self.active})"
