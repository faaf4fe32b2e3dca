"""Shared fixtures for the wind scheduler tests."""

import os
import threading
from collections import Counter
from typing import Callable, List, Optional

import pytest

from windmap.config import WindConfig
from windmap.geo.tile_grid import Tile
from windmap.geo.wind_state import SampleSummary


class StubSampler:
    """Sampler stand-in.

    ``fail(tile, attempt)`` decides whether the given attempt (1-based,
    counted per tile) fails.  Calls and concurrency are recorded.
    """

    def __init__(
        self,
        fail: Optional[Callable[[Tile, int], bool]] = None,
        delay: float = 0.0,
    ):
        self._fail = fail or (lambda tile, attempt: False)
        self._delay = delay
        self._lock = threading.Lock()
        self.calls: List[str] = []
        self.attempts: Counter = Counter()
        self.in_flight = 0
        self.max_in_flight = 0

    def fetch(self, tile: Tile) -> Optional[SampleSummary]:
        with self._lock:
            self.calls.append(tile.key)
            self.attempts[tile.key] += 1
            attempt = self.attempts[tile.key]
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                threading.Event().wait(self._delay)
            if self._fail(tile, attempt):
                return None
            return SampleSummary(tile=tile, speed=10.0, direction=90.0)
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def fast_config():
    """Config with every delay set to zero."""
    return WindConfig(
        sub_batch_delay_s=0.0,
        sweep_batch_delay_s=0.0,
        steady_batch_delay_s=0.0,
        refresh_interval_s=0.0,
    )


@pytest.fixture
def four_tiles():
    """A 2×2 block of 10° tiles, in grid order."""
    return [
        Tile(lat=-85.0, lon=-175.0),
        Tile(lat=-85.0, lon=-165.0),
        Tile(lat=-75.0, lon=-175.0),
        Tile(lat=-75.0, lon=-165.0),
    ]


@pytest.fixture
def stub_sampler():
    return StubSampler()


@pytest.fixture
def make_sampler():
    """Factory for StubSampler with a custom failure rule."""
    return StubSampler


class BlockingSampler(StubSampler):
    """StubSampler whose fetches park until ``release`` is set."""

    def __init__(self, fail: Optional[Callable[[Tile, int], bool]] = None):
        super().__init__(fail=fail)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self, tile: Tile) -> Optional[SampleSummary]:
        self.entered.set()
        self.release.wait(5.0)
        return super().fetch(tile)


@pytest.fixture
def blocking_sampler():
    sampler = BlockingSampler(fail=lambda tile, attempt: tile.lon == -175.0)
    yield sampler
    sampler.release.set()


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for all Qt tests, rendered offscreen."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PyQt5 import QtWidgets

    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    return app
