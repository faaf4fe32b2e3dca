"""
Wind state data model.

``SampleSummary`` is the reduced observation for one tile.  The scheduler
owns one ``CoverageState`` (which tiles are done this cycle plus the
published summaries) and one ``CycleState`` (batch counter and phase).
Everything handed to readers is a frozen ``WindSnapshot`` copy.

Example
-------
    coverage = CoverageState()
    coverage.add(SampleSummary(tile=tile, speed=12.4, direction=271.0))
    len(coverage)           # 1
    coverage.is_covered(tile.key)
"""
from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .tile_grid import Tile


class Phase(enum.Enum):
    """Where the scheduler loop currently is."""
    IDLE = "idle"
    BATCH_SLOW_PASS = "batch_slow_pass"
    BATCH_RETRY_BURST = "batch_retry_burst"
    BATCH_DONE = "batch_done"
    FULL_REFRESH_WAIT = "full_refresh_wait"


@dataclass(frozen=True)
class SampleSummary:
    """Reduced wind observation for one tile."""
    tile: Tile
    speed: float            # mean of the hourly series (km/h)
    direction: float        # circular mean, degrees in [0, 360)

    @property
    def key(self) -> str:
        return self.tile.key

    def as_dict(self) -> Dict:
        return {
            "key": self.key,
            "tile": self.tile.as_dict(),
            "speed": round(self.speed, 3),
            "direction": round(self.direction, 3),
        }


@dataclass
class CoverageState:
    """Tiles fetched this cycle and the summaries published for them.

    ``covered`` and ``summaries`` only change together through ``add`` and
    ``clear``, so their sizes always match.
    """
    covered: Set[str] = field(default_factory=set)
    summaries: List[SampleSummary] = field(default_factory=list)

    def is_covered(self, key: str) -> bool:
        return key in self.covered

    def add(self, summary: SampleSummary) -> bool:
        """Record *summary*; returns False if its tile is already covered."""
        if summary.key in self.covered:
            return False
        self.covered.add(summary.key)
        self.summaries.append(summary)
        return True

    def clear(self) -> None:
        self.covered.clear()
        self.summaries.clear()

    def __len__(self) -> int:
        return len(self.summaries)


@dataclass
class CycleState:
    """Batch bookkeeping for the current refresh cycle."""
    batches_completed: int = 0
    phase: Phase = Phase.IDLE
    cycle: int = 0

    def reset(self) -> None:
        self.batches_completed = 0
        self.phase = Phase.IDLE
        self.cycle += 1


@dataclass(frozen=True)
class WindSnapshot:
    """Immutable view of the published wind field."""
    summaries: Tuple[SampleSummary, ...] = ()
    loading: bool = False
    error: Optional[str] = None
    phase: Phase = Phase.IDLE
    cycle: int = 0
    covered: int = 0
    total_tiles: int = 0
    timestamp: float = field(default_factory=time.time)

    @property
    def progress(self) -> float:
        """Fraction of the grid covered this cycle (0–1)."""
        if not self.total_tiles:
            return 0.0
        return self.covered / self.total_tiles

    def as_dict(self) -> Dict:
        return {
            "timestamp": self.timestamp,
            "loading": self.loading,
            "error": self.error,
            "phase": self.phase.value,
            "cycle": self.cycle,
            "covered": self.covered,
            "total_tiles": self.total_tiles,
            "summaries": [s.as_dict() for s in self.summaries],
        }


@dataclass(frozen=True)
class BatchReport:
    """Outcome of one scheduling step."""
    batch: Tuple[str, ...] = ()
    slow_pass: Tuple[str, ...] = ()      # keys recovered in the slow pass
    retry_burst: Tuple[str, ...] = ()    # keys recovered in the retry burst
    missing: Tuple[str, ...] = ()        # keys still uncovered
    next_delay_s: float = 0.0
    cycle_complete: bool = False
    error: Optional[str] = None

    @property
    def fetched(self) -> int:
        return len(self.slow_pass) + len(self.retry_burst)
