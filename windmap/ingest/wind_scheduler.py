"""
Wind tile acquisition scheduler.

Sweeps the global tile grid in batches, fetching each tile's wind summary
through the shared ``ConcurrencyGate``, and publishes the growing result
to listeners.  Once every tile is covered it waits the refresh interval,
clears everything and starts the sweep again.

Data flow
─────────
  run_batch()
    → remaining = grid tiles not yet covered this cycle (grid order)
    → batch = first ``batch_size`` of them
    → slow pass: sub-batches of ``sub_batch_size`` fetched concurrently,
      ``sub_batch_delay_s`` pause after each
    → retry burst: every tile that failed, fetched once more, no pause
    → merge successes into CoverageState, publish WindSnapshot
    → next delay: sweep delay while batches_completed < threshold,
      steady delay once reached, refresh interval when the grid is covered

  The driving loop runs on one daemon thread; every wait is an
  ``Event.wait`` so ``stop()`` interrupts it immediately.

Usage
-----
    scheduler = WindScheduler(load_config())
    scheduler.add_listener(lambda snap: print(snap.covered, snap.total_tiles))
    scheduler.start()
    ...
    scheduler.stop()
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..config import WindConfig
from ..geo.tile_grid import Tile, generate_tiles
from ..geo.wind_state import (
    BatchReport, CoverageState, CycleState, Phase, SampleSummary, WindSnapshot,
)
from .gate import ConcurrencyGate
from .wind_client import WindPointSampler

log = logging.getLogger(__name__)

Listener = Callable[[WindSnapshot], None]


class WindScheduler:
    """Batch-wise global wind acquisition loop.

    Parameters
    ----------
    config : WindConfig, optional
        Tunables; validated on construction.
    sampler : object with ``fetch(tile) -> Optional[SampleSummary]``
        Defaults to a ``WindPointSampler`` built from *config*.
    gate : ConcurrencyGate, optional
        Shared throttle; defaults to one sized ``config.max_concurrency``.
    tiles : sequence of Tile, optional
        Grid override; defaults to ``generate_tiles(config.tile_size_deg)``.
    """

    def __init__(
        self,
        config: Optional[WindConfig] = None,
        sampler=None,
        gate: Optional[ConcurrencyGate] = None,
        tiles: Optional[Sequence[Tile]] = None,
    ):
        self._config = (config or WindConfig()).validate()
        cfg = self._config

        self._tiles: Tuple[Tile, ...] = tuple(
            tiles if tiles is not None else generate_tiles(cfg.tile_size_deg)
        )
        self._sampler = sampler or WindPointSampler(
            url=cfg.forecast_url, timeout=cfg.request_timeout_s,
        )
        self._gate = gate or ConcurrencyGate(cfg.max_concurrency)
        self._total_tiles = len({t.key for t in self._tiles})

        # Mutated only by the scheduler, always under _state_lock
        self._coverage = CoverageState()
        self._cycle = CycleState()
        self._loading = False
        self._error: Optional[str] = None
        self._state_lock = threading.Lock()

        self._listeners: List[Listener] = []
        self._listener_lock = threading.Lock()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── Read-only accessors ───────────────────────────────────────────

    @property
    def config(self) -> WindConfig:
        return self._config

    @property
    def tiles(self) -> Tuple[Tile, ...]:
        return self._tiles

    @property
    def gate(self) -> ConcurrencyGate:
        return self._gate

    @property
    def phase(self) -> Phase:
        with self._state_lock:
            return self._cycle.phase

    @property
    def batches_completed(self) -> int:
        with self._state_lock:
            return self._cycle.batches_completed

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def covered_keys(self) -> FrozenSet[str]:
        with self._state_lock:
            return frozenset(self._coverage.covered)

    def snapshot(self) -> WindSnapshot:
        """Immutable copy of the published state."""
        with self._state_lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> WindSnapshot:
        return WindSnapshot(
            summaries=tuple(self._coverage.summaries),
            loading=self._loading,
            error=self._error,
            phase=self._cycle.phase,
            cycle=self._cycle.cycle,
            covered=len(self._coverage.covered),
            total_tiles=self._total_tiles,
        )

    def remaining_tiles(self) -> List[Tile]:
        """Grid tiles not yet covered this cycle, in grid order."""
        with self._state_lock:
            covered = set(self._coverage.covered)
        return [t for t in self._tiles if t.key not in covered]

    # ── Listeners ─────────────────────────────────────────────────────

    def add_listener(self, listener: Listener) -> None:
        """Register *listener*; it is called on the scheduler thread with
        every new snapshot."""
        with self._listener_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._listener_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _publish(self) -> None:
        snap = self.snapshot()
        with self._listener_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snap)
            except Exception:
                log.exception("Wind listener %r failed", listener)

    # ── State transitions ────────────────────────────────────────────

    def _set_phase(self, phase: Phase) -> None:
        with self._state_lock:
            self._cycle.phase = phase

    def _begin_batch(self) -> None:
        with self._state_lock:
            self._loading = True
            self._error = None
        self._publish()

    def _end_batch(self, error: Optional[str] = None) -> None:
        with self._state_lock:
            self._loading = False
            if error is not None:
                self._error = error
        self._publish()

    def _merge(self, summaries: Iterable[SampleSummary]) -> List[str]:
        """Add summaries to the coverage state; returns the keys added."""
        added: List[str] = []
        with self._state_lock:
            for summary in summaries:
                if self._coverage.add(summary):
                    added.append(summary.key)
        return added

    def _decide_next(self, advance: bool) -> Tuple[float, bool]:
        """Advance the batch counter and pick the next delay.

        Returns (delay_s, cycle_complete).
        """
        cfg = self._config
        with self._state_lock:
            if advance:
                self._cycle.batches_completed += 1

            covered = self._coverage.covered
            if all(t.key in covered for t in self._tiles):
                self._cycle.phase = Phase.FULL_REFRESH_WAIT
                return cfg.refresh_interval_s, True

            self._cycle.phase = Phase.BATCH_DONE
            if self._cycle.batches_completed < cfg.sweep_batch_threshold:
                return cfg.sweep_batch_delay_s, False

            if cfg.reset_batch_count_at_threshold:
                self._cycle.batches_completed = 0
            return cfg.steady_batch_delay_s, False

    def reset_cycle(self) -> None:
        """Clear coverage and counters and start a new cycle."""
        with self._state_lock:
            self._coverage.clear()
            self._cycle.reset()
            cycle = self._cycle.cycle
        log.info("Wind cycle %d: coverage cleared, restarting sweep", cycle)
        self._publish()

    # ── Fetching ──────────────────────────────────────────────────────

    def _sample(self, tile: Tile) -> Optional[SampleSummary]:
        try:
            return self._sampler.fetch(tile)
        except Exception as exc:
            log.warning("Wind sampler raised for tile %s: %s", tile.key, exc)
            return None

    def _fetch_all(self, tiles: Sequence[Tile]) -> Dict[str, SampleSummary]:
        """Fetch *tiles* concurrently through the gate; wait for all.

        Gate errors propagate to the caller.
        """
        results: Dict[str, SampleSummary] = {}
        if not tiles:
            return results

        errors: List[BaseException] = []
        with ThreadPoolExecutor(
            max_workers=len(tiles), thread_name_prefix="wind-fetch",
        ) as executor:
            futures = {
                executor.submit(self._gate.run, self._sample, tile): tile
                for tile in tiles
            }
            for future in as_completed(futures):
                tile = futures[future]
                exc = future.exception()
                if exc is not None:
                    errors.append(exc)
                    continue
                summary = future.result()
                if summary is not None:
                    results[tile.key] = summary

        if errors:
            raise errors[0]
        return results

    def _wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; returns True if stop() was requested."""
        return self._stop_event.wait(seconds)

    # ── One scheduling step ──────────────────────────────────────────

    def run_batch(self) -> BatchReport:
        """Fetch the next batch of uncovered tiles and merge the results."""
        cfg = self._config
        self._begin_batch()

        batch: List[Tile] = []
        try:
            batch = self.remaining_tiles()[:cfg.batch_size]
            batch_keys = tuple(t.key for t in batch)

            if not batch:
                delay, complete = self._decide_next(advance=False)
                log.info("Wind grid fully covered; refresh in %.0fs", delay)
                self._end_batch()
                return BatchReport(next_delay_s=delay, cycle_complete=complete)

            # Slow pass
            self._set_phase(Phase.BATCH_SLOW_PASS)
            found: Dict[str, SampleSummary] = {}
            for start in range(0, len(batch), cfg.sub_batch_size):
                sub_batch = batch[start:start + cfg.sub_batch_size]
                found.update(self._fetch_all(sub_batch))
                log.debug(
                    "Wind sub-batch %d: %d/%d tiles ok",
                    start // cfg.sub_batch_size,
                    sum(1 for t in sub_batch if t.key in found), len(sub_batch),
                )
                if self._wait(cfg.sub_batch_delay_s):
                    return self._abandon(batch_keys)

            # Retry burst
            missing = [t for t in batch if t.key not in found]
            retried: Dict[str, SampleSummary] = {}
            if missing:
                self._set_phase(Phase.BATCH_RETRY_BURST)
                retried = self._fetch_all(missing)

            if self._stop_event.is_set():
                return self._abandon(batch_keys)

            ordered = [found.get(k) or retried.get(k) for k in batch_keys]
            added = set(self._merge(s for s in ordered if s is not None))

            delay, complete = self._decide_next(advance=True)
            report = BatchReport(
                batch=batch_keys,
                slow_pass=tuple(k for k in batch_keys if k in found and k in added),
                retry_burst=tuple(k for k in batch_keys if k in retried and k in added),
                missing=tuple(k for k in batch_keys if k not in found and k not in retried),
                next_delay_s=delay,
                cycle_complete=complete,
            )

        except Exception as exc:
            log.error("Wind batch error: %s", exc)
            delay, complete = self._decide_next(advance=False)
            self._end_batch(error=str(exc) or type(exc).__name__)
            return BatchReport(
                batch=tuple(t.key for t in batch),
                missing=tuple(t.key for t in batch),
                next_delay_s=delay,
                cycle_complete=complete,
                error=str(exc) or type(exc).__name__,
            )

        snap = self.snapshot()
        log.info(
            "Wind batch: %d tiles (slow %d, burst %d, missing %d); "
            "coverage %d/%d; next in %.0fs",
            len(report.batch), len(report.slow_pass), len(report.retry_burst),
            len(report.missing), snap.covered, snap.total_tiles, delay,
        )
        self._end_batch()
        return report

    def _abandon(self, batch_keys: Tuple[str, ...]) -> BatchReport:
        log.info("Wind batch abandoned (stop requested); results discarded")
        self._set_phase(Phase.IDLE)
        self._end_batch()
        return BatchReport(batch=batch_keys, missing=batch_keys)

    # ── Control ───────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the driving loop on a background thread.

        If a previous loop was stopped but is still finishing a fetch,
        wait for it to exit first so only one loop ever drives the state.
        """
        previous = self._thread
        if previous is not None and previous.is_alive():
            if not self._stop_event.is_set():
                return
            log.info("Waiting for the previous wind loop to exit")
            previous.join()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="wind-scheduler",
        )
        self._thread.start()

        cfg = self._config
        log.info(
            "WindScheduler started (%d tiles, batch %d, sub-batch %d, "
            "concurrency %d, sweep %ds, steady %ds, refresh %ds)",
            len(self._tiles), cfg.batch_size, cfg.sub_batch_size,
            self._gate.limit, cfg.sweep_batch_delay_s,
            cfg.steady_batch_delay_s, cfg.refresh_interval_s,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop before its next wait; in-flight fetches finish and
        their results are dropped."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is not None and thread.is_alive():
            # start() joins this before launching another loop
            log.warning("WindScheduler loop still finishing an in-flight batch")
            return
        self._thread = None
        log.info("WindScheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            report = self.run_batch()
            if self._stop_event.is_set():
                break
            if self._wait(report.next_delay_s):
                break
            if report.cycle_complete:
                self.reset_cycle()
        self._set_phase(Phase.IDLE)
