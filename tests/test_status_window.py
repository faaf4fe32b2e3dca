"""Tests for the wind status window (offscreen)."""

from windmap.geo.wind_state import Phase
from windmap.gui.status_window import WindStatusWindow
from windmap.ingest.wind_scheduler import WindScheduler


def test_window_tracks_scheduler(qapp, fast_config, four_tiles, make_sampler):
    sampler = make_sampler(fail=lambda tile, attempt: tile == four_tiles[3])
    cfg = fast_config.replace(batch_size=4)
    scheduler = WindScheduler(cfg, sampler=sampler, tiles=four_tiles)
    win = WindStatusWindow(scheduler)

    scheduler.run_batch()
    qapp.processEvents()

    assert win.coverage_label.text() == "Coverage: 3/4 tiles, cycle 0"
    assert win.phase_label.text() == f"Phase: {Phase.BATCH_DONE.value}"
    assert (win.progress.value(), win.progress.maximum()) == (3, 4)
    assert win.error_label.text() == ""
    assert win.statusBar().currentMessage() == "Wind: 3/4 tiles (75%), cycle 0"
    win.close()


def test_close_stops_scheduler(qapp, fast_config, four_tiles, stub_sampler):
    cfg = fast_config.replace(batch_size=1, sweep_batch_delay_s=3600.0)
    scheduler = WindScheduler(cfg, sampler=stub_sampler, tiles=four_tiles)
    win = WindStatusWindow(scheduler)
    win.show()
    scheduler.start()
    assert scheduler.is_running

    win.close()

    assert not scheduler.is_running
    qapp.processEvents()
    before = win.bridge.last_snapshot

    # Detached: later batches no longer reach the window
    scheduler.run_batch()
    qapp.processEvents()
    assert win.bridge.last_snapshot is before
