from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .config import WindConfig, load_config
from .geo.geometry import trails_to_geojson, wind_to_geojson
from .ingest.balloon_client import fetch_balloon_histories
from .ingest.wind_scheduler import WindScheduler
from .logger import setup_logging

log = logging.getLogger(__name__)


def write_geojson(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f)
    log.info("Wrote %d features to %s", len(data.get("features", [])), path)


def run_wind_mode(
    cfg: WindConfig,
    once: bool,
    export: Optional[Path],
    arrow_km: float,
    report_every: float = 30.0,
) -> None:
    scheduler = WindScheduler(cfg)

    if once:
        report = scheduler.run_batch()
        snap = scheduler.snapshot()
        print(
            f"Batch: {len(report.batch)} tiles, {report.fetched} fetched "
            f"({len(report.retry_burst)} on retry), {len(report.missing)} missing; "
            f"coverage {snap.covered}/{snap.total_tiles}"
        )
        if report.error:
            print(f"Batch error: {report.error}")
    else:
        scheduler.start()
        print("Wind scheduler running (Ctrl-C to quit)")
        try:
            while True:
                time.sleep(report_every)
                snap = scheduler.snapshot()
                print(
                    f"Coverage {snap.covered}/{snap.total_tiles} "
                    f"({snap.progress:.0%}), cycle {snap.cycle}, "
                    f"phase {snap.phase.value}"
                    + (f", error: {snap.error}" if snap.error else ""),
                    flush=True,
                )
        except KeyboardInterrupt:
            print("\nStopping wind scheduler.")
        finally:
            scheduler.stop(timeout=5.0)

    if export is not None:
        write_geojson(export, wind_to_geojson(scheduler.snapshot().summaries, arrow_km))


def run_gui_mode(cfg: WindConfig, export: Optional[Path], arrow_km: float) -> int:
    from PyQt5 import QtWidgets

    from .gui.status_window import WindStatusWindow

    app = QtWidgets.QApplication(sys.argv)
    app.setStyle("Fusion")

    scheduler = WindScheduler(cfg)
    win = WindStatusWindow(scheduler)
    win.show()
    scheduler.start()
    code = app.exec_()

    scheduler.stop(timeout=5.0)
    if export is not None:
        write_geojson(export, wind_to_geojson(scheduler.snapshot().summaries, arrow_km))
    return code


def run_balloon_mode(cfg: WindConfig, export: Optional[Path]) -> None:
    histories = fetch_balloon_histories(cfg.balloon_url, timeout=cfg.request_timeout_s)
    print(f"Balloons: {len(histories)} tracks")
    if export is not None:
        write_geojson(export, trails_to_geojson(histories))


def main() -> None:
    parser = argparse.ArgumentParser(
        description=(
            "Global wind field acquisition.\n"
            "  wind     – sweep the tile grid and keep it refreshed\n"
            "  balloons – fetch the last 24 h of balloon positions\n"
            "  gui      – run the wind sweep with a status window"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=["wind", "balloons", "gui"],
        default="wind",
        help="What to fetch.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file overriding scheduler settings.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single wind batch, then exit.",
    )
    parser.add_argument(
        "--export",
        type=Path,
        default=None,
        help="Write the result as GeoJSON to this path on exit.",
    )
    parser.add_argument(
        "--arrow-km",
        type=float,
        default=400.0,
        help="Arrow length for exported wind features (0 = tiles only).",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for windmap.log (default ./logs).",
    )
    args = parser.parse_args()

    setup_logging(args.log_dir)
    cfg = load_config(args.config)

    if args.mode == "wind":
        run_wind_mode(cfg, once=args.once, export=args.export, arrow_km=args.arrow_km)
    elif args.mode == "gui":
        sys.exit(run_gui_mode(cfg, export=args.export, arrow_km=args.arrow_km))
    else:
        run_balloon_mode(cfg, export=args.export)


if __name__ == "__main__":
    main()
