"""
Balloon constellation history client.

The constellation publishes one JSON snapshot per hour for the last 24
hours (``00.json`` = now, ``23.json`` = 23 h ago).  Each snapshot is a
list of ``[lat, lon, alt_km]`` rows; the row index identifies the balloon
across snapshots.  Snapshots are frequently missing or corrupt, so every
failure is skipped rather than raised.

Usage
-----
    histories = fetch_balloon_histories()
    for balloon_id, samples in histories.items():
        print(balloon_id, len(samples))
    markers = latest_positions(histories)
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import requests

from ..config import BALLOON_URL

log = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (windmap)",
    "Accept": "application/json",
}

HOURS = 24


@dataclass(frozen=True)
class BalloonSample:
    """One balloon position from an hourly snapshot."""
    lat: float
    lon: float
    alt: float              # km
    hour: int               # hours before now (0 = latest)
    time_utc: datetime


def snapshot_url(base_url: str, hour: int) -> str:
    return f"{base_url.rstrip('/')}/{hour:02d}.json"


def fetch_snapshot(url: str, timeout: float = 15.0) -> Optional[list]:
    """Fetch and parse one hourly snapshot.  Returns None if unusable."""
    try:
        resp = requests.get(url, headers=_HEADERS, timeout=timeout)
        if resp.status_code != 200:
            log.debug("Balloon snapshot %s: HTTP %d", url, resp.status_code)
            return None
        # Content-Type is unreliable on this feed
        data = json.loads(resp.text)
    except requests.RequestException as exc:
        log.warning("Balloon snapshot %s: network error: %s", url, exc)
        return None
    except ValueError as exc:
        log.warning("Balloon snapshot %s: parse error: %s", url, exc)
        return None

    if not isinstance(data, list):
        log.warning("Balloon snapshot %s: expected a list", url)
        return None
    return data


def _parse_row(row) -> Optional[tuple]:
    if not isinstance(row, (list, tuple)) or len(row) < 3:
        return None
    values = []
    for v in row[:3]:
        if v is None or isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if not math.isfinite(v):
            return None
        values.append(float(v))
    return tuple(values)


def merge_snapshots(
    snapshots: List[Optional[list]],
    now: Optional[datetime] = None,
) -> Dict[str, List[BalloonSample]]:
    """Merge hourly snapshots by row index.

    *snapshots[h]* is the snapshot from *h* hours ago, or None if it
    could not be fetched.  Returns ``{"balloon_<idx>": [samples...]}`` with
    samples in snapshot order (latest first).
    """
    now = now or datetime.now(timezone.utc)
    merged: Dict[str, List[BalloonSample]] = {}

    for hour, snapshot in enumerate(snapshots):
        if not snapshot:
            continue
        stamp = now - timedelta(hours=hour)
        for idx, row in enumerate(snapshot):
            parsed = _parse_row(row)
            if parsed is None:
                continue
            lat, lon, alt = parsed
            merged.setdefault(f"balloon_{idx}", []).append(
                BalloonSample(lat=lat, lon=lon, alt=alt, hour=hour, time_utc=stamp)
            )

    return merged


def fetch_balloon_histories(
    base_url: str = BALLOON_URL,
    hours: int = HOURS,
    timeout: float = 15.0,
) -> Dict[str, List[BalloonSample]]:
    """Fetch the last *hours* snapshots and merge them per balloon."""
    snapshots = [
        fetch_snapshot(snapshot_url(base_url, h), timeout=timeout)
        for h in range(hours)
    ]
    histories = merge_snapshots(snapshots)

    log.info(
        "Balloons: %d/%d snapshots, %d balloons",
        sum(1 for s in snapshots if s), hours, len(histories),
    )
    return histories


def latest_positions(
    histories: Dict[str, List[BalloonSample]],
) -> Dict[str, BalloonSample]:
    """Most recent on-globe position of each balloon."""
    latest: Dict[str, BalloonSample] = {}
    for balloon_id, samples in histories.items():
        valid = [
            s for s in samples
            if -90.0 <= s.lat <= 90.0 and -180.0 <= s.lon <= 180.0
        ]
        if valid:
            latest[balloon_id] = min(valid, key=lambda s: s.hour)
    return latest
