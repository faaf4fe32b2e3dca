"""
Open-Meteo point forecast client.

Fetches the hourly 10 m wind speed and direction series at a tile center
and reduces it to a single ``SampleSummary``.  Failures are normal here
(rate limiting, timeouts, empty series) and come back as ``None``; the
scheduler decides whether and when to try again.

Data source
-----------
  Open-Meteo forecast API
  https://api.open-meteo.com/v1/forecast

  No API key required.  Returns JSON:
    {"hourly": {"time": [...],
                "windspeed_10m": [km/h, ...],
                "winddirection_10m": [deg, ...]}}

Usage
-----
    sampler = WindPointSampler()
    summary = sampler.fetch(tile)
    if summary is not None:
        print(summary.speed, summary.direction)
"""
from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np
import requests

from ..config import FORECAST_URL
from ..geo.tile_grid import Tile
from ..geo.wind_state import SampleSummary

log = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "(windmap, wind-field-viewer)",
    "Accept": "application/json",
}

SPEED_FIELD = "windspeed_10m"
DIRECTION_FIELD = "winddirection_10m"


def _finite(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def reduce_wind_series(
    speeds: Sequence[float],
    directions: Sequence[float],
) -> Optional[Tuple[float, float]]:
    """Reduce paired hourly series to (mean speed, circular-mean direction).

    Directions are averaged as unit vectors, so 350° and 10° give 0°
    rather than 180°.  Pairs where either value is missing or non-finite
    are dropped.  Returns None if the series differ in length or no pair
    is usable.
    """
    if len(speeds) != len(directions):
        return None

    pairs = [(s, d) for s, d in zip(speeds, directions) if _finite(s) and _finite(d)]
    if not pairs:
        return None

    spd = np.array([p[0] for p in pairs], dtype=float)
    rad = np.radians(np.array([p[1] for p in pairs], dtype=float) % 360.0)

    mean_speed = float(np.mean(spd))
    mean_dir = float(np.degrees(np.arctan2(np.mean(np.sin(rad)), np.mean(np.cos(rad)))))
    mean_dir %= 360.0
    if mean_dir >= 360.0:   # -tiny % 360 rounds up to 360.0
        mean_dir = 0.0

    return max(mean_speed, 0.0), mean_dir


class WindPointSampler:
    """Fetches and reduces the wind series for one tile center.

    Parameters
    ----------
    url : str
        Forecast endpoint.
    timeout : float
        HTTP request timeout in seconds.
    session : requests.Session, optional
        Reused for connection pooling when given.
    """

    def __init__(
        self,
        url: str = FORECAST_URL,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self._url = url
        self._timeout = timeout
        self._session = session

    def params_for(self, tile: Tile) -> dict:
        return {
            "latitude": tile.lat,
            "longitude": tile.lon,
            "hourly": f"{SPEED_FIELD},{DIRECTION_FIELD}",
            "timezone": "UTC",
        }

    def fetch(self, tile: Tile) -> Optional[SampleSummary]:
        """Fetch one tile.  Returns None on any failure; never raises for
        network or data problems."""
        getter = self._session.get if self._session is not None else requests.get

        try:
            resp = getter(
                self._url,
                params=self.params_for(tile),
                headers=_HEADERS,
                timeout=self._timeout,
            )
            if not 200 <= resp.status_code < 300:
                log.debug("Wind tile %s: HTTP %d", tile.key, resp.status_code)
                return None

            data = resp.json()
            hourly = data.get("hourly") if isinstance(data, dict) else None
            if not isinstance(hourly, dict):
                log.debug("Wind tile %s: no hourly block", tile.key)
                return None

            speeds = hourly.get(SPEED_FIELD)
            dirs = hourly.get(DIRECTION_FIELD)
            if not isinstance(speeds, list) or not isinstance(dirs, list) \
                    or not speeds or not dirs:
                log.debug("Wind tile %s: missing wind arrays", tile.key)
                return None

        except requests.RequestException as exc:
            log.debug("Wind tile %s: network error: %s", tile.key, exc)
            return None
        except ValueError as exc:
            log.debug("Wind tile %s: parse error: %s", tile.key, exc)
            return None

        reduced = reduce_wind_series(speeds, dirs)
        if reduced is None:
            log.debug("Wind tile %s: no usable samples", tile.key)
            return None

        speed, direction = reduced
        return SampleSummary(tile=tile, speed=speed, direction=direction)
