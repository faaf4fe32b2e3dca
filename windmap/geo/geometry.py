"""
Drawing helpers for the wind and balloon layers.

Pure functions only: they turn tiles, summaries and balloon tracks into
coordinates and GeoJSON that any map widget can draw.

Usage
-----
    arrow = arrow_geometry(lat=45.0, lon=-5.0, direction_deg=270.0, length_km=300)
    colour = speed_to_color(32.0)
    fc = wind_to_geojson(snapshot.summaries)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pyproj
from shapely.geometry import LineString, Point, mapping

from .wind_state import SampleSummary

_GEOD = pyproj.Geod(ellps="WGS84")

LonLat = Tuple[float, float]

# Wind speed (km/h) → colour ramp
DEFAULT_SPEED_STOPS: Sequence[Tuple[float, str]] = (
    (0.0, "#3288bd"),
    (10.0, "#66c2a5"),
    (20.0, "#abdda4"),
    (30.0, "#fee08b"),
    (45.0, "#f46d43"),
    (60.0, "#d53e4f"),
)

# Balloon track palette
BALLOON_COLORS = [
    "#e63946", "#457b9d", "#2a9d8f", "#f4a261",
    "#8d99ae", "#ffb703", "#219ebc", "#d62828",
    "#7209b7", "#06ffa5", "#ff006e", "#8338ec",
]


@dataclass(frozen=True)
class ArrowGeometry:
    """Shaft and head polylines of one wind arrow, as (lon, lat) pairs."""
    shaft: Tuple[LonLat, LonLat]
    head: Tuple[LonLat, LonLat, LonLat]

    @property
    def tip(self) -> LonLat:
        return self.shaft[1]


def normalize_across_antimeridian(points: Sequence[LonLat]) -> List[LonLat]:
    """Unwrap a (lon, lat) path so it stays continuous across ±180°.

    Each point's longitude is shifted by 360° when it jumps more than 180°
    from the previous (already shifted) point.
    """
    if len(points) < 2:
        return [tuple(p) for p in points]

    adjusted: List[LonLat] = [(points[0][0], points[0][1])]
    for lon, lat in points[1:]:
        delta = lon - adjusted[-1][0]
        if delta > 180.0:
            lon -= 360.0
        elif delta < -180.0:
            lon += 360.0
        adjusted.append((lon, lat))
    return adjusted


def arrow_geometry(
    lat: float,
    lon: float,
    direction_deg: float,
    length_km: float = 400.0,
    head_fraction: float = 0.3,
    head_angle_deg: float = 25.0,
) -> ArrowGeometry:
    """Build a wind arrow centred on (lat, lon).

    *direction_deg* is the meteorological direction the wind blows FROM,
    so the arrow points toward ``direction_deg + 180``.  Lengths are
    geodesic on the WGS84 ellipsoid.
    """
    heading = (direction_deg + 180.0) % 360.0
    half_m = length_km * 1000.0 / 2.0

    tail_lon, tail_lat, _ = _GEOD.fwd(lon, lat, heading + 180.0, half_m)
    tip_lon, tip_lat, back_az = _GEOD.fwd(lon, lat, heading, half_m)

    head_m = length_km * 1000.0 * head_fraction
    left_lon, left_lat, _ = _GEOD.fwd(tip_lon, tip_lat, back_az - head_angle_deg, head_m)
    right_lon, right_lat, _ = _GEOD.fwd(tip_lon, tip_lat, back_az + head_angle_deg, head_m)

    tip = (tip_lon, tip_lat)
    return ArrowGeometry(
        shaft=((tail_lon, tail_lat), tip),
        head=((left_lon, left_lat), tip, (right_lon, right_lat)),
    )


def _hex_to_rgb(colour: str) -> Tuple[int, int, int]:
    c = colour.lstrip("#")
    return int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16)


def speed_to_color(
    speed: float,
    stops: Sequence[Tuple[float, str]] = DEFAULT_SPEED_STOPS,
) -> str:
    """Linearly interpolate *speed* along a colour ramp; returns ``#rrggbb``.

    Speeds outside the ramp are clamped to the end colours.
    """
    if not stops:
        raise ValueError("speed_to_color needs at least one stop")

    xs = np.array([s for s, _ in stops], dtype=float)
    rgb = np.array([_hex_to_rgb(c) for _, c in stops], dtype=float)

    channels = [np.interp(speed, xs, rgb[:, i]) for i in range(3)]
    r, g, b = (int(round(float(v))) for v in channels)
    return f"#{r:02x}{g:02x}{b:02x}"


def wind_to_geojson(
    summaries: Sequence[SampleSummary],
    arrow_length_km: Optional[float] = None,
) -> Dict:
    """Wind tiles as a FeatureCollection.

    Each summary yields one Polygon feature (the tile) and, when
    *arrow_length_km* is given, one MultiLineString arrow feature.
    """
    features = []
    for s in summaries:
        props = {
            "key": s.key,
            "speed": round(s.speed, 2),
            "direction": round(s.direction, 1),
            "color": speed_to_color(s.speed),
        }
        features.append({
            "type": "Feature",
            "properties": dict(props, kind="tile"),
            "geometry": mapping(s.tile.polygon),
        })
        if arrow_length_km:
            arrow = arrow_geometry(s.tile.lat, s.tile.lon, s.direction, arrow_length_km)
            features.append({
                "type": "Feature",
                "properties": dict(props, kind="arrow"),
                "geometry": {
                    "type": "MultiLineString",
                    "coordinates": [list(arrow.shaft), list(arrow.head)],
                },
            })
    return {"type": "FeatureCollection", "features": features}


def _valid_position(lat: float, lon: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def trails_to_geojson(histories: Dict[str, list]) -> Dict:
    """Balloon trails and last-position markers as a FeatureCollection.

    *histories* maps balloon id → samples with ``lat``/``lon``/``alt``
    attributes, oldest sample last.  Samples off the globe are dropped;
    a trail needs at least two valid samples.
    """
    features = []
    for idx, (balloon_id, samples) in enumerate(histories.items()):
        colour = BALLOON_COLORS[idx % len(BALLOON_COLORS)]
        valid = [s for s in samples if _valid_position(s.lat, s.lon)]
        if not valid:
            continue

        # Markers sit on the most recent position
        latest = min(valid, key=lambda s: s.hour)
        features.append({
            "type": "Feature",
            "properties": {"id": balloon_id, "kind": "marker",
                           "color": colour, "alt": latest.alt},
            "geometry": mapping(Point(latest.lon, latest.lat)),
        })

        if len(valid) < 2:
            continue
        ordered = sorted(valid, key=lambda s: s.hour, reverse=True)
        path = normalize_across_antimeridian([(s.lon, s.lat) for s in ordered])
        features.append({
            "type": "Feature",
            "properties": {"id": balloon_id, "kind": "trail", "color": colour},
            "geometry": mapping(LineString(path)),
        })

    return {"type": "FeatureCollection", "features": features}
