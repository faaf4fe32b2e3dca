"""
Global tile grid.

The globe is subdivided into square lat/lon cells of ``tile_size_deg``
degrees.  Each tile is identified by its center; the grid is generated
row by row from the south-west corner, longitude first, so the order is
the same on every call.  The scheduler slices this order into batches.

Usage
-----
    grid = generate_tiles(10.0)
    print(f"{len(grid)} tiles")       # 648
    for tile in grid[:3]:
        print(tile.key, tile.bbox)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from shapely.geometry import Polygon, box

from ..config import ConfigurationError


def tile_key(lat: float, lon: float) -> str:
    """Stable identity of a tile center (fixed 6-decimal precision)."""
    return f"{lat:.6f}_{lon:.6f}"


@dataclass(frozen=True)
class Tile:
    """One grid cell, identified by its center."""

    lat: float
    lon: float
    size: float = 10.0

    @property
    def key(self) -> str:
        return tile_key(self.lat, self.lon)

    @property
    def north(self) -> float:
        return min(self.lat + self.size / 2.0, 90.0)

    @property
    def south(self) -> float:
        return max(self.lat - self.size / 2.0, -90.0)

    @property
    def east(self) -> float:
        return min(self.lon + self.size / 2.0, 180.0)

    @property
    def west(self) -> float:
        return max(self.lon - self.size / 2.0, -180.0)

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north)"""
        return (self.west, self.south, self.east, self.north)

    @property
    def polygon(self) -> Polygon:
        return box(*self.bbox)

    def as_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "north": self.north,
            "south": self.south,
            "east": self.east,
            "west": self.west,
        }


def generate_tiles(tile_size_deg: float = 10.0) -> List[Tile]:
    """Build the global tile grid.

    Parameters
    ----------
    tile_size_deg : float
        Tile edge length in degrees, in (0, 180].

    Returns
    -------
    list[Tile]
        Tiles ordered south → north, and west → east within each row.
    """
    if not 0 < tile_size_deg <= 180:
        raise ConfigurationError(
            f"tile_size_deg must be in (0, 180], got {tile_size_deg!r}"
        )

    half = tile_size_deg / 2.0
    tiles: List[Tile] = []

    # Centers are origin + index * size to avoid float drift across rows
    row = 0
    while True:
        lat = -90.0 + half + row * tile_size_deg
        if lat >= 90.0:
            break
        col = 0
        while True:
            lon = -180.0 + half + col * tile_size_deg
            if lon >= 180.0:
                break
            tiles.append(Tile(lat=lat, lon=lon, size=tile_size_deg))
            col += 1
        row += 1

    return tiles


def tiles_to_geojson(tiles: List[Tile]) -> dict:
    """Export tiles as a GeoJSON FeatureCollection for debugging."""
    from shapely.geometry import mapping

    features = []
    for index, t in enumerate(tiles):
        features.append({
            "type": "Feature",
            "properties": {
                "key": t.key,
                "index": index,
                "center_lat": round(t.lat, 6),
                "center_lon": round(t.lon, 6),
            },
            "geometry": mapping(t.polygon),
        })

    return {
        "type": "FeatureCollection",
        "features": features,
    }
