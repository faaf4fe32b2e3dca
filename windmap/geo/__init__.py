"""Tile grid, wind state model and drawing helpers."""
