"""External data clients and the wind acquisition scheduler."""
