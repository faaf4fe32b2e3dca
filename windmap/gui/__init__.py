"""Qt adapters for the wind scheduler."""
