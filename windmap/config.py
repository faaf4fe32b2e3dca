"""
Scheduler configuration.

All tunables of the wind acquisition loop live in one frozen dataclass so
they can be validated once at startup.  Values can be overridden from a
JSON file (``--config path/to/wind.json``); keys not listed here are
rejected.

Usage
-----
    cfg = load_config(Path("config/wind.json"))
    fast = cfg.replace(sub_batch_delay_s=0.0)
"""
from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
BALLOON_URL = "https://a.windbornesystems.com/treasure/"


class ConfigurationError(ValueError):
    """Raised when a configuration value is unusable."""


@dataclass(frozen=True)
class WindConfig:
    """Tunables for the tile grid, sampler and scheduler."""

    tile_size_deg: float = 10.0
    batch_size: int = 24
    sub_batch_size: int = 24
    max_concurrency: int = 10

    # Delays (seconds)
    sub_batch_delay_s: float = 5.0
    sweep_batch_delay_s: float = 60.0
    steady_batch_delay_s: float = 7200.0     # 2 h
    refresh_interval_s: float = 7200.0       # 2 h

    # Batches per cycle that use the short sweep delay
    sweep_batch_threshold: int = 27
    reset_batch_count_at_threshold: bool = True

    request_timeout_s: float = 20.0
    forecast_url: str = FORECAST_URL
    balloon_url: str = BALLOON_URL

    def validate(self) -> "WindConfig":
        """Check every field; returns self so calls can be chained."""
        if not 0 < self.tile_size_deg <= 180:
            raise ConfigurationError(
                f"tile_size_deg must be in (0, 180], got {self.tile_size_deg!r}"
            )
        for name in ("batch_size", "sub_batch_size", "max_concurrency",
                     "sweep_batch_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value!r}"
                )
        for name in ("sub_batch_delay_s", "sweep_batch_delay_s",
                     "steady_batch_delay_s", "refresh_interval_s"):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"{name} must not be negative, got {getattr(self, name)!r}"
                )
        if self.request_timeout_s <= 0:
            raise ConfigurationError(
                f"request_timeout_s must be positive, got {self.request_timeout_s!r}"
            )
        if not self.forecast_url or not self.balloon_url:
            raise ConfigurationError("forecast_url and balloon_url must be set")
        return self

    def replace(self, **changes: Any) -> "WindConfig":
        """Return a validated copy with *changes* applied."""
        return dataclasses.replace(self, **changes).validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WindConfig":
        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            default = known[key].default
            # JSON has no int/float distinction for whole numbers
            if isinstance(default, float) and isinstance(value, int) \
                    and not isinstance(value, bool):
                value = float(value)
            if type(value) is not type(default):
                raise ConfigurationError(
                    f"{key} must be {type(default).__name__}, "
                    f"got {type(value).__name__}"
                )
            kwargs[key] = value
        return cls(**kwargs).validate()

    def as_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def load_config(path: Optional[Path] = None) -> WindConfig:
    """Load a WindConfig from a JSON file, or the defaults if *path* is None."""
    if path is None:
        return WindConfig().validate()

    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read config {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must contain a JSON object")

    cfg = WindConfig.from_dict(data)
    log.info("Loaded config from %s", path)
    return cfg
