from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum


class DistanceMetric(StrEnum):
    euclidean = "euclidean"
    chebyshev = "chebyshev"


# Fixed location of the classroom the map opens on.
HOME_LAT = 36.997936938057016
HOME_LNG = -122.05703507501151

# Approx metres per degree, only used for the range circle overlay.
METERS_PER_DEG = 111_320


@dataclass(frozen=True, slots=True)
class GameConfig:
    tile_degrees: float = 1e-4
    spawn_probability: float = 0.1
    # Interaction radius in grid steps.
    interact_range: int = 5
    win_value: int = 32
    distance_metric: DistanceMetric = DistanceMetric.euclidean
    home_lat: float = HOME_LAT
    home_lng: float = HOME_LNG
    luck_seed: str | None = None
    # Seconds a transient message stays visible.
    message_ttl: float = 1.4

    def __post_init__(self) -> None:
        if self.tile_degrees <= 0:
            raise ValueError("tile_degrees must be > 0")
        if not 0.0 <= self.spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0, 1]")
        if self.interact_range < 0:
            raise ValueError("interact_range must be >= 0")
        if self.win_value <= 0:
            raise ValueError("win_value must be > 0")

    @property
    def range_radius_meters(self) -> float:
        return self.interact_range * self.tile_degrees * METERS_PER_DEG


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number (got {raw!r})") from e


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from e


def config_from_env() -> GameConfig:
    metric_raw = os.environ.get("GEOMERGE_DISTANCE_METRIC", DistanceMetric.euclidean.value)
    try:
        metric = DistanceMetric(metric_raw.casefold())
    except ValueError as e:
        allowed = ",".join(m.value for m in DistanceMetric)
        raise ValueError(f"GEOMERGE_DISTANCE_METRIC must be one of {allowed} (got {metric_raw!r})") from e

    return GameConfig(
        tile_degrees=_float_env("GEOMERGE_TILE_DEGREES", 1e-4),
        spawn_probability=_float_env("GEOMERGE_SPAWN_PROBABILITY", 0.1),
        interact_range=_int_env("GEOMERGE_INTERACT_RANGE", 5),
        win_value=_int_env("GEOMERGE_WIN_VALUE", 32),
        distance_metric=metric,
        home_lat=_float_env("GEOMERGE_HOME_LAT", HOME_LAT),
        home_lng=_float_env("GEOMERGE_HOME_LNG", HOME_LNG),
        luck_seed=os.environ.get("GEOMERGE_LUCK_SEED") or None,
    )
